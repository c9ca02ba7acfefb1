"""Column types shared by the models"""
import uuid

from sqlalchemy import TypeDecorator, String


def generate_uuid() -> str:
    return str(uuid.uuid4())


class GUID(TypeDecorator):
    """
    UUID primary and foreign keys kept as 36-character strings on every backend,
    so ids compare equal between SQLite tests and PostgreSQL and travel through
    JWT subjects and URLs unchanged.
    """
    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else str(value)
