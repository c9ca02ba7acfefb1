from sqlalchemy import Column, String, Boolean, DateTime, Enum as SQLEnum, Integer, Text
from datetime import datetime
import enum

from studyshala.core.database import Base
from studyshala.core.types import GUID, generate_uuid


class UserRole(str, enum.Enum):
    """User roles"""
    STUDENT = "student"
    FACULTY = "faculty"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value, default: "UserRole" = None) -> "UserRole":
        """Map a free-form role string onto the enum, falling back to default"""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            if default is None:
                raise
            return default


class User(Base):
    """User model, created on first Google sign-in"""
    __tablename__ = "users"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    google_id = Column(String(255), unique=True, index=True, nullable=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=True)
    avatar_url = Column(Text, nullable=True)

    role = Column(SQLEnum(UserRole), default=UserRole.STUDENT, nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)

    # College fields
    department = Column(String(100), nullable=True)
    semester = Column(Integer, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login = Column(DateTime, nullable=True)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def __repr__(self):
        return f"<User {self.email} ({self.role.value if self.role else '-'})>"
