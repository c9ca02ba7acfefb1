from sqlalchemy import Column, String, DateTime, Text, JSON
from datetime import datetime
import enum

from studyshala.core.database import Base
from studyshala.core.types import GUID, generate_uuid


class AuditAction(str, enum.Enum):
    """Fixed vocabulary of audited actions"""
    USER_LOGGED_IN = "user_logged_in"
    LOGIN_BLOCKED = "login_blocked"
    USER_LOGGED_OUT = "user_logged_out"
    ROLE_CHANGED = "role_changed"
    SELF_PROMOTED = "self_promoted"
    MATERIAL_ACCESSED = "material_accessed"
    MATERIAL_SAVED = "material_saved"
    MATERIAL_UNSAVED = "material_unsaved"
    FILE_DOWNLOADED = "file_downloaded"
    FOLDER_CREATED = "folder_created"
    FILES_UPLOADED = "files_uploaded"
    FILE_DELETED = "file_deleted"
    FOLDER_DELETED = "folder_deleted"
    USER_DEACTIVATED = "user_deactivated"
    USER_ACTIVATED = "user_activated"
    USER_REMOVED = "user_removed"


class AuditLog(Base):
    """
    Append-only audit trail.

    user_id has no foreign key so entries outlive removed accounts; the
    actor's email is kept as a snapshot for the same reason.
    """
    __tablename__ = "audit_logs"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    user_id = Column(GUID, nullable=True, index=True)
    actor_email = Column(String(255), nullable=True)

    action = Column(String(100), nullable=False, index=True)
    resource_type = Column(String(50), nullable=True)  # e.g. 'user', 'material', 'file'
    resource_id = Column(String(64), nullable=True)

    details = Column(JSON, nullable=True)

    # Request metadata
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog {self.action} by {self.user_id}>"
