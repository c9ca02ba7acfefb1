
# Re-export all models for convenient imports
from studyshala.models.user import User, UserRole
from studyshala.models.material import (
    Material,
    MaterialFile,
    MaterialPermission,
    SavedMaterial,
    AccessHistory,
)
from studyshala.models.audit_log import AuditLog, AuditAction

__all__ = [
    # User
    "User",
    "UserRole",
    # Materials
    "Material",
    "MaterialFile",
    "MaterialPermission",
    "SavedMaterial",
    "AccessHistory",
    # Audit
    "AuditLog",
    "AuditAction",
]
