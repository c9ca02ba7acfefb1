# Authentication module

from studyshala.modules.auth.dependencies import (
    get_current_user,
    get_current_student,
    get_current_faculty,
    get_current_admin,
    require_role,
    require_roles,
)
from studyshala.modules.auth.identity import resolve_identity, LoginResult

__all__ = [
    "get_current_user",
    "get_current_student",
    "get_current_faculty",
    "get_current_admin",
    "require_role",
    "require_roles",
    "resolve_identity",
    "LoginResult",
]
