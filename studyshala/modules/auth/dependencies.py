from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Callable, Optional
import uuid

from studyshala.core.database import get_db
from studyshala.core.exceptions import (
    AccountDeactivatedError,
    AuthorizationError,
    InvalidTokenError,
    MissingTokenError,
    UserNotFoundForTokenError,
)
from studyshala.core.logging_config import set_user_id
from studyshala.core.security import decode_token
from studyshala.models.user import User, UserRole

# auto_error=False so a missing header surfaces as our NO_TOKEN error
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> User:
    """
    Get current authenticated user.

    The user record is re-read on every request, so a deactivation takes
    effect immediately for tokens that are still within their lifetime.
    """
    if credentials is None or not credentials.credentials:
        raise MissingTokenError()

    payload = decode_token(credentials.credentials)
    user_id = payload["sub"]

    try:
        uuid.UUID(user_id)
    except ValueError:
        raise InvalidTokenError()

    result = await db.execute(
        select(User).where(User.id == user_id)
    )
    user = result.scalar_one_or_none()

    if not user:
        raise UserNotFoundForTokenError()

    if not user.is_active:
        raise AccountDeactivatedError()

    set_user_id(str(user.id))
    return user


def require_roles(*roles: UserRole) -> Callable:
    """
    Build a dependency admitting only users whose role is one of `roles`.

    Usage:
        @router.get("/stats")
        async def stats(user: User = Depends(require_roles(UserRole.ADMIN))):
            ...
    """
    allowed = tuple(roles)
    label = " or ".join(role.value.capitalize() for role in allowed)

    async def role_guard(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            raise AuthorizationError(f"Access denied. {label} only.")
        return current_user

    return role_guard


def require_role(role: UserRole) -> Callable:
    """Exact-role guard"""
    return require_roles(role)


get_current_student = require_role(UserRole.STUDENT)
get_current_faculty = require_role(UserRole.FACULTY)
get_current_admin = require_role(UserRole.ADMIN)
