"""
Identity resolution for Google sign-in.

Maps a verified Google profile plus the role bound to the consumed OAuth
state onto a local user, applying the role policy:

- admin is granted only to emails on ADMIN_EMAILS; a blocked attempt leaves
  the database untouched apart from a login_blocked audit entry
- a stored admin is never downgraded by a login
- other returning users switch between student and faculty at login only
  while LOGIN_ROLE_SWITCH_ENABLED is on
- every role change is audited as an explicit from/to transition
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import Request
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from studyshala.core.config import settings
from studyshala.core.exceptions import AccountDeactivatedError, AdminNotAllowedError
from studyshala.core.logging_config import logger
from studyshala.core.security import create_user_token
from studyshala.models.audit_log import AuditAction
from studyshala.models.user import User, UserRole
from studyshala.services.audit_service import log_action


@dataclass
class LoginResult:
    user: User
    access_token: str
    created: bool = False
    previous_role: Optional[UserRole] = None

    @property
    def role_changed(self) -> bool:
        return self.previous_role is not None and self.previous_role != self.user.role


def decide_login_role(current: UserRole, requested: UserRole) -> UserRole:
    """Role a returning user ends up with after logging in as `requested`"""
    if current == UserRole.ADMIN:
        return UserRole.ADMIN
    if requested == UserRole.ADMIN:
        # Only reachable once the allow-list check has passed
        return UserRole.ADMIN
    if settings.LOGIN_ROLE_SWITCH_ENABLED:
        return requested
    return current


async def _find_user(db: AsyncSession, google_id: str, email: str) -> Optional[User]:
    result = await db.execute(
        select(User).where(or_(User.google_id == google_id, User.email == email))
    )
    users = result.scalars().all()
    # Prefer the record already linked to this Google account
    for user in users:
        if user.google_id == google_id:
            return user
    return users[0] if users else None


async def resolve_identity(
    db: AsyncSession,
    profile: Dict[str, Any],
    requested_role: UserRole,
    request: Optional[Request] = None,
) -> LoginResult:
    """Create or update the local user for a Google profile and issue a token"""
    email = (profile.get("email") or "").strip().lower()
    google_id = str(profile.get("google_id"))
    full_name = profile.get("full_name") or email.split("@")[0]
    avatar_url = profile.get("avatar_url") or None

    if requested_role == UserRole.ADMIN and not settings.is_admin_email(email):
        logger.log_auth_event("google_login", success=False, user_email=email, reason="not_admin")
        await log_action(
            db,
            AuditAction.LOGIN_BLOCKED,
            resource_type="user",
            details={"requested_role": requested_role.value, "reason": "not_admin"},
            request=request,
            actor_email=email,
        )
        raise AdminNotAllowedError(email)

    user = await _find_user(db, google_id, email)
    created = False
    previous_role = None

    if user:
        if not user.is_active:
            logger.log_auth_event("google_login", success=False, user_email=email, reason="account_deactivated")
            raise AccountDeactivatedError()

        previous_role = user.role
        user.role = decide_login_role(user.role, requested_role)
        if not user.google_id:
            user.google_id = google_id
        if profile.get("full_name"):
            user.full_name = full_name
        if avatar_url:
            user.avatar_url = avatar_url
        user.last_login = datetime.utcnow()
    else:
        user = User(
            google_id=google_id,
            email=email,
            full_name=full_name,
            avatar_url=avatar_url,
            role=requested_role,
            is_active=True,
            last_login=datetime.utcnow(),
        )
        db.add(user)
        created = True

    await db.commit()

    result = LoginResult(
        user=user,
        access_token=create_user_token(user),
        created=created,
        previous_role=previous_role,
    )

    if result.role_changed:
        logger.info(f"[Auth] Role changed at login for {email}: {previous_role.value} -> {user.role.value}")
        await log_action(
            db,
            AuditAction.ROLE_CHANGED,
            user=user,
            resource_type="user",
            resource_id=user.id,
            details={"from": previous_role.value, "to": user.role.value, "source": "login"},
            request=request,
        )

    await log_action(
        db,
        AuditAction.USER_LOGGED_IN,
        user=user,
        resource_type="user",
        resource_id=user.id,
        details={"role": user.role.value, "requested_role": requested_role.value, "new_user": created},
        request=request,
    )
    logger.log_auth_event("google_login", success=True, user_email=email, role=user.role.value)

    return result
