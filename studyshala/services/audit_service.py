"""
Audit Service - append-only activity trail.

Callers commit their primary change first and then append the entry, so a
failed audit write never undoes the operation it describes.
"""
from typing import Any, Dict, List, Optional

from fastapi import Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from studyshala.core.logging_config import logger
from studyshala.models.audit_log import AuditAction, AuditLog
from studyshala.models.user import User


def get_client_ip(request: Optional[Request]) -> Optional[str]:
    """Client IP, honouring the first X-Forwarded-For hop"""
    if request is None:
        return None
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()[:45]
    return request.client.host if request.client else None


async def log_action(
    db: AsyncSession,
    action: AuditAction,
    user: Optional[User] = None,
    resource_type: Optional[str] = None,
    resource_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    request: Optional[Request] = None,
    actor_email: Optional[str] = None,
) -> Optional[AuditLog]:
    """Append an audit entry; failures are logged, never raised"""
    entry = AuditLog(
        user_id=str(user.id) if user else None,
        actor_email=actor_email or (user.email if user else None),
        action=action.value if isinstance(action, AuditAction) else str(action),
        resource_type=resource_type,
        resource_id=str(resource_id) if resource_id is not None else None,
        details=details,
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent") if request else None,
    )
    try:
        db.add(entry)
        await db.commit()
        return entry
    except Exception as e:
        await db.rollback()
        logger.log_error_with_context(e, context=f"audit:{entry.action}")
        return None


async def recent_entries(db: AsyncSession, limit: int = 10) -> List[Dict[str, Any]]:
    """Newest entries joined with the actor's current profile, when it still exists"""
    result = await db.execute(
        select(AuditLog, User)
        .outerjoin(User, User.id == AuditLog.user_id)
        .order_by(AuditLog.created_at.desc())
        .limit(limit)
    )
    entries = []
    for log, user in result.all():
        entries.append({
            "id": str(log.id),
            "action": log.action,
            "resource_type": log.resource_type,
            "resource_id": log.resource_id,
            "details": log.details,
            "created_at": log.created_at,
            "user": {
                "id": str(user.id),
                "name": user.full_name,
                "email": user.email,
                "role": user.role.value,
            } if user else (
                {"id": log.user_id, "name": None, "email": log.actor_email, "role": None}
                if log.user_id or log.actor_email else None
            ),
        })
    return entries
