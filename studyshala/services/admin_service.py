"""
Admin Service - user management and dashboard analytics.

Analytics are recomputed on every call; there is no cache to go stale.
"""
import math
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple, List

from fastapi import Request
from sqlalchemy import and_, delete, distinct, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from studyshala.core.config import settings
from studyshala.core.exceptions import (
    AuthorizationError,
    DriveServiceError,
    ProtectedUserError,
    UserNotFoundError,
    ValidationError,
)
from studyshala.core.logging_config import logger
from studyshala.core.security import create_user_token
from studyshala.models.audit_log import AuditAction, AuditLog
from studyshala.models.material import AccessHistory, Material, SavedMaterial
from studyshala.models.user import User, UserRole
from studyshala.services.audit_service import log_action, recent_entries
from studyshala.services.drive_service import DriveService


def local_midnight_utc(now: Optional[datetime] = None) -> datetime:
    """Start of today in the server's local timezone, as naive UTC"""
    local_now = (now or datetime.now().astimezone())
    midnight = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight.astimezone(timezone.utc).replace(tzinfo=None)


# ==================== Dashboard ====================

async def get_stats(db: AsyncSession) -> Dict[str, int]:
    async def count(*conditions) -> int:
        query = select(func.count(User.id))
        if conditions:
            query = query.where(and_(*conditions))
        return await db.scalar(query) or 0

    total_departments = await db.scalar(
        select(func.count(distinct(Material.department))).where(Material.is_active.is_(True))
    ) or 0
    total_materials = await db.scalar(select(func.count(Material.id))) or 0
    active_materials = await db.scalar(
        select(func.count(Material.id)).where(Material.is_active.is_(True))
    ) or 0

    return {
        "total_users": await count(User.is_active.is_(True)),
        "total_faculty": await count(User.role == UserRole.FACULTY, User.is_active.is_(True)),
        "total_students": await count(User.role == UserRole.STUDENT, User.is_active.is_(True)),
        "total_admins": await count(User.role == UserRole.ADMIN),
        "deactivated_users": await count(User.is_active.is_(False)),
        "total_departments": total_departments,
        "total_materials": total_materials,
        "active_materials": active_materials,
    }


async def get_analytics(db: AsyncSession, limit: int = None, recent: int = None) -> Dict[str, Any]:
    limit = limit or settings.ANALYTICS_TOP_N
    recent = recent or settings.ANALYTICS_RECENT_ACTIVITY

    material_count = func.count(Material.id).label("material_count")
    top_faculty_rows = await db.execute(
        select(User.id, User.full_name, User.email, material_count)
        .join(Material, Material.faculty_id == User.id)
        .where(Material.is_active.is_(True))
        .group_by(User.id, User.full_name, User.email)
        .order_by(material_count.desc())
        .limit(limit)
    )
    top_faculty = [
        {"faculty_id": str(row.id), "name": row.full_name, "email": row.email,
         "material_count": row.material_count}
        for row in top_faculty_rows.all()
    ]

    popular_rows = await db.execute(
        select(Material)
        .where(Material.is_active.is_(True))
        .order_by(Material.access_count.desc(), Material.created_at.desc())
        .limit(limit)
    )
    popular_subjects = [
        {"material_id": m.id, "subject_name": m.subject_name, "department": m.department,
         "faculty_name": m.faculty_name, "access_count": m.access_count}
        for m in popular_rows.scalars().all()
    ]

    daily_active_users = await db.scalar(
        select(func.count(User.id)).where(
            User.is_active.is_(True),
            User.last_login >= local_midnight_utc(),
        )
    ) or 0

    return {
        "top_faculty": top_faculty,
        "popular_subjects": popular_subjects,
        "daily_active_users": daily_active_users,
        "recent_activity": await recent_entries(db, recent),
        "generated_at": datetime.utcnow(),
    }


# ==================== Users ====================

async def list_users(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
    search: Optional[str] = None,
    role: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> Tuple[List[User], int, int]:
    """Returns (users, total, total_pages)"""
    query = select(User)

    conditions = []
    if search:
        search_term = f"%{search.strip()}%"
        conditions.append(or_(
            User.email.ilike(search_term),
            User.full_name.ilike(search_term),
        ))

    if role:
        try:
            conditions.append(User.role == UserRole(role.lower()))
        except ValueError:
            raise ValidationError(f"Invalid role '{role}'", field="role")

    if is_active is not None:
        conditions.append(User.is_active == is_active)

    if conditions:
        query = query.where(and_(*conditions))

    total = await db.scalar(select(func.count()).select_from(query.subquery())) or 0

    offset = (page - 1) * page_size
    result = await db.execute(
        query.order_by(User.created_at.desc()).offset(offset).limit(page_size)
    )
    users = list(result.scalars().all())
    total_pages = math.ceil(total / page_size) if total > 0 else 1
    return users, total, total_pages


async def list_audit_logs(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 50,
    action: Optional[str] = None,
    user_id: Optional[str] = None,
) -> Tuple[List[AuditLog], int, int]:
    query = select(AuditLog)
    if action:
        query = query.where(AuditLog.action == action)
    if user_id:
        query = query.where(AuditLog.user_id == user_id)

    total = await db.scalar(select(func.count()).select_from(query.subquery())) or 0
    result = await db.execute(
        query.order_by(AuditLog.created_at.desc()).offset((page - 1) * page_size).limit(page_size)
    )
    total_pages = math.ceil(total / page_size) if total > 0 else 1
    return list(result.scalars().all()), total, total_pages


async def _get_user(db: AsyncSession, user_id: str) -> User:
    user = await db.get(User, str(user_id))
    if not user:
        raise UserNotFoundError(str(user_id))
    return user


async def set_user_active(
    db: AsyncSession, admin: User, user_id: str, active: bool, request: Request = None
) -> User:
    user = await _get_user(db, user_id)
    if user.role == UserRole.ADMIN and not active:
        raise ProtectedUserError("deactivate")

    user.is_active = active
    await db.commit()

    logger.info(f"[Admin] {admin.email} {'activated' if active else 'deactivated'} {user.email}")
    await log_action(
        db,
        AuditAction.USER_ACTIVATED if active else AuditAction.USER_DEACTIVATED,
        user=admin,
        resource_type="user",
        resource_id=user.id,
        details={"email": user.email},
        request=request,
    )
    return user


async def change_role(
    db: AsyncSession, admin: User, user_id: str, role: str, request: Request = None
) -> User:
    try:
        new_role = UserRole((role or "").strip().lower())
    except ValueError:
        raise ValidationError("Invalid role", field="role")

    user = await _get_user(db, user_id)
    if new_role == UserRole.ADMIN and not settings.is_admin_email(user.email):
        raise AuthorizationError("Only allow-listed emails can be made admin", code="NOT_ADMIN")

    previous = user.role
    if previous == new_role:
        return user

    user.role = new_role
    await db.commit()

    await log_action(
        db,
        AuditAction.ROLE_CHANGED,
        user=admin,
        resource_type="user",
        resource_id=user.id,
        details={"from": previous.value, "to": new_role.value, "source": "admin", "email": user.email},
        request=request,
    )
    return user


async def remove_user(
    db: AsyncSession,
    admin: User,
    user_id: str,
    drive: Optional[DriveService] = None,
    request: Request = None,
) -> Dict[str, int]:
    """
    Hard-delete a user.

    Removing a faculty account also deletes their materials with the files,
    saved entries and history entries that point at them. Drive folders are
    removed best-effort.
    """
    user = await _get_user(db, user_id)
    if user.role == UserRole.ADMIN:
        raise ProtectedUserError("remove")

    email, role = user.email, user.role
    removed_materials = 0

    owned = await db.execute(select(Material).where(Material.faculty_id == user.id))
    materials = list(owned.scalars().all())
    if materials:
        material_ids = [m.id for m in materials]
        await db.execute(delete(SavedMaterial).where(SavedMaterial.material_id.in_(material_ids)))
        await db.execute(delete(AccessHistory).where(AccessHistory.material_id.in_(material_ids)))
        for material in materials:
            if drive is not None and drive.enabled and material.drive_folder_id:
                try:
                    await drive.delete_file(material.drive_folder_id)
                except DriveServiceError as e:
                    logger.warning(f"[Admin] Drive folder cleanup failed for {material.id}: {e.message}")
            await db.delete(material)
        removed_materials = len(materials)
        await db.flush()

    await db.execute(delete(SavedMaterial).where(SavedMaterial.user_id == user.id))
    await db.execute(delete(AccessHistory).where(AccessHistory.user_id == user.id))
    await db.delete(user)
    await db.commit()

    logger.info(f"[Admin] {admin.email} removed {email} ({role.value}), {removed_materials} materials")
    await log_action(
        db,
        AuditAction.USER_REMOVED,
        user=admin,
        resource_type="user",
        resource_id=user_id,
        details={"email": email, "role": role.value, "materials_removed": removed_materials},
        request=request,
    )
    return {"materials_removed": removed_materials}


async def self_promote(db: AsyncSession, user: User, request: Request = None) -> str:
    """Grant admin to an allow-listed caller and return a fresh token"""
    if not settings.is_admin_email(user.email):
        logger.log_auth_event("self_promote", success=False, user_email=user.email, reason="not_allow_listed")
        raise AuthorizationError("Your email is not authorized for admin access", code="NOT_ADMIN")

    previous = user.role
    if previous != UserRole.ADMIN:
        user.role = UserRole.ADMIN
        await db.commit()
        await log_action(
            db,
            AuditAction.ROLE_CHANGED,
            user=user,
            resource_type="user",
            resource_id=user.id,
            details={"from": previous.value, "to": UserRole.ADMIN.value, "source": "self_promote"},
            request=request,
        )

    await log_action(db, AuditAction.SELF_PROMOTED, user=user, resource_type="user",
                     resource_id=user.id, request=request)
    logger.log_auth_event("self_promote", success=True, user_email=user.email)
    return create_user_token(user)
