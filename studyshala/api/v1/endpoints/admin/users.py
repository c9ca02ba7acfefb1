"""
Admin User Management endpoints.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from studyshala.core.database import get_db
from studyshala.models.user import User
from studyshala.modules.auth.dependencies import get_current_admin
from studyshala.schemas.admin import AdminUserResponse, AdminUsersResponse, RoleUpdateRequest
from studyshala.schemas.auth import MessageResponse
from studyshala.services import admin_service
from studyshala.services.drive_service import DriveService, get_drive_service

router = APIRouter()


@router.get("", response_model=AdminUsersResponse)
async def list_users(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    role: Optional[str] = None,
    is_active: Optional[bool] = None,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """List users with search, role and status filters"""
    users, total, total_pages = await admin_service.list_users(
        db, page=page, page_size=page_size, search=search, role=role, is_active=is_active
    )
    return AdminUsersResponse(
        items=[AdminUserResponse.model_validate(u) for u in users],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages,
    )


@router.patch("/{user_id}/deactivate", response_model=AdminUserResponse)
async def deactivate_user(
    user_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """Block a user; their existing tokens stop working on the next request"""
    return await admin_service.set_user_active(db, current_admin, user_id, False, request)


@router.patch("/{user_id}/activate", response_model=AdminUserResponse)
async def activate_user(
    user_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    return await admin_service.set_user_active(db, current_admin, user_id, True, request)


@router.patch("/{user_id}/role", response_model=AdminUserResponse)
async def update_role(
    user_id: str,
    payload: RoleUpdateRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    return await admin_service.change_role(db, current_admin, user_id, payload.role, request)


@router.delete("/{user_id}", response_model=MessageResponse)
async def remove_user(
    user_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    drive: DriveService = Depends(get_drive_service),
    current_admin: User = Depends(get_current_admin)
):
    """Permanently remove a user; a faculty account takes its folders with it"""
    result = await admin_service.remove_user(db, current_admin, user_id, drive=drive, request=request)
    return {"message": f"User removed ({result['materials_removed']} folders deleted)"}
