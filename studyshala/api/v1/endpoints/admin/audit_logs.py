"""
Admin Audit Logs endpoints.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from studyshala.core.database import get_db
from studyshala.models.user import User
from studyshala.modules.auth.dependencies import get_current_admin
from studyshala.schemas.admin import AuditLogResponse, AuditLogsResponse
from studyshala.services import admin_service

router = APIRouter()


@router.get("", response_model=AuditLogsResponse)
async def list_audit_logs(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    action: Optional[str] = None,
    user_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """List audit logs with filtering and pagination"""
    logs, total, total_pages = await admin_service.list_audit_logs(
        db, page=page, page_size=page_size, action=action, user_id=user_id
    )
    return AuditLogsResponse(
        items=[AuditLogResponse.model_validate(log) for log in logs],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages,
    )
