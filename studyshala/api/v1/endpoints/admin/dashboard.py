"""
Admin Dashboard endpoints - KPIs and analytics.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from studyshala.core.database import get_db
from studyshala.models.user import User
from studyshala.modules.auth.dependencies import get_current_admin
from studyshala.schemas.admin import AnalyticsResponse, DashboardStats
from studyshala.services import admin_service

router = APIRouter()


@router.get("/stats", response_model=DashboardStats)
async def get_dashboard_stats(
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """Get dashboard KPI statistics"""
    return await admin_service.get_stats(db)


@router.get("/analytics", response_model=AnalyticsResponse)
async def get_analytics(
    limit: int = Query(None, ge=1, le=50),
    recent: int = Query(None, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """Top faculty, most accessed subjects, today's active users and recent activity"""
    return await admin_service.get_analytics(db, limit=limit, recent=recent)
