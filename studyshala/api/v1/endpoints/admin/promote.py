from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from studyshala.core.database import get_db
from studyshala.models.user import User
from studyshala.modules.auth.dependencies import get_current_user
from studyshala.schemas.admin import SelfPromoteResponse
from studyshala.schemas.auth import UserSnapshot
from studyshala.services import admin_service

router = APIRouter()


@router.post("/self-promote", response_model=SelfPromoteResponse)
async def self_promote(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Become admin if the caller's email is on the server-side allow-list"""
    token = await admin_service.self_promote(db, current_user, request)
    return SelfPromoteResponse(
        message="You are now an admin",
        access_token=token,
        user=UserSnapshot.model_validate(current_user),
    )
