from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from studyshala.models.user import UserRole


class UserSnapshot(BaseModel):
    """Identity snapshot handed to the frontend after login"""
    id: str
    name: Optional[str] = Field(None, validation_alias="full_name")
    email: str
    role: UserRole
    department: Optional[str] = None
    semester: Optional[int] = None
    avatar_url: Optional[str] = None

    class Config:
        from_attributes = True
        populate_by_name = True


class CurrentUserResponse(UserSnapshot):
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: datetime


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserSnapshot


class MessageResponse(BaseModel):
    message: str
