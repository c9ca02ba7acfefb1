from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime

from studyshala.models.user import UserRole
from studyshala.schemas.auth import TokenResponse


# ==================== Dashboard Schemas ====================

class DashboardStats(BaseModel):
    """Dashboard KPI statistics"""
    total_users: int
    total_faculty: int
    total_students: int
    total_admins: int
    deactivated_users: int
    total_departments: int
    total_materials: int
    active_materials: int


class TopFaculty(BaseModel):
    faculty_id: str
    name: Optional[str]
    email: str
    material_count: int


class PopularSubject(BaseModel):
    material_id: str
    subject_name: str
    department: str
    faculty_name: str
    access_count: int


class ActivityUser(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None


class ActivityItem(BaseModel):
    """Single audit entry for the activity feed"""
    id: str
    action: str
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    created_at: datetime
    user: Optional[ActivityUser] = None


class AnalyticsResponse(BaseModel):
    top_faculty: List[TopFaculty]
    popular_subjects: List[PopularSubject]
    daily_active_users: int
    recent_activity: List[ActivityItem]
    generated_at: datetime


# ==================== User Management Schemas ====================

class AdminUserResponse(BaseModel):
    """User row for the admin table"""
    id: str
    email: str
    full_name: Optional[str]
    role: UserRole
    department: Optional[str] = None
    semester: Optional[int] = None
    is_active: bool
    avatar_url: Optional[str] = None
    created_at: datetime
    last_login: Optional[datetime] = None

    class Config:
        from_attributes = True


class AdminUsersResponse(BaseModel):
    items: List[AdminUserResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class RoleUpdateRequest(BaseModel):
    role: str = Field(..., description="student, faculty or admin")


class SelfPromoteResponse(TokenResponse):
    message: str


# ==================== Audit Log Schemas ====================

class AuditLogResponse(BaseModel):
    id: str
    user_id: Optional[str] = None
    actor_email: Optional[str] = None
    action: str
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class AuditLogsResponse(BaseModel):
    items: List[AuditLogResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
