"""
Admin API endpoints for the StudyShala admin dashboard.
Everything except self-promotion requires the admin role.
"""
from fastapi import APIRouter

from studyshala.api.v1.endpoints.admin import audit_logs, dashboard, promote, users

admin_router = APIRouter(prefix="/admin", tags=["Admin Dashboard"])

# Include all admin sub-routers
admin_router.include_router(dashboard.router, tags=["Admin Dashboard"])
admin_router.include_router(users.router, prefix="/users", tags=["Admin Users"])
admin_router.include_router(audit_logs.router, prefix="/audit-logs", tags=["Admin Audit Logs"])
admin_router.include_router(promote.router, tags=["Admin Access"])
