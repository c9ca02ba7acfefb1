from fastapi import APIRouter
from studyshala.api.v1.endpoints import auth, faculty, student, health
from studyshala.api.v1.endpoints.admin import admin_router

api_router = APIRouter()

api_router.include_router(health.router)

api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(faculty.router, prefix="/faculty", tags=["Faculty"])
api_router.include_router(student.router, prefix="/student", tags=["Student"])
api_router.include_router(admin_router)
