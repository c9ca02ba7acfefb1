from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime

from studyshala.models.material import MaterialPermission


class MaterialCreate(BaseModel):
    """
    New folder request.

    The text fields are optional here so a missing value is reported by the
    service as a 400 "All fields are required" rather than a schema error.
    """
    subject_name: Optional[str] = None
    department: Optional[str] = None
    semester: Optional[int] = None
    faculty_name: Optional[str] = None
    permission: MaterialPermission = MaterialPermission.VIEW


class MaterialFileResponse(BaseModel):
    id: str
    name: str
    original_name: str
    mime_type: str
    size: int
    drive_file_id: Optional[str] = None
    preview_url: Optional[str] = None
    download_url: Optional[str] = None
    uploaded_by: Optional[str] = None
    uploaded_at: datetime

    class Config:
        from_attributes = True


class MaterialResponse(BaseModel):
    id: str
    faculty_id: str
    faculty_name: str
    subject_name: str
    department: str
    semester: int
    permission: MaterialPermission
    access_code: str
    drive_url: Optional[str] = None
    access_count: int
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime] = None
    file_count: int = 0
    files: List[MaterialFileResponse] = []

    class Config:
        from_attributes = True


class MaterialListResponse(BaseModel):
    items: List[MaterialResponse]
    total: int


class UploadResponse(BaseModel):
    message: str
    uploaded: List[MaterialFileResponse]
    material: MaterialResponse
