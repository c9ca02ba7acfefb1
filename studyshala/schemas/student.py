from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime

from studyshala.schemas.material import MaterialFileResponse, MaterialResponse


class RedeemCodeRequest(BaseModel):
    access_code: Optional[str] = None


class RedeemCodeResponse(BaseModel):
    valid: bool
    message: Optional[str] = None
    material: Optional[MaterialResponse] = None


class SaveMaterialRequest(BaseModel):
    material_id: str


class SaveMaterialResponse(BaseModel):
    message: str
    already_saved: bool = False


class SavedMaterialItem(BaseModel):
    material: MaterialResponse
    saved_at: datetime


class SavedMaterialsResponse(BaseModel):
    items: List[SavedMaterialItem]
    total: int


class AccessHistoryItem(BaseModel):
    material: MaterialResponse
    access_code: str
    accessed_at: datetime
    is_saved: bool = False


class AccessHistoryResponse(BaseModel):
    items: List[AccessHistoryItem]
    total: int


class MaterialFilesResponse(BaseModel):
    material_id: str
    subject_name: str
    faculty_name: str
    permission: str
    files: List[MaterialFileResponse]
