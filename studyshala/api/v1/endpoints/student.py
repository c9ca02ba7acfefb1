"""
Student endpoints: redeem access codes, manage saved materials, browse and
download files of materials the student has redeemed or saved.
"""
from fastapi import APIRouter, Depends

from studyshala.models.user import User
from studyshala.modules.auth.dependencies import get_current_student
from studyshala.schemas.material import MaterialFileResponse, MaterialResponse
from studyshala.schemas.auth import MessageResponse
from studyshala.schemas.student import (
    AccessHistoryItem,
    AccessHistoryResponse,
    MaterialFilesResponse,
    RedeemCodeRequest,
    RedeemCodeResponse,
    SavedMaterialItem,
    SavedMaterialsResponse,
    SaveMaterialRequest,
    SaveMaterialResponse,
)
from studyshala.services.material_service import MaterialService, get_material_service
from studyshala.utils.downloads import stream_download

router = APIRouter()


@router.post("/validate-code", response_model=RedeemCodeResponse)
async def validate_code(
    payload: RedeemCodeRequest,
    student: User = Depends(get_current_student),
    service: MaterialService = Depends(get_material_service),
):
    """
    Redeem an access code.

    An unknown or retired code is not an error: the response carries
    valid=false and nothing is recorded.
    """
    material = await service.redeem_code(student, payload.access_code)
    if material is None:
        return RedeemCodeResponse(valid=False, message="Code not found or inactive")
    return RedeemCodeResponse(
        valid=True,
        message="Access granted",
        material=MaterialResponse.model_validate(material),
    )


@router.post("/save-material", response_model=SaveMaterialResponse)
async def save_material(
    payload: SaveMaterialRequest,
    student: User = Depends(get_current_student),
    service: MaterialService = Depends(get_material_service),
):
    saved = await service.save_material(student, payload.material_id)
    if not saved:
        return SaveMaterialResponse(message="Material already saved", already_saved=True)
    return SaveMaterialResponse(message="Material saved successfully")


@router.get("/saved-materials", response_model=SavedMaterialsResponse)
async def list_saved_materials(
    student: User = Depends(get_current_student),
    service: MaterialService = Depends(get_material_service),
):
    saved = await service.list_saved(student)
    return SavedMaterialsResponse(
        items=[
            SavedMaterialItem(material=MaterialResponse.model_validate(s.material), saved_at=s.saved_at)
            for s in saved
        ],
        total=len(saved),
    )


@router.delete("/saved-materials/{material_id}", response_model=MessageResponse)
async def remove_saved_material(
    material_id: str,
    student: User = Depends(get_current_student),
    service: MaterialService = Depends(get_material_service),
):
    await service.unsave_material(student, material_id)
    return {"message": "Material removed from saved list"}


@router.get("/access-history", response_model=AccessHistoryResponse)
async def access_history(
    student: User = Depends(get_current_student),
    service: MaterialService = Depends(get_material_service),
):
    """Redeemed materials, most recent first, flagged when also saved"""
    history = await service.list_history(student)
    return AccessHistoryResponse(
        items=[
            AccessHistoryItem(
                material=MaterialResponse.model_validate(entry.material),
                access_code=entry.access_code,
                accessed_at=entry.accessed_at,
                is_saved=is_saved,
            )
            for entry, is_saved in history
        ],
        total=len(history),
    )


@router.get("/materials/{material_id}/files", response_model=MaterialFilesResponse)
async def material_files(
    material_id: str,
    student: User = Depends(get_current_student),
    service: MaterialService = Depends(get_material_service),
):
    material = await service.get_accessible_material(student, material_id)
    return MaterialFilesResponse(
        material_id=material.id,
        subject_name=material.subject_name,
        faculty_name=material.faculty_name,
        permission=material.permission.value,
        files=[MaterialFileResponse.model_validate(f) for f in material.files],
    )


@router.get("/materials/{material_id}/files/{file_id}/download")
async def download_file(
    material_id: str,
    file_id: str,
    student: User = Depends(get_current_student),
    service: MaterialService = Depends(get_material_service),
):
    material_file, download = await service.open_download(student, material_id, file_id)
    return stream_download(material_file, download)
