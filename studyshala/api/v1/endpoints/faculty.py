"""
Faculty endpoints: folders (materials) and their files.
All routes require the faculty role and only ever touch the caller's own folders.
"""
from typing import List

from fastapi import APIRouter, Depends, File, UploadFile, status

from studyshala.models.user import User
from studyshala.modules.auth.dependencies import get_current_faculty
from studyshala.schemas.auth import MessageResponse
from studyshala.schemas.material import (
    MaterialCreate,
    MaterialFileResponse,
    MaterialListResponse,
    MaterialResponse,
    UploadResponse,
)
from studyshala.services.material_service import MaterialService, get_material_service
from studyshala.utils.downloads import stream_download

router = APIRouter()


@router.get("/folders", response_model=MaterialListResponse)
async def list_folders(
    faculty: User = Depends(get_current_faculty),
    service: MaterialService = Depends(get_material_service),
):
    """Active folders owned by the caller, newest first"""
    materials = await service.list_materials(faculty)
    return MaterialListResponse(
        items=[MaterialResponse.model_validate(m) for m in materials],
        total=len(materials),
    )


@router.post("/folders", response_model=MaterialResponse, status_code=status.HTTP_201_CREATED)
async def create_folder(
    payload: MaterialCreate,
    faculty: User = Depends(get_current_faculty),
    service: MaterialService = Depends(get_material_service),
):
    """Create a folder and assign it a fresh access code"""
    material = await service.create_material(
        faculty,
        subject_name=payload.subject_name,
        department=payload.department,
        semester=payload.semester,
        faculty_name=payload.faculty_name,
        permission=payload.permission,
    )
    return material


@router.get("/folders/{material_id}", response_model=MaterialResponse)
async def get_folder(
    material_id: str,
    faculty: User = Depends(get_current_faculty),
    service: MaterialService = Depends(get_material_service),
):
    return await service.get_owned_material(faculty, material_id)


@router.delete("/folders/{material_id}", response_model=MessageResponse)
async def delete_folder(
    material_id: str,
    faculty: User = Depends(get_current_faculty),
    service: MaterialService = Depends(get_material_service),
):
    await service.delete_material(faculty, material_id)
    return {"message": "Folder deleted successfully"}


@router.post("/folders/{material_id}/files", response_model=UploadResponse)
async def upload_files(
    material_id: str,
    files: List[UploadFile] = File(...),
    faculty: User = Depends(get_current_faculty),
    service: MaterialService = Depends(get_material_service),
):
    """
    Upload one or more files into a folder.

    The batch is checked for count, extension and size before anything is
    stored; files that cannot reach Drive are kept as metadata only.
    """
    material, new_files = await service.attach_files(faculty, material_id, files)
    return UploadResponse(
        message=f"{len(new_files)} file(s) uploaded successfully",
        uploaded=[MaterialFileResponse.model_validate(f) for f in new_files],
        material=MaterialResponse.model_validate(material),
    )


@router.delete("/folders/{material_id}/files/{file_id}", response_model=MessageResponse)
async def delete_file(
    material_id: str,
    file_id: str,
    faculty: User = Depends(get_current_faculty),
    service: MaterialService = Depends(get_material_service),
):
    await service.detach_file(faculty, material_id, file_id)
    return {"message": "File deleted successfully"}


@router.get("/folders/{material_id}/files/{file_id}/download")
async def download_file(
    material_id: str,
    file_id: str,
    faculty: User = Depends(get_current_faculty),
    service: MaterialService = Depends(get_material_service),
):
    material_file, download = await service.open_faculty_download(faculty, material_id, file_id)
    return stream_download(material_file, download)
