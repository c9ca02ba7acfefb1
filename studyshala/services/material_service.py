"""
Material Service - faculty folders and student access.

Faculty own materials (folders) and attach files whose bytes are stored on
Google Drive. Students reach a material by redeeming its access code, which
records a history entry once per student and bumps the material's counter
on every redemption.

Drive is treated as best-effort everywhere except downloads: a failed folder
creation, upload, permission grant or delete is logged and the database
record is kept (uploads degrade to metadata-only files).
"""
import mimetypes
import uuid
from pathlib import Path
from typing import List, Optional, Tuple

from fastapi import Depends, Request, UploadFile
from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from studyshala.core.config import settings
from studyshala.core.database import get_db
from studyshala.core.exceptions import (
    AccessCodeGenerationError,
    ContentNotAvailableError,
    DriveServiceError,
    FileTooLargeError,
    InvalidFileTypeError,
    MaterialAccessDeniedError,
    MaterialFileNotFoundError,
    MaterialNotFoundError,
    TooManyFilesError,
    ValidationError,
)
from studyshala.core.logging_config import logger
from studyshala.models.audit_log import AuditAction
from studyshala.models.material import (
    AccessHistory,
    Material,
    MaterialFile,
    MaterialPermission,
    SavedMaterial,
)
from studyshala.models.user import User
from studyshala.services.access_code import generate_access_code, normalize_code
from studyshala.services.audit_service import log_action
from studyshala.services.drive_service import DriveService, get_drive_service


def file_extension(filename: str) -> str:
    return Path(filename or "").suffix.lower().lstrip(".")


def drive_folder_name(department: str, semester: int, subject_name: str) -> str:
    return f"{department}-S{semester}-{subject_name}"


def stored_file_name(original_name: str) -> str:
    """Unique name used on Drive, keeping the original for display"""
    return f"{uuid.uuid4().hex[:12]}-{original_name}"


class MaterialService:
    """Material operations for one request"""

    def __init__(self, db: AsyncSession, drive: DriveService, request: Optional[Request] = None):
        self.db = db
        self.drive = drive
        self.request = request

    async def _audit(self, action: AuditAction, user: User, resource_type: str,
                     resource_id: str, details: dict = None):
        await log_action(
            self.db, action, user=user, resource_type=resource_type,
            resource_id=resource_id, details=details, request=self.request,
        )

    # ==================== Faculty ====================

    async def get_owned_material(self, faculty: User, material_id: str) -> Material:
        """Active material owned by `faculty`; 404 for anything else"""
        result = await self.db.execute(
            select(Material).where(
                Material.id == str(material_id),
                Material.faculty_id == str(faculty.id),
                Material.is_active.is_(True),
            )
        )
        material = result.scalar_one_or_none()
        if not material:
            raise MaterialNotFoundError(str(material_id))
        return material

    async def list_materials(self, faculty: User) -> List[Material]:
        result = await self.db.execute(
            select(Material)
            .where(Material.faculty_id == str(faculty.id), Material.is_active.is_(True))
            .order_by(Material.created_at.desc())
        )
        return list(result.scalars().all())

    async def create_material(
        self,
        faculty: User,
        subject_name: Optional[str],
        department: Optional[str],
        semester: Optional[int],
        faculty_name: Optional[str],
        permission: MaterialPermission = MaterialPermission.VIEW,
    ) -> Material:
        subject_name = (subject_name or "").strip()
        department = (department or "").strip()
        faculty_name = (faculty_name or "").strip()
        if not subject_name or not department or not semester or not faculty_name:
            raise ValidationError("All fields are required")
        if semester < 1:
            raise ValidationError("Semester must be a positive number", field="semester")

        drive_folder_id = drive_url = None
        if self.drive.enabled:
            try:
                folder = await self.drive.create_folder(drive_folder_name(department, semester, subject_name))
                drive_folder_id, drive_url = folder["id"], folder.get("url")
            except DriveServiceError as e:
                logger.warning(f"[Materials] Drive folder creation failed, continuing without: {e.message}")

        # The free-code check and the insert are separate statements, so a
        # concurrent create can take the same code; the unique index catches it
        max_attempts = settings.ACCESS_CODE_MAX_ATTEMPTS
        for attempt in range(1, max_attempts + 1):
            material = Material(
                faculty_id=str(faculty.id),
                faculty_name=faculty_name,
                subject_name=subject_name,
                department=department,
                semester=semester,
                permission=permission,
                access_code=await generate_access_code(self.db),
                drive_folder_id=drive_folder_id,
                drive_url=drive_url,
            )
            self.db.add(material)
            try:
                await self.db.commit()
                break
            except IntegrityError:
                await self.db.rollback()
                await self.db.refresh(faculty)
                logger.warning(f"[Materials] Access code {material.access_code} taken at insert, retrying ({attempt}/{max_attempts})")
        else:
            raise AccessCodeGenerationError(max_attempts)

        await self.db.refresh(material)
        access_code = material.access_code

        logger.info(f"[Materials] {faculty.email} created '{subject_name}' with code {access_code}")
        await self._audit(
            AuditAction.FOLDER_CREATED, faculty, "material", material.id,
            {"subject_name": subject_name, "department": department, "semester": semester},
        )
        return material

    async def delete_material(self, faculty: User, material_id: str) -> None:
        """Soft delete: saved lists, history, files and remote objects are left alone"""
        material = await self.get_owned_material(faculty, material_id)
        material.is_active = False
        await self.db.commit()

        await self._audit(
            AuditAction.FOLDER_DELETED, faculty, "material", material.id,
            {"subject_name": material.subject_name},
        )

    def _validate_batch(self, uploads: List[UploadFile]) -> None:
        """Reject the whole batch before any side effect"""
        if not uploads:
            raise ValidationError("No files uploaded", field="files")
        if len(uploads) > settings.MAX_FILES_PER_UPLOAD:
            raise TooManyFilesError(len(uploads), settings.MAX_FILES_PER_UPLOAD)

        allowed = settings.ALLOWED_EXTENSIONS
        for upload in uploads:
            if file_extension(upload.filename) not in allowed:
                raise InvalidFileTypeError(upload.filename or "", allowed)
            if upload.size is not None and upload.size > settings.MAX_UPLOAD_SIZE:
                raise FileTooLargeError(upload.filename, settings.MAX_UPLOAD_SIZE)

    async def _read_batch(self, uploads: List[UploadFile]) -> List[Tuple[UploadFile, bytes]]:
        contents = []
        for upload in uploads:
            content = await upload.read()
            if len(content) > settings.MAX_UPLOAD_SIZE:
                raise FileTooLargeError(upload.filename, settings.MAX_UPLOAD_SIZE)
            contents.append((upload, content))
        return contents

    async def _store_remote(self, material: Material, name: str, content: bytes,
                            mime_type: str) -> Optional[str]:
        """Upload to Drive and share it; returns the Drive id or None when degraded"""
        if not self.drive.enabled:
            return None
        try:
            uploaded = await self.drive.upload_file(name, content, mime_type, parent_id=material.drive_folder_id)
        except DriveServiceError as e:
            logger.warning(f"[Materials] Drive upload failed for '{name}', storing metadata only: {e.message}")
            return None

        try:
            await self.drive.set_permission(uploaded["id"], material.permission)
        except DriveServiceError as e:
            logger.warning(f"[Materials] Could not share '{name}': {e.message}")
        return uploaded["id"]

    async def attach_files(self, faculty: User, material_id: str,
                           uploads: List[UploadFile]) -> Tuple[Material, List[MaterialFile]]:
        material = await self.get_owned_material(faculty, material_id)
        self._validate_batch(uploads)
        batch = await self._read_batch(uploads)

        new_files = []
        for upload, content in batch:
            original_name = upload.filename
            name = stored_file_name(original_name)
            mime_type = (
                upload.content_type
                or mimetypes.guess_type(original_name)[0]
                or "application/octet-stream"
            )
            drive_file_id = await self._store_remote(material, name, content, mime_type)

            material_file = MaterialFile(
                name=name,
                original_name=original_name,
                mime_type=mime_type,
                size=len(content),
                drive_file_id=drive_file_id,
                uploaded_by=str(faculty.id),
            )
            material.files.append(material_file)
            new_files.append(material_file)

        await self.db.commit()
        await self.db.refresh(material)

        await self._audit(
            AuditAction.FILES_UPLOADED, faculty, "material", material.id,
            {
                "count": len(new_files),
                "files": [f.original_name for f in new_files],
                "remote": sum(1 for f in new_files if f.drive_file_id),
            },
        )
        return material, new_files

    def _find_file(self, material: Material, file_id: str) -> MaterialFile:
        for material_file in material.files:
            if material_file.id == str(file_id):
                return material_file
        raise MaterialFileNotFoundError(str(file_id), str(material.id))

    async def detach_file(self, faculty: User, material_id: str, file_id: str) -> None:
        material = await self.get_owned_material(faculty, material_id)
        material_file = self._find_file(material, file_id)

        if material_file.drive_file_id and self.drive.enabled:
            try:
                await self.drive.delete_file(material_file.drive_file_id)
            except DriveServiceError as e:
                logger.warning(f"[Materials] Drive delete failed for {material_file.drive_file_id}: {e.message}")

        original_name = material_file.original_name
        material.files.remove(material_file)
        await self.db.commit()

        await self._audit(
            AuditAction.FILE_DELETED, faculty, "file", file_id,
            {"material_id": material.id, "original_name": original_name},
        )

    async def _open_file(self, user: User, material: Material, file_id: str):
        material_file = self._find_file(material, file_id)
        if not material_file.drive_file_id:
            raise ContentNotAvailableError(material_file.id)

        download = await self.drive.open_download(material_file.drive_file_id)

        await self._audit(
            AuditAction.FILE_DOWNLOADED, user, "file", material_file.id,
            {"material_id": material.id, "original_name": material_file.original_name},
        )
        return material_file, download

    async def open_faculty_download(self, faculty: User, material_id: str, file_id: str):
        material = await self.get_owned_material(faculty, material_id)
        return await self._open_file(faculty, material, file_id)

    # ==================== Students ====================

    async def _get_active_material(self, material_id: str) -> Material:
        result = await self.db.execute(
            select(Material).where(Material.id == str(material_id), Material.is_active.is_(True))
        )
        material = result.scalar_one_or_none()
        if not material:
            raise MaterialNotFoundError(str(material_id))
        return material

    async def _has_history(self, student: User, material_id: str) -> bool:
        result = await self.db.execute(
            select(AccessHistory.id).where(
                AccessHistory.user_id == str(student.id),
                AccessHistory.material_id == str(material_id),
            )
        )
        return result.first() is not None

    async def _has_saved(self, student: User, material_id: str) -> bool:
        result = await self.db.execute(
            select(SavedMaterial.id).where(
                SavedMaterial.user_id == str(student.id),
                SavedMaterial.material_id == str(material_id),
            )
        )
        return result.first() is not None

    async def redeem_code(self, student: User, code: Optional[str]) -> Optional[Material]:
        """
        Look up an active material by access code or legacy code.

        Returns None (and changes nothing) when no active material matches.
        """
        code = normalize_code(code)
        if not code:
            raise ValidationError("Access code is required", field="access_code")

        result = await self.db.execute(
            select(Material)
            .where(
                Material.is_active.is_(True),
                or_(Material.access_code == code, Material.legacy_code == code),
            )
            .limit(1)
        )
        material = result.scalars().first()
        if not material:
            logger.info(f"[Materials] Invalid access code attempt by {student.email}")
            return None

        if not await self._has_history(student, material.id):
            self.db.add(AccessHistory(user_id=str(student.id), material_id=material.id, access_code=code))
            try:
                await self.db.commit()
            except IntegrityError:
                # Concurrent redemption by the same student already recorded it
                await self.db.rollback()
                await self.db.refresh(student)
                await self.db.refresh(material)

        # Counted on every redemption, atomically in SQL
        await self.db.execute(
            update(Material)
            .where(Material.id == material.id)
            .values(access_count=Material.access_count + 1)
        )
        await self.db.commit()
        await self.db.refresh(material)

        await self._audit(
            AuditAction.MATERIAL_ACCESSED, student, "material", material.id,
            {"access_code": code, "subject_name": material.subject_name},
        )
        return material

    async def save_material(self, student: User, material_id: str) -> bool:
        """Save to the student's list; returns False when it was already saved.

        Only materials the student has already redeemed can be saved.
        """
        material = await self._get_active_material(material_id)

        if await self._has_saved(student, material.id):
            return False
        if not await self._has_history(student, material.id):
            raise MaterialAccessDeniedError()

        self.db.add(SavedMaterial(user_id=str(student.id), material_id=material.id))
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            await self.db.refresh(student)
            await self.db.refresh(material)
            return False

        await self._audit(
            AuditAction.MATERIAL_SAVED, student, "material", material.id,
            {"subject_name": material.subject_name},
        )
        return True

    async def unsave_material(self, student: User, material_id: str) -> bool:
        """Remove from the saved list; idempotent"""
        result = await self.db.execute(
            delete(SavedMaterial).where(
                SavedMaterial.user_id == str(student.id),
                SavedMaterial.material_id == str(material_id),
            )
        )
        await self.db.commit()

        removed = result.rowcount > 0
        if removed:
            await self._audit(AuditAction.MATERIAL_UNSAVED, student, "material", material_id)
        return removed

    async def list_saved(self, student: User) -> List[SavedMaterial]:
        result = await self.db.execute(
            select(SavedMaterial)
            .join(Material, Material.id == SavedMaterial.material_id)
            .where(SavedMaterial.user_id == str(student.id), Material.is_active.is_(True))
            .order_by(SavedMaterial.saved_at.desc())
        )
        return list(result.scalars().all())

    async def list_history(self, student: User) -> List[Tuple[AccessHistory, bool]]:
        """History of active materials, most recent first, with a saved flag"""
        result = await self.db.execute(
            select(AccessHistory)
            .join(Material, Material.id == AccessHistory.material_id)
            .where(AccessHistory.user_id == str(student.id), Material.is_active.is_(True))
            .order_by(AccessHistory.accessed_at.desc())
        )
        entries = list(result.scalars().all())

        saved = await self.db.execute(
            select(SavedMaterial.material_id).where(SavedMaterial.user_id == str(student.id))
        )
        saved_ids = set(saved.scalars().all())
        return [(entry, entry.material_id in saved_ids) for entry in entries]

    async def get_accessible_material(self, student: User, material_id: str) -> Material:
        """Active material the student has saved or redeemed"""
        material = await self._get_active_material(material_id)
        if not (await self._has_saved(student, material.id) or await self._has_history(student, material.id)):
            raise MaterialAccessDeniedError()
        return material

    async def open_download(self, student: User, material_id: str, file_id: str):
        material = await self.get_accessible_material(student, material_id)
        return await self._open_file(student, material, file_id)


def get_material_service(
    request: Request,
    db: AsyncSession = Depends(get_db),
    drive: DriveService = Depends(get_drive_service),
) -> MaterialService:
    """Dependency building a MaterialService for the current request"""
    return MaterialService(db, drive, request)
