from sqlalchemy import (
    Column, String, Boolean, DateTime, Enum as SQLEnum, Integer, BigInteger,
    ForeignKey, Index, UniqueConstraint, text,
)
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from studyshala.core.database import Base
from studyshala.core.types import GUID, generate_uuid


DRIVE_PREVIEW_URL = "https://drive.google.com/file/d/{file_id}/preview"
DRIVE_DOWNLOAD_URL = "https://drive.usercontent.google.com/download?id={file_id}&export=download&authuser=0"


class MaterialPermission(str, enum.Enum):
    """What link holders may do with the remote files"""
    VIEW = "view"
    COMMENT = "comment"
    EDIT = "edit"


class Material(Base):
    """
    A faculty-owned folder of files, shared by access code.

    Deleting a material only clears is_active; files, saved lists and
    access history are left in place.
    """
    __tablename__ = "materials"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    faculty_id = Column(GUID, ForeignKey("users.id"), nullable=False, index=True)
    faculty_name = Column(String(255), nullable=False)

    subject_name = Column(String(255), nullable=False)
    department = Column(String(100), nullable=False, index=True)
    semester = Column(Integer, nullable=False)
    permission = Column(SQLEnum(MaterialPermission), default=MaterialPermission.VIEW, nullable=False)

    # Access codes: unique among active materials only
    access_code = Column(String(32), nullable=False, index=True)
    legacy_code = Column(String(32), nullable=True, index=True)

    # Google Drive
    drive_folder_id = Column(String(255), nullable=True)
    drive_url = Column(String(500), nullable=True)

    access_count = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    files = relationship(
        "MaterialFile",
        back_populates="material",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="MaterialFile.uploaded_at",
    )

    __table_args__ = (
        Index(
            "uq_materials_active_access_code",
            "access_code",
            unique=True,
            postgresql_where=text("is_active = true"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    @property
    def file_count(self) -> int:
        return len(self.files)

    def __repr__(self):
        return f"<Material {self.subject_name} ({self.access_code})>"


class MaterialFile(Base):
    """File metadata; the bytes live on Google Drive"""
    __tablename__ = "material_files"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    material_id = Column(GUID, ForeignKey("materials.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String(500), nullable=False)
    original_name = Column(String(500), nullable=False)
    mime_type = Column(String(255), nullable=False, default="application/octet-stream")
    size = Column(BigInteger, nullable=False, default=0)
    drive_file_id = Column(String(255), nullable=True)

    uploaded_by = Column(GUID, nullable=True)
    uploaded_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    material = relationship("Material", back_populates="files")

    @property
    def preview_url(self):
        if not self.drive_file_id:
            return None
        return DRIVE_PREVIEW_URL.format(file_id=self.drive_file_id)

    @property
    def download_url(self):
        if not self.drive_file_id:
            return None
        return DRIVE_DOWNLOAD_URL.format(file_id=self.drive_file_id)

    def __repr__(self):
        return f"<MaterialFile {self.original_name}>"


class SavedMaterial(Base):
    """A student's saved list entry"""
    __tablename__ = "saved_materials"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    material_id = Column(GUID, ForeignKey("materials.id", ondelete="CASCADE"), nullable=False, index=True)
    saved_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    material = relationship("Material", lazy="selectin")

    __table_args__ = (
        UniqueConstraint("user_id", "material_id", name="uq_saved_user_material"),
    )


class AccessHistory(Base):
    """First successful redemption of a material by a student"""
    __tablename__ = "access_history"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    material_id = Column(GUID, ForeignKey("materials.id", ondelete="CASCADE"), nullable=False, index=True)
    access_code = Column(String(32), nullable=False)
    accessed_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    material = relationship("Material", lazy="selectin")

    __table_args__ = (
        UniqueConstraint("user_id", "material_id", name="uq_history_user_material"),
    )
