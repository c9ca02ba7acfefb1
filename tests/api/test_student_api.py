"""
API Tests for student code redemption, saved materials and downloads
"""
import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from studyshala.models.audit_log import AuditAction, AuditLog
from studyshala.models.material import AccessHistory, SavedMaterial
from studyshala.models.user import UserRole
from tests.conftest import auth_header, make_material, make_user


async def redeem(client: AsyncClient, headers: dict, code: str):
    return await client.post("/api/v1/student/validate-code", json={"access_code": code}, headers=headers)


class TestRedeemCode:

    @pytest.mark.asyncio
    async def test_valid_code(self, client: AsyncClient, material, student_headers):
        response = await redeem(client, student_headers, "ABCD1234")

        assert response.status_code == 200
        data = response.json()
        assert data["valid"] is True
        assert data["material"]["id"] == material.id
        assert data["material"]["access_count"] == 1
        assert data["material"]["file_count"] == 2

    @pytest.mark.asyncio
    async def test_code_is_case_insensitive(self, client: AsyncClient, material, student_headers):
        response = await redeem(client, student_headers, "  abcd1234 ")

        assert response.json()["valid"] is True

    @pytest.mark.asyncio
    async def test_legacy_code(self, client: AsyncClient, db_session, faculty_user, student_headers):
        legacy = await make_material(db_session, faculty_user, legacy_code="CSE101")

        response = await redeem(client, student_headers, "cse101")

        assert response.json()["material"]["id"] == legacy.id

    @pytest.mark.asyncio
    async def test_unknown_code(self, client: AsyncClient, db_session, material, student_headers):
        response = await redeem(client, student_headers, "FFFFFFFF")

        assert response.status_code == 200
        assert response.json() == {
            "valid": False,
            "message": "Code not found or inactive",
            "material": None,
        }
        assert await db_session.scalar(select(func.count(AccessHistory.id))) == 0

    @pytest.mark.asyncio
    async def test_code_of_deleted_material(self, client: AsyncClient, db_session, material, student_headers):
        material.is_active = False
        await db_session.commit()

        response = await redeem(client, student_headers, "ABCD1234")

        assert response.json()["valid"] is False

    @pytest.mark.asyncio
    async def test_empty_code(self, client: AsyncClient, student_headers):
        response = await redeem(client, student_headers, "   ")

        assert response.status_code == 400
        assert response.json()["details"]["field"] == "access_code"

    @pytest.mark.asyncio
    async def test_repeat_redemption_counts_but_records_history_once(
        self, client: AsyncClient, db_session, material, student_user, student_headers
    ):
        for _ in range(3):
            response = await redeem(client, student_headers, "ABCD1234")
            assert response.json()["valid"] is True

        await db_session.refresh(material)
        assert material.access_count == 3
        history = await db_session.scalar(
            select(func.count(AccessHistory.id)).where(AccessHistory.user_id == student_user.id)
        )
        assert history == 1
        accessed = await db_session.scalar(
            select(func.count(AuditLog.id)).where(AuditLog.action == AuditAction.MATERIAL_ACCESSED.value)
        )
        assert accessed == 3

    @pytest.mark.asyncio
    async def test_faculty_cannot_redeem(self, client: AsyncClient, material, faculty_headers):
        response = await redeem(client, faculty_headers, "ABCD1234")

        assert response.status_code == 403
        assert response.json()["detail"] == "Access denied. Student only."


class TestSavedMaterials:

    @pytest.mark.asyncio
    async def test_save_is_idempotent(self, client: AsyncClient, db_session, material, student_user, student_headers):
        await redeem(client, student_headers, "ABCD1234")
        first = await client.post(
            "/api/v1/student/save-material", json={"material_id": material.id}, headers=student_headers
        )
        second = await client.post(
            "/api/v1/student/save-material", json={"material_id": material.id}, headers=student_headers
        )

        assert first.json()["already_saved"] is False
        assert second.status_code == 200
        assert second.json()["already_saved"] is True
        saved = await db_session.scalar(
            select(func.count(SavedMaterial.id)).where(SavedMaterial.user_id == student_user.id)
        )
        assert saved == 1

    @pytest.mark.asyncio
    async def test_save_unknown_material(self, client: AsyncClient, student_headers):
        response = await client.post(
            "/api/v1/student/save-material", json={"material_id": "missing"}, headers=student_headers
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_save_requires_redemption(self, client: AsyncClient, db_session, material, student_headers):
        response = await client.post(
            "/api/v1/student/save-material", json={"material_id": material.id}, headers=student_headers
        )

        assert response.status_code == 403
        assert response.json()["detail"] == "Access denied. Enter the access code first."
        assert await db_session.scalar(select(func.count(SavedMaterial.id))) == 0
        files = await client.get(f"/api/v1/student/materials/{material.id}/files", headers=student_headers)
        assert files.status_code == 403

    @pytest.mark.asyncio
    async def test_list_and_remove(self, client: AsyncClient, material, student_headers):
        await redeem(client, student_headers, "ABCD1234")
        await client.post("/api/v1/student/save-material", json={"material_id": material.id}, headers=student_headers)

        listed = await client.get("/api/v1/student/saved-materials", headers=student_headers)
        assert listed.json()["total"] == 1
        assert listed.json()["items"][0]["material"]["subject_name"] == "Algorithms"

        removed = await client.delete(f"/api/v1/student/saved-materials/{material.id}", headers=student_headers)
        assert removed.status_code == 200

        listed = await client.get("/api/v1/student/saved-materials", headers=student_headers)
        assert listed.json()["total"] == 0

    @pytest.mark.asyncio
    async def test_deleted_material_hidden_from_saved_list(self, client: AsyncClient, db_session,
                                                           material, student_headers):
        await redeem(client, student_headers, "ABCD1234")
        await client.post("/api/v1/student/save-material", json={"material_id": material.id}, headers=student_headers)
        material.is_active = False
        await db_session.commit()

        listed = await client.get("/api/v1/student/saved-materials", headers=student_headers)

        assert listed.json()["total"] == 0
        assert await db_session.scalar(select(func.count(SavedMaterial.id))) == 1


class TestAccessHistory:

    @pytest.mark.asyncio
    async def test_history_flags_saved_materials(self, client: AsyncClient, db_session, faculty_user,
                                                 material, student_headers):
        other = await make_material(db_session, faculty_user, access_code="EEEE5555", subject_name="Networks")
        await redeem(client, student_headers, "ABCD1234")
        await redeem(client, student_headers, "EEEE5555")
        await client.post("/api/v1/student/save-material", json={"material_id": other.id}, headers=student_headers)

        response = await client.get("/api/v1/student/access-history", headers=student_headers)

        data = response.json()
        assert data["total"] == 2
        flags = {item["material"]["subject_name"]: item["is_saved"] for item in data["items"]}
        assert flags == {"Algorithms": False, "Networks": True}
        codes = {item["access_code"] for item in data["items"]}
        assert codes == {"ABCD1234", "EEEE5555"}


class TestMaterialFiles:

    @pytest.mark.asyncio
    async def test_files_require_redemption(self, client: AsyncClient, material, student_headers):
        response = await client.get(f"/api/v1/student/materials/{material.id}/files", headers=student_headers)

        assert response.status_code == 403
        assert response.json()["detail"] == "Access denied. Enter the access code first."

    @pytest.mark.asyncio
    async def test_files_after_redemption(self, client: AsyncClient, material, student_headers):
        await redeem(client, student_headers, "ABCD1234")

        response = await client.get(f"/api/v1/student/materials/{material.id}/files", headers=student_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["subject_name"] == "Algorithms"
        assert data["permission"] == "view"
        assert len(data["files"]) == 2

    @pytest.mark.asyncio
    async def test_access_survives_unsave_through_history(self, client: AsyncClient, material, student_headers):
        await redeem(client, student_headers, "ABCD1234")
        await client.post("/api/v1/student/save-material", json={"material_id": material.id}, headers=student_headers)
        await client.delete(f"/api/v1/student/saved-materials/{material.id}", headers=student_headers)

        response = await client.get(f"/api/v1/student/materials/{material.id}/files", headers=student_headers)

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_download(self, client: AsyncClient, db_session, material, student_headers):
        await redeem(client, student_headers, "ABCD1234")
        notes = next(f for f in material.files if f.original_name == "notes.pdf")

        response = await client.get(
            f"/api/v1/student/materials/{material.id}/files/{notes.id}/download", headers=student_headers
        )

        assert response.status_code == 200
        assert response.content == b"%PDF-1.4 lecture notes"
        downloaded = await db_session.scalar(
            select(AuditLog).where(AuditLog.action == AuditAction.FILE_DOWNLOADED.value)
        )
        assert downloaded.resource_id == notes.id

    @pytest.mark.asyncio
    async def test_download_upstream_failure(self, client: AsyncClient, material, student_headers, drive):
        await redeem(client, student_headers, "ABCD1234")
        notes = next(f for f in material.files if f.original_name == "notes.pdf")
        drive.files.clear()

        response = await client.get(
            f"/api/v1/student/materials/{material.id}/files/{notes.id}/download", headers=student_headers
        )

        assert response.status_code == 502
        assert response.json()["code"] == "UPSTREAM_ERROR"

    @pytest.mark.asyncio
    async def test_other_student_cannot_download(self, client: AsyncClient, db_session, material, student_headers):
        await redeem(client, student_headers, "ABCD1234")
        other = await make_user(db_session, UserRole.STUDENT)
        notes = next(f for f in material.files if f.original_name == "notes.pdf")

        response = await client.get(
            f"/api/v1/student/materials/{material.id}/files/{notes.id}/download", headers=auth_header(other)
        )

        assert response.status_code == 403
