"""
API Tests for request ids, security headers and body limits
"""
import pytest
from httpx import AsyncClient

from studyshala.core.config import settings


class TestRequestTagging:

    @pytest.mark.asyncio
    async def test_request_id_generated(self, client: AsyncClient):
        response = await client.get("/api/v1/health/live")

        assert len(response.headers["X-Request-ID"]) == 8
        assert response.headers["X-Response-Time"].endswith("ms")

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, client: AsyncClient):
        response = await client.get("/api/v1/health/live", headers={"X-Request-ID": "trace-42"})

        assert response.headers["X-Request-ID"] == "trace-42"

    @pytest.mark.asyncio
    async def test_security_headers(self, client: AsyncClient):
        response = await client.get("/")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"


class TestBodyLimits:

    @pytest.mark.asyncio
    async def test_large_json_body_rejected(self, client: AsyncClient, student_headers, monkeypatch):
        monkeypatch.setattr(settings, "MAX_REQUEST_SIZE", 64)

        response = await client.post(
            "/api/v1/student/validate-code",
            json={"access_code": "A" * 200},
            headers=student_headers,
        )

        assert response.status_code == 413
        assert response.json()["code"] == "REQUEST_TOO_LARGE"

    @pytest.mark.asyncio
    async def test_upload_batch_uses_upload_limits(self, client: AsyncClient, material,
                                                   faculty_headers, monkeypatch):
        # A multipart batch is not held to the JSON body cap
        monkeypatch.setattr(settings, "MAX_REQUEST_SIZE", 64)

        response = await client.post(
            f"/api/v1/faculty/folders/{material.id}/files",
            files=[("files", ("unit3.pdf", b"%PDF" + b"x" * 500, "application/pdf"))],
            headers=faculty_headers,
        )

        assert response.status_code == 200
