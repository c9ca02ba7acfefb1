"""
API Tests for the Google sign-in flow and session endpoints
"""
import json
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from google.auth.exceptions import TransportError
from httpx import AsyncClient
from sqlalchemy import select

from studyshala.core.security import create_user_token, decode_token
from studyshala.models.audit_log import AuditAction, AuditLog
from studyshala.main import app
from studyshala.models.user import User, UserRole
from studyshala.modules.oauth import google_provider
from studyshala.modules.oauth.google_provider import GoogleOAuthProvider, get_google_oauth
from tests.conftest import ADMIN_EMAIL, make_user


def redirect_target(response):
    location = response.headers["location"]
    parsed = urlparse(location)
    return parsed, {k: v[0] for k, v in parse_qs(parsed.query).items()}


async def start_login(client: AsyncClient, role: str = None) -> str:
    """Hit /auth/google and return the state token handed to Google"""
    params = {"role": role} if role else {}
    response = await client.get("/api/v1/auth/google", params=params)
    assert response.status_code == 302
    _, query = redirect_target(response)
    return query["state"]


class TestGoogleLogin:

    @pytest.mark.asyncio
    async def test_redirects_to_google_with_state(self, client: AsyncClient, state_store):
        response = await client.get("/api/v1/auth/google", params={"role": "faculty"})

        assert response.status_code == 302
        parsed, query = redirect_target(response)
        assert parsed.netloc == "accounts.google.com"
        assert query["prompt"] == "select_account"
        assert query["client_id"] == "test-client-id"
        assert len(query["state"]) >= 43
        assert len(state_store) == 1

    @pytest.mark.asyncio
    async def test_not_configured(self, client: AsyncClient, google):
        google.client_id = ""

        response = await client.get("/api/v1/auth/google")

        assert response.status_code == 503
        assert response.json()["code"] == "OAUTH_NOT_CONFIGURED"


class TestGoogleCallback:

    @pytest.mark.asyncio
    async def test_new_faculty_signs_in(self, client: AsyncClient, google, db_session):
        google.add_profile("code-1", "prof.rao@college.edu", full_name="Prof Rao")
        state = await start_login(client, "faculty")

        response = await client.get("/api/v1/auth/google/callback", params={"code": "code-1", "state": state})

        assert response.status_code == 302
        parsed, query = redirect_target(response)
        assert f"{parsed.scheme}://{parsed.netloc}" == "http://frontend.test"
        assert parsed.path == "/auth-callback"
        user = json.loads(query["user"])
        assert user["email"] == "prof.rao@college.edu"
        assert user["role"] == "faculty"
        assert user["name"] == "Prof Rao"
        assert decode_token(query["token"])["sub"] == user["id"]

        stored = await db_session.scalar(select(User).where(User.email == "prof.rao@college.edu"))
        assert stored.role == UserRole.FACULTY

    @pytest.mark.asyncio
    async def test_state_cannot_be_replayed(self, client: AsyncClient, google):
        google.add_profile("code-1", "replay@college.edu")
        state = await start_login(client, "student")
        await client.get("/api/v1/auth/google/callback", params={"code": "code-1", "state": state})

        response = await client.get("/api/v1/auth/google/callback", params={"code": "code-1", "state": state})

        parsed, query = redirect_target(response)
        assert parsed.path == "/login"
        assert query["error"] == "unknown_or_missing"

    @pytest.mark.asyncio
    async def test_missing_state_rejected(self, client: AsyncClient, google, db_session):
        google.add_profile("code-1", "nostate@college.edu")

        response = await client.get("/api/v1/auth/google/callback", params={"code": "code-1"})

        parsed, query = redirect_target(response)
        assert parsed.path == "/login"
        assert query["error"] == "unknown_or_missing"
        assert await db_session.scalar(select(User).where(User.email == "nostate@college.edu")) is None

    @pytest.mark.asyncio
    async def test_expired_state_rejected(self, client: AsyncClient, google, state_store):
        google.add_profile("code-1", "slow@college.edu")
        state = await start_login(client, "student")
        state_store._entries[state].expires_at = 0

        response = await client.get("/api/v1/auth/google/callback", params={"code": "code-1", "state": state})

        _, query = redirect_target(response)
        assert query["error"] == "expired"

    @pytest.mark.asyncio
    async def test_provider_failure(self, client: AsyncClient):
        state = await start_login(client, "student")

        response = await client.get("/api/v1/auth/google/callback", params={"code": "unknown", "state": state})

        parsed, query = redirect_target(response)
        assert parsed.path == "/login"
        assert query["error"] == "auth_failed"

    @pytest.mark.asyncio
    async def test_provider_error_param(self, client: AsyncClient):
        state = await start_login(client, "student")

        response = await client.get(
            "/api/v1/auth/google/callback", params={"error": "access_denied", "state": state}
        )

        _, query = redirect_target(response)
        assert query["error"] == "auth_failed"

    @pytest.mark.asyncio
    async def test_admin_outside_allow_list(self, client: AsyncClient, google, db_session):
        google.add_profile("code-1", "wannabe@college.edu")
        state = await start_login(client, "admin")

        response = await client.get("/api/v1/auth/google/callback", params={"code": "code-1", "state": state})

        parsed, query = redirect_target(response)
        assert parsed.path == "/admin/login"
        assert query["error"] == "not_admin"
        assert await db_session.scalar(select(User).where(User.email == "wannabe@college.edu")) is None
        blocked = await db_session.scalar(
            select(AuditLog).where(AuditLog.action == AuditAction.LOGIN_BLOCKED.value)
        )
        assert blocked.actor_email == "wannabe@college.edu"

    @pytest.mark.asyncio
    async def test_allow_listed_admin(self, client: AsyncClient, google):
        google.add_profile("code-1", ADMIN_EMAIL)
        state = await start_login(client, "admin")

        response = await client.get("/api/v1/auth/google/callback", params={"code": "code-1", "state": state})

        parsed, query = redirect_target(response)
        assert parsed.path == "/auth-callback"
        assert json.loads(query["user"])["role"] == "admin"

    @pytest.mark.asyncio
    async def test_deactivated_account(self, client: AsyncClient, google, db_session):
        user = await make_user(db_session, UserRole.STUDENT, email="gone@college.edu")
        user.is_active = False
        await db_session.commit()
        google.add_profile("code-1", "gone@college.edu", google_id=user.google_id)
        state = await start_login(client, "student")

        response = await client.get("/api/v1/auth/google/callback", params={"code": "code-1", "state": state})

        parsed, query = redirect_target(response)
        assert parsed.path == "/login"
        assert query["error"] == "account_deactivated"

    @pytest.mark.asyncio
    async def test_role_comes_from_state_not_query(self, client: AsyncClient, google):
        google.add_profile("code-1", "sneaky@college.edu")
        state = await start_login(client, "student")

        response = await client.get(
            "/api/v1/auth/google/callback",
            params={"code": "code-1", "state": state, "role": "faculty"},
        )

        _, query = redirect_target(response)
        assert json.loads(query["user"])["role"] == "student"


class TestSession:

    @pytest.mark.asyncio
    async def test_current_user(self, client: AsyncClient, student_user, student_headers):
        response = await client.get("/api/v1/auth/user", headers=student_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == student_user.id
        assert data["email"] == student_user.email
        assert data["name"] == student_user.full_name
        assert data["role"] == "student"
        assert data["is_active"] is True

    @pytest.mark.asyncio
    async def test_missing_token(self, client: AsyncClient):
        response = await client.get("/api/v1/auth/user")

        assert response.status_code == 401
        assert response.json()["code"] == "NO_TOKEN"

    @pytest.mark.asyncio
    async def test_invalid_token(self, client: AsyncClient):
        response = await client.get("/api/v1/auth/user", headers={"Authorization": "Bearer nonsense"})

        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_OR_EXPIRED_TOKEN"

    @pytest.mark.asyncio
    async def test_token_for_removed_user(self, client: AsyncClient, db_session, student_user):
        headers = {"Authorization": f"Bearer {create_user_token(student_user)}"}
        await db_session.delete(student_user)
        await db_session.commit()

        response = await client.get("/api/v1/auth/user", headers=headers)

        assert response.status_code == 401
        assert response.json()["code"] == "USER_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_logout_is_audited(self, client: AsyncClient, db_session, student_user, student_headers):
        response = await client.post("/api/v1/auth/logout", headers=student_headers)

        assert response.status_code == 200
        entry = await db_session.scalar(
            select(AuditLog).where(AuditLog.action == AuditAction.USER_LOGGED_OUT.value)
        )
        assert entry.user_id == student_user.id


class TestCallbackWithGoogleFailures:
    """The real provider behind the callback; every upstream failure ends in a redirect"""

    @pytest.fixture
    def real_google(self, client: AsyncClient):
        def use(handler):
            provider = GoogleOAuthProvider(
                client_id="test-client-id",
                client_secret="test-client-secret",
                redirect_uri="http://test/api/v1/auth/google/callback",
                transport=httpx.MockTransport(handler),
            )
            app.dependency_overrides[get_google_oauth] = lambda: provider
            return provider
        return use

    @pytest.mark.asyncio
    async def test_certificate_fetch_failure_redirects(self, client: AsyncClient, real_google, monkeypatch):
        def verify(token, request, audience):
            raise TransportError("could not fetch certs")

        monkeypatch.setattr(google_provider.id_token, "verify_oauth2_token", verify)
        real_google(lambda request: httpx.Response(200, json={"id_token": "signed.jwt"}))
        state = await start_login(client, "student")

        response = await client.get("/api/v1/auth/google/callback", params={"code": "c", "state": state})

        assert response.status_code == 302
        parsed, query = redirect_target(response)
        assert parsed.path == "/login"
        assert query["error"] == "auth_failed"

    @pytest.mark.asyncio
    async def test_non_json_token_response_redirects(self, client: AsyncClient, real_google):
        real_google(lambda request: httpx.Response(200, text="<html>"))
        state = await start_login(client, "student")

        response = await client.get("/api/v1/auth/google/callback", params={"code": "c", "state": state})

        assert response.status_code == 302
        _, query = redirect_target(response)
        assert query["error"] == "auth_failed"
