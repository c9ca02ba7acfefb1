import json
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from studyshala.core.config import settings
from studyshala.core.database import get_db
from studyshala.core.exceptions import (
    AccountDeactivatedError,
    AdminNotAllowedError,
    OAuthNotConfiguredError,
)
from studyshala.core.logging_config import logger
from studyshala.models.audit_log import AuditAction
from studyshala.models.user import User
from studyshala.modules.auth.dependencies import get_current_user
from studyshala.modules.auth.identity import resolve_identity
from studyshala.modules.oauth.google_provider import GoogleOAuthProvider, get_google_oauth
from studyshala.modules.oauth.state_store import OAuthStateStore, get_oauth_state_store
from studyshala.schemas.auth import CurrentUserResponse, MessageResponse, UserSnapshot
from studyshala.services.audit_service import log_action

router = APIRouter()


def frontend_redirect(path: str, **params) -> RedirectResponse:
    url = f"{settings.FRONTEND_URL.rstrip('/')}{path}"
    if params:
        url = f"{url}?{urlencode(params)}"
    return RedirectResponse(url=url, status_code=302)


def login_failure_redirect(reason: str) -> RedirectResponse:
    return frontend_redirect("/login", error=reason)


@router.get("/google")
async def google_login(
    role: Optional[str] = Query(None, description="student, faculty or admin"),
    store: OAuthStateStore = Depends(get_oauth_state_store),
    provider: GoogleOAuthProvider = Depends(get_google_oauth),
):
    """Start Google sign-in; the requested role is bound to a one-time state token"""
    if not provider.configured:
        raise OAuthNotConfiguredError()

    state = await store.issue(role)
    return RedirectResponse(url=provider.get_authorization_url(state), status_code=302)


@router.get("/google/callback")
async def google_callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    store: OAuthStateStore = Depends(get_oauth_state_store),
    provider: GoogleOAuthProvider = Depends(get_google_oauth),
):
    """
    Google redirects here after consent.

    The state is consumed before anything else; an invalid or expired state
    aborts the login instead of falling back to a default role.
    """
    state_result = await store.consume(state)
    if not state_result.valid:
        logger.log_auth_event("google_callback", success=False, reason=f"state_{state_result.reason}")
        return login_failure_redirect(state_result.reason)

    if error or not code:
        logger.log_auth_event("google_callback", success=False, reason=error or "missing_code")
        return login_failure_redirect("auth_failed")

    profile = await provider.authenticate(code)
    if not profile:
        logger.log_auth_event("google_callback", success=False, reason="provider_rejected")
        return login_failure_redirect("auth_failed")

    try:
        login = await resolve_identity(db, profile, state_result.role, request)
    except AdminNotAllowedError:
        return frontend_redirect("/admin/login", error="not_admin")
    except AccountDeactivatedError:
        return login_failure_redirect("account_deactivated")

    snapshot = UserSnapshot.model_validate(login.user).model_dump(mode="json")
    return frontend_redirect(
        "/auth-callback",
        token=login.access_token,
        user=json.dumps(snapshot),
    )


@router.get("/user", response_model=CurrentUserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    """Current identity snapshot"""
    return current_user


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Tokens are stateless; the client discards its copy"""
    await log_action(db, AuditAction.USER_LOGGED_OUT, user=current_user,
                     resource_type="user", resource_id=current_user.id, request=request)
    logger.log_auth_event("logout", success=True, user_email=current_user.email)
    return {"message": "Logged out successfully"}
