"""Google OAuth provider for authentication."""

import asyncio
from typing import Optional, Dict, Any
from urllib.parse import urlencode

import httpx
from google.oauth2 import id_token
from google.auth.exceptions import GoogleAuthError
from google.auth.transport import requests as google_requests

from studyshala.core.config import settings
from studyshala.core.logging_config import logger


class GoogleOAuthProvider:
    """Handle Google OAuth authentication."""

    GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
    GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v3/userinfo"
    VALID_ISSUERS = ("accounts.google.com", "https://accounts.google.com")

    def __init__(self, client_id: str = None, client_secret: str = None, redirect_uri: str = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.client_id = client_id or settings.GOOGLE_CLIENT_ID
        self.client_secret = client_secret or settings.GOOGLE_CLIENT_SECRET
        self.redirect_uri = redirect_uri or settings.GOOGLE_REDIRECT_URI
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def get_authorization_url(self, state: str) -> str:
        """Generate Google OAuth authorization URL, always showing the account chooser."""
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": "openid email profile",
            "prompt": "select_account",
            "state": state,
        }
        return f"{self.GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def exchange_code_for_tokens(self, code: str) -> Dict[str, Any]:
        """Exchange authorization code for access tokens."""
        async with httpx.AsyncClient(timeout=30, transport=self.transport) as client:
            response = await client.post(
                self.GOOGLE_TOKEN_URL,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "code": code,
                    "grant_type": "authorization_code",
                    "redirect_uri": self.redirect_uri,
                },
            )
            response.raise_for_status()
            return response.json()

    async def get_user_info(self, access_token: str) -> Dict[str, Any]:
        """Get user information from Google."""
        async with httpx.AsyncClient(timeout=30, transport=self.transport) as client:
            response = await client.get(
                self.GOOGLE_USERINFO_URL,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            response.raise_for_status()
            return response.json()

    def verify_id_token(self, token: str) -> Optional[Dict[str, Any]]:
        """Verify a Google ID token and return its claims."""
        try:
            idinfo = id_token.verify_oauth2_token(
                token,
                google_requests.Request(),
                self.client_id
            )
        except (ValueError, GoogleAuthError) as e:
            # ValueError: bad signature, audience or expiry; GoogleAuthError: certificate fetch failed
            logger.error(f"[GoogleOAuth] ID token verification failed: {e}")
            return None

        if idinfo.get("iss") not in self.VALID_ISSUERS:
            logger.warning("[GoogleOAuth] Invalid token issuer")
            return None
        return idinfo

    @staticmethod
    def _profile(claims: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "google_id": claims.get("sub"),
            "email": claims.get("email"),
            "email_verified": claims.get("email_verified", False),
            "full_name": claims.get("name", ""),
            "avatar_url": claims.get("picture", ""),
        }

    async def authenticate(self, code: str) -> Optional[Dict[str, Any]]:
        """
        Complete OAuth flow: exchange code and read the verified profile.

        The ID token from the exchange is verified with google-auth; the
        userinfo endpoint is the fallback when no ID token is returned.
        Returns profile data if successful, None otherwise.
        """
        try:
            tokens = await self.exchange_code_for_tokens(code)

            raw_id_token = tokens.get("id_token")
            if raw_id_token:
                claims = await asyncio.to_thread(self.verify_id_token, raw_id_token)
                if claims is None:
                    return None
            else:
                access_token = tokens.get("access_token")
                if not access_token:
                    logger.error("[GoogleOAuth] No access token received from token exchange")
                    return None
                claims = await self.get_user_info(access_token)

            profile = self._profile(claims)
            if not profile["google_id"] or not profile["email"]:
                logger.error("[GoogleOAuth] Profile is missing id or email")
                return None
            return profile
        except httpx.HTTPStatusError as e:
            logger.error(f"[GoogleOAuth] HTTP error during authentication: {e.response.status_code} - {e.response.text}")
            return None
        except httpx.RequestError as e:
            logger.error(f"[GoogleOAuth] Request error during authentication: {e}")
            return None
        except ValueError as e:
            # Non-JSON body from the token or userinfo endpoint
            logger.error(f"[GoogleOAuth] Malformed response during authentication: {e}")
            return None


google_oauth = GoogleOAuthProvider()


def get_google_oauth() -> GoogleOAuthProvider:
    """Dependency returning the Google OAuth provider"""
    return google_oauth
