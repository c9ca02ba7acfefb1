"""
Google Drive storage client.

File bytes live on Drive; the database only keeps the Drive file id. Talks to
the Drive v3 REST API over httpx, authorised with google-auth credentials
(a service account file, or an OAuth client with a refresh token).
"""
import asyncio
import json
import time
import uuid
from dataclasses import dataclass
from typing import AsyncIterator, Dict, Optional

import httpx
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2 import service_account
from google.oauth2.credentials import Credentials

from studyshala.core.config import settings
from studyshala.core.exceptions import DriveServiceError
from studyshala.core.logging_config import logger
from studyshala.models.material import MaterialPermission


DRIVE_SCOPES = ["https://www.googleapis.com/auth/drive"]
DRIVE_API_URL = "https://www.googleapis.com/drive/v3"
DRIVE_UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3/files"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"

# Link-sharing role granted for each material permission
PERMISSION_ROLES: Dict[MaterialPermission, str] = {
    MaterialPermission.VIEW: "reader",
    MaterialPermission.COMMENT: "commenter",
    MaterialPermission.EDIT: "writer",
}


@dataclass
class DriveDownload:
    """An open streaming download; iterate once, the connection closes at the end"""
    response: httpx.Response
    client: httpx.AsyncClient
    media_type: Optional[str] = None
    size: Optional[int] = None

    async def iter_bytes(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self.response.aiter_bytes():
                yield chunk
        finally:
            await self.aclose()

    async def aclose(self):
        await self.response.aclose()
        await self.client.aclose()


class DriveService:
    """Async Drive client used by the material service"""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None, credentials=None):
        self._credentials = credentials
        self._transport = transport
        self._lock = asyncio.Lock()
        self.parent_folder_id = settings.DRIVE_PARENT_FOLDER_ID or None
        self.timeout = settings.DRIVE_REQUEST_TIMEOUT

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    @property
    def enabled(self) -> bool:
        return settings.drive_configured

    def _build_credentials(self):
        if settings.DRIVE_SERVICE_ACCOUNT_FILE:
            return service_account.Credentials.from_service_account_file(
                settings.DRIVE_SERVICE_ACCOUNT_FILE, scopes=DRIVE_SCOPES
            )
        return Credentials(
            token=None,
            refresh_token=settings.DRIVE_REFRESH_TOKEN,
            client_id=settings.DRIVE_CLIENT_ID,
            client_secret=settings.DRIVE_CLIENT_SECRET,
            token_uri=GOOGLE_TOKEN_URI,
            scopes=DRIVE_SCOPES,
        )

    async def _auth_headers(self) -> Dict[str, str]:
        if not self.enabled:
            raise DriveServiceError("Google Drive is not configured", operation="auth")

        async with self._lock:
            if self._credentials is None:
                self._credentials = self._build_credentials()
            if not self._credentials.valid:
                try:
                    # google-auth refresh is blocking
                    await asyncio.to_thread(self._credentials.refresh, GoogleAuthRequest())
                except GoogleAuthError as e:
                    raise DriveServiceError(f"Drive credential refresh failed: {e}", operation="auth")
            return {"Authorization": f"Bearer {self._credentials.token}"}

    async def _request(self, method: str, url: str, operation: str, **kwargs) -> httpx.Response:
        headers = {**kwargs.pop("headers", {}), **await self._auth_headers()}
        start = time.perf_counter()
        try:
            async with self._client() as client:
                response = await client.request(method, url, headers=headers, **kwargs)
        except httpx.RequestError as e:
            raise DriveServiceError(f"Drive {operation} request failed: {e}", operation=operation)
        finally:
            logger.log_performance(f"drive.{operation}", (time.perf_counter() - start) * 1000, threshold_ms=5000)

        if response.status_code >= 400:
            raise DriveServiceError(
                f"Drive {operation} failed: {response.status_code} {response.text[:200]}",
                operation=operation,
                upstream_status=response.status_code,
            )
        return response

    async def create_folder(self, name: str) -> Dict[str, str]:
        """Create a folder; returns {"id", "url"}"""
        metadata = {"name": name, "mimeType": FOLDER_MIME_TYPE}
        if self.parent_folder_id:
            metadata["parents"] = [self.parent_folder_id]

        response = await self._request(
            "POST", f"{DRIVE_API_URL}/files", "create_folder",
            params={"fields": "id,webViewLink"},
            json=metadata,
        )
        data = response.json()
        logger.info(f"[Drive] Created folder '{name}' ({data.get('id')})")
        return {"id": data["id"], "url": data.get("webViewLink")}

    async def upload_file(
        self,
        name: str,
        content: bytes,
        mime_type: str,
        parent_id: Optional[str] = None,
    ) -> Dict[str, str]:
        """Multipart upload; returns {"id", "url"}"""
        metadata = {"name": name}
        parent = parent_id or self.parent_folder_id
        if parent:
            metadata["parents"] = [parent]

        boundary = f"studyshala-{uuid.uuid4().hex}"
        body = b"".join([
            f"--{boundary}\r\n".encode(),
            b"Content-Type: application/json; charset=UTF-8\r\n\r\n",
            json.dumps(metadata).encode(),
            f"\r\n--{boundary}\r\n".encode(),
            f"Content-Type: {mime_type}\r\n\r\n".encode(),
            content,
            f"\r\n--{boundary}--".encode(),
        ])

        response = await self._request(
            "POST", DRIVE_UPLOAD_URL, "upload",
            params={"uploadType": "multipart", "fields": "id,webViewLink"},
            headers={"Content-Type": f"multipart/related; boundary={boundary}"},
            content=body,
        )
        data = response.json()
        logger.info(f"[Drive] Uploaded '{name}' ({len(content)} bytes) as {data.get('id')}")
        return {"id": data["id"], "url": data.get("webViewLink")}

    async def set_permission(self, file_id: str, permission: MaterialPermission) -> None:
        """Grant "anyone with the link" access matching the material permission"""
        await self._request(
            "POST", f"{DRIVE_API_URL}/files/{file_id}/permissions", "set_permission",
            json={"role": PERMISSION_ROLES[permission], "type": "anyone"},
        )

    async def delete_file(self, file_id: str) -> None:
        """Delete a file or folder; a file that is already gone counts as deleted"""
        try:
            await self._request("DELETE", f"{DRIVE_API_URL}/files/{file_id}", "delete")
        except DriveServiceError as e:
            if e.upstream_status == 404:
                return
            raise

    async def open_download(self, file_id: str) -> DriveDownload:
        """Start a streamed download, raising DriveServiceError before any bytes are sent"""
        headers = await self._auth_headers()
        client = self._client()
        try:
            request = client.build_request(
                "GET", f"{DRIVE_API_URL}/files/{file_id}", params={"alt": "media"}, headers=headers
            )
            response = await client.send(request, stream=True)
        except httpx.RequestError as e:
            await client.aclose()
            raise DriveServiceError(f"Drive download request failed: {e}", operation="download")

        if response.status_code >= 400:
            await response.aclose()
            await client.aclose()
            raise DriveServiceError(
                f"Drive download failed: {response.status_code}",
                operation="download",
                upstream_status=response.status_code,
            )

        length = response.headers.get("content-length")
        return DriveDownload(
            response=response,
            client=client,
            media_type=response.headers.get("content-type"),
            size=int(length) if length and length.isdigit() else None,
        )


drive_service = DriveService()


def get_drive_service() -> DriveService:
    """Dependency returning the Drive client"""
    return drive_service
