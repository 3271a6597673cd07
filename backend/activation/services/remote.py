"""Remote sync client for the activation service.

Endpoints:
  GET  /api/activation/profile           → current profile (or null)
  POST /api/activation/profile           → save one step {step, data}
  POST /api/activation/documents/upload  → multipart file + documentType
  GET  /api/activation/documents         → documents already uploaded

Auth is cookie based: the session token travels as the `auth-token`
cookie, the same way the browser sends it. The cookie is built per request
from an explicit `token=` or, by default, the token the client holds at
send time, so work queued for one session never picks up another's.

Read and write failures (transport errors, non-2xx, missing profile) are
raised as RemoteSyncError so the state container can fall back to the
local cache. Uploads never raise: each one returns an UploadResult.
"""

import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from activation.config import settings
from activation.errors import RemoteSyncError
from activation.schemas.profile import (
    DocumentListResponse,
    DocumentType,
    ProfileResponse,
    StepUpdateResponse,
    UploadedDocument,
    UploadResult,
)
from activation.schemas.steps import LocalFile, StepData, dump_step, validate_step_number

logger = logging.getLogger(__name__)

PROFILE_PATH = "/api/activation/profile"
UPLOAD_PATH = "/api/activation/documents/upload"
DOCUMENTS_PATH = "/api/activation/documents"

# Default for `token=`: whatever session the client holds when the request is sent
CURRENT_SESSION = object()


def _error_message(response: httpx.Response) -> str:
    """Best-effort extraction of the service's error text."""
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return str(error.get("message", error))
        if error:
            return str(error)
    return f"HTTP {response.status_code}"


class RemoteSyncClient:
    """Async client over httpx. Owns its AsyncClient unless one is passed in."""

    def __init__(
        self,
        token: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url or settings.api_base_url,
            timeout=timeout if timeout is not None else settings.request_timeout_seconds,
        )
        self.token = token or None

    def set_token(self, token: Optional[str]) -> None:
        """Swap the session token (sign-in, sign-out, account switch).

        Calls already scheduled with an explicit `token=` keep theirs.
        """
        self.token = token or None

    def _session_headers(self, token) -> dict:
        if token is CURRENT_SESSION:
            token = self.token
        if not token:
            return {}
        return {"Cookie": f"{settings.auth_cookie_name}={token}"}

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(
        self, method: str, path: str, token=CURRENT_SESSION, **kwargs
    ) -> httpx.Response:
        headers = self._session_headers(token)
        try:
            response = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise RemoteSyncError(f"{method} {path} failed: {e}") from e
        if response.is_error:
            raise RemoteSyncError(
                f"{method} {path} returned {response.status_code}: {_error_message(response)}",
                status_code=response.status_code,
            )
        return response

    # ── Profile ─────────────────────────────────────────────

    async def fetch_status(self, token=CURRENT_SESSION) -> ProfileResponse:
        """Full profile response: profile (may be None), progress, completion."""
        response = await self._request("GET", PROFILE_PATH, token=token)
        try:
            return ProfileResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise RemoteSyncError(f"Malformed profile response: {e}") from e

    async def fetch_profile(self, token=CURRENT_SESSION) -> ProfileResponse:
        """Like fetch_status, but a missing profile is a failure."""
        result = await self.fetch_status(token=token)
        if result.profile is None:
            raise RemoteSyncError("No activation profile exists yet", status_code=404)
        return result

    async def submit_step(
        self, step: int, data: StepData, token=CURRENT_SESSION
    ) -> StepUpdateResponse:
        """Persist one step's JSON fields as a partial profile update.

        `token` pins the session the write belongs to; pass the one captured
        when the write was scheduled.
        """
        body = {"step": validate_step_number(step), "data": dump_step(data)}
        response = await self._request("POST", PROFILE_PATH, token=token, json=body)
        try:
            return StepUpdateResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise RemoteSyncError(f"Malformed step update response: {e}") from e

    # ── Documents ───────────────────────────────────────────

    async def upload_document(
        self, file: LocalFile, document_type: DocumentType, token=CURRENT_SESSION
    ) -> UploadResult:
        try:
            response = await self._request(
                "POST",
                UPLOAD_PATH,
                token=token,
                files={"file": (file.filename, file.content, file.content_type)},
                data={"documentType": document_type.value},
            )
            document = UploadedDocument.model_validate(response.json()["document"])
        except RemoteSyncError as e:
            return UploadResult(document_type=document_type, success=False, error=e.message)
        except (ValueError, KeyError, TypeError, ValidationError) as e:
            return UploadResult(
                document_type=document_type,
                success=False,
                error=f"Malformed upload response: {e}",
            )
        return UploadResult(document_type=document_type, success=True, document=document)

    async def list_documents(self, token=CURRENT_SESSION) -> list[UploadedDocument]:
        response = await self._request("GET", DOCUMENTS_PATH, token=token)
        try:
            return DocumentListResponse.model_validate(response.json()).documents
        except (ValueError, ValidationError) as e:
            raise RemoteSyncError(f"Malformed documents response: {e}") from e
