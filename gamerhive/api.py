# gamerhive/api.py
"""
Async REST client for the GamerHive backend.

This module provides:
- ApiResponse: the {success, message, data} envelope every endpoint returns
- ApiClient: httpx.AsyncClient wrapper with path normalization, optional
  bearer auth and response normalization

Behavior:
- Paths are mounted under /api ("/auth/login" → "/api/auth/login")
- auth=True attaches the Session Store's token when one exists;
  auth=False never sends Authorization (no stale token on login/signup)
- Non-2xx bodies without a success field become
  {success: false, message: <body message> or "Request failed: <status>"}
- Transport failures raise NetworkError and are logged for diagnostics
"""

from __future__ import annotations

import logging
from typing import Any, Optional, TYPE_CHECKING

import httpx
from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from gamerhive.config import get_api_base_url, get_request_timeout, is_request_logging_enabled
from gamerhive.errors import NetworkError, ServerError

if TYPE_CHECKING:
    from gamerhive.accounts.session import SessionStore

log = logging.getLogger("gamerhive.api")

DEFAULT_FAILURE_MESSAGE = "Request failed"


class ApiResponse(BaseModel):
    """Response envelope shared by every backend endpoint."""

    model_config = ConfigDict(extra="allow")

    success: bool = False
    message: Optional[str] = None
    data: Any = None
    error: Any = None
    status_code: Optional[int] = None

    def error_message(self, fallback: str) -> str:
        """Server message verbatim, or the caller's fallback."""
        if self.message and self.message.strip():
            return self.message
        if isinstance(self.error, str) and self.error.strip():
            return self.error
        return fallback


def normalize_path(path: str) -> str:
    """Mount a path under /api unless it already is."""
    if path.startswith("/api/"):
        return path
    return f"/api{'' if path.startswith('/') else '/'}{path}"


class ApiClient:
    """
    Thin async client over httpx.

    Args:
        base_url: Backend URL. Defaults to GAMERHIVE_API_URL.
        store: Session Store used for bearer auth. Optional.
        timeout: Request timeout in seconds. Defaults to GAMERHIVE_TIMEOUT_SECONDS.
        transport: Custom httpx transport (MockTransport/ASGITransport in tests).
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        store: Optional["SessionStore"] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or get_api_base_url()).rstrip("/")
        self.store = store
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout if timeout is not None else get_request_timeout(),
            headers={"Accept": "application/json"},
            transport=transport,
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ============================================================
    # Requests
    # ============================================================

    def _headers(self, auth: bool) -> dict:
        headers = {}
        if auth and self.store is not None:
            token = self.store.get_token()
            if token:
                headers["Authorization"] = f"Bearer {token}"
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[dict] = None,
        auth: bool = True,
    ) -> ApiResponse:
        """
        Send a request and return the normalized envelope.

        Raises:
            NetworkError: The request produced no response.
        """
        url = normalize_path(path)

        try:
            response = await self._client.request(
                method.upper(),
                url,
                json=json,
                headers=self._headers(auth),
            )
        except httpx.HTTPError as e:
            log.warning("Network error on %s %s: %s", method.upper(), url, str(e)[:100])
            raise NetworkError(detail=str(e)[:200]) from e

        if is_request_logging_enabled():
            log.info("%s %s -> %d", method.upper(), url, response.status_code)

        return _normalize(response)

    async def call(
        self,
        method: str,
        path: str,
        *,
        json: Optional[dict] = None,
        auth: bool = True,
        fallback: str = DEFAULT_FAILURE_MESSAGE,
    ) -> ApiResponse:
        """
        Like request(), but a success=false envelope raises ServerError
        carrying the server's message (or the fallback).
        """
        resp = await self.request(method, path, json=json, auth=auth)
        if not resp.success:
            raise ServerError(resp.error_message(fallback), status_code=resp.status_code)
        return resp

    async def health(self) -> bool:
        """Probe GET /api/health."""
        try:
            response = await self._client.get("/api/health", timeout=10.0)
        except httpx.HTTPError as e:
            log.warning("Health check failed: %s", str(e)[:100])
            return False
        return response.status_code == 200


def _normalize(response: httpx.Response) -> ApiResponse:
    content_type = response.headers.get("content-type", "")
    body: Any
    if "application/json" in content_type:
        try:
            body = response.json()
        except ValueError:
            body = response.text
    else:
        body = response.text

    resp: ApiResponse
    if isinstance(body, dict) and "success" in body:
        try:
            resp = ApiResponse.model_validate(body)
        except PydanticValidationError:
            log.warning("Malformed response envelope (status %s)", response.status_code)
            resp = ApiResponse(success=False, message=f"Request failed: {response.status_code}")
    elif response.is_success:
        # A 2xx body without the envelope never counts as success
        resp = ApiResponse(success=False, data=body)
    else:
        message = body.get("message") if isinstance(body, dict) else None
        resp = ApiResponse(
            success=False,
            message=message if isinstance(message, str) and message else f"Request failed: {response.status_code}",
        )

    # success=true on an error status is still an error
    if not response.is_success and resp.success:
        resp.success = False

    if not resp.success:
        resp.status_code = response.status_code
    return resp
