"""Workbench HTTP API provider."""

import logging
import os
from typing import TYPE_CHECKING, Optional

import httpx

from ..models import DirectoryEntry, Workspace
from ..sessions import Session
from . import register_provider
from .base import DirectoryListingError, ProviderError, WorkbenchProvider, sort_entries

if TYPE_CHECKING:
    from ..tree import GenerationToken

logger = logging.getLogger(__name__)

DEFAULT_API_URL = os.environ.get("WORKBENCH_API_URL", "http://127.0.0.1:8080/api")
DEFAULT_TIMEOUT = float(os.environ.get("WORKBENCH_TIMEOUT", "10"))


class WorkbenchAPIError(ProviderError):
    """The API answered with an error envelope or could not be reached."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        details=None,
    ):
        self.status_code = status_code
        self.code = code
        self.details = details
        super().__init__(message)


def _error_from_response(response: httpx.Response) -> WorkbenchAPIError:
    """Decode ``{"error": {"code", "message", "details"}}`` bodies."""
    code = None
    details = None
    message = response.reason_phrase or f"HTTP {response.status_code}"
    try:
        payload = response.json().get("error") or {}
        code = payload.get("code")
        details = payload.get("details")
        message = payload.get("message") or message
    except (ValueError, AttributeError):
        pass
    return WorkbenchAPIError(
        f"{response.request.method} {response.request.url.path}: {message}",
        status_code=response.status_code,
        code=code,
        details=details,
    )


@register_provider
class WorkbenchAPIProvider(WorkbenchProvider):
    """Talks to a running workbench API server."""

    name = "http"
    display_name = "Workbench API"

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or DEFAULT_API_URL).rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout if timeout is not None else DEFAULT_TIMEOUT,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    def describe(self) -> str:
        return self.base_url

    async def close(self):
        await self._client.aclose()

    async def _request(self, method: str, path: str, params: Optional[dict] = None, json=None) -> dict:
        params = {k: v for k, v in (params or {}).items() if v not in (None, "")}
        try:
            response = await self._client.request(method, path, params=params, json=json)
        except httpx.HTTPError as e:
            raise WorkbenchAPIError(f"{method} {path} failed: {e}") from e

        logger.debug(f"{method} {response.request.url} -> {response.status_code}")
        if response.is_error:
            raise _error_from_response(response)
        try:
            return response.json()
        except ValueError as e:
            raise WorkbenchAPIError(f"{method} {path}: invalid JSON response", response.status_code) from e

    async def _items(self, method: str, path: str, params: Optional[dict] = None, json=None) -> list:
        body = await self._request(method, path, params=params, json=json)
        items = body.get("items") if isinstance(body, dict) else None
        return items if isinstance(items, list) else []

    async def list_workspaces(self) -> list[Workspace]:
        items = await self._items("GET", "/workspaces")
        return [Workspace.from_json(item) for item in items]

    async def list_sessions(self, workspace_id: str) -> list[Session]:
        items = await self._items("GET", "/sessions", params={"workspace_id": workspace_id})
        return [Session.from_json(item) for item in items]

    async def list_directory(
        self, workspace_id: str, prefix: str, token: Optional["GenerationToken"] = None
    ) -> list[DirectoryEntry]:
        if token is not None and not token.is_current():
            logger.debug(f"Skipping listing of {prefix!r}: tree was reset")
            return []
        try:
            items = await self._items("GET", "/files", params={"workspace_id": workspace_id, "prefix": prefix})
        except WorkbenchAPIError as e:
            raise DirectoryListingError(prefix, str(e)) from e
        return sort_entries([DirectoryEntry.from_json(item) for item in items])

    async def search(self, workspace_id: str, request: dict) -> list[dict]:
        return await self._items("POST", "/search", params={"workspace_id": workspace_id}, json=request)
