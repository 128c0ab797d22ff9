"""File provider that talks to the server's /files JSON endpoints.

Every endpoint answers with ``{"success": bool, "error": str, ...}``; a
listing adds ``"files": [...]``. Failure reasons that contain a configured
not-ready phrase become NotReadyError so the caller can retry.
"""

from __future__ import annotations

from typing import Any

import httpx

from termdeck.config.schema import DEFAULT_NOT_READY_PHRASES
from termdeck.errors import NotReadyError, ProviderError, is_not_ready_reason
from termdeck.files.types import MutationResult, ResourceDescriptor, sort_entries
from termdeck.logging import TRACE, get_logger

log = get_logger("files.http")


class HttpFileProvider:
    """FileProvider over HTTP using httpx.

    Args:
        api_base: Base URL of the API, e.g. "http://localhost:8080/api".
        timeout: Per-request timeout in seconds.
        not_ready_phrases: Substrings that mark a failure as retryable.
        client: Optional pre-built AsyncClient (tests inject one with a
            MockTransport). When given, api_base is ignored and the caller
            owns the client's lifecycle.
    """

    def __init__(
        self,
        api_base: str = "",
        *,
        timeout: float = 30.0,
        not_ready_phrases: list[str] | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=api_base, timeout=timeout)
        self._not_ready_phrases = (
            list(not_ready_phrases)
            if not_ready_phrases is not None
            else list(DEFAULT_NOT_READY_PHRASES)
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> HttpFileProvider:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def list_dir(
        self, session_id: str, path: str, *, show_hidden: bool = False
    ) -> list[ResourceDescriptor]:
        log.log(TRACE, "GET files/list %s (show_hidden=%s)", path, show_hidden)
        data = await self._request(
            "GET",
            "files/list",
            path,
            params={
                "session_id": session_id,
                "path": path,
                "show_hidden": "true" if show_hidden else "false",
            },
        )
        if not data.get("success"):
            raise self._error(data.get("error") or "Failed to load directory", path)

        try:
            files = [ResourceDescriptor.from_dict(item) for item in data.get("files") or []]
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderError(f"Malformed listing: {e}", path) from e
        return sort_entries(files)

    async def create(self, session_id: str, path: str, *, is_dir: bool) -> MutationResult:
        return await self._mutate(
            "files/create", path, {"session_id": session_id, "path": path, "is_dir": is_dir}
        )

    async def delete(self, session_id: str, path: str) -> MutationResult:
        return await self._mutate("files/delete", path, {"session_id": session_id, "path": path})

    async def rename(self, session_id: str, old_path: str, new_path: str) -> MutationResult:
        return await self._mutate(
            "files/rename",
            old_path,
            {"session_id": session_id, "old_path": old_path, "new_path": new_path},
        )

    async def copy(self, session_id: str, source_path: str, target_path: str) -> MutationResult:
        return await self._mutate(
            "files/copy",
            source_path,
            {"session_id": session_id, "source_path": source_path, "target_path": target_path},
        )

    async def _mutate(self, endpoint: str, path: str, body: dict[str, Any]) -> MutationResult:
        data = await self._request("POST", endpoint, path, json=body)
        if data.get("success"):
            return MutationResult(success=True)
        return MutationResult(success=False, error=data.get("error") or "Operation failed")

    async def _request(self, method: str, endpoint: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await self._client.request(method, endpoint, **kwargs)
        except httpx.HTTPError as e:
            raise ProviderError(f"Request to {endpoint} failed: {e}", path) from e

        try:
            data = response.json()
        except ValueError:
            data = None

        if not isinstance(data, dict):
            raise ProviderError(f"HTTP {response.status_code} from {endpoint}", path)
        if response.is_error and "success" not in data:
            data["success"] = False
            data.setdefault("error", f"HTTP {response.status_code}")
        return data

    def _error(self, reason: str, path: str) -> ProviderError:
        if is_not_ready_reason(reason, self._not_ready_phrases):
            return NotReadyError(reason, path)
        return ProviderError(reason, path)
