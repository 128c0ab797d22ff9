"""File provider protocol.

A provider performs remote directory listings and mutations scoped by
session id. Implementations:
- LocalFileProvider: the local filesystem
- HttpFileProvider: the server's /api/files endpoints
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from termdeck.files.types import MutationResult, ResourceDescriptor


@runtime_checkable
class FileProvider(Protocol):
    async def list_dir(
        self, session_id: str, path: str, *, show_hidden: bool = False
    ) -> list[ResourceDescriptor]:
        """List a directory, sorted directories first then by name.

        Raises:
            NotReadyError: The session's remote side is not ready yet.
            ProviderError: Any other listing failure.
        """
        ...

    async def create(self, session_id: str, path: str, *, is_dir: bool) -> MutationResult: ...

    async def delete(self, session_id: str, path: str) -> MutationResult: ...

    async def rename(self, session_id: str, old_path: str, new_path: str) -> MutationResult: ...

    async def copy(self, session_id: str, source_path: str, target_path: str) -> MutationResult: ...
