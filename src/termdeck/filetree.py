"""File tree controller: navigation and mutations for the viewed directory.

One FileTree is created at startup and shared by reference. It binds the
cache's view state (which session and path are on screen) and runs every
mutation as optimistic cache update, provider confirmation, and rollback
on failure.
"""

from __future__ import annotations

import posixpath
from collections.abc import Awaitable
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from termdeck.cache.retry import RetryPolicy, retry_async
from termdeck.errors import ProviderError, TermdeckError
from termdeck.files.types import MutationResult, ResourceDescriptor, join_path, parent_path
from termdeck.logging import get_logger

if TYPE_CHECKING:
    from termdeck.cache.resource_cache import RenderListener, ResourceCache
    from termdeck.files.provider import FileProvider

log = get_logger("filetree")


class FileTree:
    """Navigation and mutation dispatcher for one file view.

    Args:
        cache: Shared ResourceCache.
        provider: Provider used for mutations (listings go through the cache).
        listener: Render listener; registered on the cache as well.
        retry_policy: Retry for not-ready listings during navigation.
        default_path: Directory shown when a session is attached.
    """

    def __init__(
        self,
        cache: ResourceCache,
        provider: FileProvider,
        *,
        listener: RenderListener | None = None,
        retry_policy: RetryPolicy | None = None,
        default_path: str = "/root",
    ) -> None:
        self._cache = cache
        self._provider = provider
        self._listener = listener
        self._retry_policy = retry_policy or RetryPolicy()
        self.default_path = default_path
        self.session_id: str | None = None
        self.path: str | None = None
        if listener is not None:
            cache.set_listener(listener)

    def attach(self, session_id: str) -> None:
        """Show ``session_id``'s files; navigate() must follow to load them."""
        self.session_id = session_id
        self.path = None
        self._cache.set_current_path(None, None)

    def detach(self) -> None:
        self.session_id = None
        self.path = None
        self._cache.set_current_path(None, None)

    def _require_session(self) -> str:
        if self.session_id is None:
            raise TermdeckError("No session attached to the file tree")
        return self.session_id

    def _render(self, data: list[ResourceDescriptor], path: str) -> None:
        if self._listener is not None:
            self._listener(list(data), path)

    # -------------------------------------------------------------------------
    # Navigation
    # -------------------------------------------------------------------------

    async def navigate(self, path: str | None = None) -> list[ResourceDescriptor]:
        """Make ``path`` the viewed directory and load it.

        Not-ready failures are retried per the retry policy; other provider
        errors propagate at once.
        """
        session_id = self._require_session()
        path = path or self.default_path
        self.path = path
        self._cache.set_current_path(session_id, path)

        data = await retry_async(
            lambda: self._cache.get_or_load(session_id, path),
            self._retry_policy,
            description=f"Loading {path}",
        )
        if self._cache.is_viewing(session_id, path):
            self._render(data, path)
        return data

    async def navigate_up(self) -> list[ResourceDescriptor]:
        return await self.navigate(parent_path(self.path or self.default_path))

    async def reload(self) -> list[ResourceDescriptor]:
        """User-triggered reload of the viewed directory."""
        session_id = self._require_session()
        path = self.path or self.default_path
        data = await self._cache.refresh(session_id, path)
        if self._cache.is_viewing(session_id, path):
            self._render(data, path)
        return data

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def create(
        self, name: str, *, is_dir: bool = False, directory: str | None = None
    ) -> ResourceDescriptor:
        """Create a file or directory named ``name`` in ``directory``."""
        session_id = self._require_session()
        parent = directory or self.path or self.default_path
        descriptor = ResourceDescriptor(
            name=name,
            path=join_path(parent, name),
            is_dir=is_dir,
            size=0,
            mod_time=datetime.now(timezone.utc),
        )
        self._cache.optimistic_create(session_id, parent, descriptor)
        await self._confirm(
            session_id,
            parent,
            descriptor.path,
            "create",
            self._provider.create(session_id, descriptor.path, is_dir=is_dir),
        )
        return descriptor

    async def delete(self, path: str) -> None:
        session_id = self._require_session()
        parent = parent_path(path)
        self._cache.optimistic_delete(session_id, parent, path)
        await self._confirm(
            session_id, parent, path, "delete", self._provider.delete(session_id, path)
        )

    async def rename(self, path: str, new_name: str) -> str:
        """Rename ``path`` within its directory. Returns the new path."""
        session_id = self._require_session()
        parent = parent_path(path)
        new_path = join_path(parent, new_name)
        self._cache.optimistic_rename(session_id, parent, path, new_path, new_name)
        await self._confirm(
            session_id,
            parent,
            path,
            "rename",
            self._provider.rename(session_id, path, new_path),
        )
        return new_path

    async def copy(self, source_path: str, target_dir: str) -> str:
        """Copy ``source_path`` into ``target_dir``. Returns the new path.

        Nothing is applied optimistically; the target listing is
        revalidated once the provider confirms.
        """
        session_id = self._require_session()
        target_path = join_path(target_dir, posixpath.basename(source_path.rstrip("/")))
        result = await self._provider.copy(session_id, source_path, target_path)
        if not result.success:
            raise ProviderError(result.error or "copy failed", source_path)
        self._cache.schedule_revalidation(session_id, target_dir)
        return target_path

    async def _confirm(
        self,
        session_id: str,
        parent: str,
        path: str,
        operation: str,
        call: Awaitable[MutationResult],
    ) -> None:
        try:
            result = await call
            if not result.success:
                raise ProviderError(result.error or f"{operation} failed", path)
        except ProviderError as e:
            log.warning("%s %s failed: %s", operation.capitalize(), path, e.reason)
            try:
                await self._cache.rollback(session_id, parent)
            except ProviderError as rollback_error:
                log.warning("Rollback of %s failed: %s", parent, rollback_error.reason)
            raise
        log.debug("%s %s confirmed", operation.capitalize(), path)
        self._cache.schedule_revalidation(session_id, parent)
