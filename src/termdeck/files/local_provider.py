"""File provider backed by the local filesystem.

Used for the local terminal session and in tests. Blocking filesystem calls
run in a worker thread so the event loop stays responsive.
"""

from __future__ import annotations

import asyncio
import os
import shutil
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

from termdeck.errors import ProviderError
from termdeck.files.types import MutationResult, ResourceDescriptor, sort_entries
from termdeck.logging import get_logger

log = get_logger("files.local")


class LocalFileProvider:
    """Serve listings and mutations from the machine running termdeck.

    The session id is accepted for interface compatibility and ignored;
    every session sees the same filesystem.
    """

    async def list_dir(
        self, session_id: str, path: str, *, show_hidden: bool = False
    ) -> list[ResourceDescriptor]:
        try:
            return await asyncio.to_thread(self._list_sync, path, show_hidden)
        except OSError as e:
            raise ProviderError(f"Failed to read directory: {e.strerror or e}", path) from e

    def _list_sync(self, path: str, show_hidden: bool) -> list[ResourceDescriptor]:
        entries: list[ResourceDescriptor] = []
        with os.scandir(path) as it:
            for item in it:
                if not show_hidden and item.name.startswith("."):
                    continue
                try:
                    st = item.stat()
                except OSError:
                    # Dangling symlink or entry removed mid-scan
                    continue
                is_dir = item.is_dir()
                entries.append(
                    ResourceDescriptor(
                        name=item.name,
                        path=os.path.join(path, item.name),
                        is_dir=is_dir,
                        size=0 if is_dir else st.st_size,
                        mod_time=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
                    )
                )
        return sort_entries(entries)

    async def create(self, session_id: str, path: str, *, is_dir: bool) -> MutationResult:
        def _create() -> None:
            target = Path(path)
            if is_dir:
                target.mkdir()
            else:
                target.touch(exist_ok=False)

        return await self._run("create", path, _create)

    async def delete(self, session_id: str, path: str) -> MutationResult:
        def _delete() -> None:
            target = Path(path)
            if target.is_dir() and not target.is_symlink():
                shutil.rmtree(target)
            else:
                target.unlink()

        return await self._run("delete", path, _delete)

    async def rename(self, session_id: str, old_path: str, new_path: str) -> MutationResult:
        def _rename() -> None:
            if os.path.lexists(new_path):
                raise FileExistsError(17, "File exists", new_path)
            os.rename(old_path, new_path)

        return await self._run("rename", old_path, _rename)

    async def copy(self, session_id: str, source_path: str, target_path: str) -> MutationResult:
        def _copy() -> None:
            if os.path.lexists(target_path):
                raise FileExistsError(17, "File exists", target_path)
            if os.path.isdir(source_path):
                shutil.copytree(source_path, target_path, symlinks=True)
            else:
                shutil.copy2(source_path, target_path)

        return await self._run("copy", source_path, _copy)

    async def _run(self, op: str, path: str, func: Callable[[], None]) -> MutationResult:
        try:
            await asyncio.to_thread(func)
        except OSError as e:
            log.debug("Local %s failed for %s: %s", op, path, e)
            return MutationResult(success=False, error=f"{op} failed: {e.strerror or e}")
        return MutationResult(success=True)
