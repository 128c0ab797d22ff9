"""Background warming of likely-next directories.

After a foreground listing arrives, the first few subdirectories in it are
queued and fetched concurrently. The cache is the only record of what has
already been loaded: a queued directory that became cached or in flight in
the meantime is dropped when the queue drains.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from termdeck.logging import TRACE, get_logger

if TYPE_CHECKING:
    from termdeck.cache.resource_cache import CacheKey, ResourceCache
    from termdeck.files.types import ResourceDescriptor

log = get_logger("cache.preload")


@dataclass(frozen=True, slots=True)
class PreloadTask:
    session_id: str
    path: str

    @property
    def key(self) -> CacheKey:
        return (self.session_id, self.path)


class PreloadScheduler:
    """Bounded-concurrency preloader for one level of subdirectories.

    Attributes:
        limit: Maximum directories queued per listing.
        enabled: When False, schedule() queues nothing.
        draining: True while process_queue() is running.
    """

    def __init__(self, cache: ResourceCache, *, limit: int = 5, enabled: bool = True) -> None:
        self._cache = cache
        self.limit = limit
        self.enabled = enabled
        self.draining = False
        self._queue: deque[PreloadTask] = deque()
        self._drain_task: asyncio.Task[int] | None = None

    @property
    def queue_length(self) -> int:
        return len(self._queue)

    @property
    def busy(self) -> bool:
        return self.draining or (self._drain_task is not None and not self._drain_task.done())

    def schedule(self, session_id: str, entries: Iterable[ResourceDescriptor]) -> int:
        """Queue the first ``limit`` directories of a listing for preloading.

        Directories already cached or in flight are skipped; they still count
        toward the limit. Starts a drain if none is active.

        Returns:
            Number of tasks queued.
        """
        if not self.enabled or self.limit <= 0:
            return 0

        dirs = [entry for entry in entries if entry.is_dir][: self.limit]
        queued = 0
        for entry in dirs:
            if self._cache.is_cached(session_id, entry.path) or self._cache.is_loading(
                session_id, entry.path
            ):
                continue
            self._queue.append(PreloadTask(session_id, entry.path))
            queued += 1

        if queued and not self.busy:
            self._drain_task = asyncio.create_task(self.process_queue(), name="cache-preload")
        return queued

    async def process_queue(self) -> int:
        """Drain the queue, fetching every still-needed directory concurrently.

        Re-entrant calls while a drain is active return immediately; items
        queued during a drain are picked up before it finishes. A failed
        preload never cancels its siblings.

        Returns:
            Number of directories fetched by this drain.
        """
        if self.draining:
            return 0
        self.draining = True
        loaded = 0
        try:
            while self._queue:
                items = list(self._queue)
                self._queue.clear()
                to_load = [
                    item
                    for item in items
                    if not self._cache.is_cached(item.session_id, item.path)
                    and not self._cache.is_loading(item.session_id, item.path)
                ]
                if not to_load:
                    continue
                log.debug("Preloading %d directories", len(to_load))
                results = await asyncio.gather(*(self._preload(item) for item in to_load))
                loaded += sum(results)
        finally:
            self.draining = False
        return loaded

    async def _preload(self, item: PreloadTask) -> bool:
        task = self._cache.start_preload(item.session_id, item.path)
        if task is None:
            return False
        try:
            await asyncio.shield(task)
        except Exception as e:
            log.warning("Preload failed for %s: %s", item.path, e)
            return False
        log.log(TRACE, "Preloaded %s", item.path)
        return True

    def clear(self) -> None:
        """Drop everything queued but not yet started."""
        self._queue.clear()

    def clear_for_session(self, session_id: str) -> None:
        self._queue = deque(item for item in self._queue if item.session_id != session_id)

    async def wait_idle(self) -> None:
        if self._drain_task is not None and not self._drain_task.done():
            await asyncio.shield(self._drain_task)

    def cancel(self) -> None:
        self._queue.clear()
        if self._drain_task is not None and not self._drain_task.done():
            self._drain_task.cancel()
