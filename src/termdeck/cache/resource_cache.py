"""Directory listing cache with stale-while-revalidate semantics.

Cached listings are served immediately while a background fetch checks
them against the provider. At most one fetch per (session, path) key is in
flight at any time; callers asking for a key that is already being fetched
await that same fetch.

All cached state is owned here. Mutation paths (fetch completion,
optimistic updates, rollback, clearing) go through ResourceCache methods,
and callers only ever receive copies of the cached lists.
"""

from __future__ import annotations

import asyncio
import bisect
import inspect
import time
import weakref
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from termdeck.cache.preload import PreloadScheduler
from termdeck.files.types import ResourceDescriptor, same_listing, sort_key
from termdeck.logging import TRACE, VERBOSE, get_logger

if TYPE_CHECKING:
    from termdeck.config.schema import CacheConfig
    from termdeck.files.provider import FileProvider

log = get_logger("cache")

CacheKey = tuple[str, str]
RenderListener = Callable[[list[ResourceDescriptor], str], None]
Listing = list[ResourceDescriptor]


class FetchMode(Enum):
    """Why a fetch was started; decides how its result is stored."""

    LOAD = "load"  # Foreground: store, then preload subdirectories
    PRELOAD = "preload"  # Store only if still absent
    REVALIDATE = "revalidate"  # Compare with the cached listing; failures are logged


@dataclass
class CacheEntry:
    """A cached listing. ``timestamp`` is in the cache clock's units."""

    data: Listing
    timestamp: float


class ResourceCache:
    """Keyed store of directory listings.

    Args:
        provider: Source of truth for listings.
        listener: Render listener, see set_listener().
        show_hidden: Bool or zero-argument callable consulted on every fetch.
        preload_limit: Subdirectories to warm after each foreground fetch.
        preload_enabled: Turn preloading off entirely.
        clock: Timestamp source for entries.
    """

    def __init__(
        self,
        provider: FileProvider,
        *,
        listener: RenderListener | None = None,
        show_hidden: bool | Callable[[], bool] = False,
        preload_limit: int = 5,
        preload_enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._provider = provider
        self._entries: dict[CacheKey, CacheEntry] = {}
        self._in_flight: dict[CacheKey, asyncio.Task[Listing | None]] = {}
        # In-flight fetches whose results must not be stored (cleared keys)
        self._discarded: set[asyncio.Task[Any]] = set()
        # Keys that changed while their fetch was in flight; fetched again once it settles
        self._stale: set[CacheKey] = set()
        self._listener_ref: Callable[[], RenderListener | None] | None = None
        self._current: CacheKey | None = None
        self._show_hidden = show_hidden
        self._clock = clock
        self.preloader = PreloadScheduler(self, limit=preload_limit, enabled=preload_enabled)
        if listener is not None:
            self.set_listener(listener)

    @classmethod
    def from_config(
        cls,
        provider: FileProvider,
        config: CacheConfig,
        *,
        listener: RenderListener | None = None,
        show_hidden: bool | Callable[[], bool] | None = None,
    ) -> ResourceCache:
        return cls(
            provider,
            listener=listener,
            show_hidden=config.show_hidden if show_hidden is None else show_hidden,
            preload_limit=config.preload_limit,
            preload_enabled=config.preload_enabled,
        )

    # -------------------------------------------------------------------------
    # View coupling
    # -------------------------------------------------------------------------

    def set_listener(self, listener: RenderListener | None) -> None:
        """Register the render listener, replacing any previous one.

        Bound methods are held through a weak reference so the cache never
        keeps a view object alive. Other callables are held as given; pass
        None to detach.
        """
        if listener is None:
            self._listener_ref = None
        elif inspect.ismethod(listener):
            self._listener_ref = weakref.WeakMethod(listener)
        else:
            self._listener_ref = lambda: listener

    def set_current_path(self, session_id: str | None, path: str | None) -> None:
        """Record which listing the view is showing (None for nothing)."""
        if session_id is None or path is None:
            self._current = None
        else:
            self._current = (session_id, path)

    @property
    def current_path(self) -> str | None:
        return self._current[1] if self._current else None

    def is_viewing(self, session_id: str, path: str) -> bool:
        return self._current == (session_id, path)

    @property
    def show_hidden(self) -> bool:
        if callable(self._show_hidden):
            return bool(self._show_hidden())
        return self._show_hidden

    def _render(self, data: Listing, path: str) -> None:
        listener = self._listener_ref() if self._listener_ref else None
        if listener is None:
            return
        try:
            listener(list(data), path)
        except Exception:
            log.exception("Render listener failed for %s", path)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_or_load(self, session_id: str, path: str) -> Listing:
        """Return a listing, from cache when possible.

        A cache hit returns at once and schedules a background revalidation
        (unless one is already in flight). A miss awaits a fetch, stores the
        result and queues its first subdirectories for preloading.

        Raises:
            ProviderError: The first fetch failed; nothing is cached.
        """
        entry = self._entries.get((session_id, path))
        if entry is not None:
            log.log(TRACE, "Cache hit %s:%s", session_id, path)
            if (session_id, path) not in self._in_flight:
                self._start_fetch(session_id, path, FetchMode.REVALIDATE)
            return list(entry.data)
        return list(await self._load(session_id, path))

    async def refresh(self, session_id: str, path: str) -> Listing:
        """Discard the cached listing and fetch it again."""
        self._entries.pop((session_id, path), None)
        log.debug("Refreshing %s:%s", session_id, path)
        return list(await self._load_fresh(session_id, path))

    def peek(self, session_id: str, path: str) -> CacheEntry | None:
        """The cached entry itself, without fetching. Treat as read-only."""
        return self._entries.get((session_id, path))

    def is_cached(self, session_id: str, path: str) -> bool:
        return (session_id, path) in self._entries

    def is_loading(self, session_id: str, path: str) -> bool:
        return (session_id, path) in self._in_flight

    def get_stats(self) -> dict[str, Any]:
        return {
            "cache_size": len(self._entries),
            "loading_count": len(self._in_flight),
            "preload_queue_length": self.preloader.queue_length,
            "preloading": self.preloader.draining,
        }

    # -------------------------------------------------------------------------
    # Fetching
    # -------------------------------------------------------------------------

    async def _load(self, session_id: str, path: str) -> Listing:
        key = (session_id, path)
        while True:
            task = self._in_flight.get(key) or self._start_fetch(session_id, path, FetchMode.LOAD)
            data = await asyncio.shield(task)
            if data is not None:
                return data
            # Joined a background revalidation that failed; fetch in the foreground

    async def _load_fresh(self, session_id: str, path: str) -> Listing:
        """Fetch a listing with a request issued after any fetch already in flight."""
        key = (session_id, path)
        while True:
            pending = self._in_flight.get(key)
            if pending is None:
                break
            await asyncio.wait([pending])
        return await asyncio.shield(self._start_fetch(session_id, path, FetchMode.LOAD))

    def _start_fetch(self, session_id: str, path: str, mode: FetchMode) -> asyncio.Task[Listing | None]:
        key = (session_id, path)
        existing = self._in_flight.get(key)
        if existing is not None:
            return existing
        task = asyncio.create_task(
            self._fetch(session_id, path, mode), name=f"cache-{mode.value}:{session_id}:{path}"
        )
        self._in_flight[key] = task
        task.add_done_callback(lambda t: self._fetch_done(key, t))
        return task

    def _fetch_done(self, key: CacheKey, task: asyncio.Task[Listing | None]) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        discarded = task in self._discarded
        self._discarded.discard(task)
        if not task.cancelled() and task.exception() is not None:
            log.debug("Fetch %s failed: %s", task.get_name(), task.exception())
        if key in self._stale:
            self._stale.discard(key)
            if not discarded and not task.cancelled() and key in self._entries:
                log.debug("Fetching %s:%s again after a change during the fetch", *key)
                self._start_fetch(key[0], key[1], FetchMode.REVALIDATE)

    async def _fetch(self, session_id: str, path: str, mode: FetchMode) -> Listing | None:
        key = (session_id, path)
        task = asyncio.current_task()
        try:
            try:
                data = list(
                    await self._provider.list_dir(session_id, path, show_hidden=self.show_hidden)
                )
            except Exception as e:
                if mode is FetchMode.REVALIDATE:
                    log.warning("Background refresh failed for %s: %s", path, e)
                    return None
                raise
            if task in self._discarded:
                log.debug("Dropping result for cleared key %s:%s", session_id, path)
            else:
                self._apply(session_id, path, data, mode)
            return data
        finally:
            if self._in_flight.get(key) is task:
                del self._in_flight[key]

    def _apply(self, session_id: str, path: str, data: Listing, mode: FetchMode) -> None:
        key = (session_id, path)
        now = self._clock()
        cached = self._entries.get(key)

        if mode is FetchMode.REVALIDATE:
            if key in self._stale:
                log.debug("Ignoring outdated revalidation of %s:%s", session_id, path)
                return
            if cached is None:
                self._entries[key] = CacheEntry(data, now)
            elif same_listing(cached.data, data):
                cached.timestamp = now
                log.log(TRACE, "Revalidated %s (unchanged)", path)
            else:
                self._entries[key] = CacheEntry(data, now)
                log.log(VERBOSE, "Revalidated %s (changed)", path)
                if self.is_viewing(session_id, path):
                    self._render(data, path)
            return

        if mode is FetchMode.PRELOAD and cached is not None:
            return

        self._entries[key] = CacheEntry(data, now)
        log.debug("Cached %s:%s (%d entries)", session_id, path, len(data))
        if mode is FetchMode.LOAD:
            self.preloader.schedule(session_id, data)

    def schedule_revalidation(
        self, session_id: str, path: str
    ) -> asyncio.Task[Listing | None] | None:
        """Start a background revalidation of a key.

        If a fetch for the key is already in flight, its result may predate
        the change that prompted this call; the key is marked stale and
        fetched again once that fetch settles.
        """
        key = (session_id, path)
        if key in self._in_flight:
            self._stale.add(key)
            return None
        return self._start_fetch(session_id, path, FetchMode.REVALIDATE)

    async def revalidate_in_background(self, session_id: str, path: str) -> None:
        """Fetch fresh data and reconcile it with the cached listing.

        An unchanged listing (same ordered (name, mod_time) pairs) only gets
        its timestamp bumped. A changed listing replaces the entry and, if
        it is on screen, is rendered. Failures are logged and the cached
        listing stays authoritative.
        """
        task = self.schedule_revalidation(session_id, path)
        if task is not None:
            await asyncio.shield(task)

    def start_preload(self, session_id: str, path: str) -> asyncio.Task[Listing | None] | None:
        """Start a preload fetch unless the key is cached or in flight."""
        key = (session_id, path)
        if key in self._entries or key in self._in_flight:
            return None
        return self._start_fetch(session_id, path, FetchMode.PRELOAD)

    # -------------------------------------------------------------------------
    # Optimistic mutation
    # -------------------------------------------------------------------------

    def _replace(self, key: CacheKey, entry: CacheEntry, data: Listing) -> None:
        entry.data = data
        entry.timestamp = self._clock()
        if self._current == key:
            self._render(data, key[1])

    def optimistic_create(
        self, session_id: str, parent_path: str, descriptor: ResourceDescriptor
    ) -> bool:
        """Insert ``descriptor`` into the cached parent listing.

        An existing entry with the same name is replaced. Returns False when
        the parent is not cached.
        """
        key = (session_id, parent_path)
        entry = self._entries.get(key)
        if entry is None:
            return False
        data = [item for item in entry.data if item.name != descriptor.name]
        bisect.insort(data, descriptor, key=sort_key)
        self._replace(key, entry, data)
        return True

    def optimistic_delete(self, session_id: str, parent_path: str, path: str) -> bool:
        key = (session_id, parent_path)
        entry = self._entries.get(key)
        if entry is None:
            return False
        data = [item for item in entry.data if item.path != path]
        if len(data) == len(entry.data):
            return False
        self._replace(key, entry, data)
        return True

    def optimistic_rename(
        self,
        session_id: str,
        parent_path: str,
        old_path: str,
        new_path: str,
        new_name: str,
    ) -> bool:
        """Rename an entry in place; its position in the listing is kept."""
        key = (session_id, parent_path)
        entry = self._entries.get(key)
        if entry is None:
            return False
        for index, item in enumerate(entry.data):
            if item.path == old_path:
                data = list(entry.data)
                data[index] = item.renamed(new_path, new_name)
                self._replace(key, entry, data)
                return True
        return False

    async def rollback(self, session_id: str, path: str) -> Listing | None:
        """Discard a listing after a failed mutation.

        If the listing is on screen it is fetched again and re-rendered.

        Returns:
            The fresh listing, or None when it was not on screen.
        """
        self._entries.pop((session_id, path), None)
        log.debug("Rolled back %s:%s", session_id, path)
        if not self.is_viewing(session_id, path):
            return None
        data = await self._load_fresh(session_id, path)
        if self.is_viewing(session_id, path):
            self._render(data, path)
        return list(data)

    # -------------------------------------------------------------------------
    # Administration
    # -------------------------------------------------------------------------

    def clear_all(self) -> None:
        self._entries.clear()
        self._stale.clear()
        self.preloader.clear()
        self._discarded.update(self._in_flight.values())

    def clear_for_session(self, session_id: str) -> None:
        for key in [key for key in self._entries if key[0] == session_id]:
            del self._entries[key]
        self.preloader.clear_for_session(session_id)
        self._stale = {key for key in self._stale if key[0] != session_id}
        self._discarded.update(
            task for key, task in self._in_flight.items() if key[0] == session_id
        )
        if self._current is not None and self._current[0] == session_id:
            self._current = None

    async def wait_idle(self) -> None:
        """Wait until no fetch is in flight and no preload drain is active."""
        while True:
            pending = list(self._in_flight.values())
            if pending:
                await asyncio.wait(pending)
            elif self.preloader.busy:
                await self.preloader.wait_idle()
                await asyncio.sleep(0)
            else:
                return

    def cancel_pending(self) -> None:
        """Cancel every in-flight fetch and the preload drain."""
        self.preloader.cancel()
        self._stale.clear()
        for task in list(self._in_flight.values()):
            task.cancel()
