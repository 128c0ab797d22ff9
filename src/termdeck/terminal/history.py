"""In-memory command history with debounced persistence.

Captured commands are kept per session (newest first, bounded) and batched
for an optional persist hook. The batch is handed over once no new command
has arrived for ``flush_delay`` seconds, or on an explicit flush().
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from termdeck.logging import get_logger

if TYPE_CHECKING:
    from termdeck.config.schema import HistoryConfig

log = get_logger("history")


@dataclass(frozen=True, slots=True)
class CommandRecord:
    session_id: str
    command: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


PersistHook = Callable[[list[CommandRecord]], Awaitable[None]]


class CommandHistory:
    """Command history sink shared by all sessions.

    Args:
        max_entries: Records kept per session.
        flush_delay: Debounce in seconds before calling ``persist``.
        persist: Optional async hook receiving batches of new records.
    """

    def __init__(
        self,
        *,
        max_entries: int = 50,
        flush_delay: float = 0.5,
        persist: PersistHook | None = None,
    ) -> None:
        self.max_entries = max_entries
        self.flush_delay = flush_delay
        self._persist = persist
        self._records: dict[str, deque[CommandRecord]] = {}
        self._pending: list[CommandRecord] = []
        self._timer: asyncio.TimerHandle | None = None
        self._flush_tasks: set[asyncio.Task[int]] = set()

    @classmethod
    def from_config(cls, config: HistoryConfig, persist: PersistHook | None = None) -> CommandHistory:
        return cls(max_entries=config.max_entries, flush_delay=config.flush_delay, persist=persist)

    def record(self, session_id: str, command: str) -> CommandRecord:
        """Store a captured command and schedule a debounced flush."""
        entry = CommandRecord(session_id=session_id, command=command)
        records = self._records.get(session_id)
        if records is None:
            records = self._records[session_id] = deque(maxlen=self.max_entries)
        records.appendleft(entry)

        if self._persist is not None:
            self._pending.append(entry)
            self._schedule_flush()
        return entry

    def get(self, session_id: str, limit: int | None = None) -> list[CommandRecord]:
        """Records for a session, newest first."""
        records = list(self._records.get(session_id, ()))
        return records[:limit] if limit is not None else records

    def commands(self, session_id: str, limit: int | None = None) -> list[str]:
        return [record.command for record in self.get(session_id, limit)]

    def clear(self, session_id: str) -> None:
        self._records.pop(session_id, None)
        self._pending = [r for r in self._pending if r.session_id != session_id]

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def _schedule_flush(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: records stay pending until flush() is awaited
            return
        if self._timer is not None:
            self._timer.cancel()
        self._timer = loop.call_later(self.flush_delay, self._start_flush)

    def _start_flush(self) -> None:
        self._timer = None
        task = asyncio.get_running_loop().create_task(self.flush())
        self._flush_tasks.add(task)
        task.add_done_callback(self._flush_tasks.discard)

    async def flush(self) -> int:
        """Hand all pending records to the persist hook.

        Persist failures are logged and the batch is dropped.

        Returns:
            Number of records handed over.
        """
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        batch, self._pending = self._pending, []
        if not batch or self._persist is None:
            return 0
        try:
            await self._persist(batch)
        except Exception as e:
            log.warning("Failed to persist %d commands: %s", len(batch), e)
            return 0
        log.debug("Persisted %d commands", len(batch))
        return len(batch)

    async def aclose(self) -> None:
        await self.flush()
        if self._flush_tasks:
            await asyncio.gather(*self._flush_tasks, return_exceptions=True)
