"""Shared test utilities and fakes for termdeck tests."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

from termdeck.errors import ProviderError, TransportError
from termdeck.files.types import MutationResult, ResourceDescriptor, join_path, sort_entries
from termdeck.terminal.protocol import TransportListener


def make_entry(
    name: str,
    parent: str = "/root",
    *,
    is_dir: bool = False,
    mtime: int = 0,
    size: int = 0,
) -> ResourceDescriptor:
    """Create a descriptor under ``parent`` with a fixed modification time."""
    return ResourceDescriptor(
        name=name,
        path=join_path(parent, name),
        is_dir=is_dir,
        size=size,
        mod_time=datetime.fromtimestamp(1_700_000_000 + mtime, tz=timezone.utc),
    )


class FakeFileProvider:
    """In-memory FileProvider with call recording and gating.

    Attributes:
        listings: path -> entries returned by list_dir (missing path fails).
        errors: path -> exception raised by list_dir instead.
        calls: (session_id, path, show_hidden) for every list_dir call.
        gate: When set to an unset Event, list_dir blocks until it is set.
        results: operation name -> MutationResult for mutations.
        mutations: (operation, args) for every mutation call.
    """

    def __init__(self, listings: dict[str, list[ResourceDescriptor]] | None = None) -> None:
        self.listings: dict[str, list[ResourceDescriptor]] = dict(listings or {})
        self.errors: dict[str, Exception] = {}
        self.calls: list[tuple[str, str, bool]] = []
        self.gate: asyncio.Event | None = None
        self.results: dict[str, MutationResult] = {}
        self.mutations: list[tuple[str, tuple[object, ...]]] = []

    def calls_for(self, path: str) -> int:
        return sum(1 for _, p, _ in self.calls if p == path)

    async def list_dir(
        self, session_id: str, path: str, *, show_hidden: bool = False
    ) -> list[ResourceDescriptor]:
        self.calls.append((session_id, path, show_hidden))
        # The listing is read when the request arrives, not when it is answered
        entries = list(self.listings[path]) if path in self.listings else None
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)
        if path in self.errors:
            raise self.errors[path]
        if entries is None:
            raise ProviderError("No such directory", path)
        if not show_hidden:
            entries = [e for e in entries if not e.name.startswith(".")]
        return sort_entries(entries)

    async def _mutate(self, op: str, *args: object) -> MutationResult:
        self.mutations.append((op, args))
        await asyncio.sleep(0)
        return self.results.get(op, MutationResult(success=True))

    async def create(self, session_id: str, path: str, *, is_dir: bool) -> MutationResult:
        return await self._mutate("create", session_id, path, is_dir)

    async def delete(self, session_id: str, path: str) -> MutationResult:
        return await self._mutate("delete", session_id, path)

    async def rename(self, session_id: str, old_path: str, new_path: str) -> MutationResult:
        return await self._mutate("rename", session_id, old_path, new_path)

    async def copy(self, session_id: str, source_path: str, target_path: str) -> MutationResult:
        return await self._mutate("copy", session_id, source_path, target_path)


class FakeTransport:
    """TransportAdapter driven by the test.

    Use emit(), drop() and fail() to simulate inbound events.
    """

    def __init__(self, open_error: Exception | None = None) -> None:
        self.open_error = open_error
        self.listener: TransportListener | None = None
        self.sent: list[bytes | str] = []
        self.opened = False
        self.closed = False
        self.close_calls = 0

    @property
    def is_open(self) -> bool:
        return self.opened and not self.closed

    async def open(self, listener: TransportListener) -> None:
        await asyncio.sleep(0)
        if self.open_error is not None:
            raise self.open_error
        self.listener = listener
        self.opened = True

    async def send(self, data: bytes | str) -> None:
        if not self.is_open:
            raise TransportError("Transport is not open")
        self.sent.append(data)

    async def close(self) -> None:
        self.close_calls += 1
        self.closed = True

    def emit(self, data: bytes | str = b"$ ") -> None:
        assert self.listener is not None
        self.listener.on_message(data)

    def drop(self) -> None:
        self.closed = True
        assert self.listener is not None
        self.listener.on_close()

    def fail(self, error: Exception) -> None:
        self.closed = True
        assert self.listener is not None
        self.listener.on_error(error)
