"""Transport protocol for session byte channels."""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol, runtime_checkable


class TransportListener(Protocol):
    """Receives inbound events from a transport. Session implements this."""

    def on_message(self, data: bytes | str) -> None: ...

    def on_close(self) -> None: ...

    def on_error(self, error: BaseException) -> None: ...


@runtime_checkable
class TransportAdapter(Protocol):
    """A bidirectional byte channel for one session.

    Implementations:
    - SubprocessTransport: a local shell process
    - any duplex channel (e.g. a WebSocket client) that calls the
      listener's hooks from the event loop thread

    A transport reports close or error to its listener at most once.
    """

    @property
    def is_open(self) -> bool: ...

    async def open(self, listener: TransportListener) -> None:
        """Open the channel and start delivering inbound data to ``listener``.

        Raises:
            TransportError: The channel could not be opened.
        """
        ...

    async def send(self, data: bytes | str) -> None:
        """Write outbound data.

        Raises:
            TransportError: The channel is closed or the write failed.
        """
        ...

    async def close(self) -> None:
        """Close the channel. Idempotent."""
        ...


TransportFactory = Callable[[], TransportAdapter]
