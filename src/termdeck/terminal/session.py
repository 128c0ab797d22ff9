"""Terminal session and its connection state machine.

States only move forward: CONNECTING -> CONNECTED -> DISCONNECTED.
CONNECTED is entered on the first inbound message, not when the transport
opens, since the remote shell may still be setting up at that point.
DISCONNECTED is terminal; reconnecting means opening a new session.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING

from termdeck.errors import SessionNotConnectedError, TransportError
from termdeck.logging import TRACE, get_logger
from termdeck.terminal.capture import CommandCaptureBuffer

if TYPE_CHECKING:
    from termdeck.terminal.protocol import TransportAdapter

log = get_logger("session")

KEEPALIVE_BYTES = b"\x00"


class SessionState(Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"

    @property
    def rank(self) -> int:
        return _STATE_ORDER[self]


_STATE_ORDER = {
    SessionState.CONNECTING: 0,
    SessionState.CONNECTED: 1,
    SessionState.DISCONNECTED: 2,
}

OutputSink = Callable[[str, "bytes | str"], None]
StateCallback = Callable[["Session", SessionState, SessionState], None]


class Session:
    """One terminal connection: transport, state, and command capture.

    The session is the transport's listener; transports call on_message,
    on_close and on_error from the event loop.

    Args:
        session_id: Registry id.
        transport: Byte channel to the remote shell.
        on_command: Receives (session_id, command) for each captured command.
        on_output: Receives (session_id, data) for each inbound message.
        on_state_change: Receives (session, old_state, new_state).
        keepalive_interval: Seconds between NUL keepalives; None disables.
    """

    def __init__(
        self,
        session_id: str,
        transport: TransportAdapter,
        *,
        on_command: Callable[[str, str], None] | None = None,
        on_output: OutputSink | None = None,
        on_state_change: StateCallback | None = None,
        keepalive_interval: float | None = None,
    ) -> None:
        self.session_id = session_id
        self.transport = transport
        self.state = SessionState.CONNECTING
        self.created_at = datetime.now(timezone.utc)
        self.disconnect_reason: str | None = None
        self.messages_received = 0
        self.keepalive_interval = keepalive_interval
        self._on_command = on_command
        self._on_output = on_output
        self._on_state_change = on_state_change
        self._keepalive_task: asyncio.Task[None] | None = None
        self.capture = CommandCaptureBuffer(on_command=self._command_captured)

    def __repr__(self) -> str:
        return f"Session(id={self.session_id!r}, state={self.state.value})"

    @property
    def input_buffer(self) -> str:
        return self.capture.buffer

    @property
    def is_connected(self) -> bool:
        return self.state is SessionState.CONNECTED

    @property
    def is_disconnected(self) -> bool:
        return self.state is SessionState.DISCONNECTED

    def _command_captured(self, command: str) -> None:
        if self._on_command is not None:
            self._on_command(self.session_id, command)

    def _transition(self, new_state: SessionState) -> bool:
        old_state = self.state
        if new_state.rank <= old_state.rank:
            return False
        self.state = new_state
        log.info("Session %s: %s -> %s", self.session_id, old_state.value, new_state.value)
        if self._on_state_change is not None:
            self._on_state_change(self, old_state, new_state)
        return True

    # -------------------------------------------------------------------------
    # Transport listener
    # -------------------------------------------------------------------------

    def on_message(self, data: bytes | str) -> None:
        if self.is_disconnected:
            log.log(TRACE, "Dropping message for disconnected session %s", self.session_id)
            return
        self.messages_received += 1
        if self._on_output is not None:
            try:
                self._on_output(self.session_id, data)
            except Exception as e:
                log.warning("Output handler failed for session %s: %s", self.session_id, e)
        if self.state is SessionState.CONNECTING:
            self._transition(SessionState.CONNECTED)

    def on_close(self) -> None:
        self._disconnect("transport closed")

    def on_error(self, error: BaseException) -> None:
        self._disconnect(f"transport error: {error}")

    def _disconnect(self, reason: str) -> None:
        if self.is_disconnected:
            return
        self.disconnect_reason = reason
        self._stop_keepalive()
        self._transition(SessionState.DISCONNECTED)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Open the transport with this session as its listener."""
        await self.transport.open(self)
        if self.keepalive_interval and not self.is_disconnected:
            self._keepalive_task = asyncio.create_task(
                self._keepalive_loop(self.keepalive_interval),
                name=f"keepalive-{self.session_id}",
            )

    async def _keepalive_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            if self.is_disconnected or not self.transport.is_open:
                return
            try:
                # Keepalive bytes bypass command capture
                await self.transport.send(KEEPALIVE_BYTES)
            except TransportError as e:
                log.debug("Keepalive failed for session %s: %s", self.session_id, e)
                return

    def _stop_keepalive(self) -> None:
        task = self._keepalive_task
        self._keepalive_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def send(self, data: bytes | str) -> None:
        """Forward outbound data to the transport and capture typed commands.

        Raises:
            SessionNotConnectedError: The session is disconnected or its
                transport is not open.
        """
        if self.is_disconnected or not self.transport.is_open:
            raise SessionNotConnectedError(self.session_id)
        await self.transport.send(data)
        self.capture.feed(data)

    async def close(self) -> None:
        """Mark the session disconnected and close its transport."""
        task = self._keepalive_task
        self._disconnect("closed")
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        await self.transport.close()
