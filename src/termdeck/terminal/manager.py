"""Registry of live terminal sessions."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import TYPE_CHECKING

from termdeck.errors import DuplicateSessionError, SessionNotFoundError
from termdeck.logging import get_logger
from termdeck.terminal.session import OutputSink, Session, SessionState

if TYPE_CHECKING:
    from termdeck.terminal.history import CommandHistory
    from termdeck.terminal.protocol import TransportFactory

log = get_logger("session.manager")

StateListener = Callable[[Session, SessionState, SessionState], None]


class SessionManager:
    """Owns every Session by id and fans out their state changes.

    Sessions stay registered after they disconnect so the UI can still show
    them; only close() removes an id.
    """

    def __init__(
        self,
        *,
        history: CommandHistory | None = None,
        keepalive_interval: float | None = None,
    ) -> None:
        self._sessions: dict[str, Session] = {}
        self._state_listeners: list[StateListener] = []
        self._history = history
        self._keepalive_interval = keepalive_interval

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    async def open(
        self,
        session_id: str,
        transport_factory: TransportFactory,
        *,
        on_output: OutputSink | None = None,
    ) -> Session:
        """Create a session in CONNECTING and open its transport.

        If the transport fails to open, the session is moved to
        DISCONNECTED (listeners are notified once), stays registered until
        close(), and the error is re-raised.

        Raises:
            DuplicateSessionError: ``session_id`` is already registered,
                in any state.
        """
        if session_id in self._sessions:
            raise DuplicateSessionError(session_id)

        session = Session(
            session_id,
            transport_factory(),
            on_command=self._record_command,
            on_output=on_output,
            on_state_change=self._dispatch_state,
            keepalive_interval=self._keepalive_interval,
        )
        # Registered before the await so a concurrent open() with the same id fails
        self._sessions[session_id] = session
        log.info("Opening session %s", session_id)

        try:
            await session.start()
        except Exception as e:
            log.warning("Failed to open session %s: %s", session_id, e)
            session.on_error(e)
            raise
        return session

    def get(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def list_sessions(self) -> list[Session]:
        """All registered sessions in creation order."""
        return list(self._sessions.values())

    async def send(self, session_id: str, data: bytes | str) -> None:
        """Forward data to a session's transport.

        Raises:
            SessionNotFoundError: No session with ``session_id``.
            SessionNotConnectedError: The session is disconnected or its
                transport is not open.
        """
        await self.get(session_id).send(data)

    async def close(self, session_id: str) -> None:
        """Tear down and unregister a session. Unknown ids are ignored."""
        session = self._sessions.pop(session_id, None)
        if session is None:
            return
        log.info("Closing session %s", session_id)
        await session.close()

    async def close_all(self) -> None:
        ids = list(self._sessions)
        results = await asyncio.gather(*(self.close(sid) for sid in ids), return_exceptions=True)
        for sid, result in zip(ids, results):
            if isinstance(result, Exception):
                log.warning("Error closing session %s: %s", sid, result)

    def add_state_listener(self, listener: StateListener) -> Callable[[], None]:
        """Register a state change callback.

        Returns:
            A function that unregisters the listener.
        """
        self._state_listeners.append(listener)

        def unregister() -> None:
            if listener in self._state_listeners:
                self._state_listeners.remove(listener)

        return unregister

    def _dispatch_state(
        self, session: Session, old_state: SessionState, new_state: SessionState
    ) -> None:
        for listener in list(self._state_listeners):
            try:
                listener(session, old_state, new_state)
            except Exception as e:
                log.warning("State listener failed for session %s: %s", session.session_id, e)

    def _record_command(self, session_id: str, command: str) -> None:
        log.debug("Session %s command: %s", session_id, command)
        if self._history is not None:
            self._history.record(session_id, command)
