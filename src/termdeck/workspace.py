"""Application wiring: one cache, session registry, history and file tree.

Everything is built once here and passed by reference; nothing in termdeck
is a module-level singleton.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING

from termdeck.cache.resource_cache import ResourceCache
from termdeck.cache.retry import RetryPolicy
from termdeck.config import get_config
from termdeck.errors import DuplicateSessionError, ProviderError
from termdeck.filetree import FileTree
from termdeck.logging import get_logger
from termdeck.terminal.history import CommandHistory
from termdeck.terminal.manager import SessionManager
from termdeck.terminal.session import SessionState

if TYPE_CHECKING:
    from termdeck.cache.resource_cache import RenderListener
    from termdeck.config.schema import Config
    from termdeck.files.provider import FileProvider
    from termdeck.terminal.history import PersistHook
    from termdeck.terminal.protocol import TransportFactory
    from termdeck.terminal.session import OutputSink, Session

log = get_logger("workspace")


class Workspace:
    """Terminal sessions plus the file view that follows the active one.

    When a session becomes CONNECTED its file view is loaded after
    ``session.ready_delay`` seconds, giving the remote side time to set up
    its filesystem channel. Closing a session drops its cached listings.

    Args:
        provider: File provider shared by all sessions.
        config: Defaults to the global config.
        listener: Render listener for the file view.
        history_persist: Async hook receiving batches of captured commands.
    """

    def __init__(
        self,
        provider: FileProvider,
        *,
        config: Config | None = None,
        listener: RenderListener | None = None,
        history_persist: PersistHook | None = None,
    ) -> None:
        self.config = config or get_config()
        self.provider = provider
        self.cache = ResourceCache.from_config(provider, self.config.cache)
        self.history = CommandHistory.from_config(self.config.history, persist=history_persist)
        self.sessions = SessionManager(
            history=self.history,
            keepalive_interval=self.config.session.keepalive_interval,
        )
        self.file_tree = FileTree(
            self.cache,
            provider,
            listener=listener,
            retry_policy=RetryPolicy.from_config(self.config.retry),
            default_path=self.config.session.default_path,
        )
        self.active_session_id: str | None = None
        self._initial_loads: dict[str, asyncio.Task[None]] = {}
        self._unregister_state = self.sessions.add_state_listener(self._on_session_state)

    async def open_session(
        self,
        session_id: str,
        transport_factory: TransportFactory,
        *,
        on_output: OutputSink | None = None,
        activate: bool = True,
    ) -> Session:
        """Open a session and, by default, make it the active one.

        Raises:
            DuplicateSessionError: ``session_id`` is already registered; the
                active session is left unchanged.
        """
        if session_id in self.sessions:
            raise DuplicateSessionError(session_id)
        if activate:
            self.active_session_id = session_id
        return await self.sessions.open(session_id, transport_factory, on_output=on_output)

    def switch_to(self, session_id: str) -> None:
        """Make ``session_id`` active and point the file view at it.

        The listing is loaded now if the session is already connected,
        otherwise once it connects.
        """
        session = self.sessions.get(session_id)
        self.active_session_id = session_id
        if session.is_connected and self.file_tree.session_id != session_id:
            self.file_tree.attach(session_id)
            self._schedule_initial_load(session_id, delay=0)

    async def close_session(self, session_id: str) -> None:
        self._cancel_initial_load(session_id)
        await self.sessions.close(session_id)
        self.cache.clear_for_session(session_id)
        await self.history.flush()
        self.history.clear(session_id)
        if self.file_tree.session_id == session_id:
            self.file_tree.detach()
        if self.active_session_id == session_id:
            self.active_session_id = None

    async def send(self, session_id: str, data: bytes | str) -> None:
        await self.sessions.send(session_id, data)

    async def aclose(self) -> None:
        """Close every session and flush pending history."""
        self._unregister_state()
        for session_id in list(self._initial_loads):
            self._cancel_initial_load(session_id)
        await self.sessions.close_all()
        self.cache.cancel_pending()
        self.cache.clear_all()
        await self.history.aclose()

    # -------------------------------------------------------------------------
    # Session state handling
    # -------------------------------------------------------------------------

    def _on_session_state(
        self, session: Session, old_state: SessionState, new_state: SessionState
    ) -> None:
        session_id = session.session_id
        if new_state is SessionState.CONNECTED:
            if self.active_session_id == session_id:
                self._schedule_initial_load(session_id, delay=self.config.session.ready_delay)
        elif new_state is SessionState.DISCONNECTED:
            self._cancel_initial_load(session_id)

    def _schedule_initial_load(self, session_id: str, delay: float) -> None:
        self._cancel_initial_load(session_id)
        task = asyncio.create_task(
            self._initial_load(session_id, delay), name=f"initial-load-{session_id}"
        )
        self._initial_loads[session_id] = task
        task.add_done_callback(lambda t: self._initial_load_done(session_id, t))

    def _initial_load_done(self, session_id: str, task: asyncio.Task[None]) -> None:
        if self._initial_loads.get(session_id) is task:
            del self._initial_loads[session_id]

    def _cancel_initial_load(self, session_id: str) -> None:
        task = self._initial_loads.pop(session_id, None)
        if task is not None and not task.done():
            task.cancel()

    async def _initial_load(self, session_id: str, delay: float) -> None:
        if delay > 0:
            await asyncio.sleep(delay)
        if session_id not in self.sessions or not self.sessions.get(session_id).is_connected:
            return
        if self.active_session_id != session_id:
            return
        if self.file_tree.session_id != session_id:
            self.file_tree.attach(session_id)
        try:
            await self.file_tree.navigate()
        except ProviderError as e:
            log.warning("Initial load for session %s failed: %s", session_id, e)

    async def wait_initial_load(self, session_id: str) -> None:
        """Wait for a pending initial load of ``session_id``, if any."""
        task = self._initial_loads.get(session_id)
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task
