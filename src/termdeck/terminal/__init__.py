"""Terminal sessions: transports, state machine, and command capture."""

from termdeck.terminal.capture import CommandCaptureBuffer
from termdeck.terminal.history import CommandHistory, CommandRecord
from termdeck.terminal.manager import SessionManager
from termdeck.terminal.protocol import TransportAdapter, TransportFactory, TransportListener
from termdeck.terminal.session import Session, SessionState
from termdeck.terminal.subprocess_transport import SubprocessTransport

__all__ = [
    "CommandCaptureBuffer",
    "CommandHistory",
    "CommandRecord",
    "Session",
    "SessionManager",
    "SessionState",
    "SubprocessTransport",
    "TransportAdapter",
    "TransportFactory",
    "TransportListener",
]
