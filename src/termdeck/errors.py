"""Exception types raised by termdeck.

Foreground operations (first load, forced refresh, mutations, session
calls) raise these to the caller. Background revalidation and preloading
log failures instead of raising them.
"""

from __future__ import annotations


class TermdeckError(Exception):
    """Base class for all termdeck errors."""


class ProviderError(TermdeckError):
    """A remote listing or mutation failed.

    Attributes:
        reason: Human-readable failure reason reported by the provider.
        path: The path the operation targeted, if known.
    """

    def __init__(self, reason: str, path: str | None = None) -> None:
        self.reason = reason
        self.path = path
        if path:
            super().__init__(f"{reason} ({path})")
        else:
            super().__init__(reason)


class NotReadyError(ProviderError):
    """The remote side of a session cannot serve filesystem requests yet.

    Retryable with bounded backoff, see termdeck.cache.retry.
    """


class TransportError(TermdeckError):
    """A transport could not be opened or written to."""


class SessionError(TermdeckError):
    """Misuse of the session registry."""

    def __init__(self, session_id: str, message: str) -> None:
        self.session_id = session_id
        super().__init__(message)


class DuplicateSessionError(SessionError):
    def __init__(self, session_id: str) -> None:
        super().__init__(session_id, f"Session {session_id} already exists")


class SessionNotFoundError(SessionError):
    def __init__(self, session_id: str) -> None:
        super().__init__(session_id, f"Session {session_id} not found")


class SessionNotConnectedError(SessionError):
    def __init__(self, session_id: str) -> None:
        super().__init__(session_id, f"Session {session_id} is not connected")


def is_not_ready_reason(reason: str, phrases: list[str] | tuple[str, ...]) -> bool:
    """True if a provider failure reason names a not-ready condition."""
    lowered = reason.lower()
    return any(phrase.lower() in lowered for phrase in phrases if phrase)
