"""termdeck: multi-session terminal client with a cached remote file view."""

__version__ = "0.1.0"

# Public API
from termdeck.cache import PreloadScheduler, ResourceCache, RetryPolicy
from termdeck.config import Config, get_config, load_config
from termdeck.errors import (
    DuplicateSessionError,
    NotReadyError,
    ProviderError,
    SessionError,
    SessionNotConnectedError,
    SessionNotFoundError,
    TermdeckError,
    TransportError,
)
from termdeck.files import (
    FileProvider,
    HttpFileProvider,
    LocalFileProvider,
    MutationResult,
    ResourceDescriptor,
)
from termdeck.filetree import FileTree
from termdeck.terminal import (
    CommandCaptureBuffer,
    CommandHistory,
    Session,
    SessionManager,
    SessionState,
    SubprocessTransport,
)
from termdeck.workspace import Workspace

__all__ = [
    # Main entry points
    "Workspace",
    "ResourceCache",
    "SessionManager",
    "FileTree",
    # Cache
    "PreloadScheduler",
    "RetryPolicy",
    # Files
    "FileProvider",
    "HttpFileProvider",
    "LocalFileProvider",
    "MutationResult",
    "ResourceDescriptor",
    # Terminal
    "CommandCaptureBuffer",
    "CommandHistory",
    "Session",
    "SessionState",
    "SubprocessTransport",
    # Config
    "Config",
    "load_config",
    "get_config",
    # Errors
    "TermdeckError",
    "ProviderError",
    "NotReadyError",
    "TransportError",
    "SessionError",
    "DuplicateSessionError",
    "SessionNotFoundError",
    "SessionNotConnectedError",
]
