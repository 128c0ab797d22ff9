"""Configuration schema dataclasses for termdeck.

Defines the structure of configuration at all levels (system, user, project).
All fields have defaults so partial configs merge together cleanly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

DEFAULT_NOT_READY_PHRASES = [
    "session not ready",
    "sftp not initialized",
    "session not found",
]


@dataclass
class CacheConfig:
    """Directory cache configuration.

    Example config.yaml:
        cache:
          preload_limit: 5
          show_hidden: false
    """

    preload_limit: int = 5  # Subdirectories warmed after each foreground fetch
    preload_enabled: bool = True
    show_hidden: bool = False  # Default for listings when no getter is supplied


@dataclass
class RetryConfig:
    """Bounded retry for directory loads that hit a not-ready remote."""

    max_attempts: int = 5
    base_delay: float = 0.5  # Delay before attempt n+1 is base_delay * n


@dataclass
class SessionConfig:
    """Session defaults configuration."""

    ready_delay: float = 1.5  # Seconds after Connected before the first directory load
    keepalive_interval: float | None = None  # Send NUL every N seconds; None disables
    default_path: str = "/root"
    shell: list[str] = field(default_factory=lambda: ["/bin/sh", "-i"])


@dataclass
class HistoryConfig:
    """Captured command history."""

    max_entries: int = 50  # Per session, newest first
    flush_delay: float = 0.5  # Debounce before handing commands to the persist hook


@dataclass
class ProviderConfig:
    """Remote file provider configuration."""

    api_base: str | None = None  # e.g. "http://localhost:8080/api"
    timeout: float = 30.0
    not_ready_phrases: list[str] = field(
        default_factory=lambda: list(DEFAULT_NOT_READY_PHRASES)
    )


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str | None = None  # DEBUG, INFO, WARNING, ERROR
    verbose: int | None = None  # 0..4, overrides level
    file: str | None = None  # Log file path


@dataclass
class Config:
    """Root configuration object."""

    cache: CacheConfig = field(default_factory=CacheConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Unknown top-level sections
    extra: dict[str, Any] = field(default_factory=dict)
