"""Configuration file loading and caching.

Handles:
- YAML file parsing
- Environment variable overrides
- Config caching with reload support
- Conversion from dict to typed Config dataclass
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

import yaml

from termdeck.config.merge import merge_configs
from termdeck.config.paths import get_config_paths
from termdeck.config.schema import (
    DEFAULT_NOT_READY_PHRASES,
    CacheConfig,
    Config,
    HistoryConfig,
    LoggingConfig,
    ProviderConfig,
    RetryConfig,
    SessionConfig,
)

# Module logger (may not be configured yet at import time)
_log = logging.getLogger("termdeck.config")

_cached_config: Config | None = None

_reload_callbacks: list[Callable[[Config], None]] = []

_KNOWN_KEYS = {"cache", "retry", "session", "history", "provider", "logging"}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file, returning empty dict if not found or invalid."""
    if not path.exists():
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except yaml.YAMLError as e:
        _log.warning("Invalid YAML in %s: %s", path, e)
        return {}
    except PermissionError:
        _log.debug("Permission denied reading %s", path)
        return {}
    except OSError as e:
        _log.warning("Error reading %s: %s", path, e)
        return {}


def env_overrides() -> dict[str, Any]:
    """Build config dict from environment variables."""
    overrides: dict[str, Any] = {}

    log_path = os.environ.get("TERMDECK_LOG")
    if log_path:
        overrides.setdefault("logging", {})["file"] = log_path

    api_base = os.environ.get("TERMDECK_API_BASE")
    if api_base:
        overrides.setdefault("provider", {})["api_base"] = api_base

    return overrides


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name)
    return value if isinstance(value, dict) else {}


def dict_to_config(data: dict[str, Any]) -> Config:
    """Convert merged dict to typed Config dataclass."""
    cache_data = _section(data, "cache")
    cache = CacheConfig(
        preload_limit=int(cache_data.get("preload_limit", 5)),
        preload_enabled=bool(cache_data.get("preload_enabled", True)),
        show_hidden=bool(cache_data.get("show_hidden", False)),
    )

    retry_data = _section(data, "retry")
    retry = RetryConfig(
        max_attempts=int(retry_data.get("max_attempts", 5)),
        base_delay=float(retry_data.get("base_delay", 0.5)),
    )

    session_data = _section(data, "session")
    keepalive = session_data.get("keepalive_interval")
    shell = session_data.get("shell")
    session = SessionConfig(
        ready_delay=float(session_data.get("ready_delay", 1.5)),
        keepalive_interval=float(keepalive) if keepalive is not None else None,
        default_path=session_data.get("default_path", "/root"),
    )
    if isinstance(shell, list) and shell:
        session.shell = [str(part) for part in shell]

    history_data = _section(data, "history")
    history = HistoryConfig(
        max_entries=int(history_data.get("max_entries", 50)),
        flush_delay=float(history_data.get("flush_delay", 0.5)),
    )

    provider_data = _section(data, "provider")
    phrases = provider_data.get("not_ready_phrases")
    provider = ProviderConfig(
        api_base=provider_data.get("api_base"),
        timeout=float(provider_data.get("timeout", 30.0)),
        not_ready_phrases=(
            [p for p in phrases if isinstance(p, str)]
            if isinstance(phrases, list)
            else list(DEFAULT_NOT_READY_PHRASES)
        ),
    )

    log_data = _section(data, "logging")
    logging_config = LoggingConfig(
        level=log_data.get("level"),
        verbose=log_data.get("verbose"),
        file=log_data.get("file"),
    )

    extra = {k: v for k, v in data.items() if k not in _KNOWN_KEYS}

    return Config(
        cache=cache,
        retry=retry,
        session=session,
        history=history,
        provider=provider,
        logging=logging_config,
        extra=extra,
    )


def load_config(project_root: str | None = None, reload: bool = False) -> Config:
    """Load and merge config from all sources.

    Priority order (highest to lowest):
    1. Environment variables
    2. Project config ($project_root/.termdeck/config.yaml)
    3. User config (~/.config/termdeck/config.yaml or %APPDATA%)
    4. System config (/etc/termdeck/ or %PROGRAMDATA%)

    Args:
        project_root: Project directory for project-level config.
        reload: Force reload even if cached.

    Returns:
        Merged Config object.
    """
    global _cached_config

    if _cached_config is not None and not reload and project_root is None:
        return _cached_config

    configs: list[dict[str, Any]] = []

    for path in get_config_paths(project_root):
        config_data = load_yaml_file(path)
        if config_data:
            _log.debug("Loaded config from %s", path)
            configs.append(config_data)

    env_config = env_overrides()
    if env_config:
        configs.append(env_config)

    config = dict_to_config(merge_configs(*configs))

    # Cache only global config (no project_root)
    if project_root is None:
        _cached_config = config

    return config


def get_config() -> Config:
    """Get the cached global config, loading it on first use."""
    if _cached_config is None:
        return load_config()
    return _cached_config


def reset_config() -> None:
    """Reset cached config. Useful for testing or forcing a reload."""
    global _cached_config
    _cached_config = None


def reload_config(project_root: str | None = None) -> Config:
    """Reload config from files and notify callbacks."""
    config = load_config(project_root=project_root, reload=True)

    for callback in _reload_callbacks:
        try:
            callback(config)
        except Exception as e:
            _log.warning("Config reload callback error: %s", e)

    return config


def on_config_reload(callback: Callable[[Config], None]) -> Callable[[], None]:
    """Register a callback to be called when config is reloaded.

    Returns:
        A function to unregister the callback.
    """
    _reload_callbacks.append(callback)

    def unregister() -> None:
        if callback in _reload_callbacks:
            _reload_callbacks.remove(callback)

    return unregister
