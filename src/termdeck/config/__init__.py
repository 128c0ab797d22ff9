"""Configuration management for termdeck.

Provides hierarchical YAML-based configuration with:
- System-level config (/etc/termdeck/ or %PROGRAMDATA%)
- User-level config (~/.config/termdeck/ or %APPDATA%)
- Project-level config ($project_root/.termdeck/)
- Environment variable overrides (highest priority)

Example usage:
    from termdeck.config import load_config

    config = load_config()
    print(config.cache.preload_limit)
    print(config.retry.max_attempts)
"""

from termdeck.config.loader import (
    get_config,
    load_config,
    on_config_reload,
    reload_config,
    reset_config,
)
from termdeck.config.paths import (
    get_config_paths,
    get_project_config_path,
    get_system_config_path,
    get_user_config_path,
)
from termdeck.config.schema import (
    CacheConfig,
    Config,
    HistoryConfig,
    LoggingConfig,
    ProviderConfig,
    RetryConfig,
    SessionConfig,
)

__all__ = [
    "Config",
    "load_config",
    "get_config",
    "reload_config",
    "reset_config",
    "on_config_reload",
    "CacheConfig",
    "RetryConfig",
    "SessionConfig",
    "HistoryConfig",
    "ProviderConfig",
    "LoggingConfig",
    "get_config_paths",
    "get_system_config_path",
    "get_user_config_path",
    "get_project_config_path",
]
