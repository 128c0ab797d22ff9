"""Directory cache engine: stale-while-revalidate cache, preloading, retry."""

from termdeck.cache.preload import PreloadScheduler, PreloadTask
from termdeck.cache.resource_cache import (
    CacheEntry,
    CacheKey,
    FetchMode,
    RenderListener,
    ResourceCache,
)
from termdeck.cache.retry import RetryPolicy, retry_async

__all__ = [
    "CacheEntry",
    "CacheKey",
    "FetchMode",
    "PreloadScheduler",
    "PreloadTask",
    "RenderListener",
    "ResourceCache",
    "RetryPolicy",
    "retry_async",
]
