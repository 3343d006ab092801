"""Cache infrastructure for trace logs."""

from .log_cache import CacheEntry, LogCacheStore

__all__ = ["CacheEntry", "LogCacheStore"]
