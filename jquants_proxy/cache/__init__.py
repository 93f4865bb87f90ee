"""Response caching and key-value storage."""

from jquants_proxy.cache.background import BackgroundTasks
from jquants_proxy.cache.models import CachedResponse
from jquants_proxy.cache.response_cache import (
    CACHE_MAX_AGE,
    X_PROXY_CACHE_AGE_KEY,
    X_PROXY_CACHE_MAXAGE_KEY,
    ResponseCache,
)
from jquants_proxy.cache.storage import FileSystemStorage, MemoryStorage, StorageBackend

__all__ = [
    "CACHE_MAX_AGE",
    "X_PROXY_CACHE_AGE_KEY",
    "X_PROXY_CACHE_MAXAGE_KEY",
    "BackgroundTasks",
    "CachedResponse",
    "FileSystemStorage",
    "MemoryStorage",
    "ResponseCache",
    "StorageBackend",
]
