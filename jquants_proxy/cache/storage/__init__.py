"""Storage backends for the token store and the response cache."""

from jquants_proxy.cache.storage.base import StorageBackend
from jquants_proxy.cache.storage.filesystem import FileSystemStorage
from jquants_proxy.cache.storage.memory import MemoryStorage

__all__ = ["StorageBackend", "FileSystemStorage", "MemoryStorage"]
