"""Abstract base class for storage backends."""

from abc import ABC, abstractmethod
from typing import Any


class StorageBackend(ABC):
    """Abstract base class for key-value storage with per-entry TTL.

    Backs both the durable token store and the response cache. Expired
    entries must behave exactly like missing ones.
    """

    @abstractmethod
    async def get(self, key: str) -> bytes | None:
        """Retrieve stored data by key.

        Args:
            key: The key to retrieve

        Returns:
            The stored data as bytes, or None if missing or expired
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: bytes, ttl: int | None = None) -> bool:
        """Store data, replacing any previous value for the key.

        Args:
            key: The key
            value: The data to store as bytes
            ttl: Time to live in seconds (optional)

        Returns:
            True if successful, False otherwise
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete stored data by key.

        Args:
            key: The key to delete

        Returns:
            True if deleted, False if not found
        """
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check if a non-expired entry exists for a key."""
        pass

    @abstractmethod
    async def clear(self) -> bool:
        """Remove every entry.

        Returns:
            True if successful, False otherwise
        """
        pass

    @abstractmethod
    async def get_metadata(self, key: str) -> dict[str, Any] | None:
        """Get metadata about a stored entry.

        Args:
            key: The key

        Returns:
            Metadata dict with 'created_at', 'expires_at', 'size' etc., or None
        """
        pass

    def generate_key(self, prefix: str, identifier: str) -> str:
        """Generate a namespaced key.

        Args:
            prefix: Key prefix (e.g., 'response')
            identifier: Unique identifier within the namespace

        Returns:
            Generated key
        """
        return f"{prefix}:{identifier}"
