"""In-process storage backend."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import BaseModel

from jquants_proxy.cache.storage.base import StorageBackend


def _utcnow() -> datetime:
    return datetime.now(UTC)


class _Slot(BaseModel):
    value: bytes
    created_at: datetime
    expires_at: datetime | None = None


class MemoryStorage(StorageBackend):
    """Dictionary-backed storage, shared by every caller in the process."""

    def __init__(self, clock: Callable[[], datetime] | None = None):
        """Initialize memory storage.

        Args:
            clock: Returns the current timezone-aware time. Defaults to UTC now.
        """
        self._clock = clock or _utcnow
        self._slots: dict[str, _Slot] = {}

    def _live_slot(self, key: str) -> _Slot | None:
        slot = self._slots.get(key)
        if slot is None:
            return None
        if slot.expires_at is not None and self._clock() >= slot.expires_at:
            self._slots.pop(key, None)
            return None
        return slot

    async def get(self, key: str) -> bytes | None:
        """Retrieve stored data by key."""
        slot = self._live_slot(key)
        return slot.value if slot else None

    async def set(self, key: str, value: bytes, ttl: int | None = None) -> bool:
        """Store data, last write wins."""
        now = self._clock()
        expires_at = now + timedelta(seconds=ttl) if ttl is not None else None
        self._slots[key] = _Slot(value=value, created_at=now, expires_at=expires_at)
        return True

    async def delete(self, key: str) -> bool:
        """Delete stored data by key."""
        return self._slots.pop(key, None) is not None

    async def exists(self, key: str) -> bool:
        """Check if a key exists."""
        return self._live_slot(key) is not None

    async def clear(self) -> bool:
        """Clear all stored data."""
        self._slots.clear()
        return True

    async def get_metadata(self, key: str) -> dict[str, Any] | None:
        """Get metadata about a stored entry."""
        slot = self._live_slot(key)
        if slot is None:
            return None

        metadata: dict[str, Any] = {
            "key": key,
            "created_at": slot.created_at.isoformat(),
            "size": len(slot.value),
        }
        if slot.expires_at is not None:
            metadata["expires_at"] = slot.expires_at.isoformat()
        return metadata

    def __len__(self) -> int:
        return len(self._slots)
