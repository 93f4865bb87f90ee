"""File system based storage backend, durable across restarts."""

import asyncio
import json
import shutil
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from jquants_proxy.cache.storage.base import StorageBackend


class FileSystemStorage(StorageBackend):
    """File system based storage with TTL kept in sidecar metadata files."""

    def __init__(self, cache_dir: Path | None = None):
        """Initialize filesystem storage.

        Args:
            cache_dir: Directory for storage. Defaults to .cache/jquants-proxy
        """
        self.cache_dir = cache_dir or Path.cwd() / ".cache" / "jquants-proxy"
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.metadata_dir = self.cache_dir / ".metadata"
        self.metadata_dir.mkdir(parents=True, exist_ok=True)

    def _safe_key(self, key: str) -> str:
        return key.replace(":", "_").replace("/", "_")

    def _get_file_path(self, key: str) -> Path:
        """Get the file path for a key."""
        return self.cache_dir / f"{self._safe_key(key)}.cache"

    def _get_metadata_path(self, key: str) -> Path:
        """Get the metadata file path for a key."""
        return self.metadata_dir / f"{self._safe_key(key)}.json"

    async def _is_expired(self, key: str) -> bool:
        metadata = await self.get_metadata(key)
        if metadata and metadata.get("expires_at"):
            expires_at = datetime.fromisoformat(metadata["expires_at"])
            if datetime.now(UTC) >= expires_at:
                await self.delete(key)
                return True
        return False

    async def get(self, key: str) -> bytes | None:
        """Retrieve stored data by key."""
        file_path = self._get_file_path(key)

        if not file_path.exists():
            return None

        if await self._is_expired(key):
            return None

        try:
            return await asyncio.to_thread(file_path.read_bytes)
        except OSError:
            return None

    async def set(self, key: str, value: bytes, ttl: int | None = None) -> bool:
        """Store data, replacing any previous value."""
        file_path = self._get_file_path(key)
        metadata_path = self._get_metadata_path(key)

        try:
            await asyncio.to_thread(file_path.write_bytes, value)

            metadata = {
                "created_at": datetime.now(UTC).isoformat(),
                "size": len(value),
                "key": key,
            }

            if ttl is not None:
                expires_at = datetime.now(UTC).timestamp() + ttl
                metadata["expires_at"] = datetime.fromtimestamp(expires_at, UTC).isoformat()

            await asyncio.to_thread(metadata_path.write_text, json.dumps(metadata, indent=2))

            return True
        except OSError:
            return False

    async def delete(self, key: str) -> bool:
        """Delete stored data by key."""
        file_path = self._get_file_path(key)
        metadata_path = self._get_metadata_path(key)

        deleted = False
        try:
            if file_path.exists():
                await asyncio.to_thread(file_path.unlink)
                deleted = True

            if metadata_path.exists():
                await asyncio.to_thread(metadata_path.unlink)

            return deleted
        except OSError:
            return False

    async def exists(self, key: str) -> bool:
        """Check if a key exists."""
        if not self._get_file_path(key).exists():
            return False
        return not await self._is_expired(key)

    async def clear(self) -> bool:
        """Clear all stored data."""
        try:
            if self.cache_dir.exists():
                await asyncio.to_thread(shutil.rmtree, self.cache_dir)
                self.cache_dir.mkdir(parents=True, exist_ok=True)
                self.metadata_dir.mkdir(parents=True, exist_ok=True)
            return True
        except OSError:
            return False

    async def get_metadata(self, key: str) -> dict[str, Any] | None:
        """Get metadata about a stored entry."""
        metadata_path = self._get_metadata_path(key)

        if not metadata_path.exists():
            return None

        try:
            content = await asyncio.to_thread(metadata_path.read_text)
            return json.loads(content)  # type: ignore[no-any-return]
        except (OSError, json.JSONDecodeError):
            return None
