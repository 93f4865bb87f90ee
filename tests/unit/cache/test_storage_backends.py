"""Tests for storage backends."""

import asyncio
import tempfile
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from jquants_proxy.cache.storage.filesystem import FileSystemStorage
from jquants_proxy.cache.storage.memory import MemoryStorage


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
async def temp_cache_dir():
    """Create a temporary directory for storage testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
async def filesystem_storage(temp_cache_dir):
    """Create a FileSystemStorage instance with temp directory."""
    return FileSystemStorage(cache_dir=temp_cache_dir / "cache")


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 1, 15, 9, 0, tzinfo=UTC))


@pytest.fixture
def memory_storage(clock):
    return MemoryStorage(clock=clock)


class DescribeStorageBackend:
    """Test the shared StorageBackend helpers."""

    def it_generates_keys_correctly(self):
        backend = MemoryStorage()

        assert backend.generate_key("response", "abc123") == "response:abc123"


class DescribeMemoryStorage:
    """Test the MemoryStorage implementation."""

    @pytest.mark.asyncio
    async def it_stores_and_retrieves_data(self, memory_storage):
        assert await memory_storage.set("id_token", b"token-value")
        assert await memory_storage.get("id_token") == b"token-value"

    @pytest.mark.asyncio
    async def it_returns_none_for_missing_keys(self, memory_storage):
        assert await memory_storage.get("missing") is None
        assert not await memory_storage.exists("missing")

    @pytest.mark.asyncio
    async def it_expires_entries_after_ttl(self, memory_storage, clock):
        await memory_storage.set("id_token", b"token-value", ttl=60)

        clock.advance(59)
        assert await memory_storage.get("id_token") == b"token-value"

        clock.advance(1)
        assert await memory_storage.get("id_token") is None
        assert not await memory_storage.exists("id_token")
        assert len(memory_storage) == 0

    @pytest.mark.asyncio
    async def it_treats_a_zero_ttl_as_already_expired(self, memory_storage):
        await memory_storage.set("id_token", b"token-value", ttl=0)

        assert await memory_storage.get("id_token") is None
        assert await memory_storage.get_metadata("id_token") is None

    @pytest.mark.asyncio
    async def it_keeps_entries_without_ttl(self, memory_storage, clock):
        await memory_storage.set("forever", b"value")

        clock.advance(60 * 60 * 24 * 365)
        assert await memory_storage.get("forever") == b"value"

    @pytest.mark.asyncio
    async def it_replaces_values_last_write_wins(self, memory_storage):
        await memory_storage.set("refresh_token", b"first", ttl=60)
        await memory_storage.set("refresh_token", b"second", ttl=60)

        assert await memory_storage.get("refresh_token") == b"second"

    @pytest.mark.asyncio
    async def it_deletes_keys(self, memory_storage):
        await memory_storage.set("key", b"value")

        assert await memory_storage.delete("key")
        assert not await memory_storage.delete("key")
        assert await memory_storage.get("key") is None

    @pytest.mark.asyncio
    async def it_reports_metadata(self, memory_storage):
        await memory_storage.set("key", b"12345", ttl=600)

        metadata = await memory_storage.get_metadata("key")

        assert metadata["key"] == "key"
        assert metadata["size"] == 5
        assert metadata["created_at"] == "2024-01-15T09:00:00+00:00"
        assert metadata["expires_at"] == "2024-01-15T09:10:00+00:00"

    @pytest.mark.asyncio
    async def it_clears_everything(self, memory_storage):
        await memory_storage.set("a", b"1")
        await memory_storage.set("b", b"2")

        assert await memory_storage.clear()
        assert await memory_storage.get("a") is None
        assert await memory_storage.get("b") is None


class DescribeFilesystemStorage:
    """Test the FileSystemStorage implementation."""

    @pytest.mark.asyncio
    async def it_stores_and_retrieves_data(self, filesystem_storage):
        key = "response:abc"
        value = b"test data"

        assert await filesystem_storage.set(key, value)
        assert await filesystem_storage.get(key) == value

    @pytest.mark.asyncio
    async def it_checks_key_existence(self, filesystem_storage):
        key = "refresh_token"

        assert not await filesystem_storage.exists(key)
        await filesystem_storage.set(key, b"data")
        assert await filesystem_storage.exists(key)

    @pytest.mark.asyncio
    async def it_deletes_keys(self, filesystem_storage):
        key = "id_token"

        await filesystem_storage.set(key, b"data to delete")
        assert await filesystem_storage.delete(key)
        assert not await filesystem_storage.exists(key)
        assert not await filesystem_storage.delete(key)

    @pytest.mark.asyncio
    async def it_handles_ttl_expiration(self, filesystem_storage):
        key = "test:ttl"

        await filesystem_storage.set(key, b"expiring data", ttl=1)
        assert await filesystem_storage.exists(key)

        await asyncio.sleep(1.5)
        assert not await filesystem_storage.exists(key)
        assert await filesystem_storage.get(key) is None

    @pytest.mark.asyncio
    async def it_treats_a_zero_ttl_as_already_expired(self, filesystem_storage):
        await filesystem_storage.set("test:zero", b"data", ttl=0)

        assert await filesystem_storage.get("test:zero") is None

    @pytest.mark.asyncio
    async def it_survives_a_new_instance(self, temp_cache_dir):
        first = FileSystemStorage(cache_dir=temp_cache_dir / "durable")
        await first.set("refresh_token", b"persisted", ttl=600)

        second = FileSystemStorage(cache_dir=temp_cache_dir / "durable")
        assert await second.get("refresh_token") == b"persisted"

    @pytest.mark.asyncio
    async def it_stores_and_retrieves_metadata(self, filesystem_storage):
        key = "test:metadata"
        value = b"data with metadata"

        await filesystem_storage.set(key, value, ttl=60)
        metadata = await filesystem_storage.get_metadata(key)

        assert metadata is not None
        assert metadata["key"] == key
        assert metadata["size"] == len(value)
        assert "created_at" in metadata
        assert "expires_at" in metadata

    @pytest.mark.asyncio
    async def it_clears_all_entries(self, filesystem_storage):
        keys = ["response:1", "response:2", "id_token"]

        for key in keys:
            await filesystem_storage.set(key, b"data")

        assert await filesystem_storage.clear()

        for key in keys:
            assert not await filesystem_storage.exists(key)
