"""Two-tier J-Quants credential management.

The ID token used on data calls is minted from a refresh token, which is in
turn minted from the account credentials. Both are kept in a durable
key-value store with TTLs shorter than their upstream lifetimes, and are
re-acquired lazily on the first call after they expire.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum

from jquants_proxy.cache.storage.base import StorageBackend
from jquants_proxy.client import JQuantsClient
from jquants_proxy.config import CacheConfig, JQuantsConfig
from jquants_proxy.errors import ConfigurationError, ProxyError
from jquants_proxy.errors.logger import ErrorCategory, ErrorSeverity, get_logger

logger = logging.getLogger(__name__)

REFRESH_TOKEN_KEY = "refresh_token"
ID_TOKEN_KEY = "id_token"


class TokenState(Enum):
    """Lifecycle state of one token variant."""

    ABSENT = "absent"
    CACHED = "cached"
    REFRESHING = "refreshing"


class CachedToken:
    """A TTL-bounded secret in the durable store, refreshed on demand."""

    def __init__(
        self,
        name: str,
        storage_key: str,
        ttl: int,
        storage: StorageBackend,
        acquire: Callable[[], Awaitable[str]],
        single_flight: bool = True,
    ):
        """Initialize the token slot.

        Args:
            name: Human readable name used in logs
            storage_key: Key of this token in the durable store
            ttl: Seconds the stored value stays valid
            storage: Durable key-value store
            acquire: Coroutine function returning a fresh token value
            single_flight: Serialize concurrent refreshes within this process
        """
        self.name = name
        self.storage_key = storage_key
        self.ttl = ttl
        self.storage = storage
        self._acquire = acquire
        self._lock = asyncio.Lock() if single_flight else None
        self._refreshing = 0

    async def get(self) -> str:
        """Return the stored token, acquiring and storing a new one if absent."""
        cached = await self._read()
        if cached:
            logger.debug(f"Cached {self.name} found")
            return cached

        if self._lock is None:
            return await self._refresh()

        async with self._lock:
            # Another caller may have refreshed while we waited.
            cached = await self._read()
            if cached:
                logger.debug(f"Cached {self.name} found after waiting for refresh")
                return cached
            return await self._refresh()

    async def state(self) -> TokenState:
        """Current lifecycle state, for diagnostics."""
        if self._refreshing:
            return TokenState.REFRESHING
        if await self._read():
            return TokenState.CACHED
        return TokenState.ABSENT

    async def _read(self) -> str | None:
        raw = await self.storage.get(self.storage_key)
        return raw.decode("utf-8") if raw else None

    async def _refresh(self) -> str:
        logger.debug(f"Cached {self.name} not found, fetching new {self.name}")
        self._refreshing += 1
        try:
            token = await self._acquire()
        except ProxyError as e:
            get_logger().log_exception(e, metadata={"token": self.storage_key})
            raise
        finally:
            self._refreshing -= 1

        try:
            stored = await self.storage.set(self.storage_key, token.encode("utf-8"), self.ttl)
        except Exception as e:
            get_logger().log_exception(
                e,
                category=ErrorCategory.CACHE,
                severity=ErrorSeverity.WARNING,
                metadata={"token": self.storage_key},
            )
            return token

        if not stored:
            get_logger().log_exception(
                RuntimeError(f"Could not store new {self.name}"),
                category=ErrorCategory.CACHE,
                severity=ErrorSeverity.WARNING,
                metadata={"token": self.storage_key},
            )
        else:
            logger.info(f"Stored new {self.name} for {self.ttl}s")
        return token


class TokenManager:
    """Resolves a live ID token, minting a refresh token first when needed."""

    def __init__(
        self,
        client: JQuantsClient,
        storage: StorageBackend,
        credentials: JQuantsConfig,
        cache_config: CacheConfig | None = None,
    ):
        self.client = client
        self.credentials = credentials
        cache_config = cache_config or CacheConfig()

        self.refresh_token = CachedToken(
            "refresh token",
            REFRESH_TOKEN_KEY,
            cache_config.refresh_token_ttl,
            storage,
            self._new_refresh_token,
            single_flight=cache_config.single_flight,
        )
        self.id_token = CachedToken(
            "ID token",
            ID_TOKEN_KEY,
            cache_config.id_token_ttl,
            storage,
            self._new_id_token,
            single_flight=cache_config.single_flight,
        )

    async def get_id_token(self) -> str:
        """Return a live ID token."""
        return await self.id_token.get()

    async def status(self) -> dict[str, str]:
        """State of both token variants keyed by storage key."""
        return {
            self.refresh_token.storage_key: (await self.refresh_token.state()).value,
            self.id_token.storage_key: (await self.id_token.state()).value,
        }

    async def _new_refresh_token(self) -> str:
        if not self.credentials.is_configured():
            raise ConfigurationError("JQUANTS_API_EMAIL or JQUANTS_API_PW is not set")
        return await self.client.auth_user(
            self.credentials.mailaddress or "", self.credentials.password or ""
        )

    async def _new_id_token(self) -> str:
        refresh_token = await self.refresh_token.get()
        return await self.client.auth_refresh(refresh_token)
