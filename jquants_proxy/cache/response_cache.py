"""Shared response cache with TTL and debug headers."""

import asyncio
import hashlib
import logging
import re
from collections.abc import Callable
from datetime import UTC, datetime

import httpx

from jquants_proxy.cache.background import BackgroundTasks
from jquants_proxy.cache.models import CachedResponse, request_key
from jquants_proxy.cache.storage.base import StorageBackend
from jquants_proxy.config import DEFAULT_CACHE_MAX_AGE

logger = logging.getLogger(__name__)

# Default cache TTL in seconds.
CACHE_MAX_AGE = DEFAULT_CACHE_MAX_AGE

# Debug headers describing the freshness of a served cache entry.
X_PROXY_CACHE_MAXAGE_KEY = "x-proxy-cache-maxage"
X_PROXY_CACHE_AGE_KEY = "x-proxy-cache-age"

_OPT_OUT_DIRECTIVES = ("no-store", "private")


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ResponseCache:
    """Key-addressable store of upstream responses.

    Reads are fail-open: any backend error is a miss. Writes and purges run
    on the background supervisor and never block or fail the caller.
    """

    def __init__(
        self,
        storage: StorageBackend,
        background: BackgroundTasks,
        max_age: int = CACHE_MAX_AGE,
        clock: Callable[[], datetime] | None = None,
    ):
        """Initialize the response cache.

        Args:
            storage: Backend holding serialized responses
            background: Supervisor for detached writes
            max_age: TTL of stored responses in seconds
            clock: Returns the current timezone-aware time
        """
        self.storage = storage
        self.background = background
        self.max_age = max_age
        self._clock = clock or _utcnow

    def cache_key(self, url: str, method: str = "GET") -> str:
        """Storage key for a request identity."""
        return self._storage_key(request_key(url, method))

    def _storage_key(self, identity: str) -> str:
        digest = hashlib.sha256(identity.encode()).hexdigest()
        return self.storage.generate_key("response", digest)

    async def get(self, url: str) -> httpx.Response | None:
        """Return a copy of the cached response for ``url`` with debug headers."""
        try:
            raw = await self.storage.get(self.cache_key(url))
            if raw is None:
                return None
            entry = CachedResponse.from_bytes(raw)
        except Exception as e:
            logger.warning(f"Response cache read failed for {url}, treating as miss: {e}")
            return None

        entry.remove_header("cache-control")
        self._set_debug_headers(entry)
        logger.debug(f"Response cache hit for {url}")
        return entry.to_response()

    def put(self, url: str, response: httpx.Response) -> asyncio.Task[None] | None:
        """Schedule storing a copy of ``response``; the original is left untouched."""
        if self.max_age <= 0:
            logger.debug(f"Not caching {url}: response caching is disabled")
            return None

        cache_control = response.headers.get("cache-control", "").lower()
        if any(directive in cache_control for directive in _OPT_OUT_DIRECTIVES):
            logger.debug(f"Not caching {url}: upstream sent cache-control {cache_control!r}")
            return None

        # To enable caching, mark the clone with an explicit shared max-age.
        clone = CachedResponse.from_response(url, response)
        clone.set_header("cache-control", f"public, s-maxage={self.max_age}")
        return self.background.wait_until(self._store(clone), name=f"cache-put {url}")

    def delete(self, url: str) -> asyncio.Task[None]:
        """Schedule removal of any cached response for ``url``."""
        return self.background.wait_until(self._purge(url), name=f"cache-delete {url}")

    async def _store(self, entry: CachedResponse) -> None:
        ttl = self._parse_s_maxage(entry.header("cache-control") or "")
        if ttl is None or ttl <= 0:
            # Without a positive shared max-age the response is not cacheable.
            return

        stored = await self.storage.set(self._storage_key(entry.key), entry.to_bytes(), ttl)
        if not stored:
            logger.warning(f"Response cache write failed for {entry.url}")

    async def _purge(self, url: str) -> None:
        if await self.storage.delete(self.cache_key(url)):
            logger.info(f"Purged cached response for {url}")

    def _parse_s_maxage(self, cache_control: str) -> int | None:
        """Parse s-maxage from Cache-Control header."""
        match = re.search(r"s-maxage=(\d+)", cache_control)
        if match:
            return int(match.group(1))
        return None

    def _set_debug_headers(self, entry: CachedResponse) -> None:
        age = entry.age(self._clock())
        if age is not None:
            entry.set_header(X_PROXY_CACHE_AGE_KEY, str(age))

        entry.set_header(X_PROXY_CACHE_MAXAGE_KEY, str(self.max_age))
