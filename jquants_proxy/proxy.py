"""Caching, authenticating front for the J-Quants API."""

from typing import Any

import httpx

from jquants_proxy.auth.tokens import TokenManager
from jquants_proxy.cache.background import BackgroundTasks
from jquants_proxy.cache.response_cache import ResponseCache
from jquants_proxy.cache.storage.base import StorageBackend
from jquants_proxy.cache.storage.filesystem import FileSystemStorage
from jquants_proxy.cache.storage.memory import MemoryStorage
from jquants_proxy.client import JQuantsClient
from jquants_proxy.config import Settings, get_settings
from jquants_proxy.errors import ConfigurationError, TransportError
from jquants_proxy.errors.logger import (
    ErrorCategory,
    ErrorSeverity,
    StructuredError,
    get_logger,
)

HEALTH_MESSAGE = "JQuants API proxy is running"


class JQuantsProxy:
    """Serves ``GET <base><endpoint>`` from cache or upstream.

    Every collaborator is injected so tests can swap in in-memory fakes;
    :func:`build_proxy` wires the defaults from settings.
    """

    def __init__(
        self,
        settings: Settings,
        client: JQuantsClient,
        tokens: TokenManager,
        response_cache: ResponseCache,
        background: BackgroundTasks,
    ):
        self.settings = settings
        self.client = client
        self.tokens = tokens
        self.response_cache = response_cache
        self.background = background

    async def resolve(self, endpoint: str) -> httpx.Response:
        """Fetch an endpoint such as ``/v1/fins/statements?code=86970&date=20230130``."""
        self._check_config()
        url = self.client.url_for(endpoint)

        cached = await self.response_cache.get(url)
        if cached is not None:
            return cached

        id_token = await self.tokens.get_id_token()
        try:
            response = await self.client.get(endpoint, id_token)
        except TransportError as e:
            get_logger().log_exception(e, endpoint=endpoint, url=e.url)
            raise

        if response.is_success:
            self.response_cache.put(url, response)
        else:
            get_logger().log_error(
                StructuredError(
                    message=f"Upstream returned {response.status_code}, not caching",
                    category=ErrorCategory.UPSTREAM,
                    severity=ErrorSeverity.WARNING,
                    endpoint=endpoint,
                    url=url,
                    error_code=str(response.status_code),
                )
            )
        return response

    def purge(self, endpoint: str) -> None:
        """Schedule removal of the cached response for an endpoint."""
        self.response_cache.delete(self.client.url_for(endpoint))

    async def token_status(self) -> dict[str, str]:
        """Lifecycle state of the refresh and ID tokens."""
        return await self.tokens.status()

    def health(self) -> dict[str, Any]:
        """Liveness payload, independent of credentials and caches."""
        return {"message": HEALTH_MESSAGE}

    async def aclose(self) -> None:
        """Let pending cache writes finish, then release the HTTP client."""
        await self.background.drain()
        await self.client.close()

    def _check_config(self) -> None:
        if not self.settings.jquants.is_configured():
            raise ConfigurationError("JQUANTS_API_EMAIL or JQUANTS_API_PW is not set")


def _build_storage(settings: Settings, namespace: str) -> StorageBackend:
    backend = settings.cache.backend
    if backend == "filesystem":
        return FileSystemStorage(settings.cache.cache_dir / namespace)
    if backend == "memory":
        return MemoryStorage()
    raise ConfigurationError(f"Unknown cache backend: {backend}")


def build_proxy(
    settings: Settings | None = None,
    http_client: httpx.AsyncClient | None = None,
    token_storage: StorageBackend | None = None,
    response_storage: StorageBackend | None = None,
) -> JQuantsProxy:
    """Create a proxy with backends chosen by configuration.

    Args:
        settings: Settings to use. Defaults to :func:`get_settings`
        http_client: Optional httpx client for upstream calls
        token_storage: Durable store for tokens, overriding the configured backend
        response_storage: Store for responses, overriding the configured backend
    """
    settings = settings or get_settings()
    client = JQuantsClient(
        base_url=settings.jquants.base_url,
        timeout=settings.jquants.timeout,
        client=http_client,
    )
    background = BackgroundTasks()
    tokens = TokenManager(
        client,
        token_storage or _build_storage(settings, "tokens"),
        settings.jquants,
        settings.cache,
    )
    response_cache = ResponseCache(
        response_storage or _build_storage(settings, "responses"),
        background,
        max_age=settings.cache.max_age,
    )
    return JQuantsProxy(settings, client, tokens, response_cache, background)
