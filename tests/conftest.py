"""Shared fixtures: settings without ambient environment and a fake upstream."""

import asyncio
from datetime import UTC, datetime
from email.utils import format_datetime

import httpx
import pytest

from jquants_proxy.cache.storage.memory import MemoryStorage
from jquants_proxy.config import CacheConfig, JQuantsConfig, Settings, get_settings
from jquants_proxy.proxy import build_proxy

ENV_VARS = (
    "ENV_FILE",
    "JQUANTS_API_EMAIL",
    "JQUANTS_API_PW",
    "JQUANTS_API_BASE_URL",
    "JQUANTS_API_TIMEOUT",
    "LOG_LEVEL",
    "LOG_FORMAT",
    "LOG_DIR",
    "LOG_MAX_BYTES",
    "LOG_BACKUP_COUNT",
    "PROXY_CACHE_MAX_AGE",
    "PROXY_REFRESH_TOKEN_TTL",
    "PROXY_ID_TOKEN_TTL",
    "PROXY_CACHE_BACKEND",
    "PROXY_CACHE_DIR",
    "PROXY_TOKEN_SINGLE_FLIGHT",
)


class FakeJQuants:
    """In-process stand-in for the J-Quants API, recording every request."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.refresh_tokens_issued = 0
        self.id_tokens_issued = 0
        self.data_status = 200
        self.data_headers: dict[str, str] = {}
        self.date = datetime.now(UTC)
        self.auth_user_response: httpx.Response | None = None
        self.auth_refresh_response: httpx.Response | None = None
        self.delay = 0.0

    @property
    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)

        if request.url.path == "/v1/token/auth_user":
            if self.auth_user_response is not None:
                return self.auth_user_response
            self.refresh_tokens_issued += 1
            return httpx.Response(
                200, json={"refreshToken": f"refresh-{self.refresh_tokens_issued}"}
            )

        if request.url.path == "/v1/token/auth_refresh":
            if self.auth_refresh_response is not None:
                return self.auth_refresh_response
            if not request.url.params.get("refreshtoken"):
                return httpx.Response(400, json={"message": "'refreshtoken' is required."})
            self.id_tokens_issued += 1
            return httpx.Response(200, json={"idToken": f"id-{self.id_tokens_issued}"})

        if not request.headers.get("Authorization", "").startswith("Bearer id-"):
            return httpx.Response(401, json={"message": "The incoming token is invalid."})

        headers = {"date": format_datetime(self.date, usegmt=True), **self.data_headers}
        return httpx.Response(
            self.data_status,
            headers=headers,
            json={"path": request.url.path, "query": str(request.url.query, "ascii")},
        )


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the developer's environment out of settings."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings():
    """Settings with credentials configured."""
    return Settings(
        jquants=JQuantsConfig(mailaddress="user@example.com", password="secret"),
        cache=CacheConfig(),
    )


@pytest.fixture
def upstream():
    """Fake J-Quants API."""
    return FakeJQuants()


@pytest.fixture
async def http_client(upstream):
    """httpx client routed to the fake upstream."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(upstream.handler))
    yield client
    await client.aclose()


@pytest.fixture
def token_storage():
    return MemoryStorage()


@pytest.fixture
def response_storage():
    return MemoryStorage()


@pytest.fixture
async def proxy(settings, http_client, token_storage, response_storage):
    """Proxy wired to the fake upstream and in-memory stores."""
    proxy = build_proxy(
        settings,
        http_client=http_client,
        token_storage=token_storage,
        response_storage=response_storage,
    )
    yield proxy
    await proxy.background.drain()
