"""HTTP client for the J-Quants API.

Wraps the three upstream calls the proxy makes:

- ``POST /v1/token/auth_user``: e-mail and password for a refresh token
- ``POST /v1/token/auth_refresh``: refresh token for an ID token
- ``GET <endpoint>``: authenticated data call

Reference: https://jpx.gitbook.io/j-quants-ja/api-reference
"""

import logging
from typing import Any

import httpx

from jquants_proxy.config import DEFAULT_API_BASE_URL
from jquants_proxy.errors import AuthenticationError, ProtocolError, TransportError

logger = logging.getLogger(__name__)

AUTH_USER_PATH = "/v1/token/auth_user"
AUTH_REFRESH_PATH = "/v1/token/auth_refresh"


class JQuantsClient:
    """Thin async client; no retries, every failure is surfaced once."""

    def __init__(
        self,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize the client.

        Args:
            base_url: Upstream API base URL
            timeout: Request timeout in seconds
            client: Preconfigured httpx client (tests pass one with a mock transport)
        """
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(
            headers={"User-Agent": "jquants-proxy/1.0"},
            timeout=timeout,
        )

    def url_for(self, endpoint: str) -> str:
        """Absolute upstream URL for an endpoint path and query."""
        return self.base_url + endpoint

    async def auth_user(self, mailaddress: str, password: str) -> str:
        """Obtain a new refresh token."""
        response = await self._request(
            "POST",
            self.url_for(AUTH_USER_PATH),
            json={"mailaddress": mailaddress, "password": password},
        )
        return self._extract_token(response, "refreshToken", "refresh token")

    async def auth_refresh(self, refresh_token: str) -> str:
        """Exchange a refresh token for a new ID token."""
        response = await self._request(
            "POST",
            self.url_for(AUTH_REFRESH_PATH),
            params={"refreshtoken": refresh_token},
        )
        return self._extract_token(response, "idToken", "ID token")

    async def get(self, endpoint: str, id_token: str) -> httpx.Response:
        """Authenticated GET; non-2xx responses are returned, not raised."""
        return await self._request(
            "GET",
            self.url_for(endpoint),
            headers={"Authorization": f"Bearer {id_token}"},
        )

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self.client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            # Never echo the query string: it may carry a refresh token.
            safe_url = url.split("?", 1)[0]
            raise TransportError(f"{method} {safe_url} failed: {e!r}", url=safe_url) from e

    def _extract_token(self, response: httpx.Response, field: str, label: str) -> str:
        try:
            body = response.json()
        except ValueError as e:
            if not response.is_success:
                raise AuthenticationError(
                    f"J-Quants rejected {label} request ({response.status_code}): "
                    f"{response.reason_phrase}",
                    status_code=response.status_code,
                ) from e
            raise ProtocolError(
                f"J-Quants {label} response is not JSON", status_code=response.status_code
            ) from e

        if not response.is_success:
            message = body.get("message") if isinstance(body, dict) else None
            raise AuthenticationError(
                f"J-Quants rejected {label} request ({response.status_code}): "
                f"{message or response.reason_phrase}",
                status_code=response.status_code,
            )

        token = body.get(field) if isinstance(body, dict) else None
        if not isinstance(token, str) or not token:
            raise ProtocolError(
                f"J-Quants {label} not found in response", status_code=response.status_code
            )

        return token

    async def close(self) -> None:
        """Close HTTP client."""
        await self.client.aclose()
