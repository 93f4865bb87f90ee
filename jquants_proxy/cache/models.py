"""Cache models for storing HTTP responses."""

import base64
import json
import math
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import Any

import httpx
from pydantic import BaseModel, Field, field_validator

# Describe how the original body travelled; the stored body is already decoded.
FRAMING_HEADERS = frozenset({"content-encoding", "content-length", "transfer-encoding"})


def request_key(url: str, method: str = "GET") -> str:
    """Canonical identity of a request, as ``"<METHOD> <url>"``."""
    return f"{method.upper()} {url}"


class CachedResponse(BaseModel):
    """Represents a cached upstream response.

    Headers are kept as ordered ``(name, value)`` pairs so repeated headers
    such as ``set-cookie`` survive a round trip.
    """

    method: str = "GET"
    url: str
    status_code: int = 200
    content: bytes = b""
    headers: list[tuple[str, str]] = Field(default_factory=list)

    @field_validator("headers", mode="before")
    @classmethod
    def lowercase_header_names(cls, v: Any) -> list[tuple[str, str]]:
        """Header names are case-insensitive; keep them lower-cased."""
        pairs = v.items() if isinstance(v, dict) else v
        return [(name.lower(), value) for name, value in pairs]

    @property
    def key(self) -> str:
        """Canonical request identity."""
        return request_key(self.url, self.method)

    def header(self, name: str, default: str | None = None) -> str | None:
        """First value of a header, or ``default``."""
        name = name.lower()
        return next((value for key, value in self.headers if key == name), default)

    def header_values(self, name: str) -> list[str]:
        """Every value of a possibly repeated header."""
        name = name.lower()
        return [value for key, value in self.headers if key == name]

    def set_header(self, name: str, value: str) -> None:
        """Replace all values of a header with a single one."""
        self.remove_header(name)
        self.headers.append((name.lower(), value))

    def remove_header(self, name: str) -> None:
        name = name.lower()
        self.headers = [(key, value) for key, value in self.headers if key != name]

    @property
    def stored_at(self) -> datetime | None:
        """Origin time taken from the ``date`` header, if parseable."""
        date = self.header("date")
        if not date:
            return None
        try:
            parsed = parsedate_to_datetime(date)
        except (TypeError, ValueError):
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        return parsed

    def age(self, now: datetime | None = None) -> int | None:
        """Whole seconds elapsed since the origin ``date``, never negative."""
        stored_at = self.stored_at
        if stored_at is None:
            return None
        if now is None:
            now = datetime.now(UTC)
        return max(0, math.floor((now - stored_at).total_seconds()))

    @classmethod
    def from_response(cls, url: str, response: httpx.Response) -> "CachedResponse":
        """Create a detached copy of an httpx response."""
        headers = [
            (name, value)
            for name, value in response.headers.multi_items()
            if name.lower() not in FRAMING_HEADERS
        ]
        return cls(
            url=url,
            status_code=response.status_code,
            content=response.content,
            headers=headers,
        )

    def to_response(self) -> httpx.Response:
        """Build a fresh httpx response; every call returns an independent object."""
        return httpx.Response(
            self.status_code,
            headers=list(self.headers),
            content=self.content,
            request=httpx.Request(self.method, self.url),
        )

    def to_bytes(self) -> bytes:
        """Serialize for a storage backend."""
        data = self.model_dump()
        # Convert bytes to base64-encoded string for JSON
        data["content"] = base64.b64encode(data["content"]).decode("ascii")
        return json.dumps(data).encode("utf-8")

    @classmethod
    def from_bytes(cls, raw: bytes) -> "CachedResponse":
        """Deserialize data written by :meth:`to_bytes`."""
        data = json.loads(raw.decode("utf-8"))
        data["content"] = base64.b64decode(data["content"])
        return cls(**data)
