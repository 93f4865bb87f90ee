"""Exceptions raised by the proxy and its structured error logging."""


class ProxyError(Exception):
    """Base class for every failure surfaced to a proxy caller."""


class ConfigurationError(ProxyError):
    """Required configuration (credentials) is missing."""


class AuthenticationError(ProxyError):
    """A token could not be acquired from the upstream auth endpoints."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProtocolError(AuthenticationError):
    """The upstream auth response did not carry the expected credential field."""


class TransportError(ProxyError):
    """The upstream API could not be reached."""

    def __init__(self, message: str, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


__all__ = [
    "AuthenticationError",
    "ConfigurationError",
    "ProtocolError",
    "ProxyError",
    "TransportError",
]
