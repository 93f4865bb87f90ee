"""Upstream credential lifecycle."""

from jquants_proxy.auth.tokens import (
    ID_TOKEN_KEY,
    REFRESH_TOKEN_KEY,
    CachedToken,
    TokenManager,
    TokenState,
)

__all__ = ["ID_TOKEN_KEY", "REFRESH_TOKEN_KEY", "CachedToken", "TokenManager", "TokenState"]
