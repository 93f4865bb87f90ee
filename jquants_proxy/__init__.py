"""Authenticating caching proxy for the J-Quants API."""

from jquants_proxy.proxy import JQuantsProxy, build_proxy

__version__ = "0.1.0"

__all__ = ["JQuantsProxy", "build_proxy", "__version__"]
