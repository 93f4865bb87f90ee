"""HTTP entrypoint exposing the proxy.

Routes:
  GET /                          liveness probe
  GET /get?endpoint=/v1/...      proxied J-Quants call
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from enum import Enum

from fastapi import FastAPI, Query, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from jquants_proxy.cache.models import FRAMING_HEADERS
from jquants_proxy.errors import (
    AuthenticationError,
    ConfigurationError,
    ProxyError,
    TransportError,
)
from jquants_proxy.proxy import HEALTH_MESSAGE, JQuantsProxy, build_proxy


class ErrorCode(str, Enum):
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    AUTHENTICATION_ERROR = "AUTHENTICATION_ERROR"
    UPSTREAM_UNREACHABLE = "UPSTREAM_UNREACHABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorDetail(BaseModel):
    code: ErrorCode
    message: str


class ErrorResponse(BaseModel):
    error: ErrorDetail


class HealthResponse(BaseModel):
    message: str


def _error_status(exc: ProxyError) -> tuple[int, ErrorCode]:
    if isinstance(exc, ConfigurationError):
        return 500, ErrorCode.CONFIGURATION_ERROR
    if isinstance(exc, AuthenticationError):
        return 502, ErrorCode.AUTHENTICATION_ERROR
    if isinstance(exc, TransportError):
        return 504, ErrorCode.UPSTREAM_UNREACHABLE
    return 500, ErrorCode.INTERNAL_ERROR


def _proxy(request: Request) -> JQuantsProxy:
    """The app's proxy, built from settings on first use."""
    if request.app.state.proxy is None:
        request.app.state.proxy = build_proxy()
    return request.app.state.proxy


def create_app(proxy: JQuantsProxy | None = None) -> FastAPI:
    """Build the FastAPI application around a proxy (default: from settings)."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.proxy = proxy
        yield
        if app.state.proxy is not None:
            await app.state.proxy.aclose()

    app = FastAPI(title="jquants-proxy", version="0.1.0", lifespan=lifespan)

    @app.exception_handler(ProxyError)
    async def proxy_error_handler(request: Request, exc: ProxyError) -> JSONResponse:
        status_code, code = _error_status(exc)
        body = ErrorResponse(error=ErrorDetail(code=code, message=str(exc)))
        return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))

    @app.get("/", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(message=HEALTH_MESSAGE)

    @app.get("/get")
    async def get(request: Request, endpoint: str = Query(..., pattern=r"^/")):
        upstream = await _proxy(request).resolve(endpoint)
        response = Response(content=upstream.content, status_code=upstream.status_code)
        for name, value in upstream.headers.multi_items():
            if name.lower() not in FRAMING_HEADERS:
                response.headers.append(name, value)
        return response

    return app


app = create_app()
