"""Structured error logging system."""

import json
import logging
import logging.handlers
import traceback
import uuid
from datetime import UTC, datetime
from enum import Enum
from functools import cache
from typing import Any

from pydantic import BaseModel, Field

from jquants_proxy.config import Settings, get_settings
from jquants_proxy.errors import (
    AuthenticationError,
    ConfigurationError,
    ProtocolError,
    TransportError,
)


class ErrorSeverity(Enum):
    """Error severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    def to_log_level(self) -> int:
        """Convert severity to Python logging level."""
        mapping = {
            ErrorSeverity.DEBUG: logging.DEBUG,
            ErrorSeverity.INFO: logging.INFO,
            ErrorSeverity.WARNING: logging.WARNING,
            ErrorSeverity.ERROR: logging.ERROR,
            ErrorSeverity.CRITICAL: logging.CRITICAL,
        }
        return mapping[self]


class ErrorCategory(Enum):
    """Error categories for classification."""

    NETWORK = "network"
    AUTHENTICATION = "authentication"
    PROTOCOL = "protocol"
    CONFIGURATION = "configuration"
    CACHE = "cache"
    UPSTREAM = "upstream"
    UNKNOWN = "unknown"

    @classmethod
    def for_exception(cls, exception: BaseException) -> "ErrorCategory":
        """Pick the category matching a proxy exception."""
        if isinstance(exception, ProtocolError):
            return cls.PROTOCOL
        if isinstance(exception, AuthenticationError):
            return cls.AUTHENTICATION
        if isinstance(exception, ConfigurationError):
            return cls.CONFIGURATION
        if isinstance(exception, TransportError):
            return cls.NETWORK
        return cls.UNKNOWN


class StructuredError(BaseModel):
    """Structured error model for consistent logging."""

    error_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    message: str
    category: ErrorCategory
    severity: ErrorSeverity
    endpoint: str | None = None
    url: str | None = None
    error_code: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    traceback: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "error_id": self.error_id,
            "timestamp": self.timestamp.isoformat(),
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "endpoint": self.endpoint,
            "url": self.url,
            "error_code": self.error_code,
            "metadata": self.metadata,
            "traceback": self.traceback,
        }


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        if hasattr(record, "structured_error"):
            log_data = record.structured_error
        else:
            log_data = {
                "timestamp": datetime.now(UTC).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "message": record.getMessage(),
                "module": record.module,
                "function": record.funcName,
                "line": record.lineno,
            }
        return json.dumps(log_data)


def _build_handler(config: Settings, name: str) -> logging.Handler:
    log_dir = config.logging.log_dir
    if log_dir is None:
        return logging.StreamHandler()

    log_dir.mkdir(exist_ok=True, parents=True)
    return logging.handlers.RotatingFileHandler(
        log_dir / f"{name}.log",
        maxBytes=config.logging.max_bytes,
        backupCount=config.logging.backup_count,
    )


class StructuredLogger:
    """Logger for structured error logging."""

    def __init__(self, name: str, config: Settings | None = None) -> None:
        """Initialize structured logger."""
        self.name = name
        self.config = config or get_settings()
        self.logger = self._setup_logger()

    def _setup_logger(self) -> logging.Logger:
        """Set up the logger with appropriate handlers."""
        logger = logging.getLogger(self.name)
        logger.setLevel(getattr(logging, self.config.logging.level.upper()))

        # Remove existing handlers to avoid duplicates
        logger.handlers.clear()

        handler = _build_handler(self.config, self.name)
        if self.config.logging.format == "json":
            handler.setFormatter(JSONFormatter())
        else:
            handler.setFormatter(
                logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            )

        logger.addHandler(handler)
        return logger

    def log_error(self, error: StructuredError) -> None:
        """Log a structured error."""
        level = error.severity.to_log_level()

        if self.config.logging.format == "json":
            extra = {"structured_error": error.to_dict()}
            self.logger.log(level, error.message, extra=extra)
        else:
            message = (
                f"[{error.severity.value.upper()}] {error.message} | "
                f"Category: {error.category.value}"
            )
            if error.endpoint:
                message += f" | Endpoint: {error.endpoint}"
            if error.url:
                message += f" | URL: {error.url}"
            if error.error_code:
                message += f" | Code: {error.error_code}"
            if error.metadata:
                message += f" | Metadata: {json.dumps(error.metadata)}"

            self.logger.log(level, message)

    def create_error_from_exception(
        self,
        exception: BaseException,
        category: ErrorCategory | None = None,
        severity: ErrorSeverity | None = None,
        endpoint: str | None = None,
        url: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> StructuredError:
        """Create a structured error from an exception."""
        return StructuredError(
            message=str(exception),
            category=category or ErrorCategory.for_exception(exception),
            severity=severity or ErrorSeverity.ERROR,
            endpoint=endpoint,
            url=url,
            error_code=exception.__class__.__name__,
            metadata=metadata or {},
            traceback="".join(
                traceback.format_exception(type(exception), exception, exception.__traceback__)
            ),
        )

    def log_exception(
        self,
        exception: BaseException,
        category: ErrorCategory | None = None,
        severity: ErrorSeverity | None = None,
        **kwargs: Any,
    ) -> StructuredError:
        """Create a structured error from an exception and log it."""
        error = self.create_error_from_exception(exception, category, severity, **kwargs)
        self.log_error(error)
        return error


@cache
def get_logger(name: str = "jquants_proxy.errors") -> StructuredLogger:
    """Get or create a logger instance."""
    return StructuredLogger(name)
