"""Configuration management for the proxy, its caches and logging."""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, Field

DEFAULT_API_BASE_URL = "https://api.jquants.com"

# The upstream refresh token lives 7 days and the ID token 24 hours; both are
# renewed early so an upstream-expired token is never presented.
DEFAULT_REFRESH_TOKEN_TTL = 60 * 60 * 24 * 6  # 6 days
DEFAULT_ID_TOKEN_TTL = 60 * 60 * 23  # 23 hours
DEFAULT_CACHE_MAX_AGE = 60 * 10  # 10 minutes


def _as_bool(value: str) -> bool:
    return value.lower() in ("true", "1", "yes")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Logging level")
    format: str = Field(default="json", description="Log format (json or text)")
    log_dir: Path | None = Field(
        default=None, description="Directory for rotating log files; stderr when unset"
    )
    max_bytes: int = Field(default=10_485_760, description="Max size of log file in bytes")
    backup_count: int = Field(default=5, description="Number of backup log files to keep")

    def __init__(self, **data: Any) -> None:
        """Initialize with environment variable overrides."""
        data["level"] = os.environ.get("LOG_LEVEL", data.get("level", "INFO"))
        data["format"] = os.environ.get("LOG_FORMAT", data.get("format", "json"))
        if log_dir := os.environ.get("LOG_DIR"):
            data["log_dir"] = Path(log_dir)
        if max_bytes := os.environ.get("LOG_MAX_BYTES"):
            data["max_bytes"] = int(max_bytes)
        if backup_count := os.environ.get("LOG_BACKUP_COUNT"):
            data["backup_count"] = int(backup_count)
        super().__init__(**data)


class JQuantsConfig(BaseModel):
    """Upstream API credentials and connection settings."""

    mailaddress: str | None = Field(default=None, description="J-Quants account e-mail")
    password: str | None = Field(default=None, description="J-Quants account password")
    base_url: str = Field(default=DEFAULT_API_BASE_URL, description="Upstream API base URL")
    timeout: float = Field(default=30.0, description="Upstream request timeout in seconds")

    def __init__(self, **data: Any) -> None:
        """Initialize with environment variable overrides."""
        data["mailaddress"] = os.environ.get("JQUANTS_API_EMAIL", data.get("mailaddress"))
        data["password"] = os.environ.get("JQUANTS_API_PW", data.get("password"))
        if base_url := os.environ.get("JQUANTS_API_BASE_URL"):
            data["base_url"] = base_url
        if timeout := os.environ.get("JQUANTS_API_TIMEOUT"):
            data["timeout"] = float(timeout)
        super().__init__(**data)

    def is_configured(self) -> bool:
        """Check that both the account identifier and the secret are set."""
        return bool(self.mailaddress) and bool(self.password)


class CacheConfig(BaseModel):
    """Response cache and token store configuration."""

    max_age: int = Field(
        default=DEFAULT_CACHE_MAX_AGE,
        ge=0,
        description="Response cache TTL in seconds, 0 disables response caching",
    )
    refresh_token_ttl: int = Field(
        default=DEFAULT_REFRESH_TOKEN_TTL, gt=0, description="Refresh token TTL in seconds"
    )
    id_token_ttl: int = Field(
        default=DEFAULT_ID_TOKEN_TTL, gt=0, description="ID token TTL in seconds"
    )
    backend: str = Field(default="memory", description="Storage backend (memory or filesystem)")
    cache_dir: Path = Field(
        default=Path(".cache/jquants-proxy"), description="Directory for the filesystem backend"
    )
    single_flight: bool = Field(
        default=True, description="Share one in-flight token refresh between concurrent callers"
    )

    def __init__(self, **data: Any) -> None:
        """Initialize with environment variable overrides."""
        if max_age := os.environ.get("PROXY_CACHE_MAX_AGE"):
            data["max_age"] = int(max_age)
        if refresh_ttl := os.environ.get("PROXY_REFRESH_TOKEN_TTL"):
            data["refresh_token_ttl"] = int(refresh_ttl)
        if id_ttl := os.environ.get("PROXY_ID_TOKEN_TTL"):
            data["id_token_ttl"] = int(id_ttl)
        if backend := os.environ.get("PROXY_CACHE_BACKEND"):
            data["backend"] = backend.lower()
        if cache_dir := os.environ.get("PROXY_CACHE_DIR"):
            data["cache_dir"] = Path(cache_dir)
        if single_flight := os.environ.get("PROXY_TOKEN_SINGLE_FLIGHT"):
            data["single_flight"] = _as_bool(single_flight)
        super().__init__(**data)


class Settings(BaseModel):
    """Main application settings."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    jquants: JQuantsConfig = Field(default_factory=JQuantsConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)

    def __init__(self, **data: Any) -> None:
        """Initialize settings, optionally loading from .env file."""
        if env_file := os.environ.get("ENV_FILE"):
            self._load_env_file(Path(env_file))
        super().__init__(**data)

    def _load_env_file(self, env_file: Path) -> None:
        """Load environment variables from .env file."""
        if env_file.exists():
            load_dotenv(env_file, override=True)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the singleton settings instance."""
    return Settings()
