"""Centralized configuration management for userdex."""

from __future__ import annotations

import logging
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field, PrivateAttr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load variables from a local .env file before the settings singleton below is
# instantiated so that the API, the CLI and the tests all observe the same values.
load_dotenv()

# -- Application-wide constants -------------------------------------------------

DEFAULT_SQLITE_DATABASE_URL = "sqlite+aiosqlite:///./data/userdex.db"
POSTGRES_ASYNC_PREFIX = "postgresql+psycopg://"
POSTGRES_SYNC_PREFIXES = ("postgres://", "postgresql://")
DEFAULT_RANDOMUSER_BASE_URL = "https://randomuser.me/api/"
DEFAULT_PAGE_SIZE = 10
DEFAULT_HTTP_TIMEOUT_SECONDS = 30.0
DEFAULT_USER_AGENT = "userdex/0.1 (+local)"
DEFAULT_RESUBSCRIBE_DELAY_SECONDS = 5.0
DEFAULT_LOG_LEVEL = "INFO"


class AppSettings(BaseSettings):
    """Typed configuration surface built on top of ``pydantic-settings``.

    Besides the raw environment values the class exposes a couple of derived
    helpers (normalized database URL, numeric log level) so that the API
    entrypoint and the CLI never repeat the parsing logic.
    """

    _explicit_database_url: bool = PrivateAttr(default=False)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    def __init__(self, **values: object) -> None:
        """Remember whether the database URL was supplied explicitly."""

        super().__init__(**values)
        self._explicit_database_url = bool(self.database_url and self.database_url.strip())

    randomuser_base_url: str = Field(
        default=DEFAULT_RANDOMUSER_BASE_URL,
        alias="RANDOMUSER_BASE_URL",
        description="Endpoint of the remote user directory.",
    )
    page_size: int = Field(
        default=DEFAULT_PAGE_SIZE,
        ge=1,
        alias="DIRECTORY_PAGE_SIZE",
        description="Number of records requested for every directory page.",
    )
    http_timeout_seconds: float = Field(
        default=DEFAULT_HTTP_TIMEOUT_SECONDS,
        gt=0,
        alias="HTTP_TIMEOUT_SECONDS",
        description="Timeout applied to every outbound directory request.",
    )
    http_user_agent: str = Field(
        default=DEFAULT_USER_AGENT,
        alias="HTTP_USER_AGENT",
        description="User-Agent header sent to the remote directory.",
    )
    database_url: str | None = Field(
        default=None,
        alias="DATABASE_URL",
        description=(
            "SQLAlchemy-compatible URL of the favorites store. PostgreSQL URLs"
            " supplied in sync format (postgres:// or postgresql://) are coerced"
            " into the async psycopg driver string."
        ),
    )
    use_sqlite: bool = Field(
        default=False,
        alias="USE_SQLITE",
        description="Force the local SQLite favorites store regardless of DATABASE_URL.",
    )
    favorites_resubscribe_delay_seconds: float = Field(
        default=DEFAULT_RESUBSCRIBE_DELAY_SECONDS,
        ge=0,
        alias="FAVORITES_RESUBSCRIBE_DELAY_SECONDS",
        description="Cooldown applied before re-observing favorites after a failure.",
    )
    log_level: str = Field(
        default=DEFAULT_LOG_LEVEL,
        alias="LOG_LEVEL",
        description="Root logging level (e.g. INFO, DEBUG, WARNING).",
    )

    @property
    def resolved_database_url(self) -> str:
        """Return the async-compatible database URL after applying fallbacks."""

        if self.use_sqlite or not self.database_url:
            return DEFAULT_SQLITE_DATABASE_URL

        url = self.database_url.strip()

        for prefix in POSTGRES_SYNC_PREFIXES:
            if url.startswith(prefix):
                return url.replace(prefix, POSTGRES_ASYNC_PREFIX, 1)

        if url.startswith(POSTGRES_ASYNC_PREFIX) or url.startswith("sqlite+aiosqlite://"):
            return url

        raise RuntimeError(
            f"Expected a PostgreSQL or aiosqlite connection string, received: {url}"
        )

    @property
    def database_type(self) -> str:
        """Return ``sqlite`` when using SQLite otherwise ``postgresql``."""

        if self.resolved_database_url.startswith("sqlite"):
            return "sqlite"
        return "postgresql"

    @property
    def log_level_numeric(self) -> int:
        """Translate ``log_level`` into the numeric constant expected by logging."""

        candidate = logging.getLevelName(self.log_level.upper())
        if isinstance(candidate, int):
            return candidate
        return logging.INFO

    def optional_config_warnings(self) -> list[str]:
        """Return human-readable warnings for unset optional configuration."""

        warnings: list[str] = []

        if not self._explicit_database_url and not self.use_sqlite:
            warnings.append(
                "DATABASE_URL is not set - favorites are stored in the local SQLite "
                "file ./data/userdex.db"
            )

        return warnings


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Return a cached instance of :class:`AppSettings`."""

    return AppSettings()


settings = get_settings()

__all__ = [
    "AppSettings",
    "DEFAULT_HTTP_TIMEOUT_SECONDS",
    "DEFAULT_LOG_LEVEL",
    "DEFAULT_PAGE_SIZE",
    "DEFAULT_RANDOMUSER_BASE_URL",
    "DEFAULT_RESUBSCRIBE_DELAY_SECONDS",
    "DEFAULT_SQLITE_DATABASE_URL",
    "DEFAULT_USER_AGENT",
    "POSTGRES_ASYNC_PREFIX",
    "POSTGRES_SYNC_PREFIXES",
    "get_settings",
    "settings",
]
