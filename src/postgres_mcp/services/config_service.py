"""Configuration service for postgres-mcp.

This module provides configuration management and database connection utilities
for the postgres-mcp server. It centralizes environment variable handling,
parsing of duration/boolean settings, and async engine (connection pool)
creation.
"""

from __future__ import annotations

from dataclasses import dataclass
import math
import os
import re
from typing import Final, Literal

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from postgres_mcp.exceptions import ConfigurationError
from postgres_mcp.execute.models import DEFAULT_MAX_ROWS, ExecutionLimits

Mode = Literal["stdio", "http"]

APPLICATION_NAME: Final[str] = "postgres-mcp"
DEFAULT_LISTEN: Final[str] = ":8080"

_TRUE: Final[frozenset[str]] = frozenset({"1", "true", "t", "yes", "y", "on"})
_FALSE: Final[frozenset[str]] = frozenset({"0", "false", "f", "no", "n", "off", ""})

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_DURATION_UNITS: Final[dict[str, float]] = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_ASYNC_DRIVER = "postgresql+asyncpg"
_POSTGRES_DRIVERS: Final[frozenset[str]] = frozenset(
    {"postgres", "postgresql", "postgresql+psycopg2", "postgresql+psycopg"}
)


def parse_bool(name: str, raw: str) -> bool:
    """Parse a boolean setting such as ``true``/``1``/``off``."""
    val = raw.strip().lower()
    if val in _TRUE:
        return True
    if val in _FALSE:
        return False
    msg = f"{name}: invalid boolean {raw!r}"
    raise ConfigurationError(msg)


def parse_duration(name: str, raw: str) -> float:
    """Parse a duration into seconds.

    Accepts Go-style durations (``30s``, ``1m30s``, ``500ms``) as well as a
    bare number of seconds (``2.5``). Negative durations are rejected.
    """
    val = raw.strip()
    if not val:
        return 0.0
    try:
        seconds = float(val)
    except ValueError:
        seconds = None
    if seconds is None:
        pos = 0
        seconds = 0.0
        for match in _DURATION_PART.finditer(val):
            if match.start() != pos:
                break
            seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
            pos = match.end()
        if pos != len(val):
            msg = f"{name}: invalid duration {raw!r}"
            raise ConfigurationError(msg)
    if not math.isfinite(seconds) or seconds < 0:
        msg = f"{name}: duration must be a finite, non-negative value"
        raise ConfigurationError(msg)
    return seconds


def parse_int(name: str, raw: str) -> int:
    try:
        return int(raw.strip())
    except ValueError as exc:
        msg = f"{name}: invalid integer {raw!r}"
        raise ConfigurationError(msg) from exc


def parse_listen_address(listen: str) -> tuple[str, int]:
    """Split a ``host:port`` listen address; an empty host binds all interfaces."""
    host, sep, port = listen.strip().rpartition(":")
    if not sep:
        msg = f"listen: missing port in {listen!r}"
        raise ConfigurationError(msg)
    host = host.strip("[]") or "0.0.0.0"  # noqa: S104 - ":8080" listens on all interfaces
    return host, parse_int("listen", port)


@dataclass(frozen=True, slots=True)
class ServerSettings:
    """Process-level settings, fixed after startup."""

    database_url: str
    mode: Mode = "stdio"
    listen: str = DEFAULT_LISTEN
    read_only: bool = False
    max_rows: int = 0
    timeout: float = 0.0
    http_stateless: bool = False
    http_json: bool = False

    def execution_limits(self) -> ExecutionLimits:
        """Return the immutable limits handed to the query executor.

        A row limit of zero or less falls back to the server default.
        """
        max_rows = self.max_rows if self.max_rows > 0 else DEFAULT_MAX_ROWS
        return ExecutionLimits(read_only=self.read_only, max_rows=max_rows, timeout=self.timeout)


class ConfigService:
    """Service for managing configuration and database connections."""

    @staticmethod
    def get_database_url() -> str:
        """Get database URL from environment variables.

        ``POSTGRES_MCP_DATABASE_URL`` takes precedence over ``DATABASE_URL``.

        Raises:
            ConfigurationError: If neither variable is set.
        """
        database_url = os.getenv("POSTGRES_MCP_DATABASE_URL") or os.getenv("DATABASE_URL")
        if not database_url or not database_url.strip():
            error_msg = "database-url is required (set POSTGRES_MCP_DATABASE_URL or DATABASE_URL)"
            raise ConfigurationError(error_msg)
        return database_url.strip()

    @staticmethod
    def get_mode() -> Mode:
        val = os.getenv("POSTGRES_MCP_MODE", "stdio").strip().lower()
        if val not in ("stdio", "http"):
            msg = f"POSTGRES_MCP_MODE: invalid mode {val!r}"
            raise ConfigurationError(msg)
        return "http" if val == "http" else "stdio"

    @staticmethod
    def get_listen() -> str:
        return os.getenv("POSTGRES_MCP_LISTEN", DEFAULT_LISTEN).strip() or DEFAULT_LISTEN

    @staticmethod
    def read_only() -> bool:
        """Whether mutating statements are rejected."""
        return parse_bool("POSTGRES_MCP_READ_ONLY", os.getenv("POSTGRES_MCP_READ_ONLY", "false"))

    @staticmethod
    def result_row_limit() -> int:
        """Maximum number of rows returned per query (0 uses the server default)."""
        return parse_int("POSTGRES_MCP_MAX_ROWS", os.getenv("POSTGRES_MCP_MAX_ROWS", "0"))

    @staticmethod
    def request_timeout() -> float:
        """Per-request timeout in seconds (0 disables)."""
        return parse_duration("POSTGRES_MCP_TIMEOUT", os.getenv("POSTGRES_MCP_TIMEOUT", "0"))

    @staticmethod
    def http_stateless() -> bool:
        return parse_bool(
            "POSTGRES_MCP_HTTP_STATELESS", os.getenv("POSTGRES_MCP_HTTP_STATELESS", "false")
        )

    @staticmethod
    def http_json() -> bool:
        return parse_bool("POSTGRES_MCP_HTTP_JSON", os.getenv("POSTGRES_MCP_HTTP_JSON", "false"))

    @staticmethod
    def load_settings() -> ServerSettings:
        """Build `ServerSettings` from the environment."""
        return ServerSettings(
            database_url=ConfigService.get_database_url(),
            mode=ConfigService.get_mode(),
            listen=ConfigService.get_listen(),
            read_only=ConfigService.read_only(),
            max_rows=ConfigService.result_row_limit(),
            timeout=ConfigService.request_timeout(),
            http_stateless=ConfigService.http_stateless(),
            http_json=ConfigService.http_json(),
        )

    @staticmethod
    def async_database_url(url: str) -> sa.URL:
        """Parse ``url`` and point plain PostgreSQL URLs at the asyncpg driver."""
        try:
            parsed = sa.make_url(url)
        except sa.exc.ArgumentError as exc:
            msg = f"database-url: {exc}"
            raise ConfigurationError(msg) from exc
        if parsed.drivername in _POSTGRES_DRIVERS:
            parsed = parsed.set(drivername=_ASYNC_DRIVER)
        return parsed

    @staticmethod
    def create_database_engine(url: str) -> AsyncEngine:
        """Create the SQLAlchemy async engine that serves as the connection pool.

        Args:
            url: Database connection URL

        Returns:
            AsyncEngine with pre-ping health checks enabled
        """
        parsed = ConfigService.async_database_url(url)

        create_kwargs: dict[str, object] = {"pool_pre_ping": True}
        # Tag sessions so they are identifiable in pg_stat_activity.
        if parsed.drivername == _ASYNC_DRIVER and "application_name" not in parsed.query:
            create_kwargs["connect_args"] = {
                "server_settings": {"application_name": APPLICATION_NAME}
            }

        return create_async_engine(parsed, **create_kwargs)
