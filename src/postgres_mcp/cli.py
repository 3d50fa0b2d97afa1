"""Command-line entrypoint for the postgres-mcp FastMCP server.

Settings come from the environment (optionally via a `.env` file) and can be
overridden with flags. Without flags the server speaks MCP over stdio;
`--mode http` serves the streamable HTTP transport on `--listen`.
"""

from __future__ import annotations

import argparse
from collections.abc import Callable, Sequence
from typing import TypeVar

from fastmcp.utilities.logging import get_logger

from postgres_mcp import __version__
from postgres_mcp.exceptions import ConfigurationError
from postgres_mcp.server import create_server
from postgres_mcp.services.config_service import (
    ConfigService,
    ServerSettings,
    parse_duration,
    parse_listen_address,
)

# Configure a module-level logger for local server logs.
_logger = get_logger(__name__)


_T = TypeVar("_T")


def _flag_or_env(flag: _T | None, from_env: Callable[[], _T]) -> _T:
    return from_env() if flag is None else flag


def _duration(raw: str) -> float:
    try:
        return parse_duration("timeout", raw)
    except ConfigurationError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="postgres-mcp", description="MCP server exposing PostgreSQL via postgres.query"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--mode", type=str.lower, choices=("stdio", "http"), help="Server mode: stdio or http"
    )
    parser.add_argument(
        "--database-url",
        help="PostgreSQL connection string. Defaults to $POSTGRES_MCP_DATABASE_URL or $DATABASE_URL",
    )
    parser.add_argument("--listen", help="HTTP listen address (http mode), default :8080")
    parser.add_argument(
        "--readonly",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Reject mutating SQL statements",
    )
    parser.add_argument(
        "--max-rows", type=int, help="Maximum rows returned per query (0 uses server default)"
    )
    parser.add_argument(
        "--timeout", type=_duration, help="Per-request timeout (e.g. 30s). 0 disables"
    )
    parser.add_argument(
        "--http-stateless",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Serve streamable HTTP sessions without retaining state",
    )
    parser.add_argument(
        "--http-json",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Prefer JSON responses for single-message HTTP POSTs",
    )
    return parser


def resolve_settings(argv: Sequence[str] | None = None) -> ServerSettings:
    """Merge CLI flags over environment settings.

    Raises:
        ConfigurationError: If a required setting is missing or invalid.
    """
    args = build_parser().parse_args(argv)

    database_url = (args.database_url or "").strip() or ConfigService.get_database_url()
    return ServerSettings(
        database_url=database_url,
        mode=_flag_or_env(args.mode, ConfigService.get_mode),
        listen=(args.listen or "").strip() or ConfigService.get_listen(),
        read_only=_flag_or_env(args.readonly, ConfigService.read_only),
        max_rows=_flag_or_env(args.max_rows, ConfigService.result_row_limit),
        timeout=_flag_or_env(args.timeout, ConfigService.request_timeout),
        http_stateless=_flag_or_env(args.http_stateless, ConfigService.http_stateless),
        http_json=_flag_or_env(args.http_json, ConfigService.http_json),
    )


def main(argv: Sequence[str] | None = None) -> None:
    """Start the postgres-mcp FastMCP server via CLI."""
    try:
        settings = resolve_settings(argv)
        listen = parse_listen_address(settings.listen) if settings.mode == "http" else None
        mcp = create_server(settings)
    except ConfigurationError as exc:
        _logger.error("configuration error: %s", exc)  # noqa: TRY400
        raise SystemExit(2) from exc

    try:
        if listen is None:
            mcp.run(transport="stdio")
        else:
            host, port = listen
            _logger.info("streamable HTTP listening on %s", settings.listen)
            mcp.run(
                transport="http",
                host=host,
                port=port,
                stateless_http=settings.http_stateless,
                json_response=settings.http_json,
            )
    except KeyboardInterrupt:
        _logger.info("Interrupted by user. Exiting cleanly.")


if __name__ == "__main__":
    # Delegate to main() so behavior is consistent across execution paths.
    main()
