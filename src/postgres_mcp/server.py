"""FastMCP server implementation for postgres-mcp."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager

import dotenv
from fastmcp import FastMCP
from fastmcp.utilities.logging import get_logger
import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine
from starlette.requests import Request
from starlette.responses import JSONResponse

from postgres_mcp import __version__
from postgres_mcp.exceptions import ConnectivityError
from postgres_mcp.execute.mcp_tools import TOOL_NAME, register_query_tool
from postgres_mcp.execute.runner import QueryExecutor, format_elapsed
from postgres_mcp.services.config_service import ConfigService, ServerSettings

# Load environment variables
dotenv.load_dotenv()

# Configure a module-level logger for local server logs.
_logger = get_logger(__name__)

SERVER_NAME = "postgres-mcp"
PING_TIMEOUT_SECONDS = 5.0


def build_instructions(*, read_only: bool) -> str:
    """Return the server instructions advertised to MCP clients."""
    instructions = [
        f"Use the `{TOOL_NAME}` tool to run SQL against PostgreSQL.",
        'Provide JSON arguments {"sql": string, "args": array, "maxRows": number}.',
    ]
    if read_only:
        instructions.append("This server enforces read-only queries.")
    return " ".join(instructions)


async def check_connectivity(engine: AsyncEngine, timeout: float = PING_TIMEOUT_SECONDS) -> None:
    """Run ``SELECT 1`` against the pool, raising ConnectivityError on failure."""
    try:
        async with asyncio.timeout(timeout):
            async with engine.connect() as conn:
                await conn.execute(sa.text("SELECT 1"))
    except TimeoutError as exc:
        msg = f"connectivity check timed out after {format_elapsed(timeout)}"
        raise ConnectivityError(msg) from exc
    except (SQLAlchemyError, OSError) as exc:
        msg = f"connectivity check failed: {exc}"
        raise ConnectivityError(msg) from exc


def pool_lifespan(
    pool: AsyncEngine,
) -> Callable[[FastMCP], AbstractAsyncContextManager[None]]:
    """Build the server lifespan: verify connectivity on startup, release the pool on shutdown."""

    @asynccontextmanager
    async def lifespan(_mcp_instance: FastMCP) -> AsyncGenerator[None]:
        try:
            await check_connectivity(pool)
            yield
        finally:
            _logger.info("Disposing connection pool during lifespan shutdown")
            await pool.dispose()

    return lifespan


def create_server(settings: ServerSettings, *, engine: AsyncEngine | None = None) -> FastMCP:
    """Wire up a FastMCP server that exposes PostgreSQL via the postgres.query tool.

    When ``engine`` is omitted one is created from ``settings.database_url``.
    The engine is checked on lifespan startup and disposed on shutdown.
    """
    pool = engine or ConfigService.create_database_engine(settings.database_url)
    limits = settings.execution_limits()

    mcp = FastMCP(
        name=SERVER_NAME,
        version=__version__,
        instructions=build_instructions(read_only=limits.read_only),
        lifespan=pool_lifespan(pool),
    )

    # -- Tool Registration ---------------------------------------------------
    register_query_tool(mcp, QueryExecutor(pool, limits))

    # -- Health Check --------------------------------------------------------
    @mcp.custom_route("/health", methods=["GET"])
    async def health_check(_request: Request) -> JSONResponse:  # pyright: ignore[reportUnusedFunction]
        return JSONResponse({"status": "healthy", "service": SERVER_NAME})

    _logger.info(
        "server initialized readOnly=%s maxRows=%d timeout=%s",
        str(limits.read_only).lower(),
        limits.max_rows,
        format_elapsed(limits.timeout),
    )
    return mcp
