"""MCP tool registration for direct SQL execution (postgres.query).

Provides a single tool `postgres.query(sql, args, maxRows)` that enforces the
statement guardrails, executes with row truncation and an optional timeout,
and returns a typed result payload. Guardrail and database failures surface
as MCP tool errors with no partial output.
"""

from __future__ import annotations

from typing import Annotated, Any

from fastmcp import Context, FastMCP
from fastmcp.exceptions import ToolError
from pydantic import Field

from postgres_mcp.exceptions import QueryToolError
from postgres_mcp.execute.models import QueryRequest, QueryResult
from postgres_mcp.execute.runner import QueryExecutor

TOOL_NAME = "postgres.query"


def register_query_tool(mcp: FastMCP, executor: QueryExecutor) -> None:
    """Register the postgres.query tool backed by ``executor``."""

    @mcp.tool(name=TOOL_NAME, description="Execute a SQL statement against PostgreSQL.")
    async def postgres_query(  # pyright: ignore[reportUnusedFunction]
        ctx: Context,
        sql: Annotated[
            str,
            Field(description="Statement to execute against PostgreSQL"),
        ],
        args: Annotated[
            list[Any] | None,
            Field(description="Positional parameters that map to $1, $2, ..."),
        ] = None,
        maxRows: Annotated[  # noqa: N803 - camelCase is part of the tool contract
            int | None,
            Field(description="Override the default row limit for this call (minimum 1)"),
        ] = None,
    ) -> QueryResult:
        try:
            request = QueryRequest(sql=sql, args=args or [], max_rows=maxRows)
            return await executor.execute(request)
        except QueryToolError as exc:
            await ctx.error(f"{TOOL_NAME} failed: {exc}")
            raise ToolError(str(exc)) from exc

    _ = postgres_query
