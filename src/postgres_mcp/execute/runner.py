"""Execution flow for the postgres.query MCP tool.

This module provides a small, dependency-injected executor that:
- Enforces the statement guardrails (non-empty, single statement, read-only)
- Derives the effective row limit and normalizes positional arguments
- Executes via a pooled SQLAlchemy async connection under an optional timeout
- Streams rows up to the limit, normalizing every cell
- Returns a typed result payload or raises a ``QueryToolError``
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
import time
from typing import Any, Final

from fastmcp.utilities.logging import get_logger
from sqlalchemy.engine import Connection
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from postgres_mcp.exceptions import (
    ExecutionFailedError,
    InvalidLimitError,
    IterationFailedError,
    QueryTimeoutError,
)
from postgres_mcp.execute.classifier import first_keyword, has_returning_clause
from postgres_mcp.execute.models import ExecutionLimits, QueryRequest, QueryResult
from postgres_mcp.execute.normalize import normalize_argument, normalize_value
from postgres_mcp.execute.policy import READ_ONLY_KEYWORDS, check_statement

_logger = get_logger(__name__)

MAX_QUERY_DISPLAY: Final[int] = 100

# Command tags that PostgreSQL reports with a trailing row count.
_COUNTED_COMMANDS: Final[frozenset[str]] = frozenset(
    {"SELECT", "UPDATE", "DELETE", "MERGE", "FETCH", "MOVE", "COPY"}
)
# Leading keywords whose command tag is reported as SELECT.
_SELECT_LIKE: Final[frozenset[str]] = frozenset({"WITH", "VALUES", "TABLE"})


def effective_limit(default: int, override: int | None) -> int:
    """Return the row cap for one call from the server default and a per-call override.

    The override only ever tightens the default, except when the default is
    unbounded (``<= 0``). An override of 0 counts as absent.

    Raises:
        InvalidLimitError: If ``override`` is negative.
    """
    if override is None:
        return default
    if override < 0:
        msg = "maxRows must be positive"
        raise InvalidLimitError(msg)
    if override > 0 and (default <= 0 or override < default):
        return override
    return default


def command_tag(keyword: str, count: int) -> str:
    """Build a PostgreSQL-style command tag such as ``SELECT 3`` or ``INSERT 0 1``.

    For streamed statements ``count`` is the number of rows returned, so a
    truncated result reports the capped count rather than the rows the server
    produced.
    """
    if keyword == "INSERT":
        return f"INSERT 0 {count}"
    if keyword in _SELECT_LIKE:
        return f"SELECT {count}"
    if keyword in _COUNTED_COMMANDS:
        return f"{keyword} {count}"
    return keyword


def format_elapsed(seconds: float) -> str:
    """Render a duration rounded to the millisecond, e.g. ``0s``, ``12ms``, ``1m2.5s``."""
    ms = int(seconds * 1000 + 0.5)
    if ms <= 0:
        return "0s"
    if ms < 1000:
        return f"{ms}ms"

    hours, rem = divmod(ms, 3_600_000)
    minutes, rem = divmod(rem, 60_000)
    secs, frac = divmod(rem, 1000)
    text = f"{secs}.{frac:03d}".rstrip("0") + "s" if frac else f"{secs}s"
    if hours:
        return f"{hours}h{minutes}m{text}"
    if minutes:
        return f"{minutes}m{text}"
    return text


def describe_error(exc: BaseException) -> str:
    """Return the driver's message for a database error, falling back to ``str(exc)``."""
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        return str(exc.orig)
    return str(exc)


@dataclass(slots=True)
class _Consumed:
    """Rows and counters gathered while the connection is held."""

    columns: list[str] = field(default_factory=list)
    rows: list[dict[str, Any]] = field(default_factory=list)
    truncated: bool = False
    affected: int = 0


def _consume(
    conn: Connection,
    sql: str,
    params: Sequence[Any],
    limit: int,
    *,
    stream: bool,
) -> _Consumed:
    """Run the statement on a sync connection facade and read rows up to ``limit``.

    Executed through ``AsyncConnection.run_sync`` so the driver calls stay
    awaitable and cancellable.
    """
    options = {"stream_results": True} if stream else {}
    try:
        result = conn.exec_driver_sql(
            sql, tuple(params) if params else None, execution_options=options
        )
    except SQLAlchemyError as exc:
        raise ExecutionFailedError(describe_error(exc)) from exc

    out = _Consumed(affected=max(result.rowcount, 0))
    if not result.returns_rows:
        result.close()
        return out

    out.columns = list(result.keys())
    try:
        for row in result:
            if limit > 0 and len(out.rows) >= limit:
                out.truncated = True
                break
            out.rows.append(
                {col: normalize_value(val) for col, val in zip(out.columns, row, strict=False)}
            )
    except SQLAlchemyError as exc:
        raise IterationFailedError(describe_error(exc)) from exc
    finally:
        result.close()
    return out


class QueryExecutor:
    """Validate, bound and execute single SQL statements against a pooled engine.

    The engine and limits are fixed at construction and shared read-only by
    concurrent calls; each call holds its own pooled connection only for the
    duration of ``execute``.
    """

    def __init__(self, engine: AsyncEngine, limits: ExecutionLimits) -> None:
        self._engine = engine
        self._limits = limits

    async def execute(self, request: QueryRequest) -> QueryResult:
        """Execute ``request`` and return its normalized result.

        Raises:
            QueryToolError: On guardrail denial, invalid limit, execution or
                iteration failure. No partial result is produced.
        """
        sql = check_statement(request.sql, read_only=self._limits.read_only)
        limit = effective_limit(self._limits.max_rows, request.max_rows)
        params = [normalize_argument(arg) for arg in request.args]
        keyword = first_keyword(sql)
        streams = keyword in READ_ONLY_KEYWORDS or has_returning_clause(sql)

        preview = sql[:MAX_QUERY_DISPLAY] + ("..." if len(sql) > MAX_QUERY_DISPLAY else "")
        _logger.info("postgres.query: start (limit=%d, args=%d): %s", limit, len(params), preview)

        deadline = asyncio.timeout(self._limits.timeout or None)
        start = time.perf_counter()
        try:
            async with deadline:
                async with self._engine.connect() as conn:
                    consumed = await conn.run_sync(_consume, sql, params, limit, stream=streams)
                    await conn.commit()
        except TimeoutError as exc:
            if not deadline.expired():
                raise ExecutionFailedError(describe_error(exc)) from exc
            msg = f"query exceeded request timeout of {format_elapsed(self._limits.timeout)}"
            _logger.warning("postgres.query: %s", msg)
            raise QueryTimeoutError(msg) from exc
        except (SQLAlchemyError, OSError) as exc:
            _logger.warning("postgres.query: execution error: %s", exc)
            raise ExecutionFailedError(describe_error(exc)) from exc
        except (ExecutionFailedError, IterationFailedError) as exc:
            _logger.warning("postgres.query: %s", exc)
            raise
        elapsed = time.perf_counter() - start

        returned = len(consumed.rows)
        row_count = returned
        if returned == 0 and not consumed.columns:
            row_count = consumed.affected
        tag_count = returned if streams else max(consumed.affected, returned)

        _logger.info(
            "postgres.query: finished (elapsed_ms=%.1f, rows_returned=%d, truncated=%s)",
            elapsed * 1000.0,
            returned,
            consumed.truncated,
        )

        return QueryResult(
            command=command_tag(keyword, tag_count),
            rowCount=row_count,
            columns=consumed.columns,
            rows=consumed.rows,
            truncated=consumed.truncated,
            elapsed=format_elapsed(elapsed),
        )
