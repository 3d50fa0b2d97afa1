from __future__ import annotations

import asyncio
from collections.abc import Iterator
import re
import time

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine

from postgres_mcp.exceptions import (
    ExecutionFailedError,
    InvalidLimitError,
    IterationFailedError,
    MultiStatementError,
    MutatingStatementError,
    QueryTimeoutError,
)
from postgres_mcp.execute.models import ExecutionLimits, QueryRequest
from postgres_mcp.execute.runner import (
    QueryExecutor,
    _consume,
    command_tag,
    effective_limit,
    format_elapsed,
)


def _checked_out(engine: AsyncEngine) -> int:
    return engine.sync_engine.pool.checkedout()  # type: ignore[attr-defined]


class _NoConnectEngine:
    """Engine double that fails the test if a connection is requested."""

    def connect(self) -> None:
        msg = "connection must not be acquired"
        raise AssertionError(msg)


def test_effective_limit() -> None:
    assert effective_limit(200, None) == 200
    assert effective_limit(200, 50) == 50
    assert effective_limit(0, 10) == 10
    assert effective_limit(200, 500) == 200
    assert effective_limit(200, 0) == 200
    assert effective_limit(0, None) == 0
    with pytest.raises(InvalidLimitError, match="maxRows"):
        effective_limit(200, -1)


def test_command_tag() -> None:
    assert command_tag("SELECT", 3) == "SELECT 3"
    assert command_tag("WITH", 2) == "SELECT 2"
    assert command_tag("UPDATE", 5) == "UPDATE 5"
    assert command_tag("INSERT", 1) == "INSERT 0 1"
    assert command_tag("CREATE", 0) == "CREATE"
    assert command_tag("", 0) == ""


def test_format_elapsed() -> None:
    assert format_elapsed(0) == "0s"
    assert format_elapsed(0.0004) == "0s"
    assert format_elapsed(0.012) == "12ms"
    assert format_elapsed(0.9996) == "1s"
    assert format_elapsed(1.5) == "1.5s"
    assert format_elapsed(123.004) == "2m3.004s"
    assert format_elapsed(3600) == "1h0m0s"


def test_consume_wraps_row_iteration_errors() -> None:
    class _Result:
        returns_rows = True
        rowcount = -1
        closed = False

        def keys(self) -> list[str]:
            return ["id"]

        def __iter__(self) -> Iterator[tuple[int]]:
            yield (1,)
            raise OperationalError("FETCH", None, Exception("connection lost"))

        def close(self) -> None:
            self.closed = True

    class _Connection:
        def __init__(self, result: _Result) -> None:
            self.result = result

        def exec_driver_sql(self, *_args: object, **_kwargs: object) -> _Result:
            return self.result

    result = _Result()
    with pytest.raises(IterationFailedError, match="connection lost"):
        _consume(_Connection(result), "SELECT id FROM t", [], 10, stream=True)  # type: ignore[arg-type]
    assert result.closed is True


@pytest.mark.asyncio
async def test_select_with_truncation(engine: AsyncEngine) -> None:
    executor = QueryExecutor(engine, ExecutionLimits(max_rows=2))

    result = await executor.execute(QueryRequest(sql="SELECT id, name FROM t ORDER BY id"))

    assert result.columns == ["id", "name"]
    assert result.rows == [{"id": 1, "name": "Alice"}, {"id": 2, "name": "Bob"}]
    assert result.rowCount == 2
    assert result.truncated is True
    assert result.command == "SELECT 2"
    assert re.fullmatch(r"\d+(ms|s)|\d+\.\d+s", result.elapsed)
    assert _checked_out(engine) == 0


@pytest.mark.asyncio
async def test_result_of_exactly_limit_rows_is_not_truncated(engine: AsyncEngine) -> None:
    executor = QueryExecutor(engine, ExecutionLimits(max_rows=3))

    result = await executor.execute(QueryRequest(sql="SELECT id FROM t;"))

    assert result.rowCount == 3
    assert result.truncated is False


@pytest.mark.asyncio
async def test_per_call_limit_only_tightens(engine: AsyncEngine) -> None:
    executor = QueryExecutor(engine, ExecutionLimits(max_rows=200))

    tight = await executor.execute(QueryRequest(sql="SELECT id FROM t ORDER BY id", max_rows=1))
    assert tight.rows == [{"id": 1}]
    assert tight.truncated is True

    loose = await executor.execute(QueryRequest(sql="SELECT id FROM t", maxRows=500))
    assert loose.rowCount == 3
    assert loose.truncated is False


@pytest.mark.asyncio
async def test_unbounded_default(engine: AsyncEngine) -> None:
    executor = QueryExecutor(engine, ExecutionLimits(max_rows=0))

    result = await executor.execute(QueryRequest(sql="SELECT id FROM t"))

    assert result.rowCount == 3
    assert result.truncated is False


@pytest.mark.asyncio
async def test_arguments_are_normalized_before_binding(engine: AsyncEngine) -> None:
    executor = QueryExecutor(engine, ExecutionLimits())

    whole = await executor.execute(QueryRequest(sql="SELECT typeof(?) AS kind", args=[3.0]))
    frac = await executor.execute(QueryRequest(sql="SELECT typeof(?) AS kind", args=[3.5]))

    assert whole.rows == [{"kind": "integer"}]
    assert frac.rows == [{"kind": "real"}]


@pytest.mark.asyncio
async def test_cells_are_normalized(engine: AsyncEngine) -> None:
    executor = QueryExecutor(engine, ExecutionLimits())

    result = await executor.execute(QueryRequest(sql="SELECT X'68656C6C6F' AS b, NULL AS n"))

    assert result.rows == [{"b": "hello", "n": None}]


@pytest.mark.asyncio
async def test_update_reports_affected_rows(engine: AsyncEngine) -> None:
    executor = QueryExecutor(engine, ExecutionLimits())

    result = await executor.execute(
        QueryRequest(sql="UPDATE t SET name = ? WHERE id <= ?", args=["x", 2.0])
    )

    assert result.command == "UPDATE 2"
    assert result.rowCount == 2
    assert result.columns == []
    assert result.rows == []
    assert result.truncated is False

    check = await executor.execute(
        QueryRequest(sql="SELECT count(*) AS n FROM t WHERE name = 'x'")
    )
    assert check.rows == [{"n": 2}]


@pytest.mark.asyncio
async def test_insert_and_ddl_command_tags(engine: AsyncEngine) -> None:
    executor = QueryExecutor(engine, ExecutionLimits())

    inserted = await executor.execute(QueryRequest(sql="INSERT INTO t(name) VALUES ('Dana')"))
    created = await executor.execute(QueryRequest(sql="CREATE TABLE u(a INTEGER)"))

    assert inserted.command == "INSERT 0 1"
    assert inserted.rowCount == 1
    assert created.command == "CREATE"
    assert created.rowCount == 0


@pytest.mark.asyncio
async def test_guardrail_denial_acquires_no_connection() -> None:
    executor = QueryExecutor(_NoConnectEngine(), ExecutionLimits(read_only=True))  # type: ignore[arg-type]

    with pytest.raises(MutatingStatementError):
        await executor.execute(QueryRequest(sql="DELETE FROM t"))
    with pytest.raises(MultiStatementError):
        await executor.execute(QueryRequest(sql="SELECT 1; SELECT 2"))
    with pytest.raises(InvalidLimitError):
        await executor.execute(QueryRequest(sql="SELECT 1", max_rows=-5))


@pytest.mark.asyncio
async def test_execution_error_is_surfaced_and_connection_released(engine: AsyncEngine) -> None:
    executor = QueryExecutor(engine, ExecutionLimits())

    with pytest.raises(ExecutionFailedError, match="no such table: missing") as excinfo:
        await executor.execute(QueryRequest(sql="SELECT * FROM missing"))

    assert excinfo.value.__cause__ is not None
    assert _checked_out(engine) == 0


@pytest.mark.asyncio
async def test_timeout_aborts_statement(engine: AsyncEngine) -> None:
    executor = QueryExecutor(engine, ExecutionLimits(timeout=0.05))

    start = time.perf_counter()
    with pytest.raises(QueryTimeoutError, match="timeout"):
        await executor.execute(QueryRequest(sql="SELECT sleep(0.5)"))

    assert time.perf_counter() - start < 5.0
    assert _checked_out(engine) == 0


@pytest.mark.asyncio
async def test_caller_cancellation_releases_connection(engine: AsyncEngine) -> None:
    executor = QueryExecutor(engine, ExecutionLimits())

    task = asyncio.create_task(executor.execute(QueryRequest(sql="SELECT sleep(0.5)")))
    await asyncio.sleep(0.1)
    task.cancel()
    start = time.perf_counter()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert time.perf_counter() - start < 5.0
    assert _checked_out(engine) == 0


@pytest.mark.asyncio
async def test_returning_rows_are_capped_at_the_limit(engine: AsyncEngine) -> None:
    executor = QueryExecutor(engine, ExecutionLimits(max_rows=2))

    result = await executor.execute(QueryRequest(sql="DELETE FROM t RETURNING id"))

    assert result.command == "DELETE 2"
    assert result.columns == ["id"]
    assert len(result.rows) == 2
    assert result.rowCount == 2
    assert result.truncated is True
    assert _checked_out(engine) == 0
