"""Shared fixtures: a file-backed SQLite async engine standing in for the pool."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from pathlib import Path
import time

import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import AsyncAdaptedQueuePool


def _register_functions(dbapi_connection: object, _record: object) -> None:
    # sleep(seconds) lets tests hold a statement in flight.
    dbapi_connection.create_function("sleep", 1, time.sleep)  # type: ignore[attr-defined]


@pytest_asyncio.fixture
async def engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine]:
    eng = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        poolclass=AsyncAdaptedQueuePool,
    )
    event.listen(eng.sync_engine, "connect", _register_functions)
    async with eng.begin() as conn:
        await conn.exec_driver_sql("CREATE TABLE t(id INTEGER PRIMARY KEY, name TEXT)")
        await conn.exec_driver_sql("INSERT INTO t(name) VALUES ('Alice'),('Bob'),('Charlie')")
    try:
        yield eng
    finally:
        await eng.dispose()

