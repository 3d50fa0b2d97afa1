"""Models for the postgres.query MCP tool.

Request and result payloads are constructed per call and never shared across
invocations. Result fields carry the camelCase names of the tool's output
schema.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_MAX_ROWS = 200


@dataclass(frozen=True, slots=True)
class ExecutionLimits:
    """Immutable per-server execution configuration.

    ``max_rows`` of 0 means unbounded; ``timeout`` is in seconds and 0 disables
    the additional per-request deadline.
    """

    read_only: bool = False
    max_rows: int = DEFAULT_MAX_ROWS
    timeout: float = 0.0


class QueryRequest(BaseModel):
    """A single SQL statement with positional arguments and an optional row cap."""

    model_config = ConfigDict(populate_by_name=True)

    sql: str = Field(description="Statement to execute against PostgreSQL")
    args: list[Any] = Field(
        default_factory=list,
        description="Positional parameters that map to $1, $2, ...",
    )
    max_rows: int | None = Field(
        default=None,
        alias="maxRows",
        description="Override the default row limit for this call",
    )


class QueryResult(BaseModel):
    """Structured response from the postgres.query tool."""

    command: str = Field(description="Command tag reported for the statement, e.g. 'SELECT 3'")
    rowCount: int = Field(  # noqa: N815 - wire name of the output schema
        description="Rows returned, or rows affected when the statement returns no result set",
    )
    columns: list[str] = Field(
        default_factory=list, description="Result column names in execution order"
    )
    rows: list[dict[str, Any]] = Field(
        default_factory=list, description="Result records keyed by column name"
    )
    truncated: bool = Field(
        default=False, description="True when more rows existed than were returned"
    )
    elapsed: str = Field(description="Wall-clock execution time, e.g. '12ms'")
