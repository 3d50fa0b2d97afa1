"""Guardrail policy for the postgres.query tool."""

from __future__ import annotations

from typing import Final

from postgres_mcp.exceptions import (
    EmptyStatementError,
    MultiStatementError,
    MutatingStatementError,
)
from postgres_mcp.execute.classifier import first_keyword, is_single_statement

# Leading keywords accepted in read-only mode. These are also the statements
# that produce a result set, which the runner streams.
READ_ONLY_KEYWORDS: Final[frozenset[str]] = frozenset(
    {"SELECT", "WITH", "SHOW", "EXPLAIN", "VALUES", "TABLE"}
)


def is_read_only_statement(sql: str) -> bool:
    """Return True when the leading keyword of ``sql`` is in the read-only allow-set."""
    keyword = first_keyword(sql)
    return bool(keyword) and keyword in READ_ONLY_KEYWORDS


def check_statement(sql: str, *, read_only: bool) -> str:
    """Validate ``sql`` against the guardrails and return it trimmed.

    Rules are applied in order and the first failure wins: non-empty text,
    a single statement, and (in read-only mode) an allow-listed leading
    keyword.

    Raises:
        EmptyStatementError: If the SQL is blank.
        MultiStatementError: If more than one statement is present.
        MutatingStatementError: If read-only mode rejects the statement.
    """
    text = sql.strip()
    if not text:
        msg = "sql must not be empty"
        raise EmptyStatementError(msg)
    if not is_single_statement(text):
        msg = "only a single SQL statement is supported per call"
        raise MultiStatementError(msg)
    if read_only and not is_read_only_statement(text):
        msg = "mutating statements are disabled in read-only mode"
        raise MutatingStatementError(msg)
    return text
