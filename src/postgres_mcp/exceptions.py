"""Exception hierarchy for postgres-mcp.

Two families of errors are defined here:

- Process-level errors raised while configuring or starting the server
  (``ConfigurationError``, ``ConnectivityError``).
- Request-level errors raised by the ``postgres.query`` tool. They derive from
  ``QueryToolError`` and are always local to a single tool call: the adapter
  converts them into MCP tool errors and the server keeps serving.
"""

from __future__ import annotations


class PostgresMcpError(Exception):
    """Base exception for all postgres-mcp errors."""


class ConfigurationError(PostgresMcpError, ValueError):
    """Raised when an environment variable or CLI flag holds an invalid value."""


class ConnectivityError(PostgresMcpError):
    """Raised when the startup connectivity check against PostgreSQL fails."""


class QueryToolError(PostgresMcpError):
    """Base exception for failures of a single ``postgres.query`` call.

    No partial result ever accompanies one of these errors.
    """


class EmptyStatementError(QueryToolError):
    """Raised when the SQL text is blank after trimming."""


class MultiStatementError(QueryToolError):
    """Raised when more than one statement is detected in the SQL text."""


class MutatingStatementError(QueryToolError):
    """Raised when a non read-only statement is attempted in read-only mode.

    The check is based on the leading keyword only, so writable CTEs
    (``WITH ... INSERT``) are not detected.
    """


class InvalidLimitError(QueryToolError):
    """Raised when a negative per-call row limit is requested."""


class ExecutionFailedError(QueryToolError):
    """Raised when PostgreSQL rejects or fails the statement.

    Covers constraint violations, syntax errors and connectivity loss. The
    message carries the driver's error text unchanged and the original
    exception is chained as ``__cause__``.
    """


class QueryTimeoutError(ExecutionFailedError):
    """Raised when the configured per-request timeout elapses."""


class IterationFailedError(QueryToolError):
    """Raised when reading result rows fails after execution began."""
