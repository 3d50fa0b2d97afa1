"""postgres-mcp package exposing PostgreSQL to MCP agents.

Provides a Model Context Protocol (FastMCP) server with a single guarded
`postgres.query` tool, served over stdio or streamable HTTP.
"""

__version__ = "0.1.0"

from postgres_mcp.exceptions import (  # noqa: E402
    ConfigurationError,
    ConnectivityError,
    PostgresMcpError,
    QueryToolError,
)
from postgres_mcp.execute import (  # noqa: E402
    ExecutionLimits,
    QueryExecutor,
    QueryRequest,
    QueryResult,
)
from postgres_mcp.services import ConfigService, ServerSettings  # noqa: E402

__all__ = [  # noqa: RUF022
    "__version__",
    # Errors
    "ConfigurationError",
    "ConnectivityError",
    "PostgresMcpError",
    "QueryToolError",
    # Core
    "ExecutionLimits",
    "QueryExecutor",
    "QueryRequest",
    "QueryResult",
    # Services
    "ConfigService",
    "ServerSettings",
]
