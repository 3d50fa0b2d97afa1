"""Execute tool package for direct SQL execution in MCP.

Exports typed models, the executor and the FastMCP registration helper.
"""

from __future__ import annotations

from .mcp_tools import TOOL_NAME, register_query_tool
from .models import ExecutionLimits, QueryRequest, QueryResult
from .runner import QueryExecutor, effective_limit

__all__ = [
    "TOOL_NAME",
    "ExecutionLimits",
    "QueryExecutor",
    "QueryRequest",
    "QueryResult",
    "effective_limit",
    "register_query_tool",
]
