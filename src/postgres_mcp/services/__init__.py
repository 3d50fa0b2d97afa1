"""Services package for postgres-mcp.

Main Components:
- ConfigService: Configuration and database connection management
- ServerSettings: Immutable process-level settings
"""

from .config_service import ConfigService, ServerSettings

__all__ = [
    "ConfigService",
    "ServerSettings",
]
