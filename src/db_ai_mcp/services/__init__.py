"""Services package for db-ai-mcp.

Main Components:
- ConfigService: Configuration descriptor loading and environment settings
- ClientRegistry: Lazily-created database clients, one per connection string
- build_connection_string: Provider-specific connection URIs
"""

from .client_registry import ClientRegistry, SqlAlchemyClient, SqlClient
from .config_service import ConfigService
from .connection import build_connection_string

__all__ = [
    "ClientRegistry",
    "ConfigService",
    "SqlAlchemyClient",
    "SqlClient",
    "build_connection_string",
]
