"""db-ai-mcp package for gated SQL execution.

Lets an external caller (commonly an AI agent) run SQL against a configured
database, restricted to an allow-list of statement kinds, with every execution
recorded in an append-only audit log.
"""

from db_ai_mcp.exceptions import (
    ConfigInvalid,
    ConfigNotFound,
    DatabaseError,
    GatewayError,
    OperationDenied,
)
from db_ai_mcp.execute import (
    Gateway,
    GatewayContext,
    execute_and_print,
    execute_query,
    run_execute_flow,
    safe_stringify,
)
from db_ai_mcp.models import DatabaseTarget, ExecutionRecord, OperationKind
from db_ai_mcp.services import ClientRegistry, ConfigService

__all__ = [  # noqa: RUF022
    # Core models
    "DatabaseTarget",
    "ExecutionRecord",
    "OperationKind",
    # Errors
    "ConfigInvalid",
    "ConfigNotFound",
    "DatabaseError",
    "GatewayError",
    "OperationDenied",
    # Services
    "ClientRegistry",
    "ConfigService",
    # Execution
    "Gateway",
    "GatewayContext",
    "execute_and_print",
    "execute_query",
    "run_execute_flow",
    "safe_stringify",
]
