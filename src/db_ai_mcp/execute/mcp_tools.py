"""MCP tool registration for gated SQL execution (execute_sql).

Provides a single tool `execute_sql(sql: str)` that runs the statement through
the execution gateway: allow-list enforcement, dispatch, and audit logging.
Denials and database errors come back as `status="error"` results so the
calling agent can adjust; configuration errors propagate.
"""

from __future__ import annotations

from typing import Annotated

from fastmcp import Context, FastMCP
from fastmcp.utilities.logging import get_logger
from pydantic import Field

from db_ai_mcp.exceptions import DatabaseError, OperationDenied
from db_ai_mcp.execute.policy import classify
from db_ai_mcp.execute.runner import GatewayContext, default_context, run_execute_flow
from db_ai_mcp.execute.serializer import safe_stringify
from db_ai_mcp.models import ExecuteSqlResult

_logger = get_logger(__name__)


def register_execute_sql_tool(mcp: FastMCP, context: GatewayContext | None = None) -> None:
    """Register the gated SQL execution tool on ``mcp``."""

    gateway = context or default_context()

    @mcp.tool
    async def execute_sql(
        ctx: Context,
        sql: Annotated[
            str,
            Field(
                description=(
                    "SQL statement to execute verbatim. Only operation kinds listed in "
                    "OPERATIONS_ALLOWED (SELECT, INSERT, UPDATE, DELETE, CREATE, DROP, ALTER) "
                    "are permitted; the statement kind is taken from its leading keyword."
                )
            ),
        ],
    ) -> ExecuteSqlResult:  # pyright: ignore[reportUnusedFunction]
        """Execute one SQL statement against the configured database and return its result.

        On error, `error` explains whether the operation kind was denied or the database failed.
        """
        try:
            record = run_execute_flow(sql, context=gateway)
        except OperationDenied as exc:
            await ctx.error(str(exc))
            return ExecuteSqlResult(
                query=sql, operation=exc.kind, status="error", error=str(exc)
            )
        except DatabaseError as exc:
            await ctx.error(f"Database error: {exc}")
            return ExecuteSqlResult(
                query=sql,
                operation=classify(sql),
                timestamp=exc.record.timestamp if exc.record else None,
                status="error",
                error=str(exc),
            )

        return ExecuteSqlResult(
            query=record.query,
            operation=record.operation,
            timestamp=record.timestamp,
            result=safe_stringify(record.data, 2),
        )

    _ = execute_sql
