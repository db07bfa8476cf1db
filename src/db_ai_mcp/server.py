"""FastMCP server implementation for db-ai-mcp."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import dotenv
from fastmcp import FastMCP
from fastmcp.utilities.logging import get_logger
from starlette.requests import Request
from starlette.responses import JSONResponse

from db_ai_mcp.execute.mcp_tools import register_execute_sql_tool
from db_ai_mcp.execute.runner import GatewayContext

# Load environment variables
dotenv.load_dotenv()

_logger = get_logger(__name__)

gateway_context = GatewayContext()


# -- Lifespan: release database clients on shutdown ---------------------------
@asynccontextmanager
async def lifespan(_mcp_instance: FastMCP) -> AsyncGenerator[None]:
    """FastMCP lifespan context manager owning the gateway's client handles."""
    try:
        _logger.info("Gateway ready (config: %s)", gateway_context.config.config_path)
        yield
    finally:
        _logger.info("Releasing database clients during lifespan shutdown")
        gateway_context.close()


mcp = FastMCP(
    instructions=(
        "This server executes SQL statements against a configured database. "
        "Only the statement kinds allowed by the operator's configuration are "
        "permitted, and every execution is recorded in an audit log."
    ),
    lifespan=lifespan,
)

# -- Tool Registration -------------------------------------------------------
register_execute_sql_tool(mcp, gateway_context)


# -- Health Check ----------------------------------------------------------
@mcp.custom_route("/health", methods=["GET"])
async def health_check(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "healthy", "service": "db-ai-mcp"})
