from __future__ import annotations

import asyncio
from collections.abc import Callable
import json
from pathlib import Path
from typing import Any

from fastmcp import Client, FastMCP

from db_ai_mcp.execute.mcp_tools import register_execute_sql_tool
from db_ai_mcp.execute.runner import GatewayContext

WriteConfig = Callable[..., Path]


def _call(context: GatewayContext, sql: str) -> dict[str, Any]:
    mcp = FastMCP("test")
    register_execute_sql_tool(mcp, context)

    async def _run() -> dict[str, Any]:
        async with Client(mcp) as client:
            result = await client.call_tool("execute_sql", {"sql": sql})
            return dict(result.structured_content or {})

    return asyncio.run(_run())


def test_execute_sql_tool_success(context: GatewayContext, write_config: WriteConfig) -> None:
    write_config()
    payload = _call(context, "SELECT id, name FROM users")
    assert payload["status"] == "ok"
    assert payload["operation"] == "SELECT"
    assert '"name": "a"' in payload["result"]


def test_execute_sql_tool_denial(context: GatewayContext, write_config: WriteConfig) -> None:
    write_config(OPERATIONS_ALLOWED=["SELECT"])
    payload = _call(context, "DELETE FROM users")
    assert payload["status"] == "error"
    assert payload["operation"] == "DELETE"
    assert "not allowed" in payload["error"]
    assert payload.get("timestamp") is None


def test_execute_sql_tool_database_error(
    context: GatewayContext, write_config: WriteConfig, config_dir: Path
) -> None:
    write_config()
    payload = _call(context, "SELECT * FROM missing_table")

    assert payload["status"] == "error"
    assert payload["operation"] == "SELECT"
    assert "missing_table" in payload["error"]
    assert payload["timestamp"] == "2024-01-01T00:00:01+00:00"
    log = (config_dir / "output.log").read_text(encoding="utf-8")
    assert "Query: SELECT * FROM missing_table" in log


def test_health_route_reports_service() -> None:
    from db_ai_mcp.server import health_check  # noqa: PLC0415

    response = asyncio.run(health_check(None))  # type: ignore[arg-type]

    assert response.status_code == 200
    assert json.loads(bytes(response.body)) == {"status": "healthy", "service": "db-ai-mcp"}
