"""Command-line entrypoint for db-ai.

Subcommands:
- ``init``: scaffold ``.db-ai/dbConfig.json`` and ``CONFIG_NOTES.md``
- ``run --sql``: execute one statement through the gateway and print the result
- ``serve``: start the FastMCP server exposing the ``execute_sql`` tool
"""

from __future__ import annotations

import click
import dotenv
from fastmcp.utilities.logging import get_logger

from db_ai_mcp.exceptions import GatewayError
from db_ai_mcp.execute.runner import Gateway, execute_and_print
from db_ai_mcp.services.config_service import ConfigService

TRANSPORTS = ("stdio", "http", "sse")

_logger = get_logger(__name__)


@click.group("db-ai")
@click.version_option(package_name="db-ai-mcp")
def main() -> None:
    """Let AI agents run allow-listed SQL against your database."""
    dotenv.load_dotenv()


@main.command("init")
@click.option("--force", is_flag=True, help="Overwrite an existing configuration.")
def init_command(*, force: bool) -> None:
    """Initialize the db-ai configuration folder."""
    config = ConfigService()
    if not config.init(force=force):
        click.secho(f"⚠ Configuration file already exists: {config.config_path}", fg="yellow")
        click.secho("Use --force to replace it with the template.", fg="yellow")
        return
    click.secho(f"✓ Created {config.config_path}", fg="green")
    click.secho(f"✓ Notes in {config.notes_path}", fg="green")
    click.secho("Edit it with your database credentials and allowed operations.", fg="blue")


@main.command("run")
@click.option("--sql", "sql", required=True, help="SQL query to execute.")
def run_command(sql: str) -> None:
    """Execute a SQL query."""
    click.secho("Executing SQL query...", fg="blue")
    with Gateway() as gateway:
        try:
            execute_and_print(sql, gateway.context)
        except GatewayError as exc:
            click.secho(f"Error executing query: {exc}", fg="red", err=True)
            raise SystemExit(1) from exc
    click.secho("✓ Query executed successfully", fg="green")


@main.command("serve")
@click.option(
    "--transport",
    type=click.Choice(TRANSPORTS),
    default="stdio",
    show_default=True,
    help="MCP transport; http and sse also expose GET /health.",
)
@click.option("--host", default="127.0.0.1", show_default=True, help="Bind address (http/sse).")
@click.option("--port", default=8000, type=int, show_default=True, help="Bind port (http/sse).")
def serve_command(transport: str, host: str, port: int) -> None:
    """Start the db-ai FastMCP server."""
    from db_ai_mcp.server import mcp  # noqa: PLC0415 - server import loads dotenv and tools

    try:
        if transport == "stdio":
            mcp.run()
        else:
            _logger.info("Serving %s on %s:%d", transport, host, port)
            mcp.run(transport=transport, host=host, port=port)
    except KeyboardInterrupt:
        _logger.info("Interrupted by user. Exiting cleanly.")


if __name__ == "__main__":
    main()
