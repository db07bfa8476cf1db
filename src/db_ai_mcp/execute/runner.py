"""Execution flow for the db-ai gateway.

This module provides a small, dependency-injected runner that:
- Loads and validates the database target
- Classifies the statement and enforces the allow-list
- Dispatches through the client registry (reads vs. writes)
- Records every dispatched attempt, success or failure, in the audit log
"""

from __future__ import annotations

import atexit
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
import threading
import time
from types import TracebackType
from typing import Any, Final

import click
from fastmcp.utilities.logging import get_logger

from db_ai_mcp.exceptions import GatewayError
from db_ai_mcp.execute.audit import append_record
from db_ai_mcp.execute.policy import authorize, classify
from db_ai_mcp.execute.serializer import safe_stringify
from db_ai_mcp.models import DatabaseTarget, ExecutionRecord, OperationKind
from db_ai_mcp.services.client_registry import ClientRegistry
from db_ai_mcp.services.config_service import ConfigService

MAX_QUERY_DISPLAY: Final[int] = 200

_logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _preview(sql: str) -> str:
    return sql[:MAX_QUERY_DISPLAY] + ("..." if len(sql) > MAX_QUERY_DISPLAY else "")


@dataclass(slots=True)
class GatewayContext:
    """Resolved collaborators shared by every execution in a process.

    Use as a context manager (or call `close`) to release client handles.
    """

    config: ConfigService = field(default_factory=ConfigService)
    clients: ClientRegistry = field(default_factory=ClientRegistry)
    clock: Callable[[], datetime] = _utcnow

    def close(self) -> None:
        self.clients.close()

    def __enter__(self) -> GatewayContext:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


def _dispatch(
    context: GatewayContext, operation: OperationKind, sql: str, target: DatabaseTarget
) -> Any:
    client = context.clients.get_client(target)
    if operation is OperationKind.SELECT:
        return client.execute_read(sql)
    return {"affectedRows": client.execute_write(sql)}


def run_execute_flow(sql: str, *, context: GatewayContext) -> ExecutionRecord:
    """Authorize and execute ``sql`` against the configured target.

    Raises:
        ConfigNotFound, ConfigInvalid: Before any side effect
        OperationDenied: Before any client is created or called; nothing is logged
        DatabaseError: After the failure has been recorded in the audit log
    """
    _logger.info("execute: %s", _preview(sql))

    target = context.config.load()
    operation = classify(sql)
    authorize(operation, target.operations_allowed)

    output_path = context.config.output_path(target)
    timestamp = context.clock().isoformat()
    start = time.perf_counter()
    try:
        data = _dispatch(context, operation, sql, target)
    except Exception as exc:
        elapsed_ms = (time.perf_counter() - start) * 1000.0
        message = str(exc)
        _logger.warning("Execution error after %.1f ms: %s", elapsed_ms, message)
        record = ExecutionRecord(
            query=sql,
            operation=operation,
            data={"error": message},
            timestamp=timestamp,
            status="error",
            error=message,
        )
        if output_path is not None:
            try:
                append_record(output_path, record)
            except OSError as log_exc:
                _logger.warning("Could not write audit log %s: %s", output_path, log_exc)
        if isinstance(exc, GatewayError):
            exc.record = record
        raise

    elapsed_ms = (time.perf_counter() - start) * 1000.0
    _logger.info("Execution finished (operation=%s, elapsed_ms=%.1f)", operation, elapsed_ms)
    record = ExecutionRecord(query=sql, operation=operation, data=data, timestamp=timestamp)
    if output_path is not None:
        append_record(output_path, record)
    return record


class Gateway:
    """Front door for callers that hold a context for their whole lifetime.

    Wraps `run_execute_flow` so call sites read ``gateway.execute(sql)``.
    """

    def __init__(self, context: GatewayContext | None = None) -> None:
        self.context = context or GatewayContext()

    def execute(self, sql: str) -> ExecutionRecord:
        """Authorize, dispatch and audit ``sql``; see `run_execute_flow`."""
        return run_execute_flow(sql, context=self.context)

    def close(self) -> None:
        self.context.close()

    def __enter__(self) -> Gateway:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


# ---- process default context -------------------------------------------------

_default_context: GatewayContext | None = None
_default_lock = threading.Lock()


def default_context() -> GatewayContext:
    """Return the process-wide context, released automatically at exit."""
    global _default_context  # noqa: PLW0603
    if _default_context is None:
        with _default_lock:
            if _default_context is None:
                _default_context = GatewayContext()
                atexit.register(_default_context.close)
    return _default_context


def execute_query(sql: str, context: GatewayContext | None = None) -> ExecutionRecord:
    """Execute ``sql`` with ``context`` or the process default context."""
    return run_execute_flow(sql, context=context or default_context())


def execute_and_print(sql: str, context: GatewayContext | None = None) -> ExecutionRecord:
    """Execute ``sql`` and echo the result block to stdout."""
    record = execute_query(sql, context)
    click.echo("\n=== Query Result ===")
    click.echo(f"Timestamp: {record.timestamp}")
    click.echo(f"Query: {record.query}")
    click.echo("Result:")
    click.echo(safe_stringify(record.data, 2))
    click.echo("===================\n")
    return record
