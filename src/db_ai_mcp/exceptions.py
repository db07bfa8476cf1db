"""Custom exception hierarchy for the db-ai execution gateway.

Every error the gateway raises to its caller derives from `GatewayError`, so
entry points (CLI, MCP tool) can map them to user-facing messages without
catching unrelated exceptions.

Exception Categories:
- Configuration errors: the descriptor is missing or malformed
- Policy errors: the statement kind is not on the allow-list
- Database errors: the underlying client failed to connect or execute
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from db_ai_mcp.models import ExecutionRecord, OperationKind

INIT_HINT = "Please run 'db-ai init' first."


class GatewayError(Exception):
    """Base exception for execution gateway operations.

    `record` is populated when the failure happened after dispatch, so the
    caller can inspect the audited failure without re-reading the log.
    """

    record: ExecutionRecord | None = None


class ConfigError(GatewayError):
    """Base class for configuration resolution failures."""


class ConfigNotFound(ConfigError):
    """Raised when no configuration descriptor exists at the expected path."""

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"Configuration file not found at {path}. {INIT_HINT}")


class ConfigInvalid(ConfigError):
    """Raised when the descriptor cannot be parsed or fails validation.

    This exception is raised when:
    - The file is not valid JSON or not a JSON object
    - A required field is missing, empty, or of the wrong type
    - OPERATIONS_ALLOWED is not an array
    """

    def __init__(self, path: Path, problems: Iterable[str]) -> None:
        self.path = path
        self.problems = tuple(problems)
        detail = "; ".join(self.problems) or "invalid configuration"
        super().__init__(f"Invalid configuration in {path}: {detail}. {INIT_HINT}")


class OperationDenied(GatewayError):
    """Raised when a statement's operation kind is not on the allow-list."""

    def __init__(self, kind: OperationKind, allowed: Iterable[str]) -> None:
        self.kind = kind
        self.allowed = tuple(sorted(allowed))
        allowed_text = ", ".join(self.allowed) if self.allowed else "(none)"
        super().__init__(
            f"Operation '{kind}' is not allowed. Allowed operations: {allowed_text}"
        )


class DatabaseError(GatewayError):
    """Raised when the database client fails.

    Wraps driver and SQLAlchemy errors such as:
    - Connection or authentication failures
    - Syntax errors and unknown objects
    - Constraint violations
    - Missing dialect or driver modules
    """
