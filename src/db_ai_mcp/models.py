"""Pydantic models for the execution gateway.

Covers the persisted database target descriptor, the operation kinds the
policy gate reasons about, and the immutable execution record produced for
every dispatched statement.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, field_validator


class OperationKind(StrEnum):
    """Coarse classification of a SQL statement by its leading keyword."""

    SELECT = "SELECT"
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    CREATE = "CREATE"
    DROP = "DROP"
    ALTER = "ALTER"
    UNKNOWN = "UNKNOWN"


# Priority order used by the classifier; first prefix match wins.
CLASSIFIED_KINDS: tuple[OperationKind, ...] = (
    OperationKind.SELECT,
    OperationKind.INSERT,
    OperationKind.UPDATE,
    OperationKind.DELETE,
    OperationKind.CREATE,
    OperationKind.DROP,
    OperationKind.ALTER,
)


class DatabaseTarget(BaseModel):
    """Declarative database target loaded from ``dbConfig.json``."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    provider: str = Field(min_length=1, description="postgresql, mysql, sqlite, sqlserver, ...")
    host: str = Field(min_length=1)
    port: StrictInt
    user: str = Field(min_length=1)
    password: str = Field(min_length=1)
    database: str = Field(min_length=1)
    schema_name: str | None = Field(default=None, alias="schema")
    operations_allowed: frozenset[str] = Field(alias="OPERATIONS_ALLOWED")
    output_file_name: str | None = Field(default=None, alias="outputFileName")

    @field_validator("operations_allowed", mode="before")
    @classmethod
    def _require_array(cls, value: object) -> object:
        """Accept only an explicit sequence; normalize entries to upper case."""
        if not isinstance(value, list | tuple | set | frozenset):
            msg = "OPERATIONS_ALLOWED must be an array"
            raise ValueError(msg)  # noqa: TRY004 - surfaced as a validation error
        normalized: set[str] = set()
        for item in value:
            if not isinstance(item, str):
                msg = "OPERATIONS_ALLOWED entries must be strings"
                raise ValueError(msg)  # noqa: TRY004
            normalized.add(item.strip().upper())
        return frozenset(normalized)


class ExecutionRecord(BaseModel):
    """One audited attempt to run a statement."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    query: str = Field(description="Verbatim SQL as supplied by the caller")
    operation: OperationKind
    data: Any = Field(
        default=None,
        description="Provider-returned payload: rows, {'affectedRows': n} or {'error': msg}",
    )
    timestamp: str = Field(description="UTC ISO8601 instant the statement was dispatched")
    status: Literal["ok", "error"] = "ok"
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == "ok"


class ExecuteSqlResult(BaseModel):
    """Structured response from the execute_sql MCP tool."""

    query: StrictStr = Field(description="SQL as received")
    operation: OperationKind = Field(description="Classified operation kind")
    timestamp: str | None = Field(
        default=None, description="UTC ISO8601 dispatch time; absent when denied"
    )
    status: Literal["ok", "error"] = Field(default="ok", description="Overall status of the call")
    result: str | None = Field(
        default=None, description="Result payload serialized as indented JSON text"
    )
    error: str | None = Field(default=None, description="Denial or database error message")
