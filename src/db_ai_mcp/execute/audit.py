"""Append-only audit log for executed statements."""

from __future__ import annotations

from pathlib import Path
import threading

from fastmcp.utilities.logging import get_logger

from db_ai_mcp.execute.serializer import safe_stringify
from db_ai_mcp.models import ExecutionRecord

SEPARATOR = "=" * 43

_logger = get_logger(__name__)
_locks: dict[Path, threading.Lock] = {}
_locks_guard = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    key = path.resolve()
    with _locks_guard:
        lock = _locks.get(key)
        if lock is None:
            lock = _locks[key] = threading.Lock()
        return lock


def format_entry(record: ExecutionRecord) -> str:
    """Render one log block for ``record``."""
    return (
        "\n=== Query Execution ===\n"
        f"Timestamp: {record.timestamp}\n"
        f"Query: {record.query}\n"
        f"Result: {safe_stringify(record.data, 2)}\n"
        f"{SEPARATOR}\n"
    )


def append_record(path: Path, record: ExecutionRecord) -> None:
    """Append ``record`` to ``path`` as a single whole-entry write."""
    entry = format_entry(record)
    path.parent.mkdir(parents=True, exist_ok=True)
    with _lock_for(path), path.open("a", encoding="utf-8") as fh:
        fh.write(entry)
    _logger.debug("Appended %s record to %s", record.status, path)
