"""Operation classification and allow-list policy gate.

Classification is a leading-keyword heuristic, not a parser: comments before
the keyword, multi-statement text and dialect extensions are not handled and
fall through to UNKNOWN or to the first keyword's kind.
"""

from __future__ import annotations

from collections.abc import Collection

from fastmcp.utilities.logging import get_logger

from db_ai_mcp.exceptions import OperationDenied
from db_ai_mcp.models import CLASSIFIED_KINDS, OperationKind

_logger = get_logger(__name__)


def classify(sql: str) -> OperationKind:
    """Return the operation kind of ``sql`` by its leading keyword."""
    normalized = str(sql).strip().upper()
    for kind in CLASSIFIED_KINDS:
        if normalized.startswith(kind.value):
            return kind
    return OperationKind.UNKNOWN


def authorize(kind: OperationKind, allowed: Collection[str]) -> None:
    """Raise `OperationDenied` unless ``kind`` is on the allow-list."""
    if kind.value in allowed:
        return
    _logger.warning("Denied %s statement (allowed: %s)", kind, ",".join(sorted(allowed)) or "-")
    raise OperationDenied(kind, allowed)
