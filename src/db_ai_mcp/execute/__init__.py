"""Execute package for gated SQL execution.

Exports the policy gate, the result serializer and the execution runner.
"""

from __future__ import annotations

from .policy import authorize, classify
from .runner import (
    Gateway,
    GatewayContext,
    execute_and_print,
    execute_query,
    run_execute_flow,
)
from .serializer import safe_stringify

__all__ = [
    "Gateway",
    "GatewayContext",
    "authorize",
    "classify",
    "execute_and_print",
    "execute_query",
    "run_execute_flow",
    "safe_stringify",
]
