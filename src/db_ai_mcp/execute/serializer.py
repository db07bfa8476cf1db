"""Never-raising JSON serialization for database results.

Drivers return heterogeneous values (Decimals, buffers, driver-specific
objects, occasionally cyclic graphs). `safe_stringify` turns any of them into
JSON text, degrading through three tiers instead of raising:

1. transform the whole value and dump it;
2. transform it element by element (or field by field), replacing the parts
   that still fail;
3. return a fixed placeholder.
"""

from __future__ import annotations

import base64
from collections.abc import Callable, Mapping
import dataclasses
from datetime import UTC, date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
import json
import math
import re
import traceback
from typing import Any, Final
from uuid import UUID

from fastmcp.utilities.logging import get_logger
from pydantic import BaseModel

UNDEFINED: Final[str] = "[undefined]"
NAN: Final[str] = "[NaN]"
POS_INF: Final[str] = "[Infinity]"
NEG_INF: Final[str] = "[-Infinity]"
UNSERIALIZABLE: Final[str] = "[Unserializable]"
FALLBACK: Final[str] = "[Unable to serialize result]"

# Integers beyond this magnitude lose precision in most JSON consumers.
MAX_SAFE_INTEGER: Final[int] = 2**53 - 1

_JSON_KEY_TYPES = (str, int, float, bool, type(None))
_NOT_SCALAR: Final[object] = object()

_logger = get_logger(__name__)


def _float_token(value: float) -> float | str:
    if math.isnan(value):
        return NAN
    if math.isinf(value):
        return POS_INF if value > 0 else NEG_INF
    return value


def _int_text(value: int) -> str:
    # str() refuses very long ints (sys.set_int_max_str_digits); Decimal does not
    return format(Decimal(value), "f")


def _decimal_token(value: Decimal) -> str:
    if value.is_nan():
        return NAN
    if value.is_infinite():
        return NEG_INF if value.is_signed() else POS_INF
    return str(value)


def _callable_name(value: Callable[..., Any]) -> str:
    name = getattr(value, "__qualname__", None) or getattr(value, "__name__", None)
    return f"[Function: {name or 'anonymous'}]"


def _sorted_if_possible(items: list[Any]) -> list[Any]:
    try:
        return sorted(items)
    except TypeError:
        # mixed types: group by type name, then by canonical JSON text
        return sorted(items, key=lambda item: (type(item).__name__, _dump(item, None)))


class _Transformer:
    """Walks a value, producing a JSON-safe tree.

    Tracks the containers on the current path; re-entering one yields a
    circular marker naming the ancestor's path.
    """

    def __init__(self) -> None:
        self._paths: dict[int, str] = {}

    def transform(self, value: Any, path: str = "~") -> Any:
        scalar = self._scalar(value)
        if scalar is not _NOT_SCALAR:
            return scalar

        marker = id(value)
        if marker in self._paths:
            return f"[Circular {self._paths[marker]}]"
        self._paths[marker] = path
        try:
            return self._container(value, path)
        finally:
            del self._paths[marker]

    # ---- scalars -------------------------------------------------------------

    def _scalar(self, value: Any) -> Any:  # noqa: C901, PLR0911, PLR0912
        if value is None or isinstance(value, str | bool):
            return value
        if isinstance(value, Enum):
            raw = value.value
            return raw if isinstance(raw, str | int) and not isinstance(raw, bool) else value.name
        if isinstance(value, int):
            return value if abs(value) <= MAX_SAFE_INTEGER else _int_text(value)
        if isinstance(value, float):
            return _float_token(value)
        if isinstance(value, Decimal):
            return _decimal_token(value)
        if isinstance(value, datetime):
            if value.tzinfo is not None and value.utcoffset() is not None:
                return value.astimezone(UTC).isoformat()
            return value.isoformat()
        if isinstance(value, date | time):
            return value.isoformat()
        if isinstance(value, timedelta):
            return str(value)
        if value is Ellipsis or value is dataclasses.MISSING:
            return UNDEFINED
        if isinstance(value, UUID):
            return str(value)
        if isinstance(value, bytes | bytearray | memoryview):
            return base64.b64encode(bytes(value)).decode("ascii")
        if isinstance(value, re.Pattern):
            return value.pattern
        if isinstance(value, type) or (
            callable(value) and not isinstance(value, BaseModel | Mapping)
        ):
            return _callable_name(value)
        return _NOT_SCALAR

    # ---- containers ----------------------------------------------------------

    def _container(self, value: Any, path: str) -> Any:  # noqa: PLR0911
        if isinstance(value, BaseException):
            return {
                "name": type(value).__name__,
                "message": str(value),
                "stack": "".join(
                    traceback.format_exception(type(value), value, value.__traceback__)
                ),
            }
        if isinstance(value, Mapping):
            return self._mapping(value, path)
        if isinstance(value, set | frozenset):
            items = [self.transform(v, f"{path}[{i}]") for i, v in enumerate(value)]
            return _sorted_if_possible(items)
        if isinstance(value, list | tuple):
            return [self.transform(v, f"{path}[{i}]") for i, v in enumerate(value)]
        if isinstance(value, BaseModel):
            return self._mapping(value.model_dump(), path)
        if dataclasses.is_dataclass(value):
            fields = {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
            return self._mapping(fields, path)
        as_dict = getattr(value, "_asdict", None)
        if callable(as_dict):  # SQLAlchemy Row, namedtuple-like
            return self._mapping(as_dict(), path)
        attrs = getattr(value, "__dict__", None)
        if isinstance(attrs, dict):
            public = {k: v for k, v in attrs.items() if not k.startswith("_")}
            return self._mapping(public, path)
        return str(value)

    def _mapping(self, value: Mapping[Any, Any], path: str) -> Any:
        items = list(value.items())
        if all(isinstance(k, _JSON_KEY_TYPES) for k, _ in items):
            keys = [self._key(k) for k, _ in items]
            # 1 and "1" would collapse into one JSON key
            if len(set(keys)) == len(keys):
                return {
                    key: self.transform(v, f"{path}.{key}")
                    for key, (_, v) in zip(keys, items, strict=True)
                }
        return [
            [self.transform(k, f"{path}[{i}][0]"), self.transform(v, f"{path}[{i}][1]")]
            for i, (k, v) in enumerate(items)
        ]

    @staticmethod
    def _key(key: Any) -> str:
        if isinstance(key, str):
            return key
        if isinstance(key, float):
            token = _float_token(key)
            return token if isinstance(token, str) else json.dumps(key)
        if isinstance(key, int) and not isinstance(key, bool):
            return _int_text(key)
        return json.dumps(key)


def to_jsonable(value: Any) -> Any:
    """Return a JSON-safe copy of ``value`` (may raise on hostile objects)."""
    return _Transformer().transform(value)


def _dump(value: Any, indent: int | None) -> str:
    return json.dumps(value, indent=indent, ensure_ascii=False, allow_nan=False)


def _transform_part(value: Any, path: str) -> Any:
    try:
        return _Transformer().transform(value, path)
    except Exception:  # noqa: BLE001 - replaced with a placeholder
        try:
            return repr(value)
        except Exception:  # noqa: BLE001
            return UNSERIALIZABLE


def _piecewise(value: Any, indent: int | None) -> str:
    if isinstance(value, list | tuple | set | frozenset):
        return _dump([_transform_part(v, f"~[{i}]") for i, v in enumerate(value)], indent)
    if isinstance(value, Mapping):
        fields = dict(value.items())
    elif isinstance(getattr(value, "__dict__", None), dict):
        fields = dict(vars(value))
    else:
        return str(value)
    return _dump({str(k): _transform_part(v, f"~.{k}") for k, v in fields.items()}, indent)


def safe_stringify(value: Any, indent: int | None = None) -> str:
    """Serialize ``value`` to JSON text. Never raises."""
    try:
        return _dump(to_jsonable(value), indent)
    except Exception as exc:  # noqa: BLE001
        _logger.debug("Full serialization failed (%s); retrying piecewise", exc)
    try:
        return _piecewise(value, indent)
    except Exception as exc:  # noqa: BLE001
        _logger.warning("Result serialization failed: %s", exc)
    return FALLBACK
