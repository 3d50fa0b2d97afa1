"""Value normalization between MCP JSON payloads and database drivers.

Inbound: request arguments are narrowed before binding (integral floats become
ints). Outbound: driver values are mapped per cell onto JSON-safe values.
"""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

_JSON_NATIVE: tuple[type, ...] = (str, int, float, bool, dict)


def normalize_argument(arg: Any) -> Any:
    """Normalize a single request argument before it is bound as a parameter.

    JSON numbers arrive as floats for clients that do not distinguish integer
    types; those without a fractional part are narrowed to ``int``.
    """
    if isinstance(arg, float):
        if arg.is_integer():
            return int(arg)
        return arg
    if isinstance(arg, dict):
        return {key: normalize_argument(val) for key, val in arg.items()}
    if isinstance(arg, list):
        return [normalize_argument(val) for val in arg]
    return arg


def format_timestamp(value: datetime) -> str:
    """Render a timestamp as UTC RFC 3339 with trimmed fractional seconds.

    Naive datetimes (``timestamp without time zone``) are taken as UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    value = value.astimezone(UTC)
    text = value.strftime("%Y-%m-%dT%H:%M:%S")
    if value.microsecond:
        text += f".{value.microsecond:06d}".rstrip("0")
    return text + "Z"


def normalize_value(value: Any) -> Any:
    """Map one database value onto a transport-safe JSON value."""
    if value is None:
        return None
    if isinstance(value, bytes | bytearray | memoryview):
        return bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, list | tuple):
        # array columns
        return [normalize_value(item) for item in value]
    if isinstance(value, _JSON_NATIVE):
        return value
    return str(value)
