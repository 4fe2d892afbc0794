"""JSON responses and the health payload."""

from __future__ import annotations

import dataclasses
import enum
import json
from collections.abc import Mapping
from datetime import datetime, timezone
from uuid import UUID

from werkzeug.wrappers import Response

JSON_CONTENT_TYPE = "application/json"

_HTML_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def _format_time(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d}"
        f"T{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
    )
    if value.microsecond:
        text += f".{value.microsecond:06d}".rstrip("0")
    offset = value.utcoffset()
    seconds = int(offset.total_seconds()) if offset else 0
    if seconds == 0:
        return text + "Z"
    sign = "+" if seconds > 0 else "-"
    hours, minutes = divmod(abs(seconds) // 60, 60)
    return f"{text}{sign}{hours:02d}:{minutes:02d}"


def to_jsonable(value):
    """Convert records, enums, ids, times and raw JSON bytes into plain JSON values."""
    if isinstance(value, enum.Enum):
        return to_jsonable(value.value)
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, datetime):
        return _format_time(value)
    if isinstance(value, (bytes, bytearray)):
        return json.loads(value) if value else None
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_jsonable(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Mapping):
        return {str(to_jsonable(k)): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_jsonable(item) for item in value]
    raise TypeError(f"cannot encode {type(value).__name__} as JSON")


def _encode(payload) -> str:
    text = json.dumps(to_jsonable(payload), ensure_ascii=False, separators=(",", ":"))
    for char, escape in _HTML_ESCAPES.items():
        text = text.replace(char, escape)
    return text + "\n"


def json_response(status: int, payload) -> Response:
    """Build a JSON response; a ``None`` payload yields an empty body."""
    body = "" if payload is None else _encode(payload)
    return Response(body, status=status, content_type=JSON_CONTENT_TYPE)


def error_response(status: int, code: str, message: str) -> Response:
    """Build the standard error envelope."""
    return json_response(status, {"error": {"code": code, "message": message}})


def health_response() -> Response:
    """Build the health-check response."""
    return json_response(200, {"ok": True, "service": "api-server"})