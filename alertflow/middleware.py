"""HTTP helpers: CORS headers and structured request log lines."""

from __future__ import annotations

import json
from datetime import datetime, timedelta

_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, GET, OPTIONS, PUT, DELETE, UPDATE",
    "Access-Control-Allow-Headers": (
        "Origin, X-Requested-With, Content-Type, Accept, Authorization, TenantID"
    ),
    "Access-Control-Expose-Headers": (
        "Content-Length, Access-Control-Allow-Origin, Access-Control-Allow-Headers, "
        "Cache-Control, Content-Language, Content-Type"
    ),
    "Access-Control-Allow-Credentials": "true",
}

NO_CONTENT = 204


def cors_headers(method: str, origin: str | None) -> tuple[dict[str, str], int | None]:
    """Headers to add for a request, and 204 when a preflight should end it."""
    headers = dict(_CORS_HEADERS) if origin else {}
    status = NO_CONTENT if method == "OPTIONS" else None
    return headers, status


def log_level(status_code: int) -> str:
    if status_code >= 500:
        return "error"
    if status_code >= 400:
        return "warn"
    if status_code >= 300:
        return "debug"
    return "info"


def _rfc3339(timestamp: datetime) -> str:
    if timestamp.tzinfo is None:
        timestamp = timestamp.astimezone()
    text = timestamp.replace(microsecond=0).isoformat()
    if timestamp.utcoffset() == timedelta(0):
        text = text[: -len("+00:00")] + "Z"
    return text


def request_log_line(
    status_code: int, client_ip: str, method: str, path: str, timestamp: datetime
) -> str:
    """One JSON log line, newline-terminated, describing a handled request."""
    data = {
        "level": log_level(status_code),
        "statusCode": status_code,
        "clientIP": client_ip,
        "method": method,
        "path": path,
        "time": _rfc3339(timestamp),
    }
    text = json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    text = text.replace("<", "\\u003c").replace(">", "\\u003e").replace("&", "\\u0026")
    return text + "\n"