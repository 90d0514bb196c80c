"""Log setup: JSON lines for production, plain text for local runs.

Both formats carry the trace id of the request being served, injected onto
every record by ``TraceContextFilter``.
"""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from pathlib import Path
import sys
from typing import Any

import orjson

from blog_search.observability.context import get_trace_context


SERVICE_NAME = "blog-search"
PLAIN_FORMAT = "%(asctime)s %(levelname)s [%(name)s] [trace=%(trace_id)s] %(message)s"

_RESERVED_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
    "trace_id",
    "span_id",
}


class TraceContextFilter(logging.Filter):
    """Copy the current trace and span ids onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = get_trace_context()
        record.trace_id = ctx.get("trace_id", "")
        record.span_id = ctx.get("span_id", "")
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record, serialised with orjson.

    Fields passed through ``extra=`` are included as top-level keys; keys
    that look like credentials are masked and long strings are cut.
    """

    REDACT_KEYS = frozenset({"password", "token", "api_key", "secret", "authorization"})
    MAX_MESSAGE_LEN = 2000
    MAX_FIELD_LEN = 500

    def format(self, record: logging.LogRecord) -> str:
        trace_id = getattr(record, "trace_id", None)
        span_id = getattr(record, "span_id", None)
        if trace_id is None:
            ctx = get_trace_context()
            trace_id, span_id = ctx.get("trace_id", ""), ctx.get("span_id", "")

        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "service": SERVICE_NAME,
            "logger": record.name,
            "message": _cut(record.getMessage(), self.MAX_MESSAGE_LEN),
            "trace_id": trace_id,
            "span_id": span_id or "",
        }
        if "." in record.name:
            entry["component"] = record.name.rsplit(".", 1)[-1]
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        entry.update(self._extra_fields(record))

        return orjson.dumps(entry, default=self._json_default).decode("utf-8")

    def _extra_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        fields: dict[str, Any] = {}
        for key, value in vars(record).items():
            if key in _RESERVED_ATTRS or key.startswith("_"):
                continue
            if key.lower() in self.REDACT_KEYS:
                fields[key] = "[REDACTED]"
            elif isinstance(value, str):
                fields[key] = _cut(value, self.MAX_FIELD_LEN)
            else:
                fields[key] = value
        return fields

    @staticmethod
    def _json_default(value: Any) -> Any:
        if isinstance(value, (set, frozenset, tuple)):
            try:
                return sorted(value)
            except TypeError:
                return list(value)
        if isinstance(value, (bytes, bytearray)):
            return value.decode("utf-8", errors="replace")
        if isinstance(value, (Path, Exception)):
            return str(value)
        return repr(value)


def _cut(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
    *,
    logger_levels: dict[str, str] | None = None,
    access_log: bool = False,
) -> None:
    """Install a single stdout handler on the root logger.

    Args:
        level: Root log level name, case-insensitive
        json_output: JSON lines when True, ``PLAIN_FORMAT`` otherwise
        logger_levels: Per-logger level overrides (logger name -> level)
        access_log: Keep uvicorn's per-request access lines at INFO
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for existing in root.handlers[:]:
        root.removeHandler(existing)

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(TraceContextFilter())
    handler.setFormatter(JsonFormatter() if json_output else logging.Formatter(PLAIN_FORMAT))
    root.addHandler(handler)

    if not access_log:
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    for name, name_level in (logger_levels or {}).items():
        logging.getLogger(name).setLevel(getattr(logging, name_level.upper(), logging.INFO))
