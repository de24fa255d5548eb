"""Log formatters for JSON and console output."""

import json
import logging
import re
import sys
from datetime import UTC, datetime
from typing import Any

from core.logging.context import get_log_context
from core.utils.json_serializers import json_serializer

# Query parameters whose values never reach a log line
_SECRET_QUERY_PARAM = re.compile(
    r"([?&])(sig|token|key|secret|password|auth|api_key)=[^&]*",
    re.IGNORECASE,
)


def redact_url(url: str) -> str:
    """Replace secret query parameter values with [REDACTED]."""
    return _SECRET_QUERY_PARAM.sub(r"\1\2=[REDACTED]", url)


def _coerce(kind: type | None, value: Any) -> Any:
    if kind is None:
        return value
    try:
        return kind(value)
    except (ValueError, TypeError):
        return None


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line, for jq/grep and log shippers.

    Known ``extra=`` fields are copied onto the entry. Numeric fields are
    coerced to their declared type (None when that fails) so a stray string
    cannot change a column's type downstream. URL fields are redacted.
    """

    # extra= field -> coercion type (None keeps the value as given)
    FIELDS: dict[str, type | None] = {
        # Correlation
        "trace_id": None,
        "duration_ms": float,
        # HTTP
        "status_code": int,
        "http_method": None,
        "http_url": None,
        # Errors
        "error_category": None,
        "error_message": None,
        "error_type": None,
        "error": None,
        # Batching
        "batch_size": int,
        "pending": int,
        "records_received": int,
        "records_delivered": int,
        "records_requeued": int,
        "records_dropped": int,
        "batches_delivered": int,
        "batches_failed": int,
        "trigger": None,
        # Hub connection
        "connection_state": None,
        "hub_endpoint": None,
        "attempt": int,
        "delay_seconds": float,
        "casts_forwarded": int,
        # Service
        "cycle": int,
        "delta_received": int,
        "delta_delivered": int,
        "rate_casts_per_sec": float,
        "port": int,
        "worker_name": None,
    }

    REDACTED_FIELDS = frozenset({"http_url", "url"})

    # Levels that also get a file:line location
    LOCATION_LEVELS = frozenset({logging.DEBUG, logging.ERROR, logging.CRITICAL})

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, UTC)
        entry: dict[str, Any] = {
            "ts": created.strftime("%Y-%m-%dT%H:%M:%S.") + f"{created.microsecond // 1000:03d}Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        entry.update({k: v for k, v in get_log_context().items() if v})

        if record.levelno in self.LOCATION_LEVELS:
            entry["file"] = f"{record.filename}:{record.lineno}"

        for name, kind in self.FIELDS.items():
            raw = getattr(record, name, None)
            if raw is None:
                continue
            value = _coerce(kind, raw)
            if name in self.REDACTED_FIELDS and isinstance(value, str):
                value = redact_url(value)
            entry[name] = value

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__ if exc_type else None,
                "message": str(exc_value) if exc_value else None,
                "stacktrace": self.formatException(record.exc_info),
            }

        return json.dumps(entry, default=json_serializer, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """
    Single-line console output: ``time - LEVEL - [stage] - [tags] message``.

    Level names are coloured only when stdout is a terminal.
    """

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._use_colors = sys.stdout.isatty()

    def _level(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno) if self._use_colors else None
        if color is None:
            return record.levelname
        return f"{color}{record.levelname}{self.RESET}"

    def format(self, record: logging.LogRecord) -> str:
        context = get_log_context()

        head = [datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S"), self._level(record)]
        if context["stage"]:
            head.append(f"[{context['stage']}]")

        tags = []
        trace_id = getattr(record, "trace_id", None) or context["trace_id"]
        if trace_id:
            tags.append(f"[{trace_id[:8]}]")
        batch_size = getattr(record, "batch_size", None)
        if batch_size is not None:
            tags.append(f"[batch:{batch_size}]")

        body = record.getMessage()
        if record.exc_info:
            body += "\n" + self.formatException(record.exc_info)
        if tags:
            body = " ".join(tags) + " " + body

        return " - ".join(head) + " - " + body
