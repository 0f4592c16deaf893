"""Structured logging for PawCalm workers.

Controlled via PAWCALM_LOG_FORMAT env var: "json" (default) or "text".

Every record carries the job and subject it was logged for. The worker opens
a ``log_context`` around each job and the reminder sweep narrows it per dog;
``ContextFilter`` copies the active context onto records as ``pawcalm_*``
attributes, next to any ``pawcalm_*`` extras passed at the call site.
"""

import json
import logging
import sys
import traceback
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

ATTR_PREFIX = "pawcalm_"
CONTEXT_FIELDS = ("job_id", "job_type", "subject_id")

_log_context: ContextVar[dict[str, Any]] = ContextVar("pawcalm_log_context", default={})


@contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """Attach fields to every record logged inside the block. None values are dropped."""
    merged = {**_log_context.get(), **{k: v for k, v in fields.items() if v is not None}}
    token = _log_context.set(merged)
    try:
        yield
    finally:
        _log_context.reset(token)


class ContextFilter(logging.Filter):
    """Copy the active log context onto records; call-site extras win."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _log_context.get().items():
            attr = ATTR_PREFIX + key
            if not hasattr(record, attr):
                setattr(record, attr, value)
        return True


def record_context(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key.removeprefix(ATTR_PREFIX): value
        for key, value in record.__dict__.items()
        if key.startswith(ATTR_PREFIX)
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per line; job_id, job_type and subject_id are always present."""

    def format(self, record: logging.LogRecord) -> str:
        context = record_context(record)
        log_entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            log_entry[field] = context.pop(field, None)
        if context:
            log_entry["context"] = context

        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = "".join(traceback.format_exception(*record.exc_info))

        return json.dumps(log_entry, default=str)


class TextFormatter(logging.Formatter):
    """Plaintext lines with the context appended as ``[key=value ...]``."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)s %(name)s: %(message)s")

    def formatMessage(self, record: logging.LogRecord) -> str:
        line = super().formatMessage(record)
        context = record_context(record)
        if not context:
            return line
        pairs = " ".join(f"{key}={value}" for key, value in sorted(context.items()))
        return f"{line} [{pairs}]"


def setup_logging(log_format: str, level: int = logging.INFO) -> None:
    """Configure the root logger with either JSON or plaintext format."""
    root = logging.getLogger()
    root.setLevel(level)

    # Remove existing handlers to avoid duplicate output
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.addFilter(ContextFilter())
    handler.setFormatter(JSONFormatter() if log_format == "json" else TextFormatter())

    root.addHandler(handler)
