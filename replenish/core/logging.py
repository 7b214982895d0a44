"""JSON logging for the replenishment service.

Every record is one JSON line carrying the request id of the HTTP call (or
job run) that produced it. Keyword context passed through ``extra=`` lands
under ``"extra"`` with API keys, connection passwords and other opaque
secrets masked.
"""

from __future__ import annotations

import json
import logging
import re
import sys
import uuid
from collections.abc import Mapping
from contextvars import ContextVar
from dataclasses import asdict, is_dataclass
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

SERVICE_NAME = "replenish"
MASK = "***"

_request_id: ContextVar[str] = ContextVar("request_id", default="")


def set_request_id(value: str | None = None) -> str:
    """Bind a request id (a fresh uuid4 if none given) and return it."""
    rid = (value or "").strip() or uuid.uuid4().hex
    _request_id.set(rid)
    return rid


def get_request_id() -> str:
    return _request_id.get()


# Keys whose values are never logged, whatever they hold
_SECRET_KEYS = frozenset(
    {"api_key", "apikey", "x-api-key", "authorization", "password", "secret", "database_url"}
)

_SECRET_PATTERNS = (
    (re.compile(r"(://[^:/@\s]+:)[^@\s]+@"), r"\1" + MASK + "@"),
    (re.compile(r"(?i)\bBearer\s+\S{10,}"), "Bearer " + MASK),
    (re.compile(r"\b[A-Za-z0-9+/=_-]{32,}\b"), MASK),
)

# Attributes every LogRecord has; anything else came from extra=
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}


def mask(value: Any) -> Any:
    """Return value with secrets replaced by ``***``, recursing into containers."""
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if is_dataclass(value) and not isinstance(value, type):
        value = asdict(value)
    if isinstance(value, Mapping):
        return {
            key: MASK if str(key).lower() in _SECRET_KEYS else mask(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple, set, frozenset)):
        return [mask(item) for item in value]
    text = str(value)
    for pattern, replacement in _SECRET_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


class JsonFormatter(logging.Formatter):
    """One JSON object per record: event name in ``msg``, context in ``extra``."""

    def __init__(self, service: str = SERVICE_NAME) -> None:
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: dict[str, Any] = {
            "ts": ts.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "service": self.service,
            "logger": record.name,
            "msg": mask(record.getMessage()),
            "request_id": get_request_id() or None,
        }
        extra = {k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRS}
        if extra:
            payload["extra"] = mask(extra)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        elif record.levelno >= logging.ERROR:
            payload["where"] = f"{record.module}.{record.funcName}:{record.lineno}"
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logging(
    level: str | int = "INFO",
    to_stdout: bool = True,
    file_path: str | None = None,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 5,
) -> None:
    """Route the root logger through JsonFormatter.

    Replaces existing root handlers, so calling it twice is harmless.

    Args:
        level: Root level name or number
        to_stdout: Emit to stdout (container logs)
        file_path: Also write a rotating JSON file here
        max_bytes: Rotation size of the file
        backup_count: Rotated files to keep

    """
    root = logging.getLogger()
    root.setLevel(level.upper() if isinstance(level, str) else level)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handlers: list[logging.Handler] = []
    if to_stdout:
        handlers.append(logging.StreamHandler(sys.stdout))
    if file_path:
        Path(file_path).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                file_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
            )
        )

    formatter = JsonFormatter()
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    # SQL echo and access lines are metrics' job
    for noisy in ("sqlalchemy.engine", "uvicorn.access", "alembic.runtime.migration"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


__all__ = [
    "setup_logging",
    "get_logger",
    "set_request_id",
    "get_request_id",
    "mask",
    "JsonFormatter",
]
