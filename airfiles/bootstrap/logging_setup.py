"""Logging for the file server: JSON lines, correlation ids and redaction."""

import json
import logging
import re
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterable, Optional

from airfiles.domain.correlation_id import CorrelationLoggerAdapter

LOGGER_NAME = "airfiles"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(correlation_id)s] %(name)s :: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
MAX_BYTES = 10 * 1024 * 1024
BACKUP_COUNT = 5
REDACTED = "[REDACTED]"

SENSITIVE_PATTERNS = [
    re.compile(r"(?i)(authorization|token|key|signature|password|secret|api[_-]?key)"),
    re.compile(r"\b[A-Fa-f0-9]{32,}\b"),
    re.compile(r"\b[A-Za-z0-9+/]{32,}={0,2}\b"),
]

# Record attributes copied into the JSON line when present.
EXTRA_KEYS = (
    "client",
    "method",
    "route",
    "status_code",
    "bytes_out",
    "duration_ms",
    "range",
    "path",
    "error_type",
    "errno",
    "host",
    "port",
    "base_url",
    "shared_paths",
    "auth_enabled",
    "state",
    "previous_state",
    "log_destination",
    "log_level",
    "socket_timeout",
    "shutdown_grace_seconds",
    "remaining_workers",
    "signal",
    "target",
    "shadowed_by",
    "use_json",
)
# Request targets are logged verbatim; file names often contain words like "key".
UNREDACTED_KEYS = frozenset({"route", "path"})


def redact_sensitive(value: str) -> str:
    """Replace values that look like credentials or opaque tokens."""
    if value and any(pattern.search(value) for pattern in SENSITIVE_PATTERNS):
        return REDACTED
    return value


class CorrelationIdFilter(logging.Filter):  # pylint: disable=too-few-public-methods
    """Give records from plain loggers a ``-`` correlation id."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = "-"
        return True


class JsonFormatter(logging.Formatter):
    """One sorted-key JSON object per record.

    ``secrets`` are literal strings, such as the shared password, that are
    masked wherever they appear, including the message and request targets.
    """

    def __init__(self, *args, secrets: Iterable[str] = (), **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._secrets = tuple(secret for secret in secrets if secret)

    def _scrub(self, text: str) -> str:
        for secret in self._secrets:
            text = text.replace(secret, REDACTED)
        return text

    def _field(self, key: str, value):
        if not isinstance(value, str):
            return value
        if key not in UNREDACTED_KEYS:
            value = redact_sensitive(value)
        return self._scrub(value)

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "correlation_id": getattr(record, "correlation_id", "-"),
            "component": getattr(record, "component", "unknown"),
            "message": self._scrub(record.getMessage()),
        }
        if hasattr(record, "event"):
            payload["event"] = record.event
        payload.update(
            (key, self._field(key, getattr(record, key)))
            for key in EXTRA_KEYS
            if hasattr(record, key)
        )
        if record.exc_info:
            payload["exception"] = self._scrub(self.formatException(record.exc_info))
        return json.dumps(payload, sort_keys=True, default=str)


def _resolve_level(level_name: str) -> int:
    level = logging.getLevelName(level_name.upper())
    return level if isinstance(level, int) else logging.INFO


def _open_handler(destination: Optional[str]) -> logging.Handler:
    if not destination or destination.lower() == "stdout":
        return logging.StreamHandler(sys.stdout)
    path = Path(destination)
    path.parent.mkdir(parents=True, exist_ok=True)
    return RotatingFileHandler(path, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT)


def configure_logging(
    level: str = "INFO",
    destination: Optional[str] = None,
    use_json: bool = True,
    secrets: Iterable[str] = (),
) -> CorrelationLoggerAdapter:
    """Point the ``airfiles`` logger at stdout or a rotating file.

    Calling it again replaces the previous handler instead of adding one.
    """
    numeric_level = _resolve_level(level)
    handler = _open_handler(destination)
    handler.setLevel(numeric_level)
    handler.addFilter(CorrelationIdFilter())
    if use_json:
        handler.setFormatter(JsonFormatter(datefmt=DATE_FORMAT, secrets=secrets))
    else:
        handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))

    logger = logging.getLogger(LOGGER_NAME)
    for previous in list(logger.handlers):
        logger.removeHandler(previous)
        previous.close()
    logger.setLevel(numeric_level)
    logger.propagate = False
    logger.addHandler(handler)

    adapter = CorrelationLoggerAdapter(logger, {})
    adapter.info(
        "Logging configured",
        extra={
            "event": "logging_configured",
            "log_level": logging.getLevelName(numeric_level),
            "log_destination": destination or "stdout",
            "use_json": use_json,
        },
    )
    return adapter
