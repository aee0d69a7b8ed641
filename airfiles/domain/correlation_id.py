"""Request ids shared by log records and the ``X-Request-ID`` response header.

Each worker thread runs one request at a time, so a ``ContextVar`` is enough to
tie every log line of a request to the id that is echoed back to the client.
"""

import contextvars
import logging
import re
import uuid
from typing import Any, MutableMapping, Optional

LOGGER_PREFIX = "airfiles."
MAX_CLIENT_ID_LENGTH = 128
_CLIENT_ID_PATTERN = re.compile(r"[\x21-\x7e]+")

_current_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "airfiles_request_id", default=None
)


def generate_correlation_id() -> str:
    return str(uuid.uuid4())


def get_correlation_id() -> Optional[str]:
    return _current_id.get()


def set_correlation_id(correlation_id: str) -> None:
    _current_id.set(correlation_id)


def clear_correlation_id() -> None:
    _current_id.set(None)


def adopt_client_request_id(value: Optional[str]) -> bool:
    """Use a client-supplied id for this request if it is short printable ASCII."""
    if not value or len(value) > MAX_CLIENT_ID_LENGTH:
        return False
    if not _CLIENT_ID_PATTERN.fullmatch(value):
        return False
    set_correlation_id(value)
    return True


class CorrelationLoggerAdapter(logging.LoggerAdapter):
    """Stamps ``correlation_id`` and ``component`` onto every record."""

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> tuple[str, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        extra["correlation_id"] = get_correlation_id() or "-"
        name = self.logger.name
        extra["component"] = name.removeprefix(LOGGER_PREFIX)
        kwargs["extra"] = extra
        return msg, kwargs
