"""Listening socket creation."""

import logging
import socket

from airfiles.domain.correlation_id import CorrelationLoggerAdapter
from airfiles.domain.errors import BindError

SOCKET_LOGGER = CorrelationLoggerAdapter(logging.getLogger("airfiles.socket"), {})

ACCEPT_POLL_SECONDS = 0.2


def create_server_socket(address: str, port: int) -> socket.socket:
    """Bind and listen on address:port, raising BindError on failure."""
    try:
        server_socket = socket.create_server((address, port))
    except OSError as error:
        SOCKET_LOGGER.error(
            "Failed to bind listening socket",
            extra={
                "event": "bind_failed",
                "host": address,
                "port": port,
                "error_type": type(error).__name__,
                "errno": error.errno,
            },
        )
        raise BindError(address, port, error.strerror or str(error)) from error
    server_socket.settimeout(ACCEPT_POLL_SECONDS)
    return server_socket
