"""Per-connection worker: serves keep-alive requests until told to stop."""

import logging
import select
import socket
import threading
import time
from typing import Optional

from airfiles.bootstrap.config import MAX_BODY_BYTES, SECURITY_HEADERS
from airfiles.domain.correlation_id import (
    CorrelationLoggerAdapter,
    clear_correlation_id,
    generate_correlation_id,
    set_correlation_id,
)
from airfiles.domain.http_types import HttpRequest, HttpResponse
from airfiles.domain.response_builders import (
    bad_request_response,
    entity_too_large_response,
)
from airfiles.pipeline.io import receive_request, send_response
from airfiles.pipeline.validation import RequestEntityTooLarge
from airfiles.security.cors import apply_cors_headers
from airfiles.transport.context import WorkerContext

WORKER_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("airfiles.transport.worker"), {}
)

IDLE_POLL_SECONDS = 0.2


def _wait_for_request(
    client_socket: socket.socket, context: WorkerContext, idle_timeout: float
) -> bool:
    """Wait for the next request; False when idle too long or the server drains."""
    deadline = time.monotonic() + idle_timeout
    while not context.lifecycle.is_draining():
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return False
        readable, _, _ = select.select(
            [client_socket], [], [], min(IDLE_POLL_SECONDS, remaining)
        )
        if readable:
            return True
    return False


def _reply(
    client_socket: socket.socket, response: HttpResponse, context: WorkerContext
) -> int:
    apply_cors_headers(response.headers, context.config.cors)
    return send_response(client_socket, response)


def _next_request(
    client_socket: socket.socket, pending: bytes, peer: str, context: WorkerContext
) -> tuple[Optional[HttpRequest], bytes]:
    """Read one request; malformed or oversized input is answered here."""
    try:
        return receive_request(client_socket, pending)
    except RequestEntityTooLarge:
        WORKER_LOGGER.warning(
            "Declared request body is too large",
            extra={"event": "body_size_exceeded", "client": peer, "limit": MAX_BODY_BYTES},
        )
        _reply(client_socket, entity_too_large_response(SECURITY_HEADERS), context)
    except ValueError:
        WORKER_LOGGER.warning(
            "Could not parse request", extra={"event": "malformed_request", "client": peer}
        )
        _reply(client_socket, bad_request_response(None, SECURITY_HEADERS), context)
    return None, b""


def _serve(request: HttpRequest, client_socket: socket.socket, context: WorkerContext) -> bool:
    """Answer ``request``; True when the connection should close afterwards."""
    response = context.handler(request)
    if context.lifecycle.is_draining():
        response.close_connection = True
    started = time.perf_counter()
    bytes_out = send_response(client_socket, response)
    WORKER_LOGGER.info(
        "Response sent",
        extra={
            "event": "response_sent",
            "method": request.method,
            "route": request.path,
            "status_code": response.status_code,
            "bytes_out": bytes_out,
            "duration_ms": round((time.perf_counter() - started) * 1000, 3),
        },
    )
    return response.close_connection


def _log_failure(error: Exception, peer: str) -> None:
    extra = {"client": peer, "error_type": type(error).__name__}
    if isinstance(error, ConnectionError):
        WORKER_LOGGER.info("Client went away", extra={"event": "connection_dropped", **extra})
    elif isinstance(error, OSError):
        WORKER_LOGGER.error(
            "Connection failed", extra={"event": "connection_error", **extra}
        )
    else:
        WORKER_LOGGER.error(
            "Worker crashed", extra={"event": "worker_error", **extra}, exc_info=error
        )


def _release(
    context: WorkerContext, client_socket: socket.socket, peer: str
) -> None:
    context.lifecycle.cleanup_worker(threading.current_thread())
    try:
        client_socket.shutdown(socket.SHUT_WR)
    except OSError:
        pass
    client_socket.close()
    clear_correlation_id()
    if WORKER_LOGGER.logger.isEnabledFor(logging.DEBUG):
        WORKER_LOGGER.debug("Connection closed", extra={"event": "socket_closed", "client": peer})


def handle_client(
    client_socket: socket.socket,
    client_address: tuple[str, int],
    context: WorkerContext,
) -> None:
    """Serve requests on ``client_socket`` until the client or the server ends it."""
    peer = f"{client_address[0]}:{client_address[1]}"
    idle_timeout = context.config.socket_timeout
    client_socket.settimeout(idle_timeout)
    pending = b""

    try:
        while pending or _wait_for_request(client_socket, context, idle_timeout):
            set_correlation_id(generate_correlation_id())
            request, pending = _next_request(client_socket, pending, peer, context)
            if request is None:
                break
            close_after = _serve(request, client_socket, context)
            clear_correlation_id()
            if close_after:
                break
    except Exception as error:  # pylint: disable=broad-except
        _log_failure(error, peer)
    finally:
        _release(context, client_socket, peer)
