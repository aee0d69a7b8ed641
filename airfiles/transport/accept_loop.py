"""Main connection acceptance loop."""

import logging
import socket
import threading

from airfiles.bootstrap.config import SECURITY_HEADERS
from airfiles.domain.correlation_id import CorrelationLoggerAdapter
from airfiles.domain.response_builders import draining_response
from airfiles.pipeline.io import send_response
from airfiles.security.cors import apply_cors_headers
from airfiles.transport.context import WorkerContext
from airfiles.transport.worker import handle_client

ACCEPT_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("airfiles.transport.accept"), {}
)


def _reject_while_draining(client_socket: socket.socket, context: WorkerContext) -> None:
    response = draining_response(SECURITY_HEADERS)
    apply_cors_headers(response.headers, context.config.cors)
    try:
        send_response(client_socket, response)
    except OSError:
        pass
    finally:
        client_socket.close()


def _handle_accepted_client(
    client_socket: socket.socket,
    client_address: tuple[str, int],
    context: WorkerContext,
) -> None:
    """Start a worker thread for a newly accepted client connection."""
    if ACCEPT_LOGGER.logger.isEnabledFor(logging.DEBUG):
        ACCEPT_LOGGER.debug(
            "Client connection accepted",
            extra={
                "event": "client_accepted",
                "client": f"{client_address[0]}:{client_address[1]}",
            },
        )

    thread = threading.Thread(
        target=handle_client,
        args=(client_socket, client_address, context),
        name=f"airfiles-worker-{client_address[0]}:{client_address[1]}",
        daemon=True,
    )
    context.lifecycle.register_worker(thread, client_socket)
    thread.start()


def run_accept_loop(server_socket: socket.socket, context: WorkerContext) -> None:
    """Accept connections until the lifecycle asks to stop, then close the socket."""
    lifecycle = context.lifecycle
    try:
        while not lifecycle.should_stop():
            try:
                client_socket, client_address = server_socket.accept()
            except socket.timeout:
                continue
            except OSError as error:
                if lifecycle.should_stop():
                    break
                ACCEPT_LOGGER.error(
                    "Socket accept failed",
                    extra={"event": "accept_error", "error_type": type(error).__name__},
                )
                continue

            if lifecycle.is_draining():
                _reject_while_draining(client_socket, context)
                continue

            _handle_accepted_client(client_socket, client_address, context)
    finally:
        server_socket.close()
        ACCEPT_LOGGER.info(
            "Stopped accepting connections", extra={"event": "accept_loop_stopped"}
        )
