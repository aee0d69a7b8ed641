"""Command-line launcher that shares local files over the local network."""

import logging
import signal
import sys
import threading
from typing import Optional

from airfiles.bootstrap.config import (
    DEFAULT_PORT,
    ServerConfiguration,
    parse_cli_args,
)
from airfiles.bootstrap.logging_setup import configure_logging
from airfiles.bootstrap.network import (
    NoAvailablePort,
    find_available_port,
    get_local_network_address,
)
from airfiles.domain.correlation_id import CorrelationLoggerAdapter
from airfiles.domain.errors import AirFilesError
from airfiles.lifecycle.state import ServerLifecycle
from airfiles.security.cors import CorsConfig

LAUNCHER_LOGGER = CorrelationLoggerAdapter(logging.getLogger("airfiles.launcher"), {})


def main(argv: Optional[list[str]] = None) -> int:
    """Start the server, wait for SIGINT or SIGTERM, then stop it."""
    args = parse_cli_args(sys.argv[1:] if argv is None else argv)
    configure_logging(
        args.log_level,
        args.log_destination,
        secrets=[args.password] if args.password else (),
    )

    host = args.host or get_local_network_address()
    try:
        port = args.port if args.port is not None else find_available_port(DEFAULT_PORT)
    except NoAvailablePort as error:
        LAUNCHER_LOGGER.error(str(error), extra={"event": "no_available_port"})
        return 1

    config = ServerConfiguration(
        address=host,
        port=port,
        shared_paths=tuple(args.paths),
        secret=args.password,
        socket_timeout=args.socket_timeout,
        shutdown_grace_seconds=args.shutdown_grace_seconds,
        chunk_size=args.chunk_size,
        cors=CorsConfig(
            allow_origin=args.cors_allow_origin,
            allowed_methods=args.cors_allowed_methods,
            allowed_headers=args.cors_allowed_headers,
        ),
    )
    lifecycle = ServerLifecycle()
    stop_requested = threading.Event()

    def shutdown_handler(signum: int, _frame) -> None:
        LAUNCHER_LOGGER.info(
            "Received shutdown signal",
            extra={"event": "shutdown_signal", "signal": signum},
        )
        stop_requested.set()

    signal.signal(signal.SIGTERM, shutdown_handler)
    signal.signal(signal.SIGINT, shutdown_handler)

    LAUNCHER_LOGGER.info(
        "Starting AirFiles server",
        extra={
            "event": "server_starting",
            "host": host,
            "port": port,
            "shared_paths": list(config.shared_paths),
            "auth_enabled": config.auth_enabled,
            "socket_timeout": config.socket_timeout,
            "shutdown_grace_seconds": config.shutdown_grace_seconds,
        },
    )
    try:
        handle = lifecycle.start(config)
    except AirFilesError as error:
        LAUNCHER_LOGGER.error(
            f"Server failed to start: {error}",
            extra={"event": "server_start_failed", "error_type": type(error).__name__},
        )
        return 1

    LAUNCHER_LOGGER.info(
        "Sharing files", extra={"event": "server_ready", "base_url": handle.base_url}
    )
    while not stop_requested.wait(timeout=0.5):
        pass
    lifecycle.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
