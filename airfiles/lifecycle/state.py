"""Server lifecycle: start/stop state machine and worker thread tracking."""

import enum
import logging
import socket
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from airfiles.bootstrap.config import SECURITY_HEADERS, ServerConfiguration
from airfiles.bootstrap.network import is_valid_ip_address, is_valid_port
from airfiles.bootstrap.socket_factory import create_server_socket
from airfiles.domain.correlation_id import CorrelationLoggerAdapter
from airfiles.domain.errors import AlreadyRunning, InvalidConfiguration
from airfiles.domain.shared_paths import (
    SharedEntry,
    SharedPathResolver,
    build_shared_entries,
)
from airfiles.handlers.file_handler import FileSettings
from airfiles.pipeline.middleware import build_pipeline, default_middlewares
from airfiles.pipeline.router import make_router
from airfiles.transport.accept_loop import run_accept_loop
from airfiles.transport.context import WorkerContext

LIFECYCLE_LOGGER = CorrelationLoggerAdapter(logging.getLogger("airfiles.lifecycle"), {})

FORCED_CLOSE_WAIT_SECONDS = 1.0


class ServerRuntimeState(enum.Enum):
    """Lifecycle states of the server core."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    ERROR = "error"


@dataclass(frozen=True)
class ServerHandle:
    """Where a running server can be reached."""

    address: str
    port: int

    @property
    def base_url(self) -> str:
        """URL to share with other devices."""
        return f"http://{self.address}:{self.port}"


StateListener = Callable[[ServerRuntimeState, ServerRuntimeState], None]


def validate_configuration(config: ServerConfiguration) -> tuple[SharedEntry, ...]:
    """Check a configuration and return its shared entries."""
    if not config.address:
        raise InvalidConfiguration("Bind address must not be empty")
    if not is_valid_ip_address(config.address):
        raise InvalidConfiguration(f"Not an IPv4 address: {config.address}")
    port_ok = isinstance(config.port, int) and (config.port == 0 or is_valid_port(config.port))
    if not port_ok:
        raise InvalidConfiguration(f"Port out of range: {config.port}")
    if config.chunk_size <= 0:
        raise InvalidConfiguration("Chunk size must be positive")
    if config.socket_timeout <= 0:
        raise InvalidConfiguration("Socket timeout must be positive")
    if config.shutdown_grace_seconds < 0:
        raise InvalidConfiguration("Shutdown grace period must not be negative")
    return build_shared_entries(config.shared_paths)


class ServerLifecycle:
    """Owns the runtime state, the listening socket and the worker threads."""

    def __init__(self) -> None:
        self._state_lock = threading.RLock()
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._draining_event = threading.Event()
        self._workers: dict[threading.Thread, Optional[socket.socket]] = {}
        self._listeners: list[StateListener] = []
        self._state = ServerRuntimeState.STOPPED
        self._configuration: Optional[ServerConfiguration] = None
        self._handle: Optional[ServerHandle] = None
        self._entries: tuple[SharedEntry, ...] = ()
        self._last_error: Optional[Exception] = None
        self._server_socket: Optional[socket.socket] = None
        self._accept_thread: Optional[threading.Thread] = None

    @property
    def state(self) -> ServerRuntimeState:
        """Current lifecycle state."""
        return self._state

    @property
    def is_running(self) -> bool:
        """True while the server accepts connections."""
        return self._state is ServerRuntimeState.RUNNING

    @property
    def handle(self) -> Optional[ServerHandle]:
        """Bound address and port of the running server."""
        return self._handle

    @property
    def base_url(self) -> Optional[str]:
        """Shareable URL of the running server, or None when stopped."""
        return self._handle.base_url if self._handle is not None else None

    @property
    def configuration(self) -> Optional[ServerConfiguration]:
        """Configuration of the current run."""
        return self._configuration

    @property
    def shared_entries(self) -> tuple[SharedEntry, ...]:
        """Entries served by the current run."""
        return self._entries

    @property
    def last_error(self) -> Optional[Exception]:
        """The error that made the most recent start() fail."""
        return self._last_error

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a state transition listener; returns an unsubscribe callable."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _transition(self, new_state: ServerRuntimeState) -> None:
        previous = self._state
        self._state = new_state
        LIFECYCLE_LOGGER.info(
            "Server state changed",
            extra={
                "event": "state_changed",
                "previous_state": previous.value,
                "state": new_state.value,
            },
        )
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(previous, new_state)
            except Exception:  # pylint: disable=broad-except
                LIFECYCLE_LOGGER.exception(
                    "State listener failed", extra={"event": "listener_failed"}
                )

    def start(self, config: ServerConfiguration) -> ServerHandle:
        """Validate, bind and begin serving; raise on configuration or bind errors."""
        with self._state_lock:
            if self._state is not ServerRuntimeState.STOPPED:
                raise AlreadyRunning(f"Server is {self._state.value}")
            self._transition(ServerRuntimeState.STARTING)
            self._last_error = None
            self._stop_event.clear()
            self._draining_event.clear()
            try:
                handle = self._start_serving(config)
            except Exception as error:
                self._fail(error)
                raise
            self._transition(ServerRuntimeState.RUNNING)
            LIFECYCLE_LOGGER.info(
                "Server listening for connections",
                extra={
                    "event": "server_listening",
                    "host": handle.address,
                    "port": handle.port,
                    "base_url": handle.base_url,
                    "shared_paths": [entry.path.as_posix() for entry in self._entries],
                    "auth_enabled": config.auth_enabled,
                },
            )
            return handle

    def _start_serving(self, config: ServerConfiguration) -> ServerHandle:
        entries = validate_configuration(config)
        server_socket = create_server_socket(config.address, config.port)
        self._server_socket = server_socket
        self._configuration = config
        self._entries = entries

        resolver = SharedPathResolver(entries)
        settings = FileSettings(
            chunk_size=config.chunk_size, security_headers=SECURITY_HEADERS
        )
        handler = build_pipeline(
            make_router(resolver, settings), default_middlewares(config)
        )
        context = WorkerContext(handler=handler, config=config, lifecycle=self)
        self._handle = ServerHandle(config.address, server_socket.getsockname()[1])

        self._accept_thread = threading.Thread(
            target=run_accept_loop,
            args=(server_socket, context),
            name="airfiles-accept",
            daemon=True,
        )
        self._accept_thread.start()
        return self._handle

    def _fail(self, error: Exception) -> None:
        self._transition(ServerRuntimeState.ERROR)
        LIFECYCLE_LOGGER.error(
            "Server failed to start",
            extra={"event": "start_failed", "error_type": type(error).__name__},
        )
        self._last_error = error
        self._stop_event.set()
        if self._server_socket is not None:
            self._server_socket.close()
        self._reset()
        self._transition(ServerRuntimeState.STOPPED)

    def _reset(self) -> None:
        self._server_socket = None
        self._accept_thread = None
        self._configuration = None
        self._handle = None
        self._entries = ()

    def stop(self) -> None:
        """Stop accepting, drain in-flight requests, then close what remains."""
        with self._state_lock:
            if self._state is not ServerRuntimeState.RUNNING:
                return
            self._transition(ServerRuntimeState.STOPPING)
            grace_seconds = self._configuration.shutdown_grace_seconds
            self.begin_draining()

            if self._accept_thread is not None:
                self._accept_thread.join()
            if self._server_socket is not None:
                self._server_socket.close()

            LIFECYCLE_LOGGER.info(
                "Waiting for active connections to complete",
                extra={
                    "event": "shutdown_waiting",
                    "shutdown_grace_seconds": grace_seconds,
                },
            )
            if not self.wait_for_workers(grace_seconds):
                self.force_close_workers()
                self.wait_for_workers(FORCED_CLOSE_WAIT_SECONDS)

            self._reset()
            self._transition(ServerRuntimeState.STOPPED)
            LIFECYCLE_LOGGER.info(
                "Server shutdown complete", extra={"event": "server_stopped"}
            )

    def should_stop(self) -> bool:
        """Check if the server should stop accepting new connections."""
        return self._stop_event.is_set()

    def is_draining(self) -> bool:
        """Check if the server is in draining mode."""
        return self._draining_event.is_set()

    def begin_draining(self) -> None:
        """Signal the accept loop and idle workers to wind down."""
        self._draining_event.set()
        self._stop_event.set()
        LIFECYCLE_LOGGER.info(
            "Beginning graceful shutdown", extra={"event": "draining_started"}
        )

    def register_worker(
        self, thread: threading.Thread, client_socket: Optional[socket.socket] = None
    ) -> None:
        """Register a worker thread, and optionally its socket, for tracking."""
        with self._lock:
            self._workers[thread] = client_socket

    def cleanup_worker(self, thread: threading.Thread) -> None:
        """Remove a worker thread from tracking."""
        with self._lock:
            self._workers.pop(thread, None)

    def has_worker(self, thread: threading.Thread) -> bool:
        """Return True when the worker is currently tracked."""
        with self._lock:
            return thread in self._workers

    def active_worker_count(self) -> int:
        """Return the number of currently tracked worker threads."""
        with self._lock:
            return len(self._workers)

    def force_close_workers(self) -> None:
        """Shut down the sockets of workers still running after the grace period."""
        with self._lock:
            sockets = [sock for sock in self._workers.values() if sock is not None]
        LIFECYCLE_LOGGER.warning(
            "Closing connections that outlived the grace period",
            extra={"event": "workers_force_closed", "remaining_workers": len(sockets)},
        )
        for client_socket in sockets:
            try:
                client_socket.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass

    def wait_for_workers(self, timeout: float) -> bool:
        """Wait for all worker threads to complete within the timeout."""
        deadline = time.monotonic() + timeout
        while True:
            with self._lock:
                self._workers = {
                    worker: sock
                    for worker, sock in self._workers.items()
                    if worker.is_alive() or not worker.ident
                }
                active_workers = list(self._workers)
            if not active_workers:
                return True
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                LIFECYCLE_LOGGER.warning(
                    "Shutdown timeout exceeded",
                    extra={
                        "event": "shutdown_timeout",
                        "remaining_workers": len(active_workers),
                    },
                )
                return False
            for worker in active_workers:
                if worker.ident:
                    worker.join(timeout=min(0.1, remaining))
                else:
                    time.sleep(min(0.01, remaining))
                if time.monotonic() >= deadline:
                    break
