"""Server configuration and CLI argument parsing."""

import argparse
import os
from dataclasses import dataclass, field
from typing import Optional

from airfiles.security.cors import CorsConfig


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value is not None else default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value is not None else default


def _env_list(name: str, default: list[str]) -> list[str]:
    value = os.getenv(name)
    if value is None:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


MAX_BODY_BYTES = _env_int("AIRFILES_MAX_BODY_BYTES", 64 * 1024)
MAX_HEADER_BYTES = _env_int("AIRFILES_MAX_HEADER_BYTES", 64 * 1024)
DEFAULT_PORT = _env_int("AIRFILES_PORT", 8080)
DEFAULT_CHUNK_SIZE = _env_int("AIRFILES_CHUNK_SIZE", 64 * 1024)
DEFAULT_SOCKET_TIMEOUT = _env_float("AIRFILES_SOCKET_TIMEOUT", 60.0)
DEFAULT_SHUTDOWN_GRACE_SECONDS = _env_float("AIRFILES_SHUTDOWN_GRACE_SECONDS", 5.0)
DEFAULT_CORS_ALLOW_ORIGIN = os.getenv("AIRFILES_CORS_ALLOW_ORIGIN", "*")
DEFAULT_CORS_ALLOWED_METHODS = _env_list(
    "AIRFILES_CORS_ALLOWED_METHODS", ["GET", "POST", "OPTIONS"]
)
DEFAULT_CORS_ALLOWED_HEADERS = _env_list(
    "AIRFILES_CORS_ALLOWED_HEADERS", ["Origin", "Content-Type", "X-Auth-Token"]
)

HEADER_DELIMITER = b"\r\n\r\n"
ALLOWED_METHODS = {"GET", "HEAD", "OPTIONS"}
AUTH_REALM = "AirFiles"
FILE_CACHE_CONTROL = "public, max-age=3600"

SECURITY_HEADERS = {
    "Content-Security-Policy": "default-src 'self'; style-src 'unsafe-inline'",
    "X-Content-Type-Options": "nosniff",
}


def default_cors_config() -> CorsConfig:
    """Build the CORS configuration from environment-seeded defaults."""
    return CorsConfig(
        allow_origin=DEFAULT_CORS_ALLOW_ORIGIN,
        allowed_methods=tuple(DEFAULT_CORS_ALLOWED_METHODS),
        allowed_headers=tuple(DEFAULT_CORS_ALLOWED_HEADERS),
    )


@dataclass(frozen=True)
class ServerConfiguration:
    """Everything one server run needs; fixed for the lifetime of that run."""

    address: str
    port: int
    shared_paths: tuple[str, ...]
    secret: Optional[str] = field(default=None, repr=False)
    socket_timeout: float = DEFAULT_SOCKET_TIMEOUT
    shutdown_grace_seconds: float = DEFAULT_SHUTDOWN_GRACE_SECONDS
    chunk_size: int = DEFAULT_CHUNK_SIZE
    cors: CorsConfig = field(default_factory=default_cors_config)

    def __post_init__(self) -> None:
        object.__setattr__(self, "shared_paths", tuple(self.shared_paths))

    @property
    def auth_enabled(self) -> bool:
        """True when a non-empty shared secret gates access."""
        return bool(self.secret)


def _comma_list(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


def parse_cli_args(argv: list[str]) -> argparse.Namespace:
    """Return parsed CLI arguments for the launcher."""
    parser = argparse.ArgumentParser(
        description="Share local files with devices on the same network"
    )
    parser.add_argument("paths", nargs="+", help="Files or directories to share")
    parser.add_argument(
        "--host",
        default=os.getenv("AIRFILES_HOST"),
        help="Bind address (default: detected local network address)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help=f"Bind port (default: first free port from {DEFAULT_PORT})",
    )
    parser.add_argument(
        "--password",
        default=os.getenv("AIRFILES_PASSWORD"),
        help="Shared secret required through HTTP Basic authentication",
    )
    default_log_level = os.getenv("AIRFILES_LOG_LEVEL", "INFO").upper()
    default_destination = os.getenv("AIRFILES_LOG_DESTINATION", "stdout")
    parser.add_argument(
        "--log-level",
        default=default_log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
    )
    parser.add_argument(
        "--log-destination",
        default=default_destination,
        help="stdout or a file path",
    )
    parser.add_argument(
        "--socket-timeout",
        type=float,
        default=DEFAULT_SOCKET_TIMEOUT,
        help="Idle timeout in seconds for client connections",
    )
    parser.add_argument(
        "--shutdown-grace-seconds",
        type=float,
        default=DEFAULT_SHUTDOWN_GRACE_SECONDS,
        help="Time in-flight downloads get to finish when stopping",
    )
    parser.add_argument(
        "--chunk-size",
        type=int,
        default=DEFAULT_CHUNK_SIZE,
        help="Bytes read from disk per streamed chunk",
    )
    parser.add_argument(
        "--cors-allow-origin",
        default=DEFAULT_CORS_ALLOW_ORIGIN,
        help="Value of Access-Control-Allow-Origin (default: *)",
    )
    parser.add_argument(
        "--cors-allowed-methods",
        type=_comma_list,
        default=tuple(DEFAULT_CORS_ALLOWED_METHODS),
        help="Comma-separated list of allowed CORS methods",
    )
    parser.add_argument(
        "--cors-allowed-headers",
        type=_comma_list,
        default=tuple(DEFAULT_CORS_ALLOWED_HEADERS),
        help="Comma-separated list of allowed CORS headers",
    )
    return parser.parse_args(argv)
