"""HTTP Input/Output operations."""

import logging
import socket
import urllib.parse
from typing import Optional, Tuple

from airfiles.bootstrap.config import HEADER_DELIMITER, MAX_BODY_BYTES, MAX_HEADER_BYTES
from airfiles.domain.correlation_id import (
    CorrelationLoggerAdapter,
    adopt_client_request_id,
    get_correlation_id,
)
from airfiles.domain.http_types import HttpRequest, HttpResponse
from airfiles.pipeline.validation import RequestEntityTooLarge

IO_LOGGER = CorrelationLoggerAdapter(logging.getLogger("airfiles.io"), {})

BODYLESS_STATUS_CODES = {204, 304}


def parse_headers(lines: list[str]) -> dict[str, str]:
    """Convert raw header lines into a lowercase-keyed dictionary."""
    parsed = {}
    for line in lines:
        name, separator, value = line.partition(":")
        if not separator or not name or name != name.strip():
            raise ValueError(f"Malformed header line: {line!r}")
        parsed[name.lower()] = value.strip()
    return parsed


def parse_request_line(request_line: str) -> Tuple[str, str]:
    """Parse the HTTP method and URL-decoded path from the request line."""
    try:
        method, target, version = request_line.split(" ", 2)
    except ValueError as exc:
        raise ValueError("Invalid request line") from exc
    if not method or not version.startswith("HTTP/"):
        raise ValueError("Invalid request line")

    parsed_target = urllib.parse.urlsplit(target)
    path = urllib.parse.unquote(parsed_target.path)
    return method, path


def determine_content_length(headers: dict[str, str]) -> int:
    """Validate and return the declared Content-Length for the request."""
    header_value = headers.get("content-length")
    if header_value is None:
        return 0
    try:
        content_length = int(header_value)
    except ValueError as exc:
        raise ValueError("Invalid Content-Length") from exc
    if content_length < 0:
        raise ValueError("Negative Content-Length")
    if content_length > MAX_BODY_BYTES:
        raise RequestEntityTooLarge
    return content_length


def receive_request(
    client_socket: socket.socket, buffer: bytes
) -> Tuple[Optional[HttpRequest], bytes]:
    """Read bytes from the socket until a complete request is available."""
    while HEADER_DELIMITER not in buffer:
        if len(buffer) > MAX_HEADER_BYTES:
            raise ValueError("Header block too large")
        chunk = client_socket.recv(4096)
        if not chunk:
            return None, b""
        buffer += chunk

    header_block, remainder = buffer.split(HEADER_DELIMITER, 1)
    header_lines = header_block.decode("iso-8859-1").split("\r\n")
    method, path = parse_request_line(header_lines[0])
    headers = parse_headers(header_lines[1:])

    adopt_client_request_id(headers.get("x-request-id"))

    content_length = determine_content_length(headers)

    while len(remainder) < content_length:
        chunk = client_socket.recv(4096)
        if not chunk:
            return None, b""
        remainder += chunk

    body = remainder[:content_length]
    leftover = remainder[content_length:]
    if IO_LOGGER.logger.isEnabledFor(logging.DEBUG):
        IO_LOGGER.debug(
            "Parsed request",
            extra={"event": "request_parsed", "method": method, "route": path},
        )
    return HttpRequest(method, path, headers, body), leftover


def _head_bytes(response: HttpResponse) -> bytes:
    headers = dict(response.headers)
    correlation_id = get_correlation_id()
    if correlation_id:
        headers["X-Request-ID"] = correlation_id
    if response.status_code in BODYLESS_STATUS_CODES:
        headers.pop("Content-Length", None)
    else:
        headers.setdefault("Content-Length", str(len(response.body)))
    if response.close_connection:
        headers["Connection"] = "close"
    lines = [response.status_line, *(f"{name}: {value}" for name, value in headers.items())]
    return ("\r\n".join(lines) + "\r\n\r\n").encode("utf-8")


def send_response(client_socket: socket.socket, response: HttpResponse) -> int:
    """Write ``response`` to the socket and return the number of body bytes sent.

    Streamed bodies (``body_iter``) are closed afterwards even when the client
    disconnects halfway, so open file handles are never leaked.
    """
    head = _head_bytes(response)
    with_body = response.send_body and response.status_code not in BODYLESS_STATUS_CODES
    bytes_out = 0
    try:
        if not with_body:
            client_socket.sendall(head)
        elif response.body_iter is None:
            client_socket.sendall(head + response.body)
            bytes_out = len(response.body)
        else:
            client_socket.sendall(head)
            for chunk in response.body_iter:
                client_socket.sendall(chunk)
                bytes_out += len(chunk)
    finally:
        close = getattr(response.body_iter, "close", None)
        if close is not None:
            close()
    return bytes_out
