"""File serving with single byte-range support."""

import email.utils
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from airfiles.bootstrap.config import DEFAULT_CHUNK_SIZE, FILE_CACHE_CONTROL
from airfiles.domain.correlation_id import CorrelationLoggerAdapter
from airfiles.domain.http_types import HttpRequest, HttpResponse, should_close
from airfiles.domain.media_types import (
    MimeTypeGuesser,
    content_disposition,
    guess_mime_type,
)
from airfiles.domain.range_parser import (
    InvalidRangeHeader,
    RangeNotSatisfiable,
    RangeRequest,
    parse_range_header,
)
from airfiles.domain.response_builders import (
    internal_error_response,
    not_modified_response,
    range_not_satisfiable_response,
)

FILE_LOGGER = CorrelationLoggerAdapter(logging.getLogger("airfiles.handlers.file"), {})


@dataclass(frozen=True)
class FileSettings:
    """Per-run settings the file streamer needs."""

    chunk_size: int = DEFAULT_CHUNK_SIZE
    security_headers: dict[str, str] = field(default_factory=dict)
    mime_type_guesser: MimeTypeGuesser = guess_mime_type


class FileStream:
    """Closable iterator over a byte window of an open file."""

    def __init__(self, path: Path, start: int, length: int, chunk_size: int) -> None:
        self._path = path
        self._remaining = length
        self._chunk_size = chunk_size
        self._handle = open(path, "rb")  # pylint: disable=consider-using-with
        try:
            self._handle.seek(start)
        except OSError:
            self._handle.close()
            raise

    def __iter__(self) -> "FileStream":
        return self

    def __next__(self) -> bytes:
        if self._remaining <= 0 or self._handle.closed:
            raise StopIteration
        chunk = self._handle.read(min(self._chunk_size, self._remaining))
        if not chunk:
            raise OSError(f"File shrank while streaming: {self._path}")
        self._remaining -= len(chunk)
        if FILE_LOGGER.logger.isEnabledFor(logging.DEBUG):
            FILE_LOGGER.debug(
                "File chunk sent",
                extra={"event": "file_chunk_sent", "bytes_out": len(chunk)},
            )
        return chunk

    @property
    def closed(self) -> bool:
        """True once the underlying file handle is closed."""
        return self._handle.closed

    def close(self) -> None:
        """Release the file handle; safe to call more than once."""
        self._handle.close()


def entity_tag(mtime_ns: int, size: int) -> str:
    """Weak validator derived from modification time and size."""
    return f'W/"{mtime_ns:x}-{size:x}"'


def etag_matches(if_none_match: str, current_tag: str) -> bool:
    """Weak comparison of an If-None-Match header against the current tag."""
    if if_none_match.strip() == "*":
        return True
    current = current_tag.removeprefix("W/")
    for candidate in if_none_match.split(","):
        if candidate.strip().removeprefix("W/") == current:
            return True
    return False


def _resolve_range(
    request: HttpRequest, file_size: int
) -> Optional[RangeRequest]:
    range_header = request.headers.get("range")
    if range_header is None:
        return None
    try:
        return parse_range_header(range_header, file_size)
    except InvalidRangeHeader:
        FILE_LOGGER.info(
            "Ignoring unsupported Range header",
            extra={"event": "range_ignored", "range": range_header},
        )
        return None


def file_response(
    request: HttpRequest,
    path: Path,
    settings: FileSettings,
    download_name: Optional[str] = None,
) -> HttpResponse:
    """Serve a regular file as 200, 206, 304 or 416."""
    name = download_name or path.name
    try:
        stat_result = path.stat()
    except OSError as error:
        FILE_LOGGER.error(
            "Failed to stat file",
            extra={
                "event": "file_stat_failed",
                "path": path.as_posix(),
                "error_type": type(error).__name__,
            },
        )
        return internal_error_response(
            request, "Error reading file", settings.security_headers
        )

    file_size = stat_result.st_size
    mime_type = settings.mime_type_guesser(name)
    validators = {
        "ETag": entity_tag(stat_result.st_mtime_ns, file_size),
        "Last-Modified": email.utils.formatdate(stat_result.st_mtime, usegmt=True),
        "Cache-Control": FILE_CACHE_CONTROL,
    }

    if_none_match = request.headers.get("if-none-match")
    if if_none_match and etag_matches(if_none_match, validators["ETag"]):
        return not_modified_response(
            request, {**validators, **settings.security_headers}
        )

    try:
        byte_range = _resolve_range(request, file_size)
    except RangeNotSatisfiable as error:
        FILE_LOGGER.info(
            "Range not satisfiable",
            extra={
                "event": "range_not_satisfiable",
                "path": path.as_posix(),
                "range": request.headers.get("range"),
            },
        )
        response = range_not_satisfiable_response(
            request, error.content_range, settings.security_headers
        )
        response.headers["Accept-Ranges"] = "bytes"
        return response

    headers = {
        "Content-Type": mime_type,
        "Accept-Ranges": "bytes",
        "Content-Disposition": content_disposition(mime_type, name),
        **validators,
        **settings.security_headers,
    }
    if byte_range is None:
        status_line = "HTTP/1.1 200 OK"
        start, length = 0, file_size
    else:
        status_line = "HTTP/1.1 206 Partial Content"
        start, length = byte_range.start, byte_range.length
        headers["Content-Range"] = byte_range.content_range(file_size)
    headers["Content-Length"] = str(length)

    send_body = request.method != "HEAD"
    body_iter = None
    if send_body:
        try:
            body_iter = FileStream(path, start, length, settings.chunk_size)
        except OSError as error:
            FILE_LOGGER.error(
                "Failed to open file",
                extra={
                    "event": "file_open_failed",
                    "path": path.as_posix(),
                    "error_type": type(error).__name__,
                },
            )
            return internal_error_response(
                request, "Error reading file", settings.security_headers
            )

    FILE_LOGGER.info(
        "File response prepared",
        extra={
            "event": "file_served",
            "path": path.as_posix(),
            "method": request.method,
            "status_code": 206 if byte_range else 200,
            "range": headers.get("Content-Range"),
            "bytes_out": length if send_body else 0,
        },
    )
    return HttpResponse(
        status_line,
        headers,
        b"",
        should_close(request.headers),
        body_iter=body_iter,
        send_body=send_body,
    )
