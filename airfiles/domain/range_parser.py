"""Single byte-range parsing for partial content responses.

Only ``bytes=<start>-<end>`` and ``bytes=<start>-`` are understood. Suffix
ranges (``bytes=-500``) and multi-range lists (``bytes=0-1,4-5``) are treated
as invalid headers, so the caller falls back to serving the whole file.
"""

import re
from dataclasses import dataclass

_RANGE_PATTERN = re.compile(r"^bytes=(\d+)-(\d*)$", re.ASCII)


class InvalidRangeHeader(ValueError):
    """Raised when a Range header does not match the supported grammar."""


class RangeNotSatisfiable(Exception):
    """Raised when a well-formed range falls outside the file."""

    def __init__(self, file_size: int) -> None:
        super().__init__(f"Range not satisfiable for size {file_size}")
        self.file_size = file_size

    @property
    def content_range(self) -> str:
        """Content-Range value for a 416 response."""
        return f"bytes */{self.file_size}"


@dataclass(frozen=True)
class RangeRequest:
    """Inclusive byte interval within a file."""

    start: int
    end: int

    @property
    def length(self) -> int:
        """Number of bytes covered by the range."""
        return self.end - self.start + 1

    def content_range(self, file_size: int) -> str:
        """Content-Range value for a 206 response."""
        return f"bytes {self.start}-{self.end}/{file_size}"


def parse_range_header(value: str, file_size: int) -> RangeRequest:
    """Parse a Range header value against the size of the target file."""
    match = _RANGE_PATTERN.match(value.strip())
    if match is None:
        raise InvalidRangeHeader(value)

    start = int(match.group(1))
    end = int(match.group(2)) if match.group(2) else file_size - 1
    if start >= file_size or end >= file_size or start > end:
        raise RangeNotSatisfiable(file_size)
    return RangeRequest(start, end)
