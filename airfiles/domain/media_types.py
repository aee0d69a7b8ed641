"""MIME type lookup and Content-Disposition policy."""

import mimetypes
import re
import urllib.parse
from typing import Callable

DEFAULT_MIME_TYPE = "application/octet-stream"
INLINE_PREFIXES = ("image/", "video/", "audio/", "text/")
INLINE_TYPES = {"application/pdf"}

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")

MimeTypeGuesser = Callable[[str], str]


def guess_mime_type(filename: str) -> str:
    """Return the MIME type for a filename, defaulting to octet-stream."""
    mime_type, _ = mimetypes.guess_type(filename, strict=False)
    return mime_type or DEFAULT_MIME_TYPE


def is_inline_type(mime_type: str) -> bool:
    """Return True when browsers should render the type in place."""
    essence = mime_type.split(";", 1)[0].strip().lower()
    return essence in INLINE_TYPES or essence.startswith(INLINE_PREFIXES)


def _quoted_filename(name: str) -> str:
    cleaned = _CONTROL_CHARS.sub("_", name)
    cleaned = cleaned.encode("ascii", "replace").decode("ascii")
    return cleaned.replace("\\", "\\\\").replace('"', '\\"')


def content_disposition(mime_type: str, filename: str) -> str:
    """Build the Content-Disposition value for a served file."""
    disposition = "inline" if is_inline_type(mime_type) else "attachment"
    value = f'{disposition}; filename="{_quoted_filename(filename)}"'
    if not filename.isascii():
        encoded = urllib.parse.quote(filename, safe="")
        value += f"; filename*=UTF-8''{encoded}"
    return value
