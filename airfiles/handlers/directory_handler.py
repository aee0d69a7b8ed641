"""HTML directory listings for the shared roots and their subdirectories."""

import logging
import os
import urllib.parse
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from airfiles.domain.correlation_id import CorrelationLoggerAdapter
from airfiles.domain.html_escape import escape_html
from airfiles.domain.http_types import HttpRequest, HttpResponse
from airfiles.domain.response_builders import html_response, internal_error_response
from airfiles.domain.shared_paths import SharedEntry

LISTING_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("airfiles.handlers.directory"), {}
)

ROOT_TITLE = "Shared Files"
DIRECTORY_ICON = "\N{FILE FOLDER}"
DEFAULT_FILE_ICON = "\N{PAGE FACING UP}"

FILE_ICONS = {
    **dict.fromkeys((".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp"), "\N{FRAME WITH PICTURE}"),
    **dict.fromkeys((".mp4", ".avi", ".mov", ".mkv", ".webm"), "\N{CLAPPER BOARD}"),
    **dict.fromkeys((".mp3", ".wav", ".flac", ".aac", ".ogg"), "\N{MUSICAL NOTE}"),
    **dict.fromkeys((".doc", ".docx"), "\N{MEMO}"),
    **dict.fromkeys((".zip", ".rar", ".7z"), "\N{PACKAGE}"),
}

LISTING_CSS = """
* { margin: 0; padding: 0; box-sizing: border-box; }
body {
  font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
  background: linear-gradient(135deg, #4ECDC4 0%, #279A97 50%, #1F7A77 100%);
  min-height: 100vh;
  color: #333;
}
.container { max-width: 800px; margin: 0 auto; padding: 20px; }
header {
  text-align: center;
  margin-bottom: 30px;
  background: rgba(255, 255, 255, 0.95);
  padding: 25px;
  border-radius: 12px;
  box-shadow: 0 6px 12px rgba(39, 154, 151, 0.2);
}
h1 { font-size: 2.5em; margin-bottom: 10px; color: #279A97; }
.subtitle { color: #1F7A77; font-size: 1.1em; font-weight: 500; word-break: break-all; }
.file-list {
  background: rgba(255, 255, 255, 0.96);
  border-radius: 12px;
  overflow: hidden;
  box-shadow: 0 6px 12px rgba(39, 154, 151, 0.15);
}
.file-item { border-bottom: 1px solid rgba(78, 205, 196, 0.2); transition: all 0.2s ease; }
.file-item:last-child { border-bottom: none; }
.file-item:hover { background-color: rgba(78, 205, 196, 0.1); transform: translateX(3px); }
.file-item a {
  display: flex;
  align-items: center;
  padding: 16px 20px;
  text-decoration: none;
  color: #2A3E3E;
}
.icon { font-size: 1.5em; margin-right: 15px; width: 30px; text-align: center; }
.name { flex: 1; font-weight: 500; color: #1A2E2E; word-break: break-all; }
.size { color: #279A97; font-size: 0.9em; min-width: 80px; text-align: right; }
.directory .name { color: #279A97; font-weight: 600; }
.empty { padding: 20px; text-align: center; color: #1F7A77; }
@media (prefers-color-scheme: dark) {
  body { background: linear-gradient(135deg, #1A2E2E 0%, #143838 50%, #0E2424 100%); color: #E0F2F1; }
  header, .file-list { background: rgba(26, 46, 46, 0.95); }
  .subtitle, .size, .empty { color: #80CBC4; }
  .file-item a, .name { color: #E0F2F1; }
  .directory .name, h1 { color: #4ECDC4; }
}
@media (max-width: 600px) {
  .container { padding: 10px; }
  header { padding: 15px; margin-bottom: 15px; }
  h1 { font-size: 1.8em; }
  .file-item a { padding: 12px 14px; }
  .size { min-width: 60px; }
}
"""


@dataclass(frozen=True)
class DirectoryEntry:
    """One row of a directory listing."""

    name: str
    is_directory: bool
    size: int
    modified: float


def _entry_from_path(name: str, path: Path) -> DirectoryEntry:
    stat_result = path.stat()
    is_directory = path.is_dir()
    return DirectoryEntry(
        name=name,
        is_directory=is_directory,
        size=0 if is_directory else stat_result.st_size,
        modified=stat_result.st_mtime,
    )


def list_directory(path: Path) -> list[DirectoryEntry]:
    """Return the children of path, skipping entries that cannot be stat'ed."""
    entries = []
    with os.scandir(path) as iterator:
        for child in iterator:
            try:
                entries.append(_entry_from_path(child.name, Path(child.path)))
            except OSError as error:
                if LISTING_LOGGER.logger.isEnabledFor(logging.DEBUG):
                    LISTING_LOGGER.debug(
                        "Skipping unreadable directory entry",
                        extra={
                            "event": "listing_entry_skipped",
                            "path": child.path,
                            "error_type": type(error).__name__,
                        },
                    )
    return entries


def root_entries(shared_entries: Iterable[SharedEntry]) -> list[DirectoryEntry]:
    """Return the synthetic root listing built from the shared entries.

    Only the first entry for each basename is listed, matching what the
    resolver can reach.
    """
    entries = []
    seen = set()
    for shared in shared_entries:
        if shared.name in seen:
            continue
        seen.add(shared.name)
        try:
            entries.append(_entry_from_path(shared.name, shared.real_path))
        except OSError:
            continue
    return entries


def sort_entries(entries: Iterable[DirectoryEntry]) -> list[DirectoryEntry]:
    """Sort directories first, then by case-insensitive name."""
    return sorted(
        entries, key=lambda entry: (not entry.is_directory, entry.name.lower(), entry.name)
    )


def format_file_size(size: int) -> str:
    """Render a byte count with B, KB, MB or GB units."""
    if size < 1024:
        return f"{size} B"
    if size < 1024**2:
        return f"{size / 1024:.1f} KB"
    if size < 1024**3:
        return f"{size / 1024**2:.1f} MB"
    return f"{size / 1024**3:.1f} GB"


def file_icon(name: str) -> str:
    """Pick a listing icon from the file extension."""
    return FILE_ICONS.get(os.path.splitext(name)[1].lower(), DEFAULT_FILE_ICON)


def _href(logical_path: str, name: str) -> str:
    base = logical_path.rstrip("/")
    return urllib.parse.quote(f"{base}/{name}", safe="/")


def _parent_href(logical_path: str) -> str:
    parent = logical_path.rstrip("/").rsplit("/", 1)[0]
    return urllib.parse.quote(parent or "/", safe="/")


def _render_row(logical_path: str, entry: DirectoryEntry) -> str:
    href = escape_html(_href(logical_path, entry.name))
    name = escape_html(entry.name)
    if entry.is_directory:
        return (
            '<div class="file-item directory">'
            f'<a href="{href}">'
            f'<span class="icon">{DIRECTORY_ICON}</span>'
            f'<span class="name">{name}</span>'
            '<span class="size">-</span>'
            "</a></div>"
        )
    return (
        '<div class="file-item file">'
        f'<a href="{href}" target="_blank" rel="noopener">'
        f'<span class="icon">{file_icon(entry.name)}</span>'
        f'<span class="name">{name}</span>'
        f'<span class="size">{format_file_size(entry.size)}</span>'
        "</a></div>"
    )


def render_listing(logical_path: str, entries: Iterable[DirectoryEntry]) -> str:
    """Render a complete HTML page listing the given entries."""
    is_root = logical_path in ("", "/")
    heading = escape_html(ROOT_TITLE if is_root else logical_path)
    rows = []
    if not is_root:
        rows.append(
            '<div class="file-item directory">'
            f'<a href="{escape_html(_parent_href(logical_path))}">'
            f'<span class="icon">{DIRECTORY_ICON}</span>'
            '<span class="name">.. (Parent Directory)</span>'
            "</a></div>"
        )
    ordered = sort_entries(entries)
    rows.extend(_render_row(logical_path, entry) for entry in ordered)
    if not ordered:
        rows.append('<div class="empty">This folder is empty</div>')

    return "\n".join(
        [
            "<!DOCTYPE html>",
            '<html lang="en">',
            "<head>",
            '<meta charset="UTF-8">',
            '<meta name="viewport" content="width=device-width, initial-scale=1.0">',
            f"<title>AirFiles - {heading}</title>",
            f"<style>{LISTING_CSS}</style>",
            "</head>",
            "<body>",
            '<div class="container">',
            "<header>",
            "<h1>AirFiles</h1>",
            f'<p class="subtitle">{heading}</p>',
            "</header>",
            '<div class="file-list">',
            *rows,
            "</div>",
            "</div>",
            "</body>",
            "</html>",
        ]
    )


def directory_response(
    request: HttpRequest,
    logical_path: str,
    directory: Path,
    security_headers: dict[str, str],
) -> HttpResponse:
    """Serve the listing page for a shared subdirectory."""
    try:
        entries = list_directory(directory)
    except OSError as error:
        LISTING_LOGGER.error(
            "Failed to list directory",
            extra={
                "event": "listing_failed",
                "path": directory.as_posix(),
                "error_type": type(error).__name__,
            },
        )
        return internal_error_response(
            request, "Error reading directory", security_headers
        )
    return html_response(
        render_listing(logical_path, entries), request, security_headers
    )


def root_response(
    request: HttpRequest,
    shared_entries: Iterable[SharedEntry],
    security_headers: dict[str, str],
) -> HttpResponse:
    """Serve the synthetic listing of every shared entry."""
    return html_response(
        render_listing("/", root_entries(shared_entries)), request, security_headers
    )
