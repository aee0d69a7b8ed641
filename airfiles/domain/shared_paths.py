"""Resolution of request paths onto the configured shared roots.

Clients only ever see the basenames of the shared roots as top-level URL
segments. Every resolved path is checked, after following symlinks, to be the
shared root itself or one of its descendants.
"""

import enum
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from airfiles.domain.correlation_id import CorrelationLoggerAdapter
from airfiles.domain.errors import InvalidConfiguration

RESOLVER_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("airfiles.domain.shared_paths"), {}
)


@dataclass(frozen=True)
class SharedEntry:
    """A user-selected file or directory exposed under its basename."""

    name: str
    path: Path
    real_path: Path


class TargetKind(enum.Enum):
    """What a request path resolved to."""

    ROOT = "root"
    DIRECTORY = "directory"
    FILE = "file"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class ResolvedTarget:
    """Outcome of resolving a request path."""

    kind: TargetKind
    logical_path: str = "/"
    path: Optional[Path] = None

    @property
    def name(self) -> str:
        """Last logical segment, used as the download filename."""
        return self.logical_path.rstrip("/").rsplit("/", 1)[-1]


ROOT_TARGET = ResolvedTarget(TargetKind.ROOT)
NOT_FOUND_TARGET = ResolvedTarget(TargetKind.NOT_FOUND)


def build_shared_entries(paths: Iterable[str]) -> tuple[SharedEntry, ...]:
    """Turn configured paths into shared entries, validating that each exists."""
    entries: list[SharedEntry] = []
    for raw_path in paths:
        path = Path(os.path.abspath(Path(raw_path).expanduser()))
        if not path.exists():
            raise InvalidConfiguration(f"Shared path does not exist: {raw_path}")
        if not path.name:
            raise InvalidConfiguration(f"Shared path has no basename: {raw_path}")
        entries.append(SharedEntry(path.name, path, path.resolve()))

    if not entries:
        raise InvalidConfiguration("At least one shared path is required")

    seen: dict[str, Path] = {}
    for entry in entries:
        if entry.name in seen:
            RESOLVER_LOGGER.warning(
                "Shared entries share a name; the first one wins",
                extra={
                    "event": "shared_name_collision",
                    "route": f"/{entry.name}",
                    "path": entry.path.as_posix(),
                    "shadowed_by": seen[entry.name].as_posix(),
                },
            )
        else:
            seen[entry.name] = entry.path
    return tuple(entries)


class SharedPathResolver:
    """Maps URL paths to targets inside the shared roots."""

    def __init__(self, entries: Iterable[SharedEntry]) -> None:
        self._entries = tuple(entries)

    @property
    def entries(self) -> tuple[SharedEntry, ...]:
        """Shared entries in declaration order."""
        return self._entries

    def find_entry(self, name: str) -> Optional[SharedEntry]:
        """Return the first entry whose basename equals name."""
        for entry in self._entries:
            if entry.name == name:
                return entry
        return None

    def resolve(self, request_path: str) -> ResolvedTarget:
        """Resolve a URL-decoded request path to a file, directory or nothing."""
        if "\x00" in request_path:
            return self._blocked(request_path)

        segments = [segment for segment in request_path.split("/") if segment]
        if not segments:
            return ROOT_TARGET
        if any(segment in (".", "..") for segment in segments):
            return self._blocked(request_path)

        entry = self.find_entry(segments[0])
        if entry is None:
            return NOT_FOUND_TARGET

        candidate = entry.path.joinpath(*segments[1:])
        try:
            real_path = candidate.resolve(strict=True)
        except (OSError, RuntimeError):
            return NOT_FOUND_TARGET

        if not (real_path == entry.real_path or entry.real_path in real_path.parents):
            return self._blocked(request_path)

        logical_path = "/" + "/".join(segments)
        if real_path.is_dir():
            return ResolvedTarget(TargetKind.DIRECTORY, logical_path, real_path)
        if real_path.is_file():
            return ResolvedTarget(TargetKind.FILE, logical_path, real_path)
        return NOT_FOUND_TARGET

    @staticmethod
    def _blocked(request_path: str) -> ResolvedTarget:
        RESOLVER_LOGGER.warning(
            "Path outside shared roots blocked",
            extra={"event": "path_blocked", "route": request_path},
        )
        return NOT_FOUND_TARGET
