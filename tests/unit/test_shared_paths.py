"""Unit tests for resolving request paths onto shared roots."""

import logging
import os

import pytest

from airfiles.domain.errors import InvalidConfiguration
from airfiles.domain.shared_paths import (
    SharedPathResolver,
    TargetKind,
    build_shared_entries,
)


@pytest.fixture(name="resolver")
def resolver_fixture(share, tmp_path):
    """Resolver over a shared folder and a shared single file."""
    single = tmp_path / "report.pdf"
    single.write_bytes(b"%PDF-1.4")
    return SharedPathResolver(build_shared_entries([str(share), str(single)]))


@pytest.mark.parametrize("path", ["", "/", "//"])
def test_root_paths_resolve_to_synthetic_root(resolver, path):
    """Empty and slash-only paths list the shared entries."""
    assert resolver.resolve(path).kind is TargetKind.ROOT


def test_resolves_file_inside_shared_directory(resolver, share):
    """Nested files resolve to their real path and logical path."""
    target = resolver.resolve("/Photos/trip/b.bin")

    assert target.kind is TargetKind.FILE
    assert target.path == (share / "trip" / "b.bin").resolve()
    assert target.logical_path == "/Photos/trip/b.bin"
    assert target.name == "b.bin"


def test_resolves_directories(resolver):
    """The shared folder and its subfolders resolve as directories."""
    assert resolver.resolve("/Photos").kind is TargetKind.DIRECTORY
    assert resolver.resolve("/Photos/trip/").kind is TargetKind.DIRECTORY


def test_shared_file_resolves_only_by_exact_name(resolver):
    """A shared file has no children."""
    assert resolver.resolve("/report.pdf").kind is TargetKind.FILE
    assert resolver.resolve("/report.pdf/extra").kind is TargetKind.NOT_FOUND


def test_doubled_slashes_are_ignored(resolver):
    """Empty segments do not change the target."""
    assert resolver.resolve("//Photos//a.jpg").kind is TargetKind.FILE


@pytest.mark.parametrize(
    "path",
    [
        "/Photos/../Photos/a.jpg",
        "/Photos/trip/../../report.pdf",
        "/../etc/passwd",
        "/Photos/./a.jpg",
        "/Photos/a.jpg\x00.txt",
        "/etc/passwd",
        "/unknown",
        "/Photos/missing.txt",
    ],
)
def test_traversal_and_unknown_paths_are_not_found(resolver, path):
    """Traversal segments, NUL bytes and unknown names resolve to nothing."""
    assert resolver.resolve(path).kind is TargetKind.NOT_FOUND


def test_blocked_traversal_is_logged(resolver, caplog):
    """Traversal attempts leave a warning in the log."""
    with caplog.at_level(logging.WARNING, logger="airfiles"):
        resolver.resolve("/Photos/../../etc/passwd")

    assert any(getattr(r, "event", None) == "path_blocked" for r in caplog.records)


def test_symlink_escaping_the_share_is_not_found(share, tmp_path):
    """Links pointing outside a shared root cannot be followed."""
    outside = tmp_path / "outside.txt"
    outside.write_text("secret", encoding="utf-8")
    os.symlink(outside, share / "escape.txt")
    os.symlink(tmp_path, share / "escape-dir")
    resolver = SharedPathResolver(build_shared_entries([str(share)]))

    assert resolver.resolve("/Photos/escape.txt").kind is TargetKind.NOT_FOUND
    assert resolver.resolve("/Photos/escape-dir/outside.txt").kind is TargetKind.NOT_FOUND


def test_symlink_inside_the_share_is_followed(share):
    """Links that stay within the shared root resolve normally."""
    os.symlink(share / "a.jpg", share / "alias.jpg")
    resolver = SharedPathResolver(build_shared_entries([str(share)]))

    target = resolver.resolve("/Photos/alias.jpg")

    assert target.kind is TargetKind.FILE
    assert target.name == "alias.jpg"


def test_first_entry_wins_on_basename_collision(tmp_path, caplog):
    """Two roots with one basename: the first declared one is served."""
    first = tmp_path / "one" / "docs"
    second = tmp_path / "two" / "docs"
    first.mkdir(parents=True)
    second.mkdir(parents=True)
    (first / "first.txt").write_text("1", encoding="utf-8")
    (second / "second.txt").write_text("2", encoding="utf-8")

    with caplog.at_level(logging.WARNING, logger="airfiles"):
        entries = build_shared_entries([str(first), str(second)])
    resolver = SharedPathResolver(entries)

    assert resolver.resolve("/docs/first.txt").kind is TargetKind.FILE
    assert resolver.resolve("/docs/second.txt").kind is TargetKind.NOT_FOUND
    assert any(
        getattr(r, "event", None) == "shared_name_collision" for r in caplog.records
    )


def test_relative_paths_are_made_absolute(share, monkeypatch):
    """Configured relative paths are anchored at the working directory."""
    monkeypatch.chdir(share.parent)

    (entry,) = build_shared_entries(["Photos"])

    assert entry.path.is_absolute()
    assert entry.name == "Photos"


def test_build_shared_entries_rejects_missing_path(tmp_path):
    """Nonexistent roots are configuration errors."""
    with pytest.raises(InvalidConfiguration):
        build_shared_entries([str(tmp_path / "nope")])


def test_build_shared_entries_rejects_empty_list():
    """At least one root must be shared."""
    with pytest.raises(InvalidConfiguration):
        build_shared_entries([])
