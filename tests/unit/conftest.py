"""Shared fixtures for unit tests."""

import logging

import pytest


@pytest.fixture(autouse=True)
def enable_log_propagation():
    """Ensure logs propagate to root so caplog can catch them."""
    logger = logging.getLogger("airfiles")
    old_propagate = logger.propagate
    logger.propagate = True
    yield
    logger.propagate = old_propagate


@pytest.fixture(name="share")
def share_fixture(tmp_path):
    """A shared folder with a nested directory and a couple of files."""
    share = tmp_path / "Photos"
    (share / "trip").mkdir(parents=True)
    (share / "a.jpg").write_bytes(b"jpeg-bytes")
    (share / "trip" / "b.bin").write_bytes(b"\x00" * 2048)
    return share
