"""Fixtures that run ``main.py`` in a subprocess against temporary shares."""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path
from typing import Iterator, TypedDict

import pytest

from tests.utils.http import reserve_port, wait_for_port

PROJECT_ROOT = Path(__file__).resolve().parent.parent
LAUNCHER = PROJECT_ROOT / "main.py"
TEST_HOST = "127.0.0.1"


class ServerProcessInfo(TypedDict):
    """What a test needs to talk to, inspect and signal a running server."""

    base_url: str
    host: str
    port: int
    shared_root: Path
    process: subprocess.Popen[str]
    log_file: Path


def _launch_server(
    host: str,
    port: int,
    shared_paths: list[Path],
    log_file: Path,
    extra_args: list[str] | None = None,
) -> Iterator[ServerProcessInfo]:
    command = [sys.executable, str(LAUNCHER), *map(str, shared_paths)]
    command += ["--host", host, "--port", str(port)]
    command += ["--log-destination", str(log_file), "--shutdown-grace-seconds", "2"]
    command += extra_args or []

    process = subprocess.Popen(
        command,
        cwd=PROJECT_ROOT,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.PIPE,
        text=True,
    )
    try:
        try:
            wait_for_port(host, port)
        except RuntimeError:
            process.kill()
            _, stderr = process.communicate(timeout=5)
            log = log_file.read_text(encoding="utf-8") if log_file.exists() else ""
            pytest.fail(f"Server did not come up.\nstderr:\n{stderr}\nlog:\n{log}")

        yield {
            "base_url": f"http://{host}:{port}",
            "host": host,
            "port": port,
            "shared_root": shared_paths[0],
            "process": process,
            "log_file": log_file,
        }
    finally:
        if process.poll() is None:
            process.terminate()
            try:
                process.wait(timeout=10)
            except subprocess.TimeoutExpired:
                process.kill()
                process.wait()
        if process.stderr is not None:
            process.stderr.close()


def populate_share(root: Path) -> Path:
    """Create ``Photos/`` with a few files and a nested ``trip/`` folder."""
    share = root / "Photos"
    (share / "trip").mkdir(parents=True)
    (share / "a.jpg").write_bytes(bytes(range(256)) * 40)
    (share / "notes.txt").write_text("hello from airfiles\n", encoding="utf-8")
    (share / "trip" / "b.bin").write_bytes(b"\x00\x01" * 1000)
    return share


@pytest.fixture(scope="session")
def project_root() -> Path:
    return PROJECT_ROOT


@pytest.fixture(name="server_process")
def _server_process(tmp_path_factory: pytest.TempPathFactory) -> Iterator[ServerProcessInfo]:
    """A server sharing one populated folder."""
    root = tmp_path_factory.mktemp("server-files")
    share = populate_share(root)
    yield from _launch_server(TEST_HOST, reserve_port(TEST_HOST), [share], root / "server.log")


@pytest.fixture(name="protected_server_process")
def _protected_server_process(
    tmp_path_factory: pytest.TempPathFactory,
) -> Iterator[ServerProcessInfo]:
    """Same share, gated by the password ``hunter2``."""
    root = tmp_path_factory.mktemp("server-files-protected")
    share = populate_share(root)
    yield from _launch_server(
        TEST_HOST,
        reserve_port(TEST_HOST),
        [share],
        root / "server.log",
        ["--password", "hunter2"],
    )


@pytest.fixture(name="scenario_server")
def _scenario_server(tmp_path_factory: pytest.TempPathFactory) -> Iterator[ServerProcessInfo]:
    """Two roots: the three-byte file ``a.txt`` and the folder ``sub/``."""
    root = tmp_path_factory.mktemp("scenario")
    single = root / "a.txt"
    single.write_bytes(b"abc")
    sub = root / "sub"
    sub.mkdir()
    (sub / "b.txt").write_text("bee", encoding="utf-8")
    yield from _launch_server(
        TEST_HOST, reserve_port(TEST_HOST), [single, sub], root / "server.log"
    )


@pytest.fixture()
def base_url(server_process: ServerProcessInfo) -> str:
    return server_process["base_url"]
