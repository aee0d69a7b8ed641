"""Unit tests for network helpers."""

import socket

import pytest

from airfiles.bootstrap import network
from airfiles.bootstrap.network import (
    NoAvailablePort,
    find_available_port,
    get_local_network_address,
    is_local_network_address,
    is_valid_ip_address,
    is_valid_port,
    pick_local_network_address,
)
from airfiles.bootstrap.socket_factory import create_server_socket
from airfiles.domain.errors import BindError


@pytest.mark.parametrize(
    ("address", "expected"),
    [
        ("192.168.1.10", True),
        ("10.0.0.7", True),
        ("172.16.0.1", True),
        ("172.31.255.254", True),
        ("172.32.0.1", False),
        ("8.8.8.8", False),
        ("127.0.0.1", False),
        ("not-an-ip", False),
    ],
)
def test_is_local_network_address(address, expected):
    """Only RFC 1918 addresses count as local network addresses."""
    assert is_local_network_address(address) is expected


def test_is_valid_ip_address():
    """Dotted quads are valid; anything else is not."""
    assert is_valid_ip_address("192.168.0.1")
    assert not is_valid_ip_address("256.1.1.1")
    assert not is_valid_ip_address("localhost")


@pytest.mark.parametrize(("port", "expected"), [(0, False), (1, True), (65535, True), (65536, False)])
def test_is_valid_port(port, expected):
    """Explicit ports lie in 1..65535."""
    assert is_valid_port(port) is expected


def test_pick_prefers_private_addresses():
    """Private addresses beat public ones, loopback is the last resort."""
    assert pick_local_network_address(["8.8.4.4", "192.168.1.5"]) == "192.168.1.5"
    assert pick_local_network_address([None, "8.8.4.4"]) == "8.8.4.4"
    assert pick_local_network_address([None, "127.0.1.1"]) == "127.0.0.1"


def test_get_local_network_address_falls_back_to_loopback(monkeypatch):
    """With no usable interface the loopback address is returned."""
    monkeypatch.setattr(network, "_outbound_address", lambda: None)
    monkeypatch.setattr(network, "_hostname_addresses", lambda: [])

    assert get_local_network_address() == "127.0.0.1"


def test_find_available_port_skips_ports_in_use():
    """A bound port is skipped in favour of the next free one."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as blocker:
        blocker.bind(("127.0.0.1", 0))
        blocker.listen(1)
        busy_port = blocker.getsockname()[1]

        port = find_available_port(busy_port, attempts=20, host="127.0.0.1")

    assert busy_port < port <= busy_port + 20


def test_find_available_port_raises_when_exhausted(monkeypatch):
    """No free port in range raises NoAvailablePort."""
    monkeypatch.setattr(network, "is_port_available", lambda _port, _host: False)

    with pytest.raises(NoAvailablePort):
        find_available_port(8080, attempts=3)


def test_create_server_socket_wraps_bind_failures():
    """Bind failures surface as BindError naming the address."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as blocker:
        blocker.bind(("127.0.0.1", 0))
        blocker.listen(1)
        port = blocker.getsockname()[1]

        with pytest.raises(BindError) as excinfo:
            create_server_socket("127.0.0.1", port)

    assert excinfo.value.port == port
    assert f"127.0.0.1:{port}" in str(excinfo.value)


def test_create_server_socket_binds_ephemeral_port():
    """Port 0 yields a listening socket on a real port."""
    server_socket = create_server_socket("127.0.0.1", 0)
    try:
        assert server_socket.getsockname()[1] > 0
        assert server_socket.gettimeout() is not None
    finally:
        server_socket.close()
