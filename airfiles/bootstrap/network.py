"""Local network helpers used by the launcher to pick an address and port."""

import ipaddress
import logging
import socket
from typing import Iterable, Optional

from airfiles.domain.correlation_id import CorrelationLoggerAdapter

NETWORK_LOGGER = CorrelationLoggerAdapter(logging.getLogger("airfiles.network"), {})

PORT_SEARCH_ATTEMPTS = 100
LOOPBACK_ADDRESS = "127.0.0.1"
# Routing a UDP socket towards this address reveals the outbound interface;
# no packet is sent.
_PROBE_ADDRESS = ("10.255.255.255", 1)


class NoAvailablePort(RuntimeError):
    """Raised when no port in the searched range can be bound."""


def is_valid_port(port: int) -> bool:
    """Return True for ports a server may bind explicitly."""
    return 0 < port <= 65535


def is_valid_ip_address(address: str) -> bool:
    """Return True for a dotted-quad IPv4 address."""
    try:
        ipaddress.IPv4Address(address)
    except ValueError:
        return False
    return True


def is_local_network_address(address: str) -> bool:
    """Return True for 10/8, 172.16/12 and 192.168/16 addresses."""
    if not is_valid_ip_address(address):
        return False
    ip = ipaddress.IPv4Address(address)
    return ip.is_private and not ip.is_loopback and not ip.is_link_local


def is_port_available(port: int, host: str = "0.0.0.0") -> bool:
    """Probe whether a TCP port can currently be bound."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as probe:
        try:
            probe.bind((host, port))
        except OSError:
            return False
    return True


def find_available_port(
    start_port: int = 8080, attempts: int = PORT_SEARCH_ATTEMPTS, host: str = "0.0.0.0"
) -> int:
    """Return the first bindable port in [start_port, start_port + attempts]."""
    last_port = min(start_port + attempts, 65535)
    for port in range(start_port, last_port + 1):
        if is_port_available(port, host):
            return port
    raise NoAvailablePort(f"No available port found in range {start_port}-{last_port}")


def _outbound_address() -> Optional[str]:
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as probe:
        try:
            probe.connect(_PROBE_ADDRESS)
            return probe.getsockname()[0]
        except OSError:
            return None


def _hostname_addresses() -> list[str]:
    try:
        _, _, addresses = socket.gethostbyname_ex(socket.gethostname())
    except OSError:
        return []
    return addresses


def pick_local_network_address(candidates: Iterable[Optional[str]]) -> str:
    """Choose the best address to advertise from candidate addresses."""
    usable = [
        address
        for address in candidates
        if address and is_valid_ip_address(address) and not address.startswith("127.")
    ]
    for address in usable:
        if is_local_network_address(address):
            return address
    if usable:
        return usable[0]
    return LOOPBACK_ADDRESS


def get_local_network_address() -> str:
    """Return the IPv4 address other devices on the LAN can reach."""
    address = pick_local_network_address([_outbound_address(), *_hostname_addresses()])
    if address == LOOPBACK_ADDRESS:
        NETWORK_LOGGER.warning(
            "No local network address found, falling back to loopback",
            extra={"event": "network_address_fallback", "host": address},
        )
    return address
