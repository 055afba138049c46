"""
Utilities for discovering the address this host advertises to its peers.
"""
import ipaddress
import socket
from typing import Iterable, List, Optional, Tuple

import psutil

from ..errors import AddressDiscoveryError
from .logger import get_logger

LOG = get_logger(__name__)


def is_global_scope(address: str) -> bool:
    """
    Whether an IPv4 address has global scope in the Linux sense.

    Private ranges count as global; only loopback, link-local, multicast,
    unspecified and reserved addresses are host- or link-scoped.
    """
    try:
        ip = ipaddress.IPv4Address(address)
    except ValueError:
        return False
    return not (ip.is_loopback or ip.is_link_local or ip.is_multicast
                or ip.is_unspecified or ip.is_reserved)


def list_ipv4_addresses(exclude_prefixes: Iterable[str] = ()) -> List[Tuple[str, str]]:
    """
    Lists ``(interface, address)`` pairs for IPv4 addresses on interfaces
    that are up, in the order the kernel reports them.

    :param exclude_prefixes: Interface name prefixes to ignore.
    """
    prefixes = tuple(exclude_prefixes)
    stats = psutil.net_if_stats()
    found = []
    for nic, addrs in psutil.net_if_addrs().items():
        if prefixes and nic.startswith(prefixes):
            continue
        nic_stats = stats.get(nic)
        if nic_stats is not None and not nic_stats.isup:
            continue
        for addr in addrs:
            if addr.family == socket.AF_INET:
                found.append((nic, addr.address))
    return found


def discover_primary_address(interface: Optional[str] = None,
                             exclude_prefixes: Iterable[str] = ()) -> str:
    """
    Returns the first global-scope IPv4 address on this host.

    :param interface: Only consider this interface when given.
    :param exclude_prefixes: Interface name prefixes to ignore.
    :raises AddressDiscoveryError: If no address qualifies.
    """
    excluded = () if interface else exclude_prefixes
    candidates = list_ipv4_addresses(excluded)
    for nic, address in candidates:
        if interface and nic != interface:
            continue
        if is_global_scope(address):
            LOG.info(f"[address] Using {address} from {nic}")
            return address

    where = f"interface {interface}" if interface else "any interface"
    seen = ", ".join(f"{nic}={addr}" for nic, addr in candidates) or "none"
    raise AddressDiscoveryError(
        f"No global-scope IPv4 address on {where} (candidates: {seen})")
