"""Network interface and subnet enumeration utilities for VNC Locator."""

import ipaddress
from typing import Any, Dict, List

import netifaces
import psutil
import structlog

from ..exceptions import InterfaceEnumerationError
from ..models.device import ScanRange, scannable_hosts_for_prefix
from ..utils.concurrency import CancellationToken

logger = structlog.get_logger(__name__)

LOOPBACK_PREFIXES = ("lo", "loopback")


def compute_scannable_hosts(prefix_length: int) -> int:
    """``2**(32 - prefix_length) - 2`` clamped to zero (so /31 and /32 yield 0)."""
    return scannable_hosts_for_prefix(prefix_length)


def prefix_length_from_netmask(netmask: str) -> int:
    """Converts '255.255.255.0' (or '/24', or '24') to a prefix length.

    Raises:
        ValueError: if the mask is not a valid IPv4 netmask.
    """
    mask = netmask.strip()
    if mask.startswith("/"):
        mask = mask[1:]
    if mask.isdigit():
        prefix = int(mask)
        if not 0 <= prefix <= 32:
            raise ValueError(f"Invalid prefix length: {netmask}")
        return prefix
    return ipaddress.IPv4Network(f"0.0.0.0/{mask}").prefixlen


def synthesize_host_address(broadcast: str, prefix_length: int, host_index: int) -> str:
    """Replaces the host bits of ``broadcast`` with ``host_index``.

    >>> synthesize_host_address("192.168.1.255", 24, 7)
    '192.168.1.7'
    """
    host_bits = max(0, 32 - prefix_length)
    host_mask = (1 << host_bits) - 1
    network_part = int(ipaddress.IPv4Address(broadcast)) & ~host_mask & 0xFFFFFFFF
    return str(ipaddress.IPv4Address(network_part | (host_index & host_mask)))


def get_network_interfaces(skip_loopback: bool = True) -> List[str]:
    """Get list of network interfaces.

    Args:
        skip_loopback: Whether to exclude loopback interfaces.

    Returns:
        List[str]: List of interface names.

    Raises:
        InterfaceEnumerationError: if the interface list cannot be read.
    """
    try:
        interfaces = netifaces.interfaces()
    except Exception as e:
        logger.error("Failed to list network interfaces", error=str(e))
        raise InterfaceEnumerationError(f"Cannot list network interfaces: {e}") from e
    if skip_loopback:
        interfaces = [
            iface for iface in interfaces
            if not iface.lower().startswith(LOOPBACK_PREFIXES)
        ]
    return interfaces


def get_interface_ipv4_addresses(interface: str) -> List[Dict[str, Any]]:
    """Get the IPv4 address entries ('addr', 'netmask', 'broadcast') of an interface.

    Args:
        interface: Network interface name.

    Returns:
        List of address dicts as reported by netifaces; empty on error.
    """
    try:
        addr_info = netifaces.ifaddresses(interface)
    except (ValueError, KeyError, OSError) as e:
        logger.error("Failed to get addresses for interface", interface=interface, error=str(e))
        return []
    return list(addr_info.get(netifaces.AF_INET, []))


def is_interface_up(interface: str) -> bool:
    """Administrative up state from psutil. Interfaces psutil does not know
    about are treated as up."""
    try:
        stats = psutil.net_if_stats().get(interface)
    except (OSError, RuntimeError) as e:
        logger.debug("Interface stats unavailable", interface=interface, error=str(e))
        return True
    if stats is None:
        return True
    return bool(stats.isup)


def _is_loopback_address(address: str) -> bool:
    try:
        return ipaddress.IPv4Address(address).is_loopback
    except ValueError:
        return False


class SubnetEnumerator:
    """Lists the scan ranges of every usable local IPv4 interface address."""

    def __init__(self, interfaces: List[str] | None = None):
        # Optional allow-list of interface names; empty means all.
        self.interfaces = list(interfaces or [])
        self.logger = logger.bind(component="SubnetEnumerator")

    def enumerate(self, token: CancellationToken | None = None) -> List[ScanRange]:
        """Returns one ScanRange per qualifying interface address.

        Skips loopback and down interfaces, addresses without a broadcast
        address, and addresses whose prefix leaves no scannable hosts.

        Raises:
            InterfaceEnumerationError: if the interfaces cannot be listed.
        """
        ranges: List[ScanRange] = []
        for iface in get_network_interfaces(skip_loopback=True):
            if token is not None and token.cancelled:
                self.logger.debug("Enumeration cancelled")
                break
            if self.interfaces and iface not in self.interfaces:
                continue
            if not is_interface_up(iface):
                self.logger.debug("Skipping interface that is down", interface=iface)
                continue
            for entry in get_interface_ipv4_addresses(iface):
                scan_range = self._scan_range_for(iface, entry)
                if scan_range is not None:
                    ranges.append(scan_range)
        self.logger.info("Enumerated scan ranges", count=len(ranges))
        return ranges

    def _scan_range_for(self, iface: str, entry: Dict[str, Any]) -> ScanRange | None:
        address = entry.get("addr")
        broadcast = entry.get("broadcast")
        netmask = entry.get("netmask")
        log = self.logger.bind(interface=iface, address=address)
        if not address or _is_loopback_address(address):
            return None
        if not broadcast or not netmask:
            log.debug("Address has no broadcast range, skipping")
            return None
        try:
            prefix = prefix_length_from_netmask(netmask)
            ipaddress.IPv4Address(broadcast)
        except ValueError as e:
            log.warning("Invalid netmask or broadcast address, skipping", netmask=netmask, broadcast=broadcast, error=str(e))
            return None
        if compute_scannable_hosts(prefix) <= 0:
            log.debug("Prefix leaves no scannable hosts, skipping", prefix_length=prefix)
            return None
        return ScanRange(interface=iface, address=address, broadcast=broadcast, prefix_length=prefix)
