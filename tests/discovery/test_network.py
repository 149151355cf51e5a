"""Tests for interface and subnet enumeration."""

from types import SimpleNamespace
from unittest.mock import patch

import netifaces
import pytest

from vnc_locator.discovery.network import (
    SubnetEnumerator,
    compute_scannable_hosts,
    get_interface_ipv4_addresses,
    get_network_interfaces,
    is_interface_up,
    prefix_length_from_netmask,
    synthesize_host_address,
)
from vnc_locator.exceptions import InterfaceEnumerationError
from vnc_locator.utils.concurrency import CancellationToken


@pytest.mark.parametrize("prefix, expected", [(24, 254), (30, 2), (16, 65534), (31, 0), (32, 0)])
def test_compute_scannable_hosts(prefix, expected):
    assert compute_scannable_hosts(prefix) == expected


@pytest.mark.parametrize("netmask, expected", [
    ("255.255.255.0", 24),
    ("255.255.0.0", 16),
    ("255.255.255.254", 31),
    ("/24", 24),
    ("28", 28),
])
def test_prefix_length_from_netmask(netmask, expected):
    assert prefix_length_from_netmask(netmask) == expected


def test_prefix_length_from_invalid_netmask():
    with pytest.raises(ValueError):
        prefix_length_from_netmask("255.0.255.0")


def test_synthesize_host_address_keeps_network_bits():
    assert synthesize_host_address("192.168.1.255", 24, 1) == "192.168.1.1"
    assert synthesize_host_address("192.168.1.255", 24, 254) == "192.168.1.254"
    assert synthesize_host_address("10.1.255.255", 16, 258) == "10.1.1.2"
    assert synthesize_host_address("172.16.0.15", 28, 3) == "172.16.0.3"


def test_get_network_interfaces_skips_loopback():
    with patch("netifaces.interfaces", return_value=["lo", "eth0", "wlan0", "Loopback Pseudo-Interface 1"]):
        assert get_network_interfaces() == ["eth0", "wlan0"]


def test_get_network_interfaces_failure_raises():
    with patch("netifaces.interfaces", side_effect=OSError("netifaces error")):
        with pytest.raises(InterfaceEnumerationError):
            get_network_interfaces()


def test_get_interface_ipv4_addresses_error_handling():
    with patch("netifaces.ifaddresses", side_effect=ValueError("no such interface")):
        assert get_interface_ipv4_addresses("eth9") == []


def test_is_interface_up_uses_psutil_stats():
    stats = {"eth0": SimpleNamespace(isup=True), "eth1": SimpleNamespace(isup=False)}
    with patch("psutil.net_if_stats", return_value=stats):
        assert is_interface_up("eth0") is True
        assert is_interface_up("eth1") is False
        assert is_interface_up("unknown0") is True


INTERFACE_ADDRESSES = {
    "eth0": {netifaces.AF_INET: [{"addr": "192.168.1.20", "netmask": "255.255.255.0", "broadcast": "192.168.1.255"}]},
    "eth1": {netifaces.AF_INET: [{"addr": "10.0.0.2", "netmask": "255.255.255.0", "broadcast": "10.0.0.255"}]},
    "ptp0": {netifaces.AF_INET: [{"addr": "10.9.0.1", "netmask": "255.255.255.254", "broadcast": "10.9.0.1"}]},
    "host0": {netifaces.AF_INET: [{"addr": "10.8.0.1", "netmask": "255.255.255.255", "broadcast": "10.8.0.1"}]},
    "tun0": {netifaces.AF_INET: [{"addr": "10.7.0.1", "netmask": "255.255.255.0"}]},
    "wlan0": {},
}


@pytest.fixture
def patched_interfaces():
    stats = {name: SimpleNamespace(isup=name != "eth1") for name in INTERFACE_ADDRESSES}
    with patch("netifaces.interfaces", return_value=["lo", *INTERFACE_ADDRESSES]), \
         patch("netifaces.ifaddresses", side_effect=lambda iface: INTERFACE_ADDRESSES[iface]), \
         patch("psutil.net_if_stats", return_value=stats):
        yield


def test_subnet_enumerator_emits_only_qualifying_ranges(patched_interfaces):
    ranges = SubnetEnumerator().enumerate()

    # eth1 is down, ptp0 (/31) and host0 (/32) have no hosts, tun0 has no broadcast
    assert [r.interface for r in ranges] == ["eth0"]
    scan_range = ranges[0]
    assert scan_range.address == "192.168.1.20"
    assert scan_range.broadcast == "192.168.1.255"
    assert scan_range.prefix_length == 24
    assert scan_range.scannable_hosts == 254


def test_subnet_enumerator_interface_allow_list(patched_interfaces):
    assert SubnetEnumerator(interfaces=["wlan0"]).enumerate() == []


def test_subnet_enumerator_stops_when_cancelled(patched_interfaces):
    token = CancellationToken()
    token.cancel()
    assert SubnetEnumerator().enumerate(token) == []
