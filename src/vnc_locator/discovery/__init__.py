"""
Network discovery module for VNC Locator.

Subnet enumeration, parallel RFB banner probing, SSDP hints, and the
deduplicated device registry with its event fan-out.
"""

from .discovery_service import DeviceDiscoveryService, DiscoverySession
from .events import (
    DeviceDiscoveredEvent,
    DeviceDiscoveryListener,
    DeviceLostEvent,
    DiscoveryCompletedEvent,
    DiscoveryStartedEvent,
    EventDispatcher,
    LoggingDiscoveryListener,
)
from .network import SubnetEnumerator, compute_scannable_hosts
from .prober import HostProber
from .registry import DeviceRegistry
from .ssdp import SSDPScanner
from .stats import ProbeStats

__all__ = [
    "DeviceDiscoveredEvent",
    "DeviceDiscoveryListener",
    "DeviceDiscoveryService",
    "DeviceLostEvent",
    "DeviceRegistry",
    "DiscoveryCompletedEvent",
    "DiscoverySession",
    "DiscoveryStartedEvent",
    "EventDispatcher",
    "HostProber",
    "LoggingDiscoveryListener",
    "ProbeStats",
    "SSDPScanner",
    "SubnetEnumerator",
    "compute_scannable_hosts",
]
