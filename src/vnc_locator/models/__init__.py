"""
Pydantic models for VNC Locator.
"""
from .common import (
    BasePydanticModel,
    DeviceType,
    DiscoveryMethod,
    OperatingSystem,
)
from .device import (
    ConnectionHistory,
    ConnectionRecommendation,
    DeviceMetadata,
    DeviceProfile,
    DiscoveredDevice,
    ScanRange,
    scannable_hosts_for_prefix,
)

__all__ = [
    "BasePydanticModel",
    "ConnectionHistory",
    "ConnectionRecommendation",
    "DeviceMetadata",
    "DeviceProfile",
    "DeviceType",
    "DiscoveredDevice",
    "DiscoveryMethod",
    "OperatingSystem",
    "ScanRange",
    "scannable_hosts_for_prefix",
]
