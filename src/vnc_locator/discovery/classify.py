"""Hostname heuristics for guessing a discovered host's device type and OS.

Best effort only: a host named "pc-linux-server" is a Desktop running Linux
as far as these rules are concerned.
"""
import socket
from typing import Tuple

import structlog

from ..models.common import DeviceType, OperatingSystem

logger = structlog.get_logger(__name__)

# First match wins; checked against the hostname as reported by reverse DNS.
DEVICE_TYPE_PATTERNS: Tuple[Tuple[Tuple[str, ...], DeviceType], ...] = (
    (("phone", "mobile"), DeviceType.MOBILE),
    (("tablet", "ipad"), DeviceType.TABLET),
    (("laptop",), DeviceType.LAPTOP),
    (("desktop", "pc"), DeviceType.DESKTOP),
    (("server",), DeviceType.SERVER),
)

# Checked against the lower-cased hostname.
OS_PATTERNS: Tuple[Tuple[str, OperatingSystem], ...] = (
    ("windows", OperatingSystem.WINDOWS),
    ("linux", OperatingSystem.LINUX),
    ("mac", OperatingSystem.MACOS),
    ("android", OperatingSystem.ANDROID),
    ("ios", OperatingSystem.IOS),
)


def infer_device_type(hostname: str | None) -> DeviceType:
    if not hostname:
        return DeviceType.UNKNOWN
    for needles, device_type in DEVICE_TYPE_PATTERNS:
        if any(needle in hostname for needle in needles):
            return device_type
    return DeviceType.UNKNOWN


def infer_operating_system(hostname: str | None) -> OperatingSystem:
    if not hostname:
        return OperatingSystem.UNKNOWN
    host = hostname.lower()
    for needle, operating_system in OS_PATTERNS:
        if needle in host:
            return operating_system
    return OperatingSystem.UNKNOWN


def resolve_hostname(address: str) -> str:
    """Reverse-resolves ``address``; falls back to the address itself."""
    try:
        return socket.gethostbyaddr(address)[0]
    except (OSError, UnicodeError) as e:
        logger.debug("Reverse lookup failed", address=address, error=str(e))
        return address
