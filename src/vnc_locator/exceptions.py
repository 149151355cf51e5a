"""
Custom exceptions for VNC Locator discovery sessions.
"""
from typing import Optional


class DiscoveryError(Exception):
    """Base class for all discovery errors."""
    pass

class InterfaceEnumerationError(DiscoveryError):
    """Raised when the local network interfaces cannot be listed.
    Aborts the broadcast-scan strategy only."""
    pass

class SSDPSocketError(DiscoveryError):
    """Raised when the SSDP socket cannot be created, bound or sent on.
    Aborts the SSDP strategy only."""
    def __init__(self, message: str, address: Optional[str] = None, port: Optional[int] = None):
        super().__init__(message)
        self.address = address
        self.port = port

class WorkerPoolShutdownError(DiscoveryError):
    """Raised by ``BoundedWorkerPool.drain(strict=True)`` when queued probes
    do not finish within the allotted time."""
    def __init__(self, message: str, pending: int = 0):
        super().__init__(message)
        self.pending = pending
