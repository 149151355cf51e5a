"""Deduplicated, thread-safe collection of discovered devices."""
import threading
from typing import Dict, List, Optional, Tuple

import structlog

from ..models.device import DiscoveredDevice
from ..utils.concurrency import CancellationToken
from .events import DeviceDiscoveredEvent, EventDispatcher

logger = structlog.get_logger(__name__)


class DeviceRegistry:
    """
    Devices keyed by ``(address, port)``.

    ``add`` is idempotent: a device whose identity is already present is
    ignored even if its descriptive fields differ, and only newly added
    devices are announced on the dispatcher.

    Devices found by a session whose token is cancelled are rejected, so a
    stopped session's in-flight probes never reach the next session.
    """

    def __init__(self, dispatcher: Optional[EventDispatcher] = None):
        self.dispatcher = dispatcher
        self._devices: Dict[Tuple[str, int], DiscoveredDevice] = {}
        self._lock = threading.Lock()
        self.logger = logger.bind(component="DeviceRegistry")

    def add(self, device: DiscoveredDevice, token: Optional[CancellationToken] = None) -> bool:
        """Stores ``device``. Returns True only if it was not already known
        and ``token`` (if given) is not cancelled."""
        with self._lock:
            if token is not None and token.cancelled:
                self.logger.debug("Dropping device from cancelled session", device_id=device.device_id)
                return False
            if device.identity in self._devices:
                return False
            self._devices[device.identity] = device
            # queued under the lock so it always precedes a later clear()
            if self.dispatcher is not None:
                self.dispatcher.publish(DeviceDiscoveredEvent(device))
        self.logger.info("Device registered", device_id=device.device_id, hostname=device.hostname)
        return True

    def get(self, address: str, port: int) -> Optional[DiscoveredDevice]:
        with self._lock:
            return self._devices.get((address, port))

    def devices(self) -> List[DiscoveredDevice]:
        """Snapshot of the registered devices in registration order."""
        with self._lock:
            return list(self._devices.values())

    def clear(self) -> None:
        with self._lock:
            self._devices.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._devices)

    def __contains__(self, device: object) -> bool:
        if not isinstance(device, DiscoveredDevice):
            return False
        with self._lock:
            return device.identity in self._devices
