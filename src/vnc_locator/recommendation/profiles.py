"""In-memory device profiles keyed by ``address:port``."""
import threading
from typing import Any, Dict, List, Optional

import structlog

from ..models.device import DeviceProfile, DiscoveredDevice

logger = structlog.get_logger(__name__)


class DeviceProfileStore:
    """Profiles are created on first successful interaction and never removed automatically."""

    def __init__(self) -> None:
        self._profiles: Dict[str, DeviceProfile] = {}
        self._lock = threading.Lock()

    def get(self, device_id: str) -> Optional[DeviceProfile]:
        with self._lock:
            return self._profiles.get(device_id)

    def ensure(self, device: DiscoveredDevice) -> DeviceProfile:
        """Returns the device's profile, creating a default one if missing."""
        with self._lock:
            profile = self._profiles.get(device.device_id)
            if profile is None:
                profile = DeviceProfile(
                    device_id=device.device_id,
                    display_name=device.hostname,
                    device_type=device.device_type,
                )
                self._profiles[device.device_id] = profile
                logger.info("Device profile created", device_id=device.device_id)
            return profile

    def update_setting(self, device_id: str, key: str, value: Any) -> DeviceProfile:
        """Sets one connection setting on an existing profile.

        Raises:
            KeyError: if no profile exists for ``device_id``.
        """
        with self._lock:
            profile = self._profiles[device_id]
            profile.set_setting(key, value)
            return profile

    def profiles(self) -> List[DeviceProfile]:
        with self._lock:
            return list(self._profiles.values())

    def __contains__(self, device_id: object) -> bool:
        with self._lock:
            return device_id in self._profiles

    def __len__(self) -> int:
        with self._lock:
            return len(self._profiles)
