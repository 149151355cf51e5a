"""Trust-level lookup consumed by recommendation scoring.

The credential/trust subsystem itself lives elsewhere; scoring only needs a
``trust_level_of(device_id) -> 0..100`` query.
"""
import threading
from typing import Dict, Optional, Protocol


class TrustLookup(Protocol):
    def trust_level_of(self, device_id: str) -> int:
        ...


class StaticTrustLookup:
    """Dictionary-backed trust levels, clamped to 0..100. Unknown devices are 0."""

    def __init__(self, levels: Optional[Dict[str, int]] = None):
        self._levels: Dict[str, int] = {}
        self._lock = threading.Lock()
        for device_id, level in (levels or {}).items():
            self.set_trust_level(device_id, level)

    def set_trust_level(self, device_id: str, level: int) -> None:
        with self._lock:
            self._levels[device_id] = max(0, min(100, int(level)))

    def trust_level_of(self, device_id: str) -> int:
        with self._lock:
            return self._levels.get(device_id, 0)
