"""Diagnostic counters for probe outcomes that are otherwise silently skipped."""
import threading
from collections import Counter
from typing import Optional

from ..utils.concurrency import CancellationToken


class ProbeStats:
    """Thread-safe named counters.

    Known counters: ``hosts_scheduled``, ``hosts_unreachable``,
    ``hosts_probed``, ``ports_probed``, ``port_errors``, ``banner_mismatches``,
    ``devices_found``, ``ssdp_responses``, ``ssdp_matches``, ``ranges_skipped``.
    """
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counts: Counter[str] = Counter()

    def increment(self, name: str, amount: int = 1, token: Optional[CancellationToken] = None) -> None:
        """Adds ``amount`` to ``name``. Dropped if ``token`` is already cancelled."""
        with self._lock:
            # checked under the lock: a reset that follows the cancel can't be undone
            if token is not None and token.cancelled:
                return
            self._counts[name] += amount

    def get(self, name: str) -> int:
        with self._lock:
            return self._counts[name]

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return dict(self._counts)

    def reset(self) -> None:
        with self._lock:
            self._counts.clear()
