"""In-memory per-address connection history."""
import threading
from typing import Dict, Optional

import structlog

from ..models.device import ConnectionHistory

logger = structlog.get_logger(__name__)


class ConnectionHistoryStore:
    """Attempt/success counters keyed by address. Entries are created on the
    first recorded attempt and never expire."""

    def __init__(self) -> None:
        self._entries: Dict[str, ConnectionHistory] = {}
        self._lock = threading.Lock()

    def record_attempt(self, address: str, success: bool) -> None:
        with self._lock:
            history = self._entries.get(address)
            if history is None:
                history = self._entries[address] = ConnectionHistory()
            history.record(success)
        logger.debug("Connection attempt recorded", address=address, success=success)

    def has_connected_to(self, address: str) -> bool:
        with self._lock:
            history = self._entries.get(address)
            return history is not None and history.successes > 0

    def connection_count(self, address: str) -> int:
        """Total attempts recorded for ``address``."""
        with self._lock:
            history = self._entries.get(address)
            return history.attempts if history is not None else 0

    def get(self, address: str) -> Optional[ConnectionHistory]:
        with self._lock:
            history = self._entries.get(address)
            return history.model_copy() if history is not None else None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
