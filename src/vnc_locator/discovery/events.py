"""Discovery events and the ordered dispatcher that fans them out to listeners.

Events are queued by any producer thread and delivered one at a time, in
queue order, from a single dispatcher thread. No ordering is promised
between events produced by different discovery strategies.
"""
from __future__ import annotations

import queue
import threading
from typing import List, Optional

import structlog

from ..models.device import DiscoveredDevice

logger = structlog.get_logger(__name__)


class DiscoveryEvent: # Base class for dispatcher events
    listener_method: str = ""

    def dispatch_to(self, listener: "DeviceDiscoveryListener") -> None:
        getattr(listener, self.listener_method)()


class DiscoveryStartedEvent(DiscoveryEvent):
    listener_method = "on_discovery_started"

    def __repr__(self):
        return "<DiscoveryStartedEvent>"


class DiscoveryCompletedEvent(DiscoveryEvent):
    listener_method = "on_discovery_completed"

    def __repr__(self):
        return "<DiscoveryCompletedEvent>"


class DeviceDiscoveredEvent(DiscoveryEvent):
    listener_method = "on_device_discovered"

    def __init__(self, device: DiscoveredDevice):
        self.device = device

    def dispatch_to(self, listener: "DeviceDiscoveryListener") -> None:
        listener.on_device_discovered(self.device)

    def __repr__(self):
        return f"<DeviceDiscoveredEvent device_id='{self.device.device_id}'>"


class DeviceLostEvent(DiscoveryEvent):
    """Part of the listener contract; nothing in the discovery engine emits it yet."""
    listener_method = "on_device_lost"

    def __init__(self, device: DiscoveredDevice):
        self.device = device

    def dispatch_to(self, listener: "DeviceDiscoveryListener") -> None:
        listener.on_device_lost(self.device)

    def __repr__(self):
        return f"<DeviceLostEvent device_id='{self.device.device_id}'>"


class _FlushMarker:
    def __init__(self) -> None:
        self.done = threading.Event()


class DeviceDiscoveryListener:
    """Receives discovery session events. Override what you need."""

    def on_discovery_started(self) -> None:
        pass

    def on_device_discovered(self, device: DiscoveredDevice) -> None:
        pass

    def on_device_lost(self, device: DiscoveredDevice) -> None:
        pass

    def on_discovery_completed(self) -> None:
        pass


class LoggingDiscoveryListener(DeviceDiscoveryListener):
    """Writes every discovery event to the structured log."""

    def __init__(self, log: Optional[structlog.BoundLogger] = None):
        self.logger = log or logger.bind(listener="LoggingDiscoveryListener")
        self.devices_seen = 0

    def on_discovery_started(self) -> None:
        self.logger.info("Device discovery started.")

    def on_device_discovered(self, device: DiscoveredDevice) -> None:
        self.devices_seen += 1
        self.logger.info("Discovered device", device=str(device), device_id=device.device_id)

    def on_device_lost(self, device: DiscoveredDevice) -> None:
        self.logger.info("Device lost", device=str(device), device_id=device.device_id)

    def on_discovery_completed(self) -> None:
        self.logger.info("Discovery completed.", devices_found=self.devices_seen)


class EventDispatcher:
    """Single-threaded delivery of discovery events to registered listeners.

    Attributes:
        delivered: number of listener callbacks invoked.
        listener_errors: number of listener callbacks that raised.
    """

    def __init__(self, name: str = "discovery-events", log: Optional[structlog.BoundLogger] = None):
        self.name = name
        self.logger = log or logger.bind(dispatcher=name)
        self._queue: queue.Queue = queue.Queue()
        self._listeners: List[DeviceDiscoveryListener] = []
        self._listeners_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.delivered = 0
        self.listener_errors = 0

    def add_listener(self, listener: DeviceDiscoveryListener) -> None:
        with self._listeners_lock:
            # copy-on-write so delivery can iterate without holding the lock
            self._listeners = [*self._listeners, listener]

    def remove_listener(self, listener: DeviceDiscoveryListener) -> None:
        with self._listeners_lock:
            self._listeners = [l for l in self._listeners if l is not listener]

    @property
    def listeners(self) -> List[DeviceDiscoveryListener]:
        return list(self._listeners)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        with self._state_lock:
            if self.running:
                return
            self._stop_event.clear()
            self._thread = threading.Thread(target=self._process_events, name=self.name, daemon=True)
            self._thread.start()
        self.logger.debug("Event dispatcher started.")

    def publish(self, event: DiscoveryEvent) -> None:
        """Queues ``event`` for delivery. Starts the dispatcher if needed."""
        if not self.running:
            self.start()
        self._queue.put(event)

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Blocks until every event queued before this call has been delivered."""
        if not self.running:
            return self._queue.empty()
        marker = _FlushMarker()
        self._queue.put(marker)
        return marker.done.wait(timeout)

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Delivers what is already queued, then stops the dispatcher thread."""
        if not self.running:
            return
        self.flush(timeout)
        self._stop_event.set()
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
        self.logger.debug("Event dispatcher stopped.", delivered=self.delivered)

    def _process_events(self) -> None:
        while not self._stop_event.is_set():
            try:
                item = self._queue.get(timeout=1.0)
            except queue.Empty:
                continue  # Allow checking self._stop_event
            try:
                if isinstance(item, _FlushMarker):
                    item.done.set()
                else:
                    self._deliver(item)
            finally:
                self._queue.task_done()

    def _deliver(self, event: DiscoveryEvent) -> None:
        for listener in self._listeners:
            try:
                event.dispatch_to(listener)
                self.delivered += 1
            except Exception as e:
                self.listener_errors += 1
                self.logger.exception(
                    "Discovery listener raised", event=repr(event),
                    listener=type(listener).__name__, error=str(e)
                )
