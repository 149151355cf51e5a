"""
ConnectionManager: ties discovery events to recommendation scoring, keeps
device profiles and connection history, and pushes high-confidence
recommendations to a notifier.
"""
from collections import deque
from collections.abc import Callable
from typing import Any, Deque, Dict, List, Optional

import structlog

from ..config import Config
from ..discovery.discovery_service import DeviceDiscoveryService
from ..discovery.events import DeviceDiscoveryListener
from ..models.device import ConnectionRecommendation, DeviceProfile, DiscoveredDevice
from .engine import PortChecker, RecommendationEngine
from .history import ConnectionHistoryStore
from .profiles import DeviceProfileStore
from .trust import TrustLookup

logger = structlog.get_logger(__name__)

Notifier = Callable[[ConnectionRecommendation], None]
Connector = Callable[[DiscoveredDevice, Dict[str, Any]], None]


def log_connector(device: DiscoveredDevice, settings: Dict[str, Any]) -> None:
    """Default connector: records the request; launching a viewer is up to the embedding application."""
    logger.info("Initiating connection", device=str(device), device_id=device.device_id, settings=settings)


class ConnectionManager(DeviceDiscoveryListener):
    """
    Listens to a DeviceDiscoveryService and scores each newly discovered
    device. Recommendations above the push threshold go to ``notifier``.
    """

    def __init__(
        self,
        app_config: Config,
        discovery_service: Optional[DeviceDiscoveryService] = None,
        history: Optional[ConnectionHistoryStore] = None,
        profiles: Optional[DeviceProfileStore] = None,
        trust_lookup: Optional[TrustLookup] = None,
        port_checker: Optional[PortChecker] = None,
        notifier: Optional[Notifier] = None,
        connector: Optional[Connector] = None,
    ):
        self.app_config = app_config
        self.discovery_service = discovery_service or DeviceDiscoveryService(app_config)
        self.history = history or ConnectionHistoryStore()
        self.profiles = profiles or DeviceProfileStore()
        self.engine = RecommendationEngine(
            app_config.recommendation, self.history, self.profiles,
            port_checker=port_checker, trust_lookup=trust_lookup,
        )
        self.notifier = notifier
        self.connector = connector or log_connector
        # most recent pushes only; the notifier sees every one
        self.pushed: Deque[ConnectionRecommendation] = deque(maxlen=app_config.recommendation.pushed_history_limit)
        self.logger = logger.bind(component="ConnectionManager")
        self.discovery_service.add_listener(self)

    # DeviceDiscoveryListener

    def on_device_discovered(self, device: DiscoveredDevice) -> None:
        recommendation = self.engine.recommend(device)
        if self.engine.should_push(recommendation):
            self._push(recommendation)

    def _push(self, recommendation: ConnectionRecommendation) -> None:
        self.pushed.append(recommendation)
        device = recommendation.device
        self.logger.info(
            "High-confidence connection recommendation",
            device=str(device),
            confidence=recommendation.confidence,
            reason=recommendation.reason,
        )
        if self.notifier is not None:
            self.notifier(recommendation)

    # Recommendations

    def get_connection_recommendations(self) -> List[ConnectionRecommendation]:
        return self.engine.recommend_all(self.discovery_service.get_discovered_devices())

    def recommend(self, device: DiscoveredDevice) -> Optional[ConnectionRecommendation]:
        return self.engine.recommend(device)

    # Connections, history and profiles

    def initiate_connection(self, device: DiscoveredDevice, settings: Optional[Dict[str, Any]] = None) -> bool:
        """
        Hands ``device`` to the connector and records the outcome. A
        successful attempt creates the device profile if it does not exist.
        """
        settings = dict(settings or {})
        log = self.logger.bind(device_id=device.device_id)
        try:
            self.connector(device, settings)
        except Exception as e:
            log.error("Connection failed", error=str(e))
            self.history.record_attempt(device.address, False)
            return False
        self.history.record_attempt(device.address, True)
        self.profiles.ensure(device)
        log.info("Connection initiated", hostname=device.hostname)
        return True

    def connection_count(self, address: str) -> int:
        return self.history.connection_count(address)

    def get_profile(self, device_id: str) -> Optional[DeviceProfile]:
        return self.profiles.get(device_id)

    def ensure_profile(self, device: DiscoveredDevice) -> DeviceProfile:
        return self.profiles.ensure(device)

    def update_profile_setting(self, device_id: str, key: str, value: Any) -> DeviceProfile:
        return self.profiles.update_setting(device_id, key, value)

    # Discovery passthrough

    def start_discovery(self) -> bool:
        return self.discovery_service.start_discovery()

    def stop_discovery(self, timeout: Optional[float] = None) -> bool:
        return self.discovery_service.stop_discovery(timeout=timeout)
