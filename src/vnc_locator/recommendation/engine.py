"""
Connection recommendation scoring.

Confidence is a sum of fixed weights, one per signal that holds:

    previously connected      +0.4
    Desktop/Laptop  | Server  +0.2 | +0.3
    service port reachable    +0.3
    device profile exists     +0.1
    trusted (optional lookup) +0.1

The sum is rounded to two decimals and clamped to [0, 1]. It is a rank,
not a probability.
"""
import socket
from collections.abc import Callable, Iterable
from typing import Any, Dict, List, Optional, Tuple

import structlog

from ..config import RecommendationConfig
from ..models.common import DeviceType, OperatingSystem
from ..models.device import ConnectionRecommendation, DiscoveredDevice
from .history import ConnectionHistoryStore
from .profiles import DeviceProfileStore
from .trust import TrustLookup

logger = structlog.get_logger(__name__)

PortChecker = Callable[[str, int, int], bool]

DESKTOP_TYPES = (DeviceType.DESKTOP, DeviceType.LAPTOP)


def is_port_accessible(address: str, port: int, timeout_ms: int) -> bool:
    """Fresh TCP connect to ``address:port``; any error means not accessible."""
    try:
        with socket.create_connection((address, port), timeout=timeout_ms / 1000):
            return True
    except OSError:
        return False


def suggested_settings_for(device: DiscoveredDevice) -> Dict[str, Any]:
    settings: Dict[str, Any] = {}
    if device.device_type == DeviceType.MOBILE:
        settings["compression"] = "high"
        settings["color_depth"] = "8"
    elif device.device_type in DESKTOP_TYPES:
        settings["compression"] = "medium"
        settings["color_depth"] = "24"

    settings["encryption"] = "preferred"
    settings["authentication"] = "required"

    if device.operating_system in (OperatingSystem.WINDOWS, OperatingSystem.MACOS):
        settings["encoding"] = "Tight"
    elif device.operating_system == OperatingSystem.LINUX:
        settings["encoding"] = "ZRLE"
    return settings


class RecommendationEngine:
    """Scores discovered devices against history, reachability, type, profile and trust."""

    def __init__(
        self,
        recommendation_config: RecommendationConfig,
        history: ConnectionHistoryStore,
        profiles: DeviceProfileStore,
        port_checker: Optional[PortChecker] = None,
        trust_lookup: Optional[TrustLookup] = None,
    ):
        self.config = recommendation_config
        self.history = history
        self.profiles = profiles
        self.port_checker = port_checker or is_port_accessible
        self.trust_lookup = trust_lookup
        self.logger = logger.bind(component="RecommendationEngine")

    def signals_for(self, device: DiscoveredDevice) -> List[Tuple[float, str]]:
        """(weight, reason) for every signal that holds for ``device``."""
        cfg = self.config
        signals: List[Tuple[float, str]] = []
        if self.history.has_connected_to(device.address):
            signals.append((cfg.history_weight, "Previously connected device."))

        if device.device_type in DESKTOP_TYPES:
            signals.append((cfg.desktop_weight, "Desktop/Laptop device type."))
        elif device.device_type == DeviceType.SERVER:
            signals.append((cfg.server_weight, "Server device type."))

        if self.port_checker(device.address, device.port, cfg.reachability_timeout_ms):
            signals.append((cfg.reachable_weight, "VNC port accessible."))

        if device.device_id in self.profiles:
            signals.append((cfg.profile_weight, "Has device profile."))

        if self.trust_lookup is not None:
            level = self.trust_lookup.trust_level_of(device.device_id)
            if level >= cfg.trust_threshold:
                signals.append((cfg.trust_weight, f"Trusted device (trust level {level})."))
        return signals

    @staticmethod
    def score(signals: Iterable[Tuple[float, str]]) -> float:
        total = sum(weight for weight, _ in signals)
        return min(1.0, max(0.0, round(total, 2)))

    def recommend(self, device: DiscoveredDevice) -> Optional[ConnectionRecommendation]:
        """Returns a recommendation, or None when no signal holds (score 0.0)."""
        signals = self.signals_for(device)
        confidence = self.score(signals)
        if confidence <= 0.0:
            return None
        recommendation = ConnectionRecommendation(
            device=device,
            confidence=confidence,
            reason=" ".join(reason for _, reason in signals),
            suggested_settings=suggested_settings_for(device),
        )
        self.logger.debug("Scored device", device_id=device.device_id, confidence=confidence)
        return recommendation

    def recommend_all(self, devices: Iterable[DiscoveredDevice]) -> List[ConnectionRecommendation]:
        """
        Recommendations scoring above ``list_threshold``, highest first.
        Equal scores keep the order of ``devices``.
        """
        recommendations = []
        for device in devices:
            recommendation = self.recommend(device)
            if recommendation is not None and recommendation.confidence > self.config.list_threshold:
                recommendations.append(recommendation)
        return sorted(recommendations, key=lambda r: r.confidence, reverse=True)

    def should_push(self, recommendation: Optional[ConnectionRecommendation]) -> bool:
        return recommendation is not None and recommendation.confidence > self.config.push_threshold
