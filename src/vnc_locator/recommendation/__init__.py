"""
Connection recommendation for VNC Locator: history, profiles, trust lookup,
the scoring engine and the manager that wires it to discovery events.
"""

from .engine import RecommendationEngine, is_port_accessible, suggested_settings_for
from .history import ConnectionHistoryStore
from .manager import ConnectionManager
from .profiles import DeviceProfileStore
from .trust import StaticTrustLookup, TrustLookup

__all__ = [
    "ConnectionHistoryStore",
    "ConnectionManager",
    "DeviceProfileStore",
    "RecommendationEngine",
    "StaticTrustLookup",
    "TrustLookup",
    "is_port_accessible",
    "suggested_settings_for",
]
