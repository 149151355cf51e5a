"""Tests for the history, profile and trust stores."""

import pytest

from vnc_locator.models.common import DeviceType
from vnc_locator.models.device import DiscoveredDevice
from vnc_locator.recommendation.history import ConnectionHistoryStore
from vnc_locator.recommendation.profiles import DeviceProfileStore
from vnc_locator.recommendation.trust import StaticTrustLookup


def test_history_counts_attempts_and_successes():
    store = ConnectionHistoryStore()
    assert not store.has_connected_to("10.0.0.1")
    assert store.connection_count("10.0.0.1") == 0

    store.record_attempt("10.0.0.1", False)
    assert not store.has_connected_to("10.0.0.1")
    store.record_attempt("10.0.0.1", True)
    store.record_attempt("10.0.0.1", True)

    assert store.has_connected_to("10.0.0.1")
    assert store.connection_count("10.0.0.1") == 3
    entry = store.get("10.0.0.1")
    assert (entry.attempts, entry.successes) == (3, 2)
    assert entry.last_success_at is not None
    assert len(store) == 1


def test_history_get_returns_a_copy():
    store = ConnectionHistoryStore()
    store.record_attempt("10.0.0.1", True)
    store.get("10.0.0.1").record(True)
    assert store.connection_count("10.0.0.1") == 1


def test_history_clear():
    store = ConnectionHistoryStore()
    store.record_attempt("10.0.0.1", True)
    store.clear()
    assert store.get("10.0.0.1") is None
    assert len(store) == 0


def test_profile_ensure_creates_once():
    store = DeviceProfileStore()
    device = DiscoveredDevice(address="10.0.0.5", hostname="lab-server", port=5901, device_type=DeviceType.SERVER)

    profile = store.ensure(device)
    assert store.ensure(device) is profile
    assert profile.device_id == "10.0.0.5:5901"
    assert profile.display_name == "lab-server"
    assert profile.device_type == DeviceType.SERVER
    assert "10.0.0.5:5901" in store
    assert len(store) == 1


def test_profile_update_setting():
    store = DeviceProfileStore()
    device = DiscoveredDevice(address="10.0.0.5", hostname="lab-server", port=5900)
    store.ensure(device)

    profile = store.update_setting(device.device_id, "quality", "high")

    assert profile.get_setting("quality") == "high"
    assert store.get(device.device_id).settings == {"quality": "high"}


def test_profile_update_setting_requires_profile():
    with pytest.raises(KeyError):
        DeviceProfileStore().update_setting("10.0.0.5:5900", "quality", "high")


def test_static_trust_lookup_clamps_levels():
    trust = StaticTrustLookup({"a:5900": 150, "b:5900": -3})
    trust.set_trust_level("c:5900", 80)
    assert trust.trust_level_of("a:5900") == 100
    assert trust.trust_level_of("b:5900") == 0
    assert trust.trust_level_of("c:5900") == 80
    assert trust.trust_level_of("unknown:5900") == 0
