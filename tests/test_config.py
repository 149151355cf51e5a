"""Tests for configuration module."""

import json

import pytest
from pydantic import ValidationError

from vnc_locator.config import Config, DiscoveryConfig, RecommendationConfig


def test_config_defaults():
    """Test default configuration values."""
    config = Config()

    # DiscoveryConfig defaults
    assert config.discovery.probe_port_start == 5900
    assert config.discovery.probe_port_end == 5910
    assert list(config.discovery.probe_ports) == list(range(5900, 5911))
    assert config.discovery.banner_read_size == 12
    assert config.discovery.banner_signatures == ["RFB", "VNC"]
    assert config.discovery.reachability_timeout_ms == 5000
    assert config.discovery.port_timeout_ms == 2000
    assert config.discovery.max_concurrent_probes == 50
    assert config.discovery.drain_timeout_seconds == 30.0
    assert config.discovery.ssdp_address == "239.255.255.250"
    assert config.discovery.ssdp_port == 1900
    assert config.discovery.ssdp_mx == 3
    assert config.discovery.ssdp_search_target == "upnp:rootdevice"
    assert config.discovery.ssdp_timeout_ms == 5000
    assert config.discovery.enable_ssdp is True
    assert config.discovery.enable_mdns is True

    # RecommendationConfig defaults
    assert config.recommendation.history_weight == 0.4
    assert config.recommendation.desktop_weight == 0.2
    assert config.recommendation.server_weight == 0.3
    assert config.recommendation.reachable_weight == 0.3
    assert config.recommendation.profile_weight == 0.1
    assert config.recommendation.list_threshold == 0.7
    assert config.recommendation.push_threshold == 0.8
    assert config.recommendation.pushed_history_limit == 100

    # LoggingConfig defaults
    assert config.logging.level == "INFO"
    assert config.logging.format == "json"


def test_config_from_env(monkeypatch):
    """Test loading configuration from environment variables."""
    monkeypatch.setenv("VNC_LOCATOR_LOGGING__LEVEL", "DEBUG")
    monkeypatch.setenv("VNC_LOCATOR_DISCOVERY__PORT_TIMEOUT_MS", "750")
    monkeypatch.setenv("VNC_LOCATOR_DISCOVERY__ENABLE_SSDP", "false")
    monkeypatch.setenv("VNC_LOCATOR_DISCOVERY__NETWORK_INTERFACES", '["eth0", "wlan0"]')
    monkeypatch.setenv("VNC_LOCATOR_RECOMMENDATION__PUSH_THRESHOLD", "0.9")

    config = Config()

    assert config.logging.level == "DEBUG"
    assert config.discovery.port_timeout_ms == 750
    assert config.discovery.enable_ssdp is False
    assert config.discovery.network_interfaces == ["eth0", "wlan0"]
    assert config.recommendation.push_threshold == 0.9


def test_config_from_file(tmp_path):
    """Test loading configuration from a JSON file."""
    config_content = {
        "logging": {"level": "WARNING", "format": "console"},
        "discovery": {"probe_port_start": 5901, "probe_port_end": 5902, "enable_mdns": False},
        "recommendation": {"list_threshold": 0.5},
    }
    config_file = tmp_path / "test_config.json"
    config_file.write_text(json.dumps(config_content))

    config = Config.from_file(config_file)

    assert config.logging.level == "WARNING"
    assert config.logging.format == "console"
    assert list(config.discovery.probe_ports) == [5901, 5902]
    assert config.discovery.enable_mdns is False
    assert config.recommendation.list_threshold == 0.5
    # Unspecified fields retain defaults
    assert config.discovery.enable_ssdp is True
    assert config.recommendation.push_threshold == 0.8
    assert config.recommendation.pushed_history_limit == 100


def test_inverted_port_range_rejected():
    with pytest.raises(ValidationError):
        DiscoveryConfig(probe_port_start=5910, probe_port_end=5900)


def test_out_of_range_values_rejected():
    with pytest.raises(ValidationError):
        DiscoveryConfig(max_concurrent_probes=0)
    with pytest.raises(ValidationError):
        RecommendationConfig(trust_threshold=101)
