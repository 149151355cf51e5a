"""Configuration management for VNC Locator."""

import json
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DiscoveryConfig(BaseModel): # Nested under Config (BaseSettings)
    """Configuration for remote-desktop host discovery."""

    enable_broadcast_scan: bool = Field(default=True, description="Enable the per-interface subnet sweep.")
    enable_ssdp: bool = Field(default=True, description="Enable SSDP/UPnP discovery.")
    enable_mdns: bool = Field(default=True, description="Run the mDNS strategy (currently a logged no-op).")

    probe_port_start: int = Field(default=5900, ge=1, le=65535, description="First TCP port probed for an RFB banner.")
    probe_port_end: int = Field(default=5910, ge=1, le=65535, description="Last TCP port probed for an RFB banner (inclusive).")
    banner_read_size: int = Field(default=12, ge=1, le=1024, description="Maximum bytes read from a probed port.")
    banner_signatures: List[str] = Field(default_factory=lambda: ["RFB", "VNC"], description="Case-sensitive substrings identifying a remote-desktop service.")

    reachability_timeout_ms: int = Field(default=5000, ge=100, le=60000, description="Timeout for the host reachability check.")
    skip_reachability_check: bool = Field(default=False, description="Probe ports without checking reachability first.")
    port_timeout_ms: int = Field(default=2000, ge=50, le=30000, description="Connect/read timeout for each probed port.")

    max_concurrent_probes: int = Field(default=50, ge=1, le=512, description="Size of the per-session probe worker pool.")
    probe_queue_size: int = Field(default=256, ge=0, le=65536, description="Pending probe tasks allowed before submission blocks.")
    drain_timeout_seconds: float = Field(default=30.0, ge=0.1, le=600, description="Bounded wait for a subnet's probes to finish.")
    max_hosts_per_range: int = Field(default=65534, ge=0, description="Upper bound on hosts swept per interface address.")

    ssdp_address: str = Field(default="239.255.255.250", description="SSDP multicast group.")
    ssdp_port: int = Field(default=1900, ge=1, le=65535, description="SSDP multicast port.")
    ssdp_mx: int = Field(default=3, ge=1, le=5, description="MX header: max seconds a device waits before answering.")
    ssdp_search_target: str = Field(default="upnp:rootdevice", description="SSDP search target (ST).")
    ssdp_timeout_ms: int = Field(default=5000, ge=100, le=60000, description="Receive timeout for SSDP responses.")

    network_interfaces: List[str] = Field(default_factory=list, description="Restrict the sweep to these interfaces (e.g., ['eth0']). If empty, all suitable interfaces are used.")

    @model_validator(mode="after")
    def check_port_range(self) -> "DiscoveryConfig":
        if self.probe_port_start > self.probe_port_end:
            raise ValueError("probe_port_start must not exceed probe_port_end")
        return self

    @property
    def probe_ports(self) -> range:
        return range(self.probe_port_start, self.probe_port_end + 1)


class RecommendationConfig(BaseModel):
    """Weights and thresholds used to score connection recommendations."""

    history_weight: float = Field(default=0.4, ge=0.0, le=1.0, description="Bonus for a previously successful connection.")
    desktop_weight: float = Field(default=0.2, ge=0.0, le=1.0, description="Bonus for Desktop/Laptop devices.")
    server_weight: float = Field(default=0.3, ge=0.0, le=1.0, description="Bonus for Server devices.")
    reachable_weight: float = Field(default=0.3, ge=0.0, le=1.0, description="Bonus when the service port accepts a fresh connection.")
    profile_weight: float = Field(default=0.1, ge=0.0, le=1.0, description="Bonus when a device profile already exists.")
    trust_weight: float = Field(default=0.1, ge=0.0, le=1.0, description="Bonus when the trust lookup reports a trusted device.")
    trust_threshold: int = Field(default=80, ge=0, le=100, description="Minimum trust level that earns the trust bonus.")

    list_threshold: float = Field(default=0.7, ge=0.0, le=1.0, description="Recommendations must score above this to be listed.")
    push_threshold: float = Field(default=0.8, ge=0.0, le=1.0, description="Recommendations must score above this to be pushed.")
    reachability_timeout_ms: int = Field(default=3000, ge=50, le=30000, description="Connect timeout for the reachability signal.")
    pushed_history_limit: int = Field(default=100, ge=1, le=10000, description="Recent pushed recommendations kept by ConnectionManager.")


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format")
    file: Optional[Path] = Field(default=None, description="Log file path")


class Config(BaseSettings):
    """Main configuration for VNC Locator. Loads from environment variables prefixed with VNC_LOCATOR_."""

    model_config = SettingsConfigDict(
        env_prefix='VNC_LOCATOR_',
        env_nested_delimiter='__', # e.g., VNC_LOCATOR_DISCOVERY__PORT_TIMEOUT_MS
        extra='ignore',
        env_file='.env',
        env_file_encoding='utf-8'
    )

    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    recommendation: RecommendationConfig = Field(default_factory=RecommendationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_file(cls, file_path: Path) -> "Config":
        """Create configuration strictly from a JSON file.
        Note: This does not layer with environment variables.
        """
        with open(file_path) as f:
            config_data = json.load(f)
        return cls.model_validate(config_data)
