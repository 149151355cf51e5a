import time
from typing import Any

from pydantic import ConfigDict, Field, field_validator, model_validator

from .common import BasePydanticModel, DeviceType, OperatingSystem


def scannable_hosts_for_prefix(prefix_length: int) -> int:
    """Number of probe-able IPv4 hosts in a subnet, excluding network and broadcast.

    /31 and /32 (and anything malformed beyond them) clamp to zero.
    """
    host_bits = 32 - prefix_length
    if host_bits < 0:
        return 0
    return max(0, 2 ** host_bits - 2)


class DeviceMetadata(dict):
    """Read-only ``dict`` for the metadata of a frozen device."""

    def _read_only(self, *args: Any, **kwargs: Any) -> None:
        raise TypeError("device metadata is read-only")

    __setitem__ = __delitem__ = __ior__ = _read_only
    clear = pop = popitem = setdefault = update = _read_only

    def __reduce__(self):
        return (type(self), (dict(self),))


class DiscoveredDevice(BasePydanticModel):
    """A host that answered an RFB banner probe.

    Identity is ``(address, port)``. The descriptive fields are best-effort
    hostname heuristics and take no part in equality.
    """
    model_config = ConfigDict(frozen=True)

    address: str
    hostname: str
    port: int = Field(..., ge=1, le=65535)
    device_type: DeviceType = DeviceType.UNKNOWN
    operating_system: OperatingSystem = OperatingSystem.UNKNOWN
    discovered_at: float = Field(default_factory=time.time)
    metadata: dict[str, str] = Field(default_factory=DeviceMetadata)

    @field_validator("metadata", mode="after")
    @classmethod
    def freeze_metadata(cls, value: dict[str, str]) -> DeviceMetadata:
        return DeviceMetadata(value)

    @property
    def device_id(self) -> str:
        return f"{self.address}:{self.port}"

    @property
    def identity(self) -> tuple[str, int]:
        return (self.address, self.port)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, DiscoveredDevice):
            return self.identity == other.identity
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.identity)

    def __str__(self) -> str:
        return f"{self.hostname} ({self.device_type}) - {self.address}:{self.port}"


class DeviceProfile(BasePydanticModel):
    """Per-device preferences, created after the first successful connection."""
    device_id: str # "address:port"
    display_name: str
    device_type: DeviceType = DeviceType.UNKNOWN
    preferred_connection_method: str = "VNC"
    settings: dict[str, Any] = Field(default_factory=dict)
    auto_connect: bool = False
    priority: int = Field(default=5, ge=1, le=10, description="1-10 scale, 10 being highest.")

    def set_setting(self, key: str, value: Any) -> None:
        self.settings[key] = value

    def get_setting(self, key: str, default: Any = None) -> Any:
        return self.settings.get(key, default)


class ConnectionRecommendation(BasePydanticModel):
    device: DiscoveredDevice
    confidence: float = Field(..., ge=0.0, le=1.0)
    reason: str
    suggested_settings: dict[str, Any] = Field(default_factory=dict)


class ConnectionHistory(BasePydanticModel):
    """Attempt/success counters for a single address. Counters only grow."""
    model_config = ConfigDict(validate_assignment=True)

    attempts: int = Field(default=0, ge=0)
    successes: int = Field(default=0, ge=0)
    last_success_at: float | None = None

    @model_validator(mode="after")
    def check_counts(self) -> "ConnectionHistory":
        if self.successes > self.attempts:
            raise ValueError("successes cannot exceed attempts")
        return self

    def record(self, success: bool, now: float | None = None) -> None:
        # attempts first so the assignment validator never sees successes > attempts
        self.attempts += 1
        if success:
            self.successes += 1
            self.last_success_at = now if now is not None else time.time()


class ScanRange(BasePydanticModel):
    """One interface address eligible for a subnet sweep."""
    model_config = ConfigDict(frozen=True)

    interface: str
    address: str
    broadcast: str
    prefix_length: int = Field(..., ge=0, le=32)

    @property
    def host_bits(self) -> int:
        return 32 - self.prefix_length

    @property
    def scannable_hosts(self) -> int:
        return scannable_hosts_for_prefix(self.prefix_length)
