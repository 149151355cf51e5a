from enum import Enum

from pydantic import BaseModel


class BasePydanticModel(BaseModel):
    model_config = {
        "extra": "forbid",
        "populate_by_name": True,
        "use_enum_values": True,
        "validate_default": True,
    }

class DeviceType(str, Enum):
    MOBILE = "Mobile"
    TABLET = "Tablet"
    LAPTOP = "Laptop"
    DESKTOP = "Desktop"
    SERVER = "Server"
    UNKNOWN = "Unknown"

class OperatingSystem(str, Enum):
    WINDOWS = "Windows"
    LINUX = "Linux"
    MACOS = "macOS"
    ANDROID = "Android"
    IOS = "iOS"
    UNKNOWN = "Unknown"

class DiscoveryMethod(str, Enum):
    BROADCAST_SCAN = "broadcast_scan"
    SSDP = "ssdp"
    MDNS = "mdns"
    MANUAL = "manual"
