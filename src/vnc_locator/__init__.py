"""VNC Locator - finds remote-desktop hosts on the local network and ranks them for connection.

Subnet sweeps and SSDP hints feed a deduplicated device registry; a scoring
engine turns what was found, plus connection history and trust, into ranked
connection recommendations.
"""

__version__ = "0.3.0"
__author__ = "Tyler Zervas"
__email__ = "tz-dev@vectorweight.com"

from .config import Config

__all__ = ["Config"]
