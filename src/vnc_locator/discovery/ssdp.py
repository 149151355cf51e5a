"""
SSDP (UPnP) discovery. Responses are only a hint: any reply mentioning a
remote-desktop signature triggers a confirmatory banner probe of the sender.
"""
import socket
from typing import List, Optional

import structlog

from ..config import DiscoveryConfig
from ..exceptions import SSDPSocketError
from ..models.common import DiscoveryMethod
from ..models.device import DiscoveredDevice
from ..utils.concurrency import CancellationToken
from .prober import HostProber
from .stats import ProbeStats

logger = structlog.get_logger(__name__)

SSDP_RECV_BUFFER = 1024


def build_msearch(address: str, port: int, mx: int, search_target: str) -> bytes:
    return (
        "M-SEARCH * HTTP/1.1\r\n"
        f"HOST: {address}:{port}\r\n"
        'MAN: "ssdp:discover"\r\n'
        f"MX: {mx}\r\n"
        f"ST: {search_target}\r\n\r\n"
    ).encode("ascii")


class SSDPScanner:
    """Sends one M-SEARCH and probes every responder whose reply carries a signature."""

    def __init__(self, discovery_config: DiscoveryConfig, prober: HostProber, stats: Optional[ProbeStats] = None):
        self.config = discovery_config
        self.prober = prober
        self.stats = stats or prober.stats
        self.logger = logger.bind(component="SSDPScanner")

    def response_matches(self, payload: bytes) -> bool:
        text = payload.decode("utf-8", errors="ignore")
        return any(signature in text for signature in self.config.banner_signatures)

    def _open_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.settimeout(self.config.ssdp_timeout_ms / 1000)
        return sock

    def scan(self, token: CancellationToken) -> List[DiscoveredDevice]:
        """
        Runs one SSDP round until the receive timeout fires or ``token`` is
        cancelled. Returns devices confirmed by the follow-up probe.

        Raises:
            SSDPSocketError: if the socket cannot be set up or the request sent.
        """
        target = (self.config.ssdp_address, self.config.ssdp_port)
        request = build_msearch(self.config.ssdp_address, self.config.ssdp_port, self.config.ssdp_mx, self.config.ssdp_search_target)
        self.logger.info("Starting SSDP discovery", search_target=self.config.ssdp_search_target, timeout_ms=self.config.ssdp_timeout_ms)

        try:
            sock = self._open_socket()
        except OSError as e:
            raise SSDPSocketError(f"Cannot create SSDP socket: {e}", *target) from e

        found: List[DiscoveredDevice] = []
        with sock:
            try:
                sock.sendto(request, target)
            except OSError as e:
                raise SSDPSocketError(f"Cannot send M-SEARCH: {e}", *target) from e

            while not token.cancelled:
                try:
                    payload, sender = sock.recvfrom(SSDP_RECV_BUFFER)
                except socket.timeout:
                    break
                except OSError as e:
                    self.logger.warning("SSDP receive failed, ending scan", error=str(e))
                    break
                self.stats.increment("ssdp_responses", token=token)
                if not self.response_matches(payload):
                    continue
                self.stats.increment("ssdp_matches", token=token)
                self.logger.debug("SSDP response carries remote-desktop signature", sender=sender[0])
                found.extend(self.prober.probe_host(sender[0], token=token, method=DiscoveryMethod.SSDP))

        self.logger.info("SSDP discovery finished", devices=len(found))
        return found
