"""
Parallel host probing: reachability check plus an RFB banner sniff on a
fixed port range. Any per-host or per-port failure means "not found" and is
only reflected in the diagnostic counters.
"""
import math
import platform
import socket
import subprocess
from collections.abc import Callable
from concurrent.futures import Future
from typing import List, Optional

import structlog

from ..config import DiscoveryConfig
from ..models.common import DiscoveryMethod
from ..models.device import DiscoveredDevice, ScanRange
from ..utils.concurrency import BoundedWorkerPool, CancellationToken
from .classify import infer_device_type, infer_operating_system, resolve_hostname
from .network import synthesize_host_address
from .registry import DeviceRegistry
from .stats import ProbeStats

logger = structlog.get_logger(__name__)

# ping -W takes milliseconds here, seconds on Linux
MILLISECOND_WAIT_SYSTEMS = ("darwin", "freebsd")


def ping_command(address: str, timeout_ms: int, system: Optional[str] = None) -> List[str]:
    system = (system or platform.system()).lower()
    if system.startswith("win"):
        return ["ping", "-n", "1", "-w", str(timeout_ms), address]
    if system in MILLISECOND_WAIT_SYSTEMS:
        return ["ping", "-c", "1", "-W", str(timeout_ms), address]
    return ["ping", "-c", "1", "-W", str(max(1, math.ceil(timeout_ms / 1000))), address]


def ping_host(address: str, timeout_ms: int) -> bool:
    """Single ICMP echo via the system ``ping`` binary.

    If ``ping`` is missing the host is assumed reachable so the port probe
    decides instead.
    """
    cmd = ping_command(address, timeout_ms)
    try:
        result = subprocess.run(
            cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL,
            timeout=timeout_ms / 1000 + 1
        )
    except FileNotFoundError:
        logger.debug("ping binary not available, assuming host reachable", address=address)
        return True
    except (subprocess.SubprocessError, OSError) as e:
        logger.debug("ping failed", address=address, error=str(e))
        return False
    return result.returncode == 0


class HostProber:
    """Finds RFB services on candidate hosts and submits them to the registry."""

    def __init__(
        self,
        discovery_config: DiscoveryConfig,
        registry: DeviceRegistry,
        stats: Optional[ProbeStats] = None,
        reachability_check: Optional[Callable[[str, int], bool]] = None,
        hostname_resolver: Callable[[str], str] = resolve_hostname,
    ):
        self.config = discovery_config
        self.registry = registry
        self.stats = stats or ProbeStats()
        self.reachability_check = reachability_check or ping_host
        self.hostname_resolver = hostname_resolver
        self._signatures = [s.encode("latin-1") for s in discovery_config.banner_signatures]
        self.logger = logger.bind(component="HostProber")

    def scan_range(
        self,
        scan_range: ScanRange,
        pool: BoundedWorkerPool,
        token: CancellationToken,
    ) -> int:
        """
        Probes hosts ``1 .. scannable_hosts - 1`` of ``scan_range`` on ``pool``
        and waits (bounded) for them. Returns the number of hosts scheduled.
        """
        host_count = min(scan_range.scannable_hosts, self.config.max_hosts_per_range)
        log = self.logger.bind(interface=scan_range.interface, broadcast=scan_range.broadcast, prefix_length=scan_range.prefix_length)
        if host_count <= 0:
            self.stats.increment("ranges_skipped", token=token)
            log.debug("No scannable hosts in range, skipping")
            return 0

        log.info("Scanning network range", hosts=host_count)
        futures: List[Future] = []
        for host_index in range(1, host_count):
            if token.cancelled:
                log.info("Range scan cancelled", scheduled=len(futures))
                break
            target = synthesize_host_address(scan_range.broadcast, scan_range.prefix_length, host_index)
            future = pool.submit(self._probe_candidate, target, token, token=token)
            if future is None:
                break
            futures.append(future)
            self.stats.increment("hosts_scheduled", token=token)

        pool.drain(futures, timeout=self.config.drain_timeout_seconds)
        log.info("Network range scan finished", scheduled=len(futures))
        return len(futures)

    def _probe_candidate(self, address: str, token: CancellationToken) -> None:
        if token.cancelled:
            return
        if not self.config.skip_reachability_check:
            if not self.reachability_check(address, self.config.reachability_timeout_ms):
                self.stats.increment("hosts_unreachable", token=token)
                return
        self.probe_host(address, token=token)

    def probe_host(
        self,
        address: str,
        token: Optional[CancellationToken] = None,
        method: DiscoveryMethod = DiscoveryMethod.BROADCAST_SCAN,
    ) -> List[DiscoveredDevice]:
        """Sniffs every probe port of ``address``; registers and returns matches.

        Once ``token`` is cancelled nothing more is registered or counted,
        even for a banner that was already being read.
        """
        self.stats.increment("hosts_probed", token=token)
        found: List[DiscoveredDevice] = []
        for port in self.config.probe_ports:
            if token is not None and token.cancelled:
                break
            banner = self.read_banner(address, port, token=token)
            if banner is None:
                continue
            if not self.matches_signature(banner):
                self.stats.increment("banner_mismatches", token=token)
                continue
            device = self.build_device(address, port, banner, method)
            if self.registry.add(device, token=token):
                self.stats.increment("devices_found", token=token)
            elif token is not None and token.cancelled:
                break
            found.append(device)
        return found

    def read_banner(self, address: str, port: int, token: Optional[CancellationToken] = None) -> Optional[bytes]:
        """Connects and reads up to ``banner_read_size`` bytes; None on any I/O error or empty read."""
        self.stats.increment("ports_probed", token=token)
        timeout = self.config.port_timeout_ms / 1000
        try:
            with socket.create_connection((address, port), timeout=timeout) as sock:
                sock.settimeout(timeout)
                data = sock.recv(self.config.banner_read_size)
        except OSError:
            self.stats.increment("port_errors", token=token)
            return None
        return data or None

    def matches_signature(self, data: bytes) -> bool:
        return any(signature in data for signature in self._signatures)

    def build_device(
        self,
        address: str,
        port: int,
        banner: bytes,
        method: DiscoveryMethod = DiscoveryMethod.BROADCAST_SCAN,
    ) -> DiscoveredDevice:
        hostname = self.hostname_resolver(address)
        text = banner.decode("latin-1").strip()
        metadata = {"banner": text, "discovery_method": DiscoveryMethod(method).value}
        if text.startswith("RFB "):
            metadata["protocol_version"] = text[4:]
        return DiscoveredDevice(
            address=address,
            hostname=hostname,
            port=port,
            device_type=infer_device_type(hostname),
            operating_system=infer_operating_system(hostname),
            metadata=metadata,
        )
