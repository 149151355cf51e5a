"""
Service responsible for discovering remote-desktop hosts on the local
network. A discovery session runs the broadcast sweep, SSDP and mDNS
strategies concurrently; they only meet in the shared DeviceRegistry.
"""
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Callable, Dict, List, Optional

import structlog

from ..config import Config, DiscoveryConfig
from ..exceptions import InterfaceEnumerationError, SSDPSocketError
from ..models.device import DiscoveredDevice
from ..utils.concurrency import BoundedWorkerPool, CancellationToken
from .events import (
    DeviceDiscoveryListener,
    DiscoveryCompletedEvent,
    DiscoveryStartedEvent,
    EventDispatcher,
)
from .network import SubnetEnumerator
from .prober import HostProber
from .registry import DeviceRegistry
from .ssdp import SSDPScanner
from .stats import ProbeStats

logger = structlog.get_logger(__name__)


class DiscoverySession:
    """State owned by one start/stop cycle. Nothing here is shared across sessions."""

    def __init__(self, discovery_config: DiscoveryConfig, session_id: int):
        self.session_id = session_id
        self.token = CancellationToken()
        self.pool = BoundedWorkerPool(
            max_workers=discovery_config.max_concurrent_probes,
            queue_size=discovery_config.probe_queue_size,
            name=f"probe-{session_id}",
        )
        self.strategy_executor = ThreadPoolExecutor(max_workers=3, thread_name_prefix=f"strategy-{session_id}")
        self.strategies: Dict[str, Future] = {}
        self.errors: Dict[str, str] = {}
        self.started_at = time.time()

    def close(self) -> None:
        self.token.cancel()
        self.pool.shutdown(wait_for_tasks=False)
        self.strategy_executor.shutdown(wait=False)


class DeviceDiscoveryService:
    """
    Starts and stops discovery sessions and exposes their results.
    """

    def __init__(
        self,
        app_config: Config,
        dispatcher: Optional[EventDispatcher] = None,
        reachability_check: Optional[Callable[[str, int], bool]] = None,
        hostname_resolver: Optional[Callable[[str], str]] = None,
    ):
        self.app_config = app_config
        self.discovery_config: DiscoveryConfig = app_config.discovery
        self.logger = logger.bind(service="DeviceDiscoveryService")

        self.dispatcher = dispatcher or EventDispatcher()
        self.registry = DeviceRegistry(self.dispatcher)
        self.stats = ProbeStats()
        prober_kwargs = {"reachability_check": reachability_check}
        if hostname_resolver is not None:
            prober_kwargs["hostname_resolver"] = hostname_resolver
        self.prober = HostProber(self.discovery_config, self.registry, self.stats, **prober_kwargs)
        self.ssdp_scanner = SSDPScanner(self.discovery_config, self.prober, self.stats)
        self.enumerator = SubnetEnumerator(self.discovery_config.network_interfaces)

        self._lock = threading.Lock()
        self._session: Optional[DiscoverySession] = None
        self._session_counter = 0
        self._last_errors: Dict[str, str] = {}

    # Listener registration

    def add_listener(self, listener: DeviceDiscoveryListener) -> None:
        self.dispatcher.add_listener(listener)

    def remove_listener(self, listener: DeviceDiscoveryListener) -> None:
        self.dispatcher.remove_listener(listener)

    # Session lifecycle

    @property
    def is_discovering(self) -> bool:
        return self._session is not None

    @property
    def strategy_errors(self) -> Dict[str, str]:
        """Setup errors of the current (or last) session, keyed by strategy name."""
        session = self._session
        if session is not None:
            return dict(session.errors)
        return dict(self._last_errors)

    def start_discovery(self) -> bool:
        """
        Starts a new session. Returns False (and does nothing) if a session
        is already running.
        """
        with self._lock:
            if self._session is not None:
                self.logger.debug("Discovery already running, ignoring start request.")
                return False
            self._session_counter += 1
            session = DiscoverySession(self.discovery_config, self._session_counter)
            self._session = session
            self.registry.clear()
            self.stats.reset()
            # under the lock so a concurrent stop can't queue Completed first
            self.dispatcher.publish(DiscoveryStartedEvent())

        log = self.logger.bind(session_id=session.session_id)
        log.info("Starting discovery session")

        strategies = {
            "broadcast_scan": (self.discovery_config.enable_broadcast_scan, self._run_broadcast_scan),
            "mdns": (self.discovery_config.enable_mdns, self._run_mdns_discovery),
            "ssdp": (self.discovery_config.enable_ssdp, self._run_ssdp_discovery),
        }
        for name, (enabled, runner) in strategies.items():
            if not enabled:
                log.debug("Discovery strategy disabled", strategy=name)
                continue
            session.strategies[name] = session.strategy_executor.submit(runner, session)
        if not session.strategies:
            log.warning("No discovery strategies are enabled. No discovery will run.")
        return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Blocks until the running session's strategies finish on their own or
        ``timeout`` elapses. Returns True if they all finished.
        """
        session = self._session
        if session is None:
            return True
        _, not_done = wait(list(session.strategies.values()), timeout=timeout)
        return not not_done

    def stop_discovery(self, timeout: Optional[float] = None) -> bool:
        """
        Cancels the running session and announces completion exactly once.

        With ``timeout`` the strategies are given that long to wind down
        before completion is announced. Returns False if nothing was running.
        A new session cannot start until this one's Completed event is queued.
        """
        with self._lock:
            session = self._session
            if session is None:
                return False

            log = self.logger.bind(session_id=session.session_id)
            log.info("Stopping discovery session")
            session.token.cancel()
            if timeout is not None and session.strategies:
                _, not_done = wait(list(session.strategies.values()), timeout=timeout)
                if not_done:
                    log.warning("Discovery strategies still running after stop timeout", pending=len(not_done))
            session.close()
            self._last_errors = dict(session.errors)
            self._session = None
            self.dispatcher.publish(DiscoveryCompletedEvent())
        log.info(
            "Discovery session stopped",
            devices=len(self.registry),
            duration_seconds=round(time.time() - session.started_at, 2),
            stats=self.stats.snapshot(),
        )
        return True

    def close(self) -> None:
        """Stops any session and the event dispatcher."""
        self.stop_discovery()
        self.dispatcher.stop()

    def __enter__(self) -> "DeviceDiscoveryService":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def get_discovered_devices(self) -> List[DiscoveredDevice]:
        return self.registry.devices()

    # Strategies, each on its own strategy thread

    def _run_broadcast_scan(self, session: DiscoverySession) -> None:
        log = self.logger.bind(session_id=session.session_id, strategy="broadcast_scan")
        log.info("Starting broadcast scan")
        try:
            ranges = self.enumerator.enumerate(session.token)
        except InterfaceEnumerationError as e:
            session.errors["broadcast_scan"] = str(e)
            log.error("Interface enumeration failed, broadcast scan aborted", error=str(e))
            return
        try:
            for scan_range in ranges:
                if session.token.cancelled:
                    break
                self.prober.scan_range(scan_range, session.pool, session.token)
            log.info("Broadcast scan finished", ranges=len(ranges))
        except Exception as e:
            session.errors["broadcast_scan"] = str(e)
            log.exception("Error during broadcast scan", error=str(e))

    def _run_ssdp_discovery(self, session: DiscoverySession) -> None:
        log = self.logger.bind(session_id=session.session_id, strategy="ssdp")
        try:
            self.ssdp_scanner.scan(session.token)
        except SSDPSocketError as e:
            session.errors["ssdp"] = str(e)
            log.error("SSDP socket setup failed, SSDP scan aborted", error=str(e))
        except Exception as e:
            session.errors["ssdp"] = str(e)
            log.exception("Error during SSDP discovery", error=str(e))

    def _run_mdns_discovery(self, session: DiscoverySession) -> None:
        # TODO: browse _rfb._tcp.local. with zeroconf and probe the resolved addresses.
        self.logger.info("mDNS discovery skipped (not implemented).", session_id=session.session_id)
