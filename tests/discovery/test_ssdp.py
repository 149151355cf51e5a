"""Tests for SSDP discovery."""

import socket
from unittest.mock import MagicMock, patch

import pytest

from vnc_locator.config import DiscoveryConfig
from vnc_locator.discovery.prober import HostProber
from vnc_locator.discovery.registry import DeviceRegistry
from vnc_locator.discovery.ssdp import SSDPScanner, build_msearch
from vnc_locator.exceptions import SSDPSocketError
from vnc_locator.models.common import DiscoveryMethod
from vnc_locator.utils.concurrency import CancellationToken

VNC_REPLY = (
    b"HTTP/1.1 200 OK\r\nST: upnp:rootdevice\r\n"
    b"SERVER: Linux/5.4 UPnP/1.0 RealVNC/6.0\r\n\r\n"
)
PRINTER_REPLY = b"HTTP/1.1 200 OK\r\nST: upnp:rootdevice\r\nSERVER: Linux UPnP/1.0 PrintServer\r\n\r\n"


@pytest.fixture
def prober():
    prober = HostProber(DiscoveryConfig(), DeviceRegistry())
    prober.probe_host = MagicMock(return_value=[])
    return prober


def fake_socket(*replies):
    sock = MagicMock()
    sock.__enter__.return_value = sock
    sock.recvfrom.side_effect = [*replies, socket.timeout()]
    return sock


def test_build_msearch():
    request = build_msearch("239.255.255.250", 1900, 3, "upnp:rootdevice").decode("ascii")
    assert request.startswith("M-SEARCH * HTTP/1.1\r\n")
    assert "HOST: 239.255.255.250:1900\r\n" in request
    assert 'MAN: "ssdp:discover"\r\n' in request
    assert "MX: 3\r\n" in request
    assert request.endswith("ST: upnp:rootdevice\r\n\r\n")


def test_scan_sends_msearch_and_probes_matching_sender(prober):
    scanner = SSDPScanner(DiscoveryConfig(), prober)
    sock = fake_socket((VNC_REPLY, ("192.168.1.40", 1900)))
    token = CancellationToken()

    with patch.object(SSDPScanner, "_open_socket", return_value=sock):
        scanner.scan(token)

    payload, target = sock.sendto.call_args.args
    assert payload.startswith(b"M-SEARCH * HTTP/1.1")
    assert target == ("239.255.255.250", 1900)
    prober.probe_host.assert_called_once_with("192.168.1.40", token=token, method=DiscoveryMethod.SSDP)
    assert prober.stats.get("ssdp_matches") == 1


def test_scan_ignores_responses_without_signature(prober):
    scanner = SSDPScanner(DiscoveryConfig(), prober)
    sock = fake_socket((PRINTER_REPLY, ("192.168.1.50", 1900)), (b"vnc lowercase", ("192.168.1.51", 1900)))

    with patch.object(SSDPScanner, "_open_socket", return_value=sock):
        assert scanner.scan(CancellationToken()) == []

    prober.probe_host.assert_not_called()
    assert prober.stats.get("ssdp_responses") == 2


def test_scan_stops_when_cancelled(prober):
    scanner = SSDPScanner(DiscoveryConfig(), prober)
    sock = fake_socket((VNC_REPLY, ("192.168.1.40", 1900)))
    token = CancellationToken()
    token.cancel()

    with patch.object(SSDPScanner, "_open_socket", return_value=sock):
        scanner.scan(token)

    sock.recvfrom.assert_not_called()
    prober.probe_host.assert_not_called()


def test_socket_setup_failure_raises(prober):
    scanner = SSDPScanner(DiscoveryConfig(), prober)
    with patch.object(SSDPScanner, "_open_socket", side_effect=OSError("no multicast")):
        with pytest.raises(SSDPSocketError) as exc_info:
            scanner.scan(CancellationToken())
    assert exc_info.value.address == "239.255.255.250"
    assert exc_info.value.port == 1900


def test_send_failure_raises(prober):
    scanner = SSDPScanner(DiscoveryConfig(), prober)
    sock = fake_socket()
    sock.sendto.side_effect = OSError("network unreachable")
    with patch.object(SSDPScanner, "_open_socket", return_value=sock):
        with pytest.raises(SSDPSocketError):
            scanner.scan(CancellationToken())
