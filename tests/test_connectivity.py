"""
Unit tests for the connectivity gate and host resolver
"""
import socket
import threading

import pytest

from agent.connectivity import ConnectivityGate
from agent.resolver import (
    BACKUP_DNS_DEFAULT,
    BACKUP_DNS_ZH,
    HostResolver,
    LookupFailed,
    backup_dns_servers,
    host_of,
    parse_nameserver,
)


class FakeResolver:
    """Fails the first ``failures`` lookups, then succeeds."""

    def __init__(self, failures, dns_error=False):
        self.failures = failures
        self.dns_error = dns_error
        self.lookups = []
        self.used = []

    def lookup(self, address):
        self.lookups.append(address)
        if len(self.lookups) <= self.failures:
            raise LookupFailed(host_of(address), "unreachable", dns_error=self.dns_error)
        return ["203.0.113.1"]

    def use(self, nameserver):
        self.used.append(nameserver)


class RecordingEvent:
    """Stop event whose wait() returns immediately."""

    def __init__(self, stop_after=None):
        self.waits = []
        self.stop_after = stop_after

    def wait(self, timeout=None):
        self.waits.append(timeout)
        return self.stop_after is not None and len(self.waits) >= self.stop_after


class TestConnectivityGate:
    """Tests for ConnectivityGate.wait"""

    def test_immediate_success(self):
        resolver = FakeResolver(failures=0)
        event = RecordingEvent()
        gate = ConnectivityGate(["https://a.example"], resolver, stop_event=event)
        assert gate.wait() is True
        assert gate.attempts == 1
        assert event.waits == []

    @pytest.mark.parametrize("failures", [1, 3, 7])
    def test_returns_only_after_probe_succeeds(self, failures):
        """N failed probes then a success: the gate returns on probe N+1"""
        resolver = FakeResolver(failures=failures)
        event = RecordingEvent()
        gate = ConnectivityGate(
            ["https://a.example", "https://b.example"], resolver, retry_delay=5, stop_event=event
        )
        assert gate.wait() is True
        assert gate.attempts == failures + 1
        assert len(resolver.lookups) == failures + 1
        assert event.waits == [5] * failures

    def test_cycles_through_addresses(self):
        resolver = FakeResolver(failures=3)
        gate = ConnectivityGate(["https://a.example", "https://b.example"], resolver, stop_event=RecordingEvent())
        gate.wait()
        assert resolver.lookups == [
            "https://a.example",
            "https://b.example",
            "https://a.example",
            "https://b.example",
        ]

    def test_dns_errors_rotate_backup_servers(self):
        resolver = FakeResolver(failures=3, dns_error=True)
        gate = ConnectivityGate(
            ["https://a.example"],
            resolver,
            backup_dns=["1.1.1.1", "8.8.8.8"],
            stop_event=RecordingEvent(),
        )
        gate.wait()
        assert resolver.used == ["1.1.1.1", "8.8.8.8", "1.1.1.1"]

    def test_network_errors_keep_resolver(self):
        """Failures that are not DNS errors keep the current resolver"""
        resolver = FakeResolver(failures=2, dns_error=False)
        gate = ConnectivityGate(
            ["https://a.example"], resolver, backup_dns=["1.1.1.1"], stop_event=RecordingEvent()
        )
        gate.wait()
        assert resolver.used == []

    def test_stop_event_interrupts(self):
        resolver = FakeResolver(failures=100)
        gate = ConnectivityGate(["https://a.example"], resolver, stop_event=RecordingEvent(stop_after=2))
        assert gate.wait() is False
        assert gate.attempts == 2

    def test_real_event_already_set(self):
        event = threading.Event()
        event.set()
        gate = ConnectivityGate(["https://a.example"], FakeResolver(failures=1), stop_event=event)
        assert gate.wait() is False

    def test_requires_addresses(self):
        with pytest.raises(ValueError):
            ConnectivityGate([], FakeResolver(failures=0))


class TestResolverHelpers:
    """Tests for resolver helper functions"""

    def test_backup_dns_by_language(self):
        assert backup_dns_servers(None, "zh") == BACKUP_DNS_ZH
        assert backup_dns_servers(None, "en") == BACKUP_DNS_DEFAULT
        assert backup_dns_servers("9.9.9.9", "zh") == ["9.9.9.9"]

    def test_parse_nameserver(self):
        assert parse_nameserver("8.8.8.8") == ("8.8.8.8", 53)
        assert parse_nameserver("8.8.8.8:5353") == ("8.8.8.8", 5353)
        assert parse_nameserver("2001:4860:4860::8888") == ("2001:4860:4860::8888", 53)
        assert parse_nameserver("[2001:4860:4860::8888]:53") == ("2001:4860:4860::8888", 53)
        with pytest.raises(ValueError):
            parse_nameserver("dns.google")

    def test_host_of(self):
        assert host_of("https://api.ipify.org/path") == "api.ipify.org"
        assert host_of("example.com") == "example.com"


class TestHostResolver:
    """Tests for HostResolver"""

    def test_system_lookup(self, monkeypatch):
        monkeypatch.setattr(
            socket,
            "getaddrinfo",
            lambda host, port, type=0: [(socket.AF_INET, socket.SOCK_STREAM, 6, "", ("203.0.113.7", 0))],
        )
        assert HostResolver().lookup("https://example.com") == ["203.0.113.7"]

    def test_system_lookup_failure_is_dns_error(self, monkeypatch):
        def fail(*args, **kwargs):
            raise socket.gaierror(socket.EAI_AGAIN, "Temporary failure in name resolution")

        monkeypatch.setattr(socket, "getaddrinfo", fail)
        with pytest.raises(LookupFailed) as excinfo:
            HostResolver().lookup("https://example.com")
        assert excinfo.value.dns_error is True
        assert excinfo.value.host == "example.com"

    def test_use_switches_to_custom_server(self):
        resolver = HostResolver()
        assert resolver.nameserver is None
        resolver.use("1.1.1.1")
        assert resolver.nameserver == "1.1.1.1"

    def test_invalid_custom_server(self):
        with pytest.raises(ValueError):
            HostResolver("not a server")
