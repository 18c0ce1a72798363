"""
Tests for the startup sequence
"""
from unittest.mock import Mock

import pytest

from agent import main as main_module
from agent._version import version
from agent.config_store import ConfigStore
from agent.lifecycle import Lifecycle
from agent.main import StartupSequencer, main, probe_addresses
from shared_lib.schema import StoredConfig
from shared_lib.security import verify_password


class Recorder:
    """Replaces the blocking collaborators and records the order they ran in."""

    def __init__(self, gate_result=True):
        self.events = []
        self.gate_result = gate_result
        self.supervisors = []
        self.gates = []
        self.schedulers = []

    def install(self, monkeypatch):
        recorder = self

        class FakeSupervisor:
            def __init__(self, **kwargs):
                self.kwargs = kwargs
                recorder.supervisors.append(self)

            def start(self):
                recorder.events.append("web")

        class FakeGate:
            def __init__(self, addresses, resolver, backup_dns=(), stop_event=None):
                self.addresses = addresses
                self.resolver = resolver
                self.backup_dns = backup_dns
                recorder.gates.append(self)

            def wait(self):
                recorder.events.append("gate")
                return recorder.gate_result

        class FakeScheduler:
            def __init__(self, cycle, interval_seconds, stop_event=None):
                self.cycle = cycle
                self.interval_seconds = interval_seconds
                recorder.schedulers.append(self)

            def run(self):
                recorder.events.append("scheduler")

        monkeypatch.setattr(main_module, "WebServiceSupervisor", FakeSupervisor)
        monkeypatch.setattr(main_module, "ConnectivityGate", FakeGate)
        monkeypatch.setattr(main_module, "UpdateScheduler", FakeScheduler)
        return self


@pytest.fixture
def recorder(monkeypatch, tmp_path):
    monkeypatch.setenv("DDNS_LOG_DB_PATH", str(tmp_path / "history.db"))
    monkeypatch.delenv("DDNS_MASTER_KEY", raising=False)
    return Recorder().install(monkeypatch)


def forbid(monkeypatch, *names):
    for name in names:
        monkeypatch.setattr(main_module, name, Mock(side_effect=AssertionError(f"{name} used")))


class TestVersionFlag:
    """Tests for -v"""

    def test_prints_only_version(self, monkeypatch, capsys):
        forbid(monkeypatch, "ConfigStore", "ConnectivityGate", "WebServiceSupervisor", "configure_logging")
        assert main(["-v"]) == 0
        assert capsys.readouterr().out == f"{version}\n"


class TestListenAddress:
    """Tests for the fatal listen-address check"""

    @pytest.mark.parametrize("listen", ["9876", "1.2.3.4:99999", "a:b:c", "[::1"])
    def test_invalid_address_stops_before_side_effects(self, monkeypatch, listen):
        forbid(
            monkeypatch,
            "ConfigStore",
            "ConnectivityGate",
            "WebServiceSupervisor",
            "UpdateScheduler",
            "HostResolver",
            "build_session",
        )
        assert main(["-l", listen]) == 1

    def test_invalid_interval_is_fatal(self, monkeypatch):
        forbid(monkeypatch, "ConfigStore")
        assert main(["-f", "0"]) == 1


class TestResetPassword:
    """Tests for -resetPassword"""

    def test_resets_existing_config(self, monkeypatch, recorder, config_path, stored_config):
        ConfigStore(config_path).save(stored_config)
        saves = []
        original_save = ConfigStore.save

        def counting_save(self, config):
            saves.append(config)
            original_save(self, config)

        monkeypatch.setattr(ConfigStore, "save", counting_save)
        assert main(["-c", str(config_path), "-resetPassword", "changed"]) == 0
        assert len(saves) == 1
        assert verify_password(ConfigStore(config_path).get_cached().password_hash, "changed")
        assert recorder.events == []

    def test_missing_config_exits_cleanly(self, recorder, config_path, caplog):
        with caplog.at_level("INFO"):
            assert main(["-c", str(config_path), "-resetPassword", "changed"]) == 0
        assert not config_path.exists()
        assert recorder.events == []
        assert str(config_path) in caplog.text

    def test_invalid_config_fails(self, recorder, config_path):
        config_path.write_text("{broken")
        assert main(["-c", str(config_path), "-resetPassword", "changed"]) == 1
        assert config_path.read_text() == "{broken"


class TestStartupOrder:
    """Tests for the normal startup path"""

    def test_web_gate_then_scheduler(self, recorder, config_path):
        assert main(["-c", str(config_path), "-l", "127.0.0.1:0", "-f", "60"]) == 0
        assert recorder.events == ["web", "gate", "scheduler"]
        assert recorder.schedulers[0].interval_seconds == 60
        assert recorder.supervisors[0].kwargs["address"].ip == "127.0.0.1"

    def test_noweb_never_starts_web_service(self, recorder, config_path):
        assert main(["-c", str(config_path), "-noweb"]) == 0
        assert recorder.supervisors == []
        assert recorder.events == ["gate", "scheduler"]

    def test_scheduler_waits_for_gate(self, monkeypatch, tmp_path, config_path):
        monkeypatch.setenv("DDNS_LOG_DB_PATH", str(tmp_path / "history.db"))
        recorder = Recorder(gate_result=False).install(monkeypatch)
        lifecycle = Lifecycle()
        lifecycle.request_exit(1)
        assert StartupSequencer(lifecycle).run(["-c", str(config_path), "-noweb"]) == 1
        assert recorder.events == ["gate"]

    def test_migrates_legacy_config_before_web(self, recorder, config_path):
        config_path.write_text('{"ipv4_url": "https://ip.example.com"}')
        main(["-c", str(config_path)])
        assert '"version": 2' in config_path.read_text()
        assert recorder.events[0] == "web"

    def test_invalid_config_is_fatal(self, recorder, config_path):
        config_path.write_text("[]")
        assert main(["-c", str(config_path)]) == 1
        assert recorder.events == []

    @pytest.mark.parametrize(
        "body",
        [
            '{"version": "2"}',
            '{"version": 1, "targets": 5}',
            '{"version": 1, "targets": ["x"]}',
        ],
    )
    def test_mistyped_config_is_fatal(self, recorder, config_path, body, caplog):
        config_path.write_text(body)
        with caplog.at_level("CRITICAL"):
            assert main(["-c", str(config_path), "-noweb"]) == 1
        assert recorder.events == []
        assert "Failed to load configuration" in caplog.text
        assert main(["-c", str(config_path), "-resetPassword", "changed"]) == 1
        assert config_path.read_text() == body

    def test_custom_dns_reaches_resolver_and_backup_list(self, recorder, config_path):
        main(["-c", str(config_path), "-noweb", "-dns", "9.9.9.9"])
        gate = recorder.gates[0]
        assert gate.resolver.nameserver == "9.9.9.9"
        assert gate.backup_dns == ["9.9.9.9"]

    def test_invalid_custom_dns_is_fatal(self, recorder, config_path):
        assert main(["-c", str(config_path), "-noweb", "-dns", "nonsense"]) == 1
        assert recorder.events == []

    def test_key_file_created_next_to_config(self, recorder, config_path):
        main(["-c", str(config_path), "-noweb"])
        assert (config_path.parent / ".simple_ddns.key").is_file()


class TestProbeAddresses:
    """Tests for probe_addresses"""

    def test_check_ip_url_comes_first(self):
        addresses = probe_addresses(StoredConfig(check_ip_url="https://ip.example.com"))
        assert addresses[0] == "https://ip.example.com/"
        assert len(addresses) == len(set(addresses))
