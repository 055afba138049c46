"""
Unit tests for the package, service, account and filesystem managers and the
health monitor.
"""
import os

import pytest

from conftest import FakeHost, FakeRunner
from hostboot.errors import CommandError, ConfigError, ServiceVerificationError
from hostboot.MANAGERS.account_manager import AccountManager
from hostboot.MANAGERS.health_monitor import HealthMonitor, HealthStatus
from hostboot.MANAGERS.host_filesystem import HostFilesystem
from hostboot.MANAGERS.package_manager import PackageManager
from hostboot.MANAGERS.service_manager import ServiceManager
from hostboot.MODELS.bootstrap_config import BootstrapConfig, VerificationSettings
from hostboot.RUNNERS.command_runner import CommandResult


class TestPackageManager:
    """Tests for PackageManager."""

    def test_installs_only_missing_packages(self):
        runner = FakeRunner(FakeHost(installed_packages={"curl"}))
        installed = PackageManager(runner).install(["curl", "unzip"])
        assert installed == ["unzip"]
        assert runner.called("apt-get", "update")
        assert runner.called("apt-get", "install", "-y", "unzip")

    def test_nothing_to_do(self):
        runner = FakeRunner(FakeHost(installed_packages={"curl", "unzip"}))
        assert PackageManager(runner).install(["curl", "unzip"]) == []
        assert not runner.called("apt-get")

    def test_update_runs_once(self):
        runner = FakeRunner(FakeHost())
        manager = PackageManager(runner)
        manager.install(["a"])
        manager.install(["b"])
        assert runner.commands.count(["apt-get", "update"]) == 1

    def test_install_failure_propagates(self):
        host = FakeHost()

        def handler(command):
            if command[:2] == ["apt-get", "install"]:
                return CommandResult(command, 100, "", "E: Unable to locate package nope")
            return host(command)

        with pytest.raises(CommandError, match="Unable to locate package"):
            PackageManager(FakeRunner(handler)).install(["nope"])


class TestServiceManager:
    """Tests for ServiceManager."""

    def test_enable_and_start_only_pending_units(self, runner, host):
        host.enabled.add("consul.service")
        host.active.add("consul.service")
        services = ServiceManager(runner)

        assert services.enable(["nomad.service", "consul.service"]) == ["nomad.service"]
        assert services.start(["nomad.service", "consul.service"]) == ["nomad.service"]
        assert runner.called("systemctl", "enable", "nomad.service")
        assert runner.called("systemctl", "start", "nomad.service")
        assert services.is_active("nomad.service")

    def test_status_text_never_raises(self, runner):
        text = ServiceManager(runner).status_text("nomad.service")
        assert "inactive" in text


class TestAccountManager:
    """Tests for AccountManager."""

    def test_existing_user_is_left_alone(self, runner):
        assert AccountManager(runner).ensure_user("root", "/root") is False
        assert not runner.called("useradd")

    def test_missing_user_is_created(self, runner):
        created = AccountManager(runner).ensure_user("hostboot-test-nobody", "/etc/nomad.d")
        assert created is True
        assert runner.commands[-1][0] == "useradd"
        assert runner.commands[-1][-1] == "hostboot-test-nobody"


class TestHostFilesystem:
    """Tests for HostFilesystem."""

    def test_resolve_under_root(self, tmp_path):
        fs = HostFilesystem(str(tmp_path))
        assert fs.resolve("/etc/nomad.d") == os.path.join(str(tmp_path), "etc/nomad.d")
        assert not fs.is_live
        assert HostFilesystem().resolve("/etc") == "/etc"

    def test_relative_path_rejected(self, fs):
        with pytest.raises(ValueError):
            fs.resolve("etc/nomad.d")

    def test_write_is_idempotent(self, fs):
        assert fs.write_file("/etc/x.conf", "a = 1\n", mode=0o640) is True
        assert fs.write_file("/etc/x.conf", "a = 1\n", mode=0o640) is False
        assert fs.write_file("/etc/x.conf", "a = 2\n", mode=0o640) is True
        assert os.stat(fs.resolve("/etc/x.conf")).st_mode & 0o777 == 0o640

    def test_mode_change_is_a_change(self, fs):
        fs.write_file("/etc/x.conf", "a = 1\n", mode=0o644)
        assert fs.write_file("/etc/x.conf", "a = 1\n", mode=0o640) is True

    def test_backup(self, fs):
        fs.write_file("/etc/x.json", "{}\n")
        assert fs.backup("/etc/x.json") == "/etc/x.json.bak"
        assert fs.read_text("/etc/x.json.bak") == "{}\n"

    def test_chown_without_user_is_noop(self, fs):
        fs.ensure_directory("/opt/nomad/data")
        assert fs.chown("/opt/nomad", None, recursive=True) is False

    def test_chown_unknown_user(self, fs):
        fs.ensure_directory("/opt/nomad")
        with pytest.raises(ConfigError, match="hostboot-no-such-user"):
            fs.chown("/opt/nomad", "hostboot-no-such-user")

    def test_remove(self, fs):
        fs.write_file("/var/lib/hostboot/pending.json", "{}\n")
        assert fs.remove("/var/lib/hostboot/pending.json") is True
        assert fs.remove("/var/lib/hostboot/pending.json") is False

    def test_ensure_directory(self, fs):
        assert fs.ensure_directory("/opt/consul/data") is True
        assert fs.ensure_directory("/opt/consul/data") is False


class TestHealthMonitor:
    """Tests for post-start verification."""

    def settings(self, http=False):
        return VerificationSettings(timeout=0, interval=0, http=http)

    def test_active_without_http_probe(self, runner, host):
        host.active.add("nomad.service")
        monitor = HealthMonitor(ServiceManager(runner), self.settings())
        health = monitor.verify(BootstrapConfig().nomad, "10.0.0.5")
        assert health.status == HealthStatus.RUNNING

    def test_inactive_unit_fails_with_journal_hint(self, runner):
        monitor = HealthMonitor(ServiceManager(runner), self.settings())
        with pytest.raises(ServiceVerificationError, match="journalctl -u consul.service"):
            monitor.verify(BootstrapConfig().consul, "10.0.0.5")

    def test_http_probe(self, runner, host):
        host.active.add("consul.service")
        probed = []

        def probe(url, timeout):
            probed.append(url)
            return True

        monitor = HealthMonitor(ServiceManager(runner), self.settings(http=True), probe=probe)
        health = monitor.verify(BootstrapConfig().consul, "10.0.0.5")
        assert health.status == HealthStatus.HEALTHY
        assert probed == ["http://10.0.0.5:8500/v1/status/leader"]

    def test_http_probe_failure(self, runner, host):
        host.active.add("nomad.service")
        monitor = HealthMonitor(ServiceManager(runner), self.settings(http=True),
                                probe=lambda url, timeout: False)
        with pytest.raises(ServiceVerificationError, match="4646/v1/agent/health"):
            monitor.verify(BootstrapConfig().nomad, "10.0.0.5")

    def test_polls_until_active(self, runner, host):
        calls = []

        def becomes_active(command):
            if command[1] == "is-active":
                calls.append(command)
                return CommandResult(command, 0 if len(calls) >= 3 else 3)
            return host(command)

        monitor = HealthMonitor(ServiceManager(FakeRunner(becomes_active)),
                                VerificationSettings(timeout=5, interval=0, http=False))
        assert monitor.wait_until_active("nomad.service") is True
        assert len(calls) == 3
