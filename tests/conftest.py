"""
Shared fixtures: a recording command runner that emulates apt, systemd and
the agent binaries, and a release client served from memory.
"""
import hashlib
import io
import os
import zipfile

import pytest

from hostboot.errors import CommandError, DownloadError
from hostboot.MANAGERS.host_filesystem import HostFilesystem
from hostboot.MODELS.agent_settings import AgentRelease, ConsulSettings, NomadSettings
from hostboot.MODELS.bootstrap_config import (
    BootstrapConfig,
    DockerConfigTarget,
    RegistryAuthSettings,
    VerificationSettings,
)
from hostboot.REGISTRY.release_client import ReleaseClient
from hostboot.RUNNERS.command_runner import CommandResult, CommandRunner

VERSIONS = {"nomad": "1.5.6", "consul": "1.15.2"}


class FakeHost:
    """In-memory stand-in for dpkg, systemd and the installed agents."""

    def __init__(self, installed_packages=None):
        self.installed_packages = set(installed_packages or [])
        self.enabled = set()
        self.active = set()

    def __call__(self, command):
        program = os.path.basename(command[0])
        if program == "dpkg-query":
            package = command[-1]
            if package in self.installed_packages:
                return CommandResult(command, 0, "install ok installed")
            return CommandResult(command, 1, "", f"no packages found matching {package}")
        if program == "apt-get":
            if command[1] == "install":
                self.installed_packages.update(command[3:])
            return CommandResult(command, 0)
        if program == "systemctl":
            return self._systemctl(command)
        if program in VERSIONS and command[1:] == ["version"]:
            return CommandResult(command, 0, f"{program.capitalize()} v{VERSIONS[program]}\n")
        return CommandResult(command, 0)

    def _systemctl(self, command):
        verb, units = command[1], [c for c in command[2:] if not c.startswith("--")]
        if verb == "enable":
            self.enabled.update(units)
        elif verb in ("start", "restart"):
            self.active.update(units)
        elif verb == "is-enabled":
            return CommandResult(command, 0 if units[0] in self.enabled else 1)
        elif verb == "is-active":
            return CommandResult(command, 0 if units[0] in self.active else 3)
        elif verb == "status":
            state = "active (running)" if units[0] in self.active else "inactive (dead)"
            return CommandResult(command, 0 if units[0] in self.active else 3,
                                 f"{units[0]} - Active: {state}\n")
        return CommandResult(command, 0)


class FakeRunner(CommandRunner):
    """Records every command and answers through a handler."""

    def __init__(self, handler=None):
        super().__init__()
        self.handler = handler or FakeHost()
        self.commands = []

    def run(self, command, check=True, env=None):
        command = list(command)
        self.commands.append(command)
        result = self.handler(command)
        if check and not result.ok:
            raise CommandError(command, result.returncode, result.stderr)
        return result

    def called(self, *prefix):
        return any(cmd[:len(prefix)] == list(prefix) for cmd in self.commands)


def make_archive(name, payload):
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as archive:
        archive.writestr(name, payload)
    return buf.getvalue()


def release_files(releases):
    """URL -> body for each release's archive and SHA256SUMS file."""
    files = {}
    for release in releases:
        archive_name = release.archive_name("amd64")
        archive = make_archive(release.name, f"#!{release.name} v{release.version}".encode())
        files[f"{release.release_url}/{archive_name}"] = archive
        digest = hashlib.sha256(archive).hexdigest()
        files[release.checksums_url] = f"{digest}  {archive_name}\n".encode()
    return files


class FakeReleaseClient(ReleaseClient):
    """Serves release files from a dict; unknown URLs fail like a network error."""

    def __init__(self, runner, files, fail=False):
        super().__init__(runner, attempts=2, max_wait=0)
        self.files = files
        self.fail = fail
        self.fetched = []

    def _fetch(self, url):
        self.fetched.append(url)
        if self.fail or url not in self.files:
            raise DownloadError(f"GET {url} failed: connection refused")
        return self.files[url]


def make_config(tmp_path, **overrides):
    """A config that runs unprivileged against a scratch root."""
    helper_dir = tmp_path / "helper-bin"
    helper_dir.mkdir(exist_ok=True)
    helper = helper_dir / "docker-credential-ecr-login"
    helper.write_text("#!/bin/sh\n")
    helper.chmod(0o755)

    values = dict(
        address="10.0.0.5",
        nomad=NomadSettings(user=None, group=None,
                            release=AgentRelease(name="nomad", version="1.5.6", arch="amd64")),
        consul=ConsulSettings(user=None, group=None,
                              release=AgentRelease(name="consul", version="1.15.2", arch="amd64")),
        registry=RegistryAuthSettings(
            search_path=str(helper_dir),
            targets=[
                DockerConfigTarget(path="/home/ubuntu/.docker/config.json"),
                DockerConfigTarget(path="/etc/nomad/ecr.json"),
            ],
        ),
        verify=VerificationSettings(timeout=0, interval=0, http=False),
    )
    values.update(overrides)
    return BootstrapConfig(**values)


@pytest.fixture
def config(tmp_path):
    return make_config(tmp_path)


@pytest.fixture
def fs(tmp_path):
    root = tmp_path / "root"
    root.mkdir()
    return HostFilesystem(str(root))


@pytest.fixture
def host():
    return FakeHost(installed_packages={"ca-certificates", "curl", "unzip"})


@pytest.fixture
def runner(host):
    return FakeRunner(host)
