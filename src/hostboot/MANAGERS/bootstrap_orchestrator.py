# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Orchestration of a host bootstrap: ordered steps that reconcile the host
against the desired configuration.
"""
import json
import posixpath
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from ..CONVERTERS.to_hcl import HclConverter
from ..CONVERTERS.to_systemd import SystemdConverter
from ..errors import HostbootError, StepFailedError
from ..MODELS.bootstrap_config import BootstrapConfig
from ..MODELS.bootstrap_report import BootstrapReport, StepResult, StepStatus
from ..REGISTRY.credential_helper import locate_helper
from ..REGISTRY.docker_auth_config import DockerAuthConfig
from ..REGISTRY.release_client import ReleaseClient
from ..RUNNERS.command_runner import CommandRunner
from ..UTILS.host_address import discover_primary_address
from ..UTILS.logger import get_logger
from .account_manager import AccountManager
from .health_monitor import HealthMonitor, journal_hint
from .host_filesystem import HostFilesystem
from .package_manager import PackageManager
from .service_manager import ServiceManager

LOG = get_logger(__name__)

STEPS = (
    "packages",
    "binaries",
    "directories",
    "address",
    "configs",
    "units",
    "registry",
    "activate",
    "verify",
)

PENDING_FILE = "pending.json"


class BootstrapOrchestrator:
    """
    Brings one host to the state described by a BootstrapConfig.

    Steps run in a fixed order and stop at the first failure. Each step
    compares the host with the desired state and only changes what differs,
    so a failed run can be resumed by running it again.
    """
    def __init__(self,
                 config: BootstrapConfig,
                 fs: Optional[HostFilesystem] = None,
                 runner: Optional[CommandRunner] = None,
                 releases: Optional[ReleaseClient] = None,
                 health: Optional[HealthMonitor] = None):
        """
        Initializes the orchestrator.

        :param config: Desired state of the host.
        :param fs: Filesystem view; the real root by default.
        :param runner: Runner for external commands.
        :param releases: Source of agent binaries.
        :param health: Post-start verifier.
        """
        self.config = config
        self.fs = fs or HostFilesystem()
        self.runner = runner or CommandRunner()
        self.packages = PackageManager(self.runner)
        self.accounts = AccountManager(self.runner)
        self.services = ServiceManager(self.runner)
        self.releases = releases or ReleaseClient(self.runner, attempts=config.download_attempts)
        self.health = health or HealthMonitor(self.services, config.verify)
        self.hcl = HclConverter(config)
        self.systemd = SystemdConverter(config)

        self._address: Optional[str] = config.address
        self._steps: Dict[str, Callable[[], Tuple[bool, str]]] = {
            "packages": self.install_packages,
            "binaries": self.install_binaries,
            "directories": self.prepare_directories,
            "address": self.discover_address,
            "configs": self.render_configs,
            "units": self.register_units,
            "registry": self.configure_registry,
            "activate": self.activate_services,
            "verify": self.verify_services,
        }

    @property
    def address(self) -> str:
        """The advertised host address, discovered on first use."""
        if not self._address:
            self._address = discover_primary_address(
                interface=self.config.interface,
                exclude_prefixes=self.config.exclude_interfaces,
            )
        return self._address

    def plan(self, only: Iterable[str] = (), skip: Iterable[str] = ()) -> List[str]:
        """
        Returns the steps a run would execute, in order.

        :param only: Run just these steps (all when empty).
        :param skip: Steps to leave out.
        :raises ValueError: If a step name is unknown.
        """
        only, skip = list(only), list(skip)
        unknown = [s for s in only + skip if s not in STEPS]
        if unknown:
            raise ValueError(f"Unknown step(s): {', '.join(unknown)}; known steps: {', '.join(STEPS)}")
        return [s for s in STEPS if (not only or s in only) and s not in skip]

    def apply(self, only: Iterable[str] = (), skip: Iterable[str] = ()) -> BootstrapReport:
        """
        Runs the bootstrap.

        :param only: Run just these steps (all when empty).
        :param skip: Steps to leave out.
        :return: The per-step outcome plus UI endpoints.
        :raises StepFailedError: On the first step that fails.
        """
        selected = self.plan(only, skip)
        report = BootstrapReport()

        for name in STEPS:
            if name not in selected:
                report.results.append(StepResult(name, StepStatus.SKIPPED))
                continue

            LOG.info(f"[bootstrap] Step {name}")
            try:
                changed, detail = self._steps[name]()
            except (HostbootError, OSError) as e:
                LOG.error(f"[bootstrap] Step {name} failed: {e}")
                raise StepFailedError(name, e) from e

            status = StepStatus.CHANGED if changed else StepStatus.UNCHANGED
            report.results.append(StepResult(name, status, detail))

        if self._address:
            report.address = self._address
            report.ui_urls = {a.name: a.ui_url(self._address) for a in self.config.agents}
        report.log_hints = [journal_hint(a.unit.unit_name) for a in self.config.agents]
        return report

    @property
    def pending_path(self) -> str:
        return posixpath.join(self.config.state_dir, PENDING_FILE)

    def _load_pending(self) -> Dict[str, Any]:
        """
        Follow-up work left by earlier runs: agents whose files changed but
        which have not been restarted yet, and an outstanding daemon-reload.
        Kept on the host until the activate step consumes it.
        """
        text = self.fs.read_text(self.pending_path)
        if text is None:
            return {"restart": [], "daemon_reload": False}
        try:
            pending = json.loads(text)
            return {
                "restart": [str(name) for name in pending.get("restart", [])],
                "daemon_reload": bool(pending.get("daemon_reload", False)),
            }
        except (ValueError, AttributeError, TypeError):
            LOG.warning(f"[bootstrap] Unreadable {self.pending_path}; restarting all agents")
            return {"restart": [a.name for a in self.config.agents], "daemon_reload": True}

    def _save_pending(self, pending: Dict[str, Any]) -> None:
        if not pending["restart"] and not pending["daemon_reload"]:
            self.fs.remove(self.pending_path)
            return
        self.fs.write_file(self.pending_path, json.dumps(pending, indent=2, sort_keys=True) + "\n",
                           mode=0o600)

    def _mark_changed(self, agent_name: str, daemon_reload: bool = False) -> None:
        pending = self._load_pending()
        if agent_name not in pending["restart"]:
            pending["restart"].append(agent_name)
        pending["daemon_reload"] = pending["daemon_reload"] or daemon_reload
        self._save_pending(pending)

    def _reload_if_pending(self) -> bool:
        pending = self._load_pending()
        if not pending["daemon_reload"]:
            return False
        self.services.daemon_reload()
        pending["daemon_reload"] = False
        self._save_pending(pending)
        return True

    def install_packages(self) -> Tuple[bool, str]:
        installed = self.packages.install(self.config.packages)
        return bool(installed), ", ".join(installed) or "all present"

    def install_binaries(self) -> Tuple[bool, str]:
        installed = []
        for agent in self.config.agents:
            if self.releases.install(agent.release, self.fs):
                installed.append(f"{agent.name} v{agent.release.version}")
                self._mark_changed(agent.name)
        return bool(installed), ", ".join(installed) or "up to date"

    def prepare_directories(self) -> Tuple[bool, str]:
        changed = False
        for agent in self.config.agents:
            if agent.user:
                changed |= self.accounts.ensure_user(agent.user, agent.config_dir)
            changed |= self.fs.ensure_directory(agent.config_dir)
            changed |= self.fs.ensure_directory(agent.data_dir)
            changed |= self.fs.chown(agent.config_dir, agent.user, agent.group, recursive=True)
            changed |= self.fs.chown(agent.owner_root, agent.user, agent.group, recursive=True)
        return changed, ""

    def discover_address(self) -> Tuple[bool, str]:
        return False, self.address

    def render_configs(self) -> Tuple[bool, str]:
        written = []
        for agent in self.config.agents:
            content = self.hcl.render(agent, self.address)
            changed = self.fs.write_file(agent.config_path, content, mode=agent.config_mode)
            changed |= self.fs.chown(agent.config_path, agent.user, agent.group)
            if changed:
                written.append(agent.config_path)
                self._mark_changed(agent.name)
        return bool(written), ", ".join(written)

    def register_units(self) -> Tuple[bool, str]:
        written = []
        for agent in self.config.agents:
            path = self.systemd.unit_path(agent)
            if self.fs.write_file(path, self.systemd.render(agent)):
                written.append(path)
                self._mark_changed(agent.name, daemon_reload=True)
        reloaded = self._reload_if_pending()
        return bool(written) or reloaded, ", ".join(written)

    def configure_registry(self) -> Tuple[bool, str]:
        registry = self.config.registry
        installed = self.packages.install([registry.helper_package])

        changed = bool(installed)
        states = []
        for target in registry.targets:
            state, written = DockerAuthConfig(self.fs, target).apply(
                registry.registry_host, registry.helper)
            changed |= written
            states.append(f"{target.path}: {state.value}")

        locate_helper(registry.helper_executable, registry.search_path)
        return changed, "; ".join(states)

    def activate_services(self) -> Tuple[bool, str]:
        self._reload_if_pending()
        units = [a.unit.unit_name for a in self.config.agents]
        enabled = self.services.enable(units)

        pending = self._load_pending()["restart"]
        to_restart = [a.unit.unit_name for a in self.config.agents
                      if a.name in pending and self.services.is_active(a.unit.unit_name)]
        self.services.restart(to_restart)
        started = self.services.start(units)
        # stopped agents pick up the new files when started
        self._save_pending({"restart": [], "daemon_reload": False})

        changed = bool(enabled or to_restart or started)
        detail = ", ".join(f"{verb} {' '.join(u)}" for verb, u in
                           (("enabled", enabled), ("restarted", to_restart), ("started", started)) if u)
        return changed, detail

    def verify_services(self) -> Tuple[bool, str]:
        results = [self.health.verify(agent, self.address) for agent in self.config.agents]
        return False, ", ".join(f"{h.name} {h.status.value}" for h in results)
