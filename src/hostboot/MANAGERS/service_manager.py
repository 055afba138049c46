"""
Registration and activation of agents with systemd.
"""
from typing import List

from ..RUNNERS.command_runner import CommandRunner
from ..UTILS.logger import get_logger

LOG = get_logger(__name__)


class ServiceManager:
    """
    Thin wrapper around systemctl.
    """
    def __init__(self, runner: CommandRunner):
        """
        :param runner: Runner used for systemctl.
        """
        self.runner = runner

    def _systemctl(self, *args: str, check: bool = True):
        return self.runner.run(["systemctl", *args], check=check)

    def daemon_reload(self) -> None:
        LOG.info("[systemd] Reloading unit files")
        self._systemctl("daemon-reload")

    def is_enabled(self, unit: str) -> bool:
        return self._systemctl("is-enabled", "--quiet", unit, check=False).ok

    def is_active(self, unit: str) -> bool:
        return self._systemctl("is-active", "--quiet", unit, check=False).ok

    def enable(self, units: List[str]) -> List[str]:
        """
        Enables units at boot.

        :return: Units that were not enabled before.
        """
        pending = [u for u in units if not self.is_enabled(u)]
        if pending:
            LOG.info(f"[systemd] Enabling {' '.join(pending)}")
            self._systemctl("enable", *pending)
        return pending

    def start(self, units: List[str]) -> List[str]:
        """
        Starts units that are not running.

        :return: Units that were started.
        """
        pending = [u for u in units if not self.is_active(u)]
        if pending:
            LOG.info(f"[systemd] Starting {' '.join(pending)}")
            self._systemctl("start", *pending)
        return pending

    def restart(self, units: List[str]) -> None:
        if units:
            LOG.info(f"[systemd] Restarting {' '.join(units)}")
            self._systemctl("restart", *units)

    def status_text(self, unit: str) -> str:
        """
        Human-readable ``systemctl status`` output; never raises on a
        failed or missing unit.
        """
        result = self._systemctl("status", "--no-pager", "--full", unit, check=False)
        return result.stdout or result.stderr
