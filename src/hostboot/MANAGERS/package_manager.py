"""
Installation of OS packages through apt.
"""
from typing import Iterable, List

from tenacity import retry, retry_if_exception, stop_after_attempt, wait_fixed

from ..errors import CommandError
from ..RUNNERS.command_runner import CommandRunner
from ..UTILS.logger import get_logger

LOG = get_logger(__name__)

APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}


def _is_lock_contention(exc: BaseException) -> bool:
    """apt fails fast when another process holds the dpkg lock."""
    return isinstance(exc, CommandError) and "Could not get lock" in exc.stderr


class PackageManager:
    """
    Installs missing Debian packages, leaving installed ones alone.
    """
    def __init__(self, runner: CommandRunner):
        """
        :param runner: Runner used for dpkg-query and apt-get.
        """
        self.runner = runner
        self._index_updated = False

    def is_installed(self, package: str) -> bool:
        result = self.runner.run(
            ["dpkg-query", "-W", "-f=${Status}", package], check=False)
        return result.ok and "install ok installed" in result.stdout

    def missing(self, packages: Iterable[str]) -> List[str]:
        return [p for p in packages if not self.is_installed(p)]

    @retry(retry=retry_if_exception(_is_lock_contention),
           stop=stop_after_attempt(5), wait=wait_fixed(10), reraise=True)
    def _apt(self, *args: str) -> None:
        self.runner.run(["apt-get", *args], env=APT_ENV)

    def update(self) -> None:
        """Refreshes the package index once per manager."""
        if self._index_updated:
            return
        LOG.info("[packages] Updating package index")
        self._apt("update")
        self._index_updated = True

    def install(self, packages: Iterable[str]) -> List[str]:
        """
        Installs every package that is not installed yet.

        :param packages: Debian package names.
        :return: The packages that were installed.
        """
        missing = self.missing(packages)
        if not missing:
            return []

        self.update()
        LOG.info(f"[packages] Installing {', '.join(missing)}")
        self._apt("install", "-y", *missing)
        return missing
