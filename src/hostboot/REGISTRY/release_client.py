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
Release client for downloading, verifying and installing agent binaries.
Fetches version-pinned zip archives from the vendor release host.
"""

import hashlib
import io
import platform
import zipfile
from typing import Dict, Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from .. import __version__
from ..errors import DownloadError, IntegrityError
from ..MANAGERS.host_filesystem import HostFilesystem
from ..MODELS.agent_settings import AgentRelease
from ..RUNNERS.command_runner import CommandRunner
from ..UTILS.logger import get_logger

LOG = get_logger(__name__)

# Python platform.machine() -> vendor architecture label
ARCH_MAP = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv7l": "arm",
    "i386": "386",
    "i686": "386",
}


def resolve_arch(arch: str = "auto") -> str:
    """
    Resolve the vendor architecture label for this machine.

    Args:
        arch: An explicit label, or 'auto' to detect it.

    Returns:
        Architecture label used in release archive names.
    """
    if arch != "auto":
        return arch
    machine = platform.machine().lower()
    return ARCH_MAP.get(machine, machine)


def parse_checksums(text: str) -> Dict[str, str]:
    """
    Parse a SHA256SUMS file into a mapping of file name to hex digest.
    """
    sums = {}
    for line in text.splitlines():
        parts = line.split()
        if len(parts) == 2:
            digest, name = parts
            sums[name.lstrip("*")] = digest.lower()
    return sums


class ReleaseClient:
    """
    Client for the vendor release host.
    Every archive is checked against a published or pinned SHA-256 digest.
    """

    def __init__(
        self,
        runner: CommandRunner,
        attempts: int = 3,
        max_wait: float = 10.0,
        timeout: float = 60.0,
    ):
        """
        Initialize the release client.

        Args:
            runner: Runner used to ask installed binaries for their version.
            attempts: Download attempts before giving up on network errors.
            max_wait: Upper bound in seconds for the backoff between attempts.
            timeout: Socket timeout for each request.
        """
        self.runner = runner
        self.attempts = attempts
        self.max_wait = max_wait
        self.timeout = timeout

    def _fetch(self, url: str) -> bytes:
        """Fetch a URL once, mapping transport failures to DownloadError."""
        request = Request(url, headers={"User-Agent": f"hostboot/{__version__}"})
        try:
            with urlopen(request, timeout=self.timeout) as response:
                return response.read()
        except HTTPError as e:
            raise DownloadError(f"GET {url} returned HTTP {e.code}") from e
        except (URLError, OSError) as e:
            raise DownloadError(f"GET {url} failed: {e}") from e

    def fetch(self, url: str) -> bytes:
        """
        Fetch a URL, retrying network failures with exponential backoff.

        Args:
            url: Absolute URL on the release host.

        Returns:
            Response body.
        """
        retrying = Retrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_exponential(multiplier=1, max=self.max_wait),
            retry=retry_if_exception_type(DownloadError),
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                return self._fetch(url)

    def expected_digest(self, release: AgentRelease, archive: str) -> str:
        """
        Get the SHA-256 digest an archive must have.

        Args:
            release: Release being installed.
            archive: Archive file name.

        Returns:
            Lower-case hex digest.
        """
        if release.sha256:
            return release.sha256.lower()

        sums = parse_checksums(self.fetch(release.checksums_url).decode("utf-8"))
        if archive not in sums:
            raise IntegrityError(f"{archive} is not listed in {release.checksums_url}")
        return sums[archive]

    def download(self, release: AgentRelease) -> bytes:
        """
        Download a release archive and verify its digest.

        Args:
            release: Release to download.

        Returns:
            Verified archive bytes.
        """
        archive = release.archive_name(resolve_arch(release.arch))
        expected = self.expected_digest(release, archive)

        LOG.info(f"[{release.name}] Downloading {archive}")
        content = self.fetch(f"{release.release_url}/{archive}")

        actual = hashlib.sha256(content).hexdigest()
        if actual != expected:
            raise IntegrityError(
                f"{archive} digest mismatch: expected sha256:{expected}, got sha256:{actual}"
            )
        return content

    def installed_version_matches(self, release: AgentRelease, fs: HostFilesystem) -> bool:
        """
        Check whether the installed binary already reports the pinned version.
        """
        if not fs.exists(release.binary_path):
            return False
        result = self.runner.run([fs.resolve(release.binary_path), "version"], check=False)
        return result.ok and f"v{release.version}" in result.stdout

    def install(self, release: AgentRelease, fs: HostFilesystem) -> bool:
        """
        Install a release binary unless the pinned version is already present.

        Args:
            release: Release to install.
            fs: Filesystem the binary is written to.

        Returns:
            True if a binary was installed.
        """
        if self.installed_version_matches(release, fs):
            LOG.info(f"[{release.name}] v{release.version} already installed")
            return False

        content = self.download(release)
        binary = self._extract(release, content)

        fs.write_file(release.binary_path, binary, mode=0o755)
        LOG.info(f"[{release.name}] Installed v{release.version} to {release.binary_path}")
        return True

    @staticmethod
    def _extract(release: AgentRelease, content: bytes) -> bytes:
        """Read the agent binary out of a release archive."""
        try:
            with zipfile.ZipFile(io.BytesIO(content)) as archive:
                member: Optional[str] = None
                for name in archive.namelist():
                    if name.rsplit("/", 1)[-1] == release.name:
                        member = name
                        break
                if member is None:
                    raise IntegrityError(
                        f"Archive for {release.name} v{release.version} has no '{release.name}' binary"
                    )
                return archive.read(member)
        except zipfile.BadZipFile as e:
            raise IntegrityError(f"Archive for {release.name} is not a zip file: {e}") from e
