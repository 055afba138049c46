"""
Exceptions raised while bootstrapping a host.
"""
from typing import List, Optional


class HostbootError(Exception):
    """Base class for every failure the bootstrapper reports."""


class ConfigError(HostbootError):
    """The bootstrap configuration file could not be read or validated."""


class CommandError(HostbootError):
    """
    An external command exited with a non-zero status.
    """
    def __init__(self, command: List[str], returncode: int, stderr: str = ""):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        detail = f": {stderr.strip()}" if stderr and stderr.strip() else ""
        super().__init__(f"Command '{' '.join(command)}' exited with {returncode}{detail}")


class DownloadError(HostbootError):
    """A release artifact could not be fetched."""


class IntegrityError(HostbootError):
    """A downloaded artifact does not match its published checksum."""


class AddressDiscoveryError(HostbootError):
    """No global-scope IPv4 address could be found on this host."""


class RegistryConfigError(HostbootError):
    """A registry auth config exists but is not a JSON object."""


class CredentialHelperError(HostbootError):
    """The registry credential helper is not on the search path."""


class ServiceVerificationError(HostbootError):
    """A service did not reach a running, responsive state in time."""


class StepFailedError(HostbootError):
    """
    Wraps the failure of a single bootstrap step.
    """
    def __init__(self, step: str, cause: Optional[BaseException] = None):
        self.step = step
        self.cause = cause
        super().__init__(f"Step '{step}' failed: {cause}")
