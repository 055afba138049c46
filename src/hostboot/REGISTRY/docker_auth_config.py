"""
Docker registry auth configs routed through a credential helper.
"""

import json
from enum import Enum
from typing import Any, Dict, Tuple

from ..errors import RegistryConfigError
from ..MANAGERS.account_manager import AccountManager
from ..MANAGERS.host_filesystem import HostFilesystem
from ..MODELS.bootstrap_config import DockerConfigTarget
from ..UTILS.logger import get_logger

LOG = get_logger(__name__)

CRED_HELPERS = "credHelpers"


class AuthConfigState(str, Enum):
    """State of an auth config before it is patched."""

    ABSENT = "absent"
    NO_HELPERS = "no-helpers"
    HAS_HELPERS = "has-helpers"


def patch_document(document: Dict[str, Any], registry: str, helper: str) -> AuthConfigState:
    """
    Point one registry at a credential helper, in place.

    Every other key of the document is left as it was.

    Args:
        document: Parsed config.json contents.
        registry: Registry hostname.
        helper: Credential helper name, without the docker-credential- prefix.

    Returns:
        The state the document was in before the patch.
    """
    helpers = document.get(CRED_HELPERS)
    if helpers is None:
        state = AuthConfigState.NO_HELPERS
        document[CRED_HELPERS] = {}
    elif isinstance(helpers, dict):
        state = AuthConfigState.HAS_HELPERS
    else:
        raise RegistryConfigError(
            f"'{CRED_HELPERS}' must be an object, found {type(helpers).__name__}"
        )

    document[CRED_HELPERS][registry] = helper
    return state


def render_document(document: Dict[str, Any]) -> str:
    return json.dumps(document, indent=2) + "\n"


class DockerAuthConfig:
    """
    One Docker ``config.json`` on the host.

    A missing file is created fresh. An existing file is backed up to
    ``<path>.bak`` on every run and then merged, never replaced.
    """

    def __init__(self, fs: HostFilesystem, target: DockerConfigTarget):
        self.fs = fs
        self.target = target

    @property
    def path(self) -> str:
        return self.target.path

    def load(self) -> Dict[str, Any]:
        """Parse the existing file, refusing anything but a JSON object."""
        text = self.fs.read_text(self.path)
        try:
            document = json.loads(text)
        except json.JSONDecodeError as e:
            raise RegistryConfigError(f"{self.path} is not valid JSON: {e}") from e
        if not isinstance(document, dict):
            raise RegistryConfigError(
                f"{self.path} must contain a JSON object, found {type(document).__name__}"
            )
        return document

    def apply(self, registry: str, helper: str) -> Tuple[AuthConfigState, bool]:
        """
        Route ``registry`` through ``helper`` in this config.

        Returns:
            The state the file was in before it was patched, and whether
            its content or mode changed.
        """
        if not self.fs.exists(self.path):
            document: Dict[str, Any] = {"auths": {}, CRED_HELPERS: {registry: helper}}
            state = AuthConfigState.ABSENT
            LOG.info(f"[registry] Creating {self.path}")
        else:
            document = self.load()
            self.fs.backup(self.path)
            state = patch_document(document, registry, helper)
            LOG.info(f"[registry] Patching {self.path} ({state.value})")

        parent = self.path.rsplit("/", 1)[0] or "/"
        self.fs.ensure_directory(parent)
        changed = self.fs.write_file(self.path, render_document(document), mode=0o600)

        if self.target.owner and not AccountManager.exists(self.target.owner):
            LOG.warning(f"[registry] User {self.target.owner} does not exist; "
                        f"{self.path} stays owned by root")
        elif self.target.owner:
            self.fs.chown(parent, self.target.owner, self.target.group)
            changed |= self.fs.chown(self.path, self.target.owner, self.target.group)
        return state, changed
