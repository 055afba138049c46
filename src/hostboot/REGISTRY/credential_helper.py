"""
Discovery of the registry credential helper executable.
"""
import shutil
from typing import Optional

from ..errors import CredentialHelperError
from ..UTILS.logger import get_logger

LOG = get_logger(__name__)


def locate_helper(executable: str, search_path: Optional[str] = None) -> str:
    """
    Find a credential helper on the executable search path.

    Args:
        executable: File name, e.g. ``docker-credential-ecr-login``.
        search_path: os.pathsep separated directories; PATH when None.

    Returns:
        Absolute path of the helper.

    Raises:
        CredentialHelperError: If the helper cannot be found.
    """
    found = shutil.which(executable, path=search_path)
    if not found:
        raise CredentialHelperError(
            f"{executable} is not installed or not in PATH"
        )
    LOG.info(f"[registry] Credential helper found at {found}")
    return found
