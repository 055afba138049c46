"""
System accounts that own agent configuration and data.
"""
import pwd

from ..RUNNERS.command_runner import CommandRunner
from ..UTILS.logger import get_logger

LOG = get_logger(__name__)


class AccountManager:
    """
    Creates locked system users with a same-named group.
    """
    def __init__(self, runner: CommandRunner):
        self.runner = runner

    @staticmethod
    def exists(user: str) -> bool:
        try:
            pwd.getpwnam(user)
        except KeyError:
            return False
        return True

    def ensure_user(self, user: str, home: str) -> bool:
        """
        Creates a system user unless it already exists.

        :param user: Account and group name.
        :param home: Home directory recorded for the account (not created).
        :return: True if the account was created.
        """
        if self.exists(user):
            return False
        LOG.info(f"[accounts] Creating system user {user}")
        self.runner.run([
            "useradd", "--system", "--user-group",
            "--home-dir", home, "--no-create-home",
            "--shell", "/bin/false", user,
        ])
        return True
