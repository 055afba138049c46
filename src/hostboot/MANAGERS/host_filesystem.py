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
Filesystem access for host paths, with idempotent writes, ownership and backups.
"""
import grp
import os
import pwd
import shutil
import stat
import tempfile
from typing import Optional, Union

from ..errors import ConfigError
from ..UTILS.logger import get_logger

LOG = get_logger(__name__)


class HostFilesystem:
    """
    Reads and writes absolute host paths below a root directory.

    With the default root of ``/`` paths are used as given. Any other root
    turns ``/etc/nomad.d`` into ``<root>/etc/nomad.d``, which lets a whole
    host tree be rendered into a scratch directory.
    """

    def __init__(self, root: str = "/"):
        """
        Initializes the filesystem view.

        :param root: Directory that stands in for ``/``.
        """
        self.root = os.path.abspath(root)

    @property
    def is_live(self) -> bool:
        """True when operating on the real root filesystem."""
        return self.root == "/"

    def resolve(self, path: str) -> str:
        """
        Maps an absolute host path into the root.

        :param path: Absolute host path.
        :return: The path on the local filesystem.
        """
        if not os.path.isabs(path):
            raise ValueError(f"Host paths must be absolute: {path}")
        # normpath("/../x") == "/x", so nothing resolves outside the root
        return os.path.join(self.root, os.path.normpath(path).lstrip("/"))

    def exists(self, path: str) -> bool:
        return os.path.exists(self.resolve(path))

    def read_bytes(self, path: str) -> Optional[bytes]:
        """
        Reads a file, returning None when it does not exist.
        """
        local = self.resolve(path)
        if not os.path.exists(local):
            return None
        with open(local, "rb") as f:
            return f.read()

    def read_text(self, path: str) -> Optional[str]:
        data = self.read_bytes(path)
        return data.decode("utf-8") if data is not None else None

    def ensure_directory(self, path: str, mode: int = 0o755) -> bool:
        """
        Creates a directory and its parents if missing.

        :return: True if the directory had to be created.
        """
        local = self.resolve(path)
        if os.path.isdir(local):
            return False
        os.makedirs(local, mode=mode, exist_ok=True)
        LOG.debug(f"[fs] Created directory {path}")
        return True

    def write_file(self, path: str, content: Union[str, bytes], mode: int = 0o644) -> bool:
        """
        Atomically writes a file unless it already has this content and mode.

        :param path: Absolute host path.
        :param content: Text (UTF-8 encoded) or raw bytes.
        :param mode: Permission bits for the file.
        :return: True if the file was created or changed.
        """
        data = content.encode("utf-8") if isinstance(content, str) else content
        local = self.resolve(path)

        if os.path.exists(local):
            current_mode = stat.S_IMODE(os.stat(local).st_mode)
            if current_mode == mode and self.read_bytes(path) == data:
                return False

        directory = os.path.dirname(local)
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".hostboot-")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.chmod(tmp_path, mode)
            os.replace(tmp_path, local)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

        LOG.debug(f"[fs] Wrote {path} ({len(data)} bytes, mode {mode:o})")
        return True

    def backup(self, path: str, suffix: str = ".bak") -> str:
        """
        Copies a file next to itself, replacing any previous backup.

        :return: Host path of the backup.
        """
        backup_path = path + suffix
        shutil.copy2(self.resolve(path), self.resolve(backup_path))
        LOG.info(f"[fs] Backed up {path} to {backup_path}")
        return backup_path

    def remove(self, path: str) -> bool:
        """
        Deletes a file if it exists.

        :return: True if a file was removed.
        """
        local = self.resolve(path)
        if not os.path.exists(local):
            return False
        os.unlink(local)
        return True

    def chown(self, path: str, user: Optional[str], group: Optional[str] = None,
              recursive: bool = False) -> bool:
        """
        Changes ownership of a path, optionally of everything below it.

        :param user: Owner name; None leaves ownership untouched.
        :param group: Group name; defaults to the user's name.
        :raises ConfigError: If the user or group does not exist on the host.
        :return: True if any ownership changed.
        """
        if not user:
            return False
        try:
            uid = pwd.getpwnam(user).pw_uid
        except KeyError:
            raise ConfigError(f"Unknown user '{user}' for {path}") from None
        try:
            gid = grp.getgrnam(group or user).gr_gid
        except KeyError:
            raise ConfigError(f"Unknown group '{group or user}' for {path}") from None

        local = self.resolve(path)
        targets = [local]
        if recursive and os.path.isdir(local):
            for dirpath, dirnames, filenames in os.walk(local):
                targets.extend(os.path.join(dirpath, n) for n in dirnames + filenames)

        changed = False
        for target in targets:
            st = os.lstat(target)
            if st.st_uid != uid or st.st_gid != gid:
                os.lchown(target, uid, gid)
                changed = True
        if changed:
            LOG.debug(f"[fs] Set owner of {path} to {user}:{group or user}")
        return changed
