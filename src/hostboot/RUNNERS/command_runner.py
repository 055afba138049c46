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
Execution of external commands (package manager, service manager, agent binaries).
"""
import os
import subprocess
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..errors import CommandError
from ..UTILS.logger import get_logger

LOG = get_logger(__name__)


@dataclass
class CommandResult:
    """Captured outcome of one command."""

    command: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner:
    """
    Runs commands to completion and captures their output.
    """
    def __init__(self, timeout: Optional[float] = None):
        """
        Initializes the command runner.

        Args:
            timeout (Optional[float]): Seconds before a command is killed.
        """
        self.timeout = timeout

    def run(self,
            command: List[str],
            check: bool = True,
            env: Optional[Dict[str, str]] = None) -> CommandResult:
        """
        Runs a command and waits for it.

        Args:
            command (List[str]): Command and arguments to execute.
            check (bool): Raise CommandError on a non-zero exit.
            env (Optional[Dict[str, str]]): Variables added to the current environment.

        Returns:
            CommandResult: Exit code and captured output.
        """
        merged_env = os.environ.copy()
        if env:
            merged_env.update(env)

        LOG.debug(f"[run] {' '.join(command)}")
        try:
            completed = subprocess.run(
                command,
                env=merged_env,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                # Avoid shell=True for security reasons (CWE-78)
                shell=False,
            )
        except FileNotFoundError as e:
            raise CommandError(command, 127, str(e)) from e
        except subprocess.TimeoutExpired as e:
            raise CommandError(command, -1, f"timed out after {self.timeout}s") from e

        result = CommandResult(command, completed.returncode,
                               completed.stdout or "", completed.stderr or "")
        if check and not result.ok:
            raise CommandError(command, result.returncode, result.stderr)
        return result
