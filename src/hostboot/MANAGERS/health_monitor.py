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
Post-start verification of agents: systemd state followed by an HTTP probe
of each agent's API.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional
from urllib.error import URLError
from urllib.request import urlopen

from tenacity import RetryError, Retrying, retry_if_result, stop_after_delay, wait_fixed

from ..errors import ServiceVerificationError
from ..MODELS.agent_settings import AgentSettings
from ..MODELS.bootstrap_config import VerificationSettings
from ..UTILS.logger import get_logger
from .service_manager import ServiceManager

LOG = get_logger(__name__)


class HealthStatus(str, Enum):
    """Health status of an agent after activation."""

    HEALTHY = "healthy"
    RUNNING = "running"  # active, HTTP probe disabled
    UNHEALTHY = "unhealthy"


@dataclass
class AgentHealth:
    """Health information for an agent."""

    name: str
    status: HealthStatus
    url: Optional[str] = None


def journal_hint(unit: str) -> str:
    return f"journalctl -u {unit} -n 50 --no-pager"


class HealthMonitor:
    """
    Waits for agents to become active and responsive within a deadline.
    """

    def __init__(
        self,
        services: ServiceManager,
        settings: VerificationSettings,
        probe: Optional[Callable[[str, float], bool]] = None,
    ):
        """
        Initializes the health monitor.

        :param services: systemd access.
        :param settings: Timeout, poll interval and whether to probe HTTP.
        :param probe: Callable returning True when a URL answers; defaults to an HTTP GET.
        """
        self.services = services
        self.settings = settings
        self.probe = probe or http_probe

    def _poll(self, check: Callable[[], bool]) -> bool:
        """Poll until check() is true or the deadline passes."""
        retrying = Retrying(
            stop=stop_after_delay(self.settings.timeout),
            wait=wait_fixed(self.settings.interval),
            retry=retry_if_result(lambda ok: not ok),
        )
        try:
            return retrying(check)
        except RetryError:
            return False

    def wait_until_active(self, unit: str) -> bool:
        return self._poll(lambda: self.services.is_active(unit))

    def wait_until_responding(self, url: str) -> bool:
        return self._poll(lambda: self.probe(url, self.settings.http_timeout))

    def verify(self, agent: AgentSettings, address: str) -> AgentHealth:
        """
        Verifies one agent.

        :param agent: Agent settings.
        :param address: Address the agent's API listens on.
        :return: The agent's health.
        :raises ServiceVerificationError: If the agent is not active or not responding in time.
        """
        unit = agent.unit.unit_name
        LOG.info(f"[verify] Waiting for {unit} to become active")
        if not self.wait_until_active(unit):
            raise ServiceVerificationError(
                f"{unit} is not active after {self.settings.timeout:.0f}s; "
                f"check logs with: {journal_hint(unit)}"
            )

        if not self.settings.http:
            return AgentHealth(agent.name, HealthStatus.RUNNING)

        url = agent.ui_url(address) + agent.health_path
        LOG.info(f"[verify] Probing {url}")
        if not self.wait_until_responding(url):
            raise ServiceVerificationError(
                f"{agent.name} is active but {url} did not answer within "
                f"{self.settings.timeout:.0f}s; check logs with: {journal_hint(unit)}"
            )
        return AgentHealth(agent.name, HealthStatus.HEALTHY, url)


def http_probe(url: str, timeout: float) -> bool:
    """
    True when a GET on the URL returns 200.
    """
    try:
        with urlopen(url, timeout=timeout) as response:
            return response.status == 200
    except (URLError, OSError, ValueError):
        return False
