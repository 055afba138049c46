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
Converters for generating systemd service files for the host's agents.
"""
import os
from jinja2 import Environment
from ..MODELS.agent_settings import AgentSettings
from ..MODELS.bootstrap_config import BootstrapConfig

SYSTEMD_UNIT_DIR = "/etc/systemd/system"

SYSTEMD_TEMPLATE = """\
[Unit]
Description={{ unit.description }}
{% if unit.documentation %}
Documentation={{ unit.documentation }}
{% endif %}
Wants={{ unit.wants | join(' ') }}
After={{ unit.after | join(' ') }}

[Service]
{% if unit.user %}
User={{ unit.user }}
{% endif %}
{% if unit.group %}
Group={{ unit.group }}
{% endif %}
ExecStart={{ exec_start }}
ExecReload={{ unit.exec_reload }}
{% if unit.kill_mode %}
KillMode={{ unit.kill_mode }}
{% endif %}
Restart={{ unit.restart.value }}
KillSignal={{ unit.kill_signal }}

[Install]
WantedBy={{ unit.wanted_by }}
"""


class SystemdConverter:
    """
    Converts agent settings into systemd unit files.
    """

    def __init__(self, config: BootstrapConfig):
        """
        Initializes the systemd converter.

        :param config: The desired host configuration.
        """
        self.config = config
        env = Environment(trim_blocks=True, keep_trailing_newline=True, autoescape=False)
        self.template = env.from_string(SYSTEMD_TEMPLATE)

    @staticmethod
    def unit_path(agent: AgentSettings) -> str:
        return f"{SYSTEMD_UNIT_DIR}/{agent.unit.unit_name}"

    def render(self, agent: AgentSettings) -> str:
        """
        Renders one agent's unit file.

        :param agent: Nomad or Consul settings.
        :return: The unit file content.
        """
        return self.template.render(unit=agent.unit, exec_start=agent.exec_start)

    def convert(self, output_dir: str = "systemd"):
        """
        Generates systemd service files.

        :param output_dir: The directory where service files will be created.
        :return: The path to the output directory.
        """
        os.makedirs(output_dir, exist_ok=True)

        for agent in self.config.agents:
            content = self.render(agent)
            with open(os.path.join(output_dir, agent.unit.unit_name), "w") as f:
                f.write(content)

        return output_dir
