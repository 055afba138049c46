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
Converters for generating Nomad and Consul agent configuration (HCL).
"""
import os
from jinja2 import Environment
from ..MODELS.agent_settings import AgentSettings, ConsulSettings, NomadSettings
from ..MODELS.bootstrap_config import BootstrapConfig

NOMAD_TEMPLATE = """\
# Increase the log level for more information
log_level = "{{ log_level }}"

# Setup data dir
data_dir = "{{ data_dir }}"

# Enable the server
server {
  enabled = {{ server_enabled | hcl }}
  bootstrap_expect = {{ bootstrap_expect }}
}

# Enable the client
client {
  enabled = {{ client_enabled | hcl }}
  options = {
    "docker.auth.config" = "{{ docker_auth_config }}"
    "docker.volumes.enabled" = "{{ docker_volumes_enabled | hcl }}"
  }
}

# Bind to all interfaces
bind_addr = "{{ bind_addr }}"

# Advertise the primary IP address
advertise {
  http = "{{ address }}"
  rpc  = "{{ address }}"
  serf = "{{ address }}"
}
"""

CONSUL_TEMPLATE = """\
# Increase the log level for more information
log_level = "{{ log_level }}"

# Setup data dir
data_dir = "{{ data_dir }}"

# Enable the server
server = {{ server_enabled | hcl }}

# Bootstrap expect (set to 1 for a single node)
bootstrap_expect = {{ bootstrap_expect }}

# Bind to the primary IP address
bind_addr = "{{ address }}"

# Advertise the primary IP address
advertise_addr = "{{ address }}"

# Enable the UI
ui = {{ ui | hcl }}

# Set the client address to 0.0.0.0 to allow remote access to the UI
client_addr = "{{ client_addr }}"

# Disable update checks
disable_update_check = {{ disable_update_check | hcl }}

# Enable script checks
enable_script_checks = {{ enable_script_checks | hcl }}

# Set the datacenter name
datacenter = "{{ datacenter }}"
"""


def _hcl(value):
    """Render Python booleans as HCL literals."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return value


class HclConverter:
    """
    Renders agent settings and the advertised address into HCL config files.
    """

    def __init__(self, config: BootstrapConfig):
        """
        Initializes the HCL converter.

        :param config: The desired host configuration.
        """
        self.config = config
        env = Environment(keep_trailing_newline=True, autoescape=False)
        env.filters["hcl"] = _hcl
        self.templates = {
            "nomad": env.from_string(NOMAD_TEMPLATE),
            "consul": env.from_string(CONSUL_TEMPLATE),
        }

    def render(self, agent: AgentSettings, address: str) -> str:
        """
        Renders one agent's configuration.

        :param agent: Nomad or Consul settings.
        :param address: Address advertised to peers.
        :return: The HCL document.
        :raises ValueError: If the address is empty.
        """
        if not address:
            raise ValueError(f"Refusing to render {agent.config_file} without an address")
        if isinstance(agent, NomadSettings):
            template = self.templates["nomad"]
        elif isinstance(agent, ConsulSettings):
            template = self.templates["consul"]
        else:
            raise ValueError(f"No configuration template for agent {agent.name}")
        return template.render(address=address, **agent.model_dump())

    def convert(self, address: str, output_dir: str = "config") -> str:
        """
        Writes both agents' configuration files into a directory.

        :param address: Address advertised to peers.
        :param output_dir: The directory where configuration files will be created.
        :return: The path to the output directory.
        """
        os.makedirs(output_dir, exist_ok=True)

        for agent in self.config.agents:
            content = self.render(agent, address)
            with open(os.path.join(output_dir, agent.config_file), "w") as f:
                f.write(content)

        return output_dir
