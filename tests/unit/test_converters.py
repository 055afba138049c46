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
Unit tests for the HCL and systemd converters.
"""
import pytest
from hostboot.CONVERTERS.to_hcl import HclConverter
from hostboot.CONVERTERS.to_systemd import SystemdConverter
from hostboot.MODELS.bootstrap_config import BootstrapConfig
from hostboot.MODELS.service_unit import RestartPolicyCondition

NOMAD_HCL = '''# Increase the log level for more information
log_level = "DEBUG"

# Setup data dir
data_dir = "/opt/nomad/data"

# Enable the server
server {
  enabled = true
  bootstrap_expect = 1
}

# Enable the client
client {
  enabled = true
  options = {
    "docker.auth.config" = "/etc/nomad/ecr.json"
    "docker.volumes.enabled" = "true"
  }
}

# Bind to all interfaces
bind_addr = "0.0.0.0"

# Advertise the primary IP address
advertise {
  http = "10.0.0.5"
  rpc  = "10.0.0.5"
  serf = "10.0.0.5"
}
'''

NOMAD_UNIT = '''[Unit]
Description=Nomad
Documentation=https://www.nomadproject.io/docs/
Wants=network-online.target
After=network-online.target

[Service]
ExecStart=/usr/local/bin/nomad agent -config=/etc/nomad.d
ExecReload=/bin/kill -HUP $MAINPID
Restart=on-failure
KillSignal=SIGINT

[Install]
WantedBy=multi-user.target
'''

CONSUL_UNIT = '''[Unit]
Description=Consul
Documentation=https://www.consul.io/docs/
Wants=network-online.target
After=network-online.target

[Service]
ExecStart=/usr/local/bin/consul agent -config-dir=/etc/consul.d
ExecReload=/bin/kill -HUP $MAINPID
KillMode=process
Restart=on-failure
KillSignal=SIGTERM

[Install]
WantedBy=multi-user.target
'''


class TestHclConverter:
    """Tests for HclConverter."""

    def test_nomad_config(self):
        config = BootstrapConfig()
        assert HclConverter(config).render(config.nomad, "10.0.0.5") == NOMAD_HCL

    def test_consul_config(self):
        config = BootstrapConfig()
        content = HclConverter(config).render(config.consul, "10.0.0.5")
        assert 'bind_addr = "10.0.0.5"' in content
        assert 'advertise_addr = "10.0.0.5"' in content
        assert "server = true" in content
        assert "ui = true" in content
        assert 'client_addr = "0.0.0.0"' in content
        assert 'datacenter = "dc1"' in content
        assert 'data_dir = "/opt/consul/data"' in content
        assert content.endswith('datacenter = "dc1"\n')

    def test_render_is_deterministic(self):
        config = BootstrapConfig()
        converter = HclConverter(config)
        assert converter.render(config.consul, "10.0.0.5") == converter.render(config.consul, "10.0.0.5")

    def test_empty_address_is_rejected(self):
        config = BootstrapConfig()
        with pytest.raises(ValueError):
            HclConverter(config).render(config.nomad, "")

    def test_convert_writes_both_files(self, tmp_path):
        config = BootstrapConfig()
        HclConverter(config).convert("10.0.0.5", str(tmp_path))
        assert (tmp_path / "nomad.hcl").read_text() == NOMAD_HCL
        assert (tmp_path / "consul.hcl").exists()


class TestSystemdConverter:
    """Tests for SystemdConverter."""

    def test_nomad_unit(self):
        config = BootstrapConfig()
        assert SystemdConverter(config).render(config.nomad) == NOMAD_UNIT

    def test_consul_unit(self):
        config = BootstrapConfig()
        assert SystemdConverter(config).render(config.consul) == CONSUL_UNIT

    def test_unit_follows_install_and_config_dirs(self):
        config = BootstrapConfig()
        config.nomad.release.install_dir = "/opt/bin"
        config.nomad.config_dir = "/srv/nomad.d"
        assert "ExecStart=/opt/bin/nomad agent -config=/srv/nomad.d\n" in \
            SystemdConverter(config).render(config.nomad)

    def test_default_units_have_no_user_line(self):
        config = BootstrapConfig()
        converter = SystemdConverter(config)
        for agent in config.agents:
            assert agent.user == agent.name
            assert "User=" not in converter.render(agent)

    def test_user_and_restart_policy(self):
        config = BootstrapConfig()
        config.consul.unit.user = "consul"
        config.consul.unit.group = "consul"
        config.consul.unit.restart = RestartPolicyCondition.ALWAYS
        content = SystemdConverter(config).render(config.consul)
        assert "User=consul\nGroup=consul\nExecStart=" in content
        assert "Restart=always\n" in content

    def test_unit_path(self):
        config = BootstrapConfig()
        assert SystemdConverter.unit_path(config.consul) == "/etc/systemd/system/consul.service"
