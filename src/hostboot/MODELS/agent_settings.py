"""
Models describing the two agents a host runs: where their release comes
from, where their files live and how they are configured.
"""
import posixpath
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from .service_unit import ServiceUnit

RELEASES_URL = "https://releases.hashicorp.com"

class AgentRelease(BaseModel):
    """
    A version-pinned release archive published on the vendor host.
    """
    model_config = ConfigDict(coerce_numbers_to_str=True)

    name: str
    version: str
    base_url: str = RELEASES_URL
    os: str = "linux"
    arch: str = "auto"
    sha256: Optional[str] = None
    install_dir: str = "/usr/local/bin"

    @property
    def release_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/{self.name}/{self.version}"

    @property
    def checksums_url(self) -> str:
        return f"{self.release_url}/{self.name}_{self.version}_SHA256SUMS"

    @property
    def binary_path(self) -> str:
        return posixpath.join(self.install_dir, self.name)

    def archive_name(self, arch: str) -> str:
        """
        Name of the zip archive for a concrete architecture.

        :param arch: Vendor architecture label, e.g. ``amd64``.
        """
        return f"{self.name}_{self.version}_{self.os}_{arch}.zip"

class AgentSettings(BaseModel):
    """
    Settings shared by both agents.
    """
    name: str
    release: AgentRelease
    unit: ServiceUnit
    config_dir: str
    data_dir: str
    config_file: str
    config_flag: str = "-config"
    config_mode: int = 0o640
    user: Optional[str] = None
    group: Optional[str] = None
    log_level: str = "DEBUG"
    server_enabled: bool = True
    bootstrap_expect: int = Field(default=1, ge=1)
    ui_port: int
    health_path: str

    @property
    def config_path(self) -> str:
        return posixpath.join(self.config_dir, self.config_file)

    @property
    def owner_root(self) -> str:
        """The top of the agent's state tree, e.g. ``/opt/nomad``."""
        return posixpath.dirname(self.data_dir.rstrip("/"))

    @property
    def exec_start(self) -> str:
        if self.unit.exec_start:
            return self.unit.exec_start
        return f"{self.release.binary_path} agent {self.config_flag}={self.config_dir}"

    def ui_url(self, address: str) -> str:
        return f"http://{address}:{self.ui_port}"

class NomadSettings(AgentSettings):
    """
    Nomad runs as combined server and client on a single node.
    """
    name: str = "nomad"
    release: AgentRelease = Field(
        default_factory=lambda: AgentRelease(name="nomad", version="1.5.6"))
    unit: ServiceUnit = Field(default_factory=lambda: ServiceUnit(
        name="nomad",
        description="Nomad",
        documentation="https://www.nomadproject.io/docs/",
        kill_signal="SIGINT",
    ))
    config_dir: str = "/etc/nomad.d"
    data_dir: str = "/opt/nomad/data"
    config_file: str = "nomad.hcl"
    user: Optional[str] = "nomad"
    group: Optional[str] = "nomad"
    client_enabled: bool = True
    docker_auth_config: str = "/etc/nomad/ecr.json"
    docker_volumes_enabled: bool = True
    bind_addr: str = "0.0.0.0"
    ui_port: int = 4646
    health_path: str = "/v1/agent/health"

class ConsulSettings(AgentSettings):
    """
    Consul runs as a single-node server with the UI enabled.
    """
    name: str = "consul"
    release: AgentRelease = Field(
        default_factory=lambda: AgentRelease(name="consul", version="1.15.2"))
    unit: ServiceUnit = Field(default_factory=lambda: ServiceUnit(
        name="consul",
        description="Consul",
        documentation="https://www.consul.io/docs/",
        kill_mode="process",
        kill_signal="SIGTERM",
    ))
    config_dir: str = "/etc/consul.d"
    data_dir: str = "/opt/consul/data"
    config_file: str = "consul.hcl"
    config_flag: str = "-config-dir"
    user: Optional[str] = "consul"
    group: Optional[str] = "consul"
    datacenter: str = "dc1"
    ui: bool = True
    client_addr: str = "0.0.0.0"
    disable_update_check: bool = True
    enable_script_checks: bool = True
    ui_port: int = 8500
    health_path: str = "/v1/status/leader"
