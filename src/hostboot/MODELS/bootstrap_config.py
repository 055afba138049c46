"""
Models for the desired state of a bootstrapped host.
"""
import re
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator
from .agent_settings import AgentSettings, ConsulSettings, NomadSettings

class DockerConfigTarget(BaseModel):
    """
    A Docker ``config.json`` style file that should route registry pulls
    through the credential helper.
    """
    path: str
    owner: Optional[str] = None
    group: Optional[str] = None

class RegistryAuthSettings(BaseModel):
    """
    ECR credential helper wiring for one account and region.
    """
    account_id: str = "633954949648"
    region: str = "us-west-2"
    helper: str = "ecr-login"
    helper_package: str = "amazon-ecr-credential-helper"
    search_path: Optional[str] = None
    targets: List[DockerConfigTarget] = Field(default_factory=lambda: [
        DockerConfigTarget(path="/home/ubuntu/.docker/config.json",
                           owner="ubuntu", group="ubuntu"),
        DockerConfigTarget(path="/etc/nomad/ecr.json"),
    ])

    @field_validator("account_id", mode="before")
    @classmethod
    def _check_account_id(cls, value) -> str:
        if isinstance(value, int):
            value = str(value)
        if not isinstance(value, str) or not re.fullmatch(r"\d{12}", value):
            raise ValueError(f"AWS account id must be 12 digits, got {value!r}")
        return value

    @property
    def registry_host(self) -> str:
        return f"{self.account_id}.dkr.ecr.{self.region}.amazonaws.com"

    @property
    def helper_executable(self) -> str:
        return f"docker-credential-{self.helper}"

class VerificationSettings(BaseModel):
    """
    How long to wait for agents to come up after activation.
    """
    timeout: float = 60.0
    interval: float = 2.0
    http: bool = True
    http_timeout: float = 5.0

class BootstrapConfig(BaseModel):
    """
    Complete desired state for one host.
    """
    packages: List[str] = ["ca-certificates", "curl", "unzip"]
    address: Optional[str] = None
    interface: Optional[str] = None
    exclude_interfaces: List[str] = ["lo", "docker", "veth", "br-", "cni", "nomad"]
    nomad: NomadSettings = Field(default_factory=NomadSettings)
    consul: ConsulSettings = Field(default_factory=ConsulSettings)
    registry: RegistryAuthSettings = Field(default_factory=RegistryAuthSettings)
    verify: VerificationSettings = Field(default_factory=VerificationSettings)
    download_attempts: int = Field(default=3, ge=1)
    state_dir: str = "/var/lib/hostboot"

    @property
    def agents(self) -> List[AgentSettings]:
        """Agents in start order."""
        return [self.nomad, self.consul]
