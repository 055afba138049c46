"""
Models for systemd service units, including restart policies and ordering.
"""
from typing import List, Optional
from pydantic import BaseModel
from enum import Enum

class RestartPolicyCondition(str, Enum):
    """
    Values accepted by the systemd ``Restart=`` directive.
    """
    NO = "no"
    ALWAYS = "always"
    ON_FAILURE = "on-failure"
    ON_ABNORMAL = "on-abnormal"
    ON_ABORT = "on-abort"
    ON_SUCCESS = "on-success"

class ServiceUnit(BaseModel):
    """
    A supervised long-running agent process as systemd sees it.

    ``exec_start`` is normally left empty and derived from the agent's
    binary and config directory when the unit is rendered.
    """
    name: str
    description: str
    documentation: Optional[str] = None
    exec_start: Optional[str] = None
    exec_reload: str = "/bin/kill -HUP $MAINPID"
    kill_mode: Optional[str] = None
    kill_signal: str = "SIGTERM"
    restart: RestartPolicyCondition = RestartPolicyCondition.ON_FAILURE
    user: Optional[str] = None
    group: Optional[str] = None
    wants: List[str] = ["network-online.target"]
    after: List[str] = ["network-online.target"]
    wanted_by: str = "multi-user.target"

    @property
    def unit_name(self) -> str:
        return f"{self.name}.service"
