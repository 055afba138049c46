"""
Models for the outcome of a bootstrap run.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class StepStatus(str, Enum):
    """Outcome of a single bootstrap step."""

    CHANGED = "changed"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"


@dataclass
class StepResult:
    """Result of reconciling one step against the host."""

    name: str
    status: StepStatus
    detail: str = ""


@dataclass
class BootstrapReport:
    """Ordered step results plus the operator-facing endpoints."""

    results: List[StepResult] = field(default_factory=list)
    address: Optional[str] = None
    ui_urls: Dict[str, str] = field(default_factory=dict)
    log_hints: List[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return any(r.status == StepStatus.CHANGED for r in self.results)

    def status_of(self, step: str) -> Optional[StepStatus]:
        for result in self.results:
            if result.name == step:
                return result.status
        return None
