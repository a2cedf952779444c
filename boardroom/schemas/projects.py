#!/usr/bin/env python3
# CUI // SP-CTI
"""Multi-project schema models.

Registry records (ProjectEntry, ProjectState), resource allocation records
(ResourcePool, ProjectAllocation, AllocationRequest, AllocationResult) and
isolation records (IsolationContext, AccessRequest, IsolationViolation).
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ProjectStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class Priority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"

    @property
    def rank(self) -> int:
        return PRIORITY_ORDER[self]


PRIORITY_ORDER = {
    Priority.CRITICAL: 4,
    Priority.HIGH: 3,
    Priority.NORMAL: 2,
    Priority.LOW: 1,
}


class Operation(str, Enum):
    READ = "read"
    WRITE = "write"
    EXECUTE = "execute"
    ANY = "*"


class Severity(str, Enum):
    WARNING = "warning"
    CRITICAL = "critical"


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------
@dataclass
class ProjectEntry:
    """Registry record for one sovereign project."""

    name: str
    status: ProjectStatus = ProjectStatus.ACTIVE
    channel: str = ""
    priority: Priority = Priority.NORMAL
    budget_total: float = 0
    budget_used: float = 0
    started: str = ""
    team_count: int = 0
    current_phase: int = 0

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        data["priority"] = self.priority.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ProjectEntry":
        known = {f.name for f in cls.__dataclass_fields__.values()}
        kwargs = {k: v for k, v in data.items() if k in known}
        kwargs["status"] = ProjectStatus(data.get("status", "active"))
        kwargs["priority"] = Priority(data.get("priority", "normal"))
        return cls(**kwargs)


@dataclass
class ProjectState:
    """Contents of ``<stateRoot>/<project>/project.json``."""

    entry: ProjectEntry
    state_dir: str
    teams: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "entry": self.entry.to_dict(),
            "stateDir": self.state_dir,
            "teams": list(self.teams),
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ProjectState":
        return cls(
            entry=ProjectEntry.from_dict(data["entry"]),
            state_dir=data.get("stateDir", ""),
            teams=list(data.get("teams") or []),
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass
class RegistrySnapshot:
    active: List[ProjectEntry] = field(default_factory=list)
    paused: List[ProjectEntry] = field(default_factory=list)
    completed: List[ProjectEntry] = field(default_factory=list)
    total_budget_allocated: float = 0
    total_budget_used: float = 0

    def to_dict(self) -> dict:
        return {
            "active": [e.to_dict() for e in self.active],
            "paused": [e.to_dict() for e in self.paused],
            "completed": [e.to_dict() for e in self.completed],
            "total_budget_allocated": self.total_budget_allocated,
            "total_budget_used": self.total_budget_used,
        }


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------
@dataclass
class ResourcePool:
    workers: int = 0
    model_capacity: int = 0
    token_budget: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ProjectAllocation:
    project: str
    workers: int = 0
    model_capacity: int = 0
    token_budget: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class AllocationRequest:
    project: str
    workers: int = 0
    model_capacity: int = 0
    token_budget: int = 0
    priority: Optional[Priority] = None
    requested_by: str = ""


@dataclass
class AllocationResult:
    granted: bool
    allocation: ProjectAllocation
    reason: str = ""
    reallocated_from: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "granted": self.granted,
            "allocation": self.allocation.to_dict(),
            "reason": self.reason,
            "reallocated_from": list(self.reallocated_from),
        }


# ---------------------------------------------------------------------------
# Isolation
# ---------------------------------------------------------------------------
@dataclass
class IsolationContext:
    project: str
    agent_id: str
    team: Optional[str] = None


@dataclass
class AccessRequest:
    source: IsolationContext
    target_project: str
    operation: Operation
    resource: str


@dataclass
class IsolationViolation:
    timestamp: str
    source: IsolationContext
    target_project: str
    operation: Operation
    resource: str
    severity: Severity

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "source": asdict(self.source),
            "target_project": self.target_project,
            "operation": self.operation.value,
            "resource": self.resource,
            "severity": self.severity.value,
        }


@dataclass
class IsolationResult:
    allowed: bool
    reason: str
    violation: Optional[IsolationViolation] = None

    def to_dict(self) -> dict:
        return {
            "allowed": self.allowed,
            "reason": self.reason,
            "violation": self.violation.to_dict() if self.violation else None,
        }
