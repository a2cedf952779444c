#!/usr/bin/env python3
# CUI // SP-CTI
"""Gate and phase schema models.

GateVerdict, PhaseState, PhaseDefinition plus the structured results
returned by GateEnforcement (GateCheck, AdvanceResult).
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class VerdictType(str, Enum):
    PASS = "PASS"
    FAIL = "FAIL"
    CONDITIONAL = "CONDITIONAL"


class GateKind(str, Enum):
    """How a FAIL verdict on the gate is enforced."""
    ADVISORY = "advisory"
    STRUCTURAL = "structural"


class PhaseStatus(str, Enum):
    PLANNING = "planning"
    IN_PROGRESS = "in_progress"
    AWAITING_REVIEW = "awaiting_review"
    AWAITING_GATE = "awaiting_gate"
    GATED_FAIL = "gated_fail"
    GATED_CONDITIONAL = "gated_conditional"
    COMPLETE = "complete"


@dataclass
class GateVerdict:
    """A role's verdict on a phase exit gate."""

    gate_id: str
    verdict: VerdictType
    issued_by: str
    project: str
    phase: int
    timestamp: str = ""
    tests_run: int = 0
    tests_passed: int = 0
    tests_failed: int = 0
    coverage: str = ""
    blocking_issues: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    conditions: Optional[List[str]] = None
    expires_at: Optional[str] = None
    recommendation: str = ""

    def to_dict(self) -> dict:
        data = asdict(self)
        data["verdict"] = self.verdict.value
        return {k: v for k, v in data.items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict) -> "GateVerdict":
        known = {f.name for f in cls.__dataclass_fields__.values()}
        kwargs = {k: v for k, v in data.items() if k in known}
        kwargs["verdict"] = VerdictType(data["verdict"])
        return cls(**kwargs)


@dataclass
class PhaseDefinition:
    phase: int
    name: str
    exit_gate: Optional[str] = None

    def to_dict(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v is not None}


DEFAULT_PHASES = (
    PhaseDefinition(0, "planning", "planning_to_architecture"),
    PhaseDefinition(1, "architecture", "architecture_to_implementation"),
    PhaseDefinition(2, "implementation", "implementation_to_integration"),
    PhaseDefinition(3, "integration", "integration_to_delivery"),
    PhaseDefinition(4, "delivery"),
)


@dataclass
class PhaseState:
    """Per-project phase position plus its append-only verdict log."""

    project: str
    current_phase: int = 0
    phase_name: str = "planning"
    status: PhaseStatus = PhaseStatus.PLANNING
    started_at: str = ""
    updated_at: str = ""
    gate_verdicts: List[GateVerdict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "project": self.project,
            "current_phase": self.current_phase,
            "phase_name": self.phase_name,
            "status": self.status.value,
            "started_at": self.started_at,
            "updated_at": self.updated_at,
            "gate_verdicts": [v.to_dict() for v in self.gate_verdicts],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PhaseState":
        return cls(
            project=data["project"],
            current_phase=int(data.get("current_phase", 0)),
            phase_name=data.get("phase_name", "planning"),
            status=PhaseStatus(data.get("status", "planning")),
            started_at=data.get("started_at", ""),
            updated_at=data.get("updated_at", ""),
            gate_verdicts=[GateVerdict.from_dict(v)
                           for v in data.get("gate_verdicts") or []],
        )


@dataclass
class GateCheck:
    """Result of GateEnforcement.can_advance()."""

    allowed: bool
    blockers: List[str] = field(default_factory=list)
    conditions: List[str] = field(default_factory=list)
    conditional: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class AdvanceResult:
    """Result of GateEnforcement.advance_phase()."""

    advanced: bool
    blockers: List[str] = field(default_factory=list)
    conditions: List[str] = field(default_factory=list)
    phase_state: Optional[PhaseState] = None

    def to_dict(self) -> dict:
        return {
            "advanced": self.advanced,
            "blockers": list(self.blockers),
            "conditions": list(self.conditions),
            "phase_state": self.phase_state.to_dict() if self.phase_state else None,
        }


@dataclass
class GateHistoryQuery:
    """Filter for GateEnforcement.query_history(); None fields are ignored."""

    project: Optional[str] = None
    phase: Optional[int] = None
    verdict: Optional[VerdictType] = None
    issued_by: Optional[str] = None
    gate_id: Optional[str] = None
    after: Optional[str] = None
    before: Optional[str] = None
    limit: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: (v.value if isinstance(v, Enum) else v)
                for k, v in asdict(self).items() if v is not None}
