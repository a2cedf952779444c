#!/usr/bin/env python3
# CUI // SP-CTI
"""Decision ledger schema models.

DecisionRecord, ChallengeRound, DecisionQuery. Serialized keys are the keys
persisted in ``<stateRoot>/<project>/decisions.json``.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class DecisionType(str, Enum):
    ARCHITECTURE = "architecture"
    PLANNING = "planning"
    RESOURCE = "resource"
    SCOPE = "scope"
    TECHNICAL = "technical"
    PROCESS = "process"


class DecisionStatus(str, Enum):
    PROPOSED = "proposed"
    ACCEPTED = "accepted"
    CHALLENGED = "challenged"
    ESCALATED = "escalated"
    SUPERSEDED = "superseded"
    REJECTED = "rejected"


class ChallengeAction(str, Enum):
    ACCEPTED = "accepted"
    CHALLENGED = "challenged"


@dataclass
class ChallengeRound:
    """One entry of a decision's challenge history."""

    round: int
    challenger: str
    action: ChallengeAction
    rationale: str
    timestamp: str
    counter_proposal: Optional[str] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["action"] = self.action.value
        if self.counter_proposal is None:
            data.pop("counter_proposal")
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ChallengeRound":
        return cls(
            round=int(data["round"]),
            challenger=data["challenger"],
            action=ChallengeAction(data["action"]),
            rationale=data.get("rationale", ""),
            timestamp=data.get("timestamp", ""),
            counter_proposal=data.get("counter_proposal"),
        )


@dataclass
class DecisionRecord:
    """A single ledger entry.

    id, timestamp, author, type, summary, rationale, evidence, supersedes,
    dependencies, phase and project never change after creation.
    """

    id: str
    timestamp: str
    author: str
    type: DecisionType
    summary: str
    rationale: str
    evidence: List[str] = field(default_factory=list)
    challenged_by: Optional[str] = None
    challenge_rounds: int = 0
    challenge_history: List[ChallengeRound] = field(default_factory=list)
    status: DecisionStatus = DecisionStatus.PROPOSED
    supersedes: Optional[str] = None
    dependencies: List[str] = field(default_factory=list)
    phase: int = 0
    project: str = ""

    @property
    def was_challenged(self) -> bool:
        return self.challenge_rounds > 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "author": self.author,
            "type": self.type.value,
            "summary": self.summary,
            "rationale": self.rationale,
            "evidence": list(self.evidence),
            "challenged_by": self.challenged_by,
            "challenge_rounds": self.challenge_rounds,
            "challenge_history": [r.to_dict() for r in self.challenge_history],
            "status": self.status.value,
            "supersedes": self.supersedes,
            "dependencies": list(self.dependencies),
            "phase": self.phase,
            "project": self.project,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DecisionRecord":
        return cls(
            id=data["id"],
            timestamp=data.get("timestamp", ""),
            author=data["author"],
            type=DecisionType(data["type"]),
            summary=data.get("summary", ""),
            rationale=data.get("rationale", ""),
            evidence=list(data.get("evidence") or []),
            challenged_by=data.get("challenged_by"),
            challenge_rounds=int(data.get("challenge_rounds", 0)),
            challenge_history=[ChallengeRound.from_dict(r)
                               for r in data.get("challenge_history") or []],
            status=DecisionStatus(data.get("status", "proposed")),
            supersedes=data.get("supersedes"),
            # Older ledgers predate dependency tracking.
            dependencies=list(data.get("dependencies") or []),
            phase=int(data.get("phase", 0)),
            project=data.get("project", ""),
        )


@dataclass
class DecisionQuery:
    """Conjunctive filter for DecisionStore.query(); None fields are ignored."""

    author: Optional[str] = None
    type: Optional[DecisionType] = None
    status: Optional[DecisionStatus] = None
    project: Optional[str] = None
    phase: Optional[int] = None
    challenged: Optional[bool] = None
    depends_on: Optional[str] = None
    supersedes_id: Optional[str] = None
    after: Optional[str] = None
    before: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: (v.value if isinstance(v, Enum) else v)
                for k, v in asdict(self).items() if v is not None}
