#!/usr/bin/env python3
# CUI // SP-CTI
"""Governance protection schema models.

AccessCheckResult, AuditLogEntry (immutable), AuditLogQuery, AuditSummary,
ViolationReport, PathViolation.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class ViolationType(str, Enum):
    GOVERNANCE_ASSET = "governance_asset"
    OUT_OF_SCOPE = "out_of_scope"
    CROSS_TEAM = "cross_team"


class SelfModificationPolicy(str, Enum):
    """Both policies deny writes to protected assets."""
    PROHIBITED = "prohibited"
    RESTRICTED = "restricted"


@dataclass
class AccessCheckResult:
    allowed: bool
    reason: str = ""
    violation_type: Optional[ViolationType] = None

    def to_dict(self) -> dict:
        data = {"allowed": self.allowed}
        if self.reason:
            data["reason"] = self.reason
        if self.violation_type is not None:
            data["violation_type"] = self.violation_type.value
        return data


@dataclass(frozen=True)
class AuditLogEntry:
    """One governance access attempt (append-only, never edited)."""

    timestamp: str
    agent_role: str
    target_path: str
    allowed: bool
    reason: str
    violation_type: Optional[ViolationType] = None
    matched_pattern: Optional[str] = None
    scope: Tuple[str, ...] = ()

    def to_dict(self) -> dict:
        data = {
            "timestamp": self.timestamp,
            "agent_role": self.agent_role,
            "target_path": self.target_path,
            "allowed": self.allowed,
            "reason": self.reason,
        }
        if self.violation_type is not None:
            data["violation_type"] = self.violation_type.value
        if self.matched_pattern:
            data["matched_pattern"] = self.matched_pattern
        if self.scope:
            data["scope"] = list(self.scope)
        return data


@dataclass
class AuditLogQuery:
    """Conjunctive audit log filter; None fields are ignored."""

    agent_role: Optional[str] = None
    allowed: Optional[bool] = None
    violation_type: Optional[ViolationType] = None
    after: Optional[str] = None
    before: Optional[str] = None
    path_contains: Optional[str] = None
    limit: Optional[int] = None


@dataclass
class AuditSummary:
    total_attempts: int = 0
    total_denied: int = 0
    total_allowed: int = 0
    denials_by_type: Dict[str, int] = field(default_factory=dict)
    denials_by_agent: Dict[str, int] = field(default_factory=dict)
    top_targeted_assets: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ViolationReport:
    """Detailed denial returned by GovernanceProtection.enforce_file_access()."""

    result: AccessCheckResult
    agent_role: str
    attempted_path: str
    timestamp: str
    matched_pattern: Optional[str] = None
    allowed_scope: Optional[List[str]] = None
    nearest_allowed: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "result": self.result.to_dict(),
            "agent_role": self.agent_role,
            "attempted_path": self.attempted_path,
            "timestamp": self.timestamp,
        }
        for key in ("matched_pattern", "allowed_scope", "nearest_allowed"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data


@dataclass
class PathViolation:
    path: str
    pattern: str

    def to_dict(self) -> dict:
        return asdict(self)
