#!/usr/bin/env python3
# CUI // SP-CTI
"""Shared schema models for the Boardroom governance engine.

Plain dataclasses with to_dict()/from_dict(); the serialized keys are the
keys persisted under the state root.
"""

from boardroom.schemas.decisions import (
    ChallengeAction,
    ChallengeRound,
    DecisionQuery,
    DecisionRecord,
    DecisionStatus,
    DecisionType,
)
from boardroom.schemas.gates import (
    DEFAULT_PHASES,
    AdvanceResult,
    GateCheck,
    GateHistoryQuery,
    GateKind,
    GateVerdict,
    PhaseDefinition,
    PhaseState,
    PhaseStatus,
    VerdictType,
)
from boardroom.schemas.governance import (
    AccessCheckResult,
    AuditLogEntry,
    AuditLogQuery,
    AuditSummary,
    PathViolation,
    SelfModificationPolicy,
    ViolationReport,
    ViolationType,
)
from boardroom.schemas.projects import (
    PRIORITY_ORDER,
    AccessRequest,
    AllocationRequest,
    AllocationResult,
    IsolationContext,
    IsolationResult,
    IsolationViolation,
    Operation,
    Priority,
    ProjectAllocation,
    ProjectEntry,
    ProjectState,
    ProjectStatus,
    RegistrySnapshot,
    ResourcePool,
    Severity,
)

__all__ = [
    "ChallengeAction",
    "ChallengeRound",
    "DecisionQuery",
    "DecisionRecord",
    "DecisionStatus",
    "DecisionType",
    "DEFAULT_PHASES",
    "AdvanceResult",
    "GateCheck",
    "GateHistoryQuery",
    "GateKind",
    "GateVerdict",
    "PhaseDefinition",
    "PhaseState",
    "PhaseStatus",
    "VerdictType",
    "AccessCheckResult",
    "AuditLogEntry",
    "AuditLogQuery",
    "AuditSummary",
    "PathViolation",
    "SelfModificationPolicy",
    "ViolationReport",
    "ViolationType",
    "PRIORITY_ORDER",
    "AccessRequest",
    "AllocationRequest",
    "AllocationResult",
    "IsolationContext",
    "IsolationResult",
    "IsolationViolation",
    "Operation",
    "Priority",
    "ProjectAllocation",
    "ProjectEntry",
    "ProjectState",
    "ProjectStatus",
    "RegistrySnapshot",
    "ResourcePool",
    "Severity",
]
