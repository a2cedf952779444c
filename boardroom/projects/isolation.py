#!/usr/bin/env python3
# CUI // SP-CTI
"""Isolation Enforcer — cross-project access control.

Projects are sovereign. Access within a project is always allowed; access
from one project into another needs an explicit ``source->target`` grant
for the operation (or ``*``). Every denial is logged and kept as an
IsolationViolation (critical for writes, warning otherwise).
"""

import logging
import os
from typing import Dict, Iterable, List, Optional, Set

from boardroom.compat.datetime_utils import utc_now_iso
from boardroom.core.errors import AccessDeniedError
from boardroom.core.notifier import EventType, GovernanceEvent, Notifier, publish
from boardroom.projects.registry import ProjectRegistry
from boardroom.schemas.projects import (
    AccessRequest,
    IsolationResult,
    IsolationViolation,
    Operation,
    Severity,
)

logger = logging.getLogger("boardroom.projects.isolation")


def _grant_key(source: str, target: str) -> str:
    return f"{source}->{target}"


class IsolationEnforcer:

    def __init__(self, registry: ProjectRegistry, notifier: Optional[Notifier] = None):
        self._registry = registry
        self._notifier = notifier
        self._grants: Dict[str, Set[Operation]] = {}
        self._violations: List[IsolationViolation] = []

    def check_access(self, request: AccessRequest) -> IsolationResult:
        source = request.source.project
        if source == request.target_project:
            return IsolationResult(allowed=True, reason="Same-project access")

        operation = Operation(request.operation)
        granted = self._grants.get(_grant_key(source, request.target_project), set())
        if operation in granted or Operation.ANY in granted:
            return IsolationResult(allowed=True, reason="Explicit cross-project grant")

        violation = IsolationViolation(
            timestamp=utc_now_iso(),
            source=request.source,
            target_project=request.target_project,
            operation=operation,
            resource=request.resource,
            severity=Severity.CRITICAL if operation == Operation.WRITE else Severity.WARNING,
        )
        self._violations.append(violation)
        logger.warning("Cross-project %s denied: %s (agent %s) -> %s [%s]",
                       operation.value, source, request.source.agent_id,
                       request.target_project, request.resource)
        publish(self._notifier, GovernanceEvent(
            event_type=EventType.ISOLATION_VIOLATION,
            summary=f"{source} attempted {operation.value} on {request.target_project}",
            project=source,
            details=violation.to_dict(),
        ))
        return IsolationResult(
            allowed=False,
            reason=f"Cross-project access denied: {source} -> {request.target_project}",
            violation=violation,
        )

    def require_access(self, request: AccessRequest) -> None:
        result = self.check_access(request)
        if not result.allowed:
            raise AccessDeniedError(result.reason, violation_type="cross_project")

    # -----------------------------------------------------------------------
    # Grants
    # -----------------------------------------------------------------------
    def grant_cross_project_access(self, source: str, target: str,
                                   operations: Iterable[Operation]) -> Set[Operation]:
        """Add operations to the source->target grant. Both projects must exist."""
        self._registry.get_or_raise(source)
        self._registry.get_or_raise(target)
        granted = self._grants.setdefault(_grant_key(source, target), set())
        granted.update(Operation(op) for op in operations)
        logger.info("Granted %s -> %s: %s", source, target,
                    ", ".join(sorted(op.value for op in granted)))
        return set(granted)

    def revoke_cross_project_access(self, source: str, target: str,
                                    operations: Optional[Iterable[Operation]] = None
                                    ) -> Set[Operation]:
        """Remove operations from a grant; with no operations the grant is dropped."""
        self._registry.get_or_raise(source)
        self._registry.get_or_raise(target)
        key = _grant_key(source, target)
        if operations is None:
            self._grants.pop(key, None)
            logger.info("Revoked all access %s -> %s", source, target)
            return set()

        granted = self._grants.get(key, set())
        granted.difference_update(Operation(op) for op in operations)
        if not granted:
            self._grants.pop(key, None)
        logger.info("Revoked %s -> %s, remaining: %s", source, target,
                    ", ".join(sorted(op.value for op in granted)) or "none")
        return set(granted)

    def get_grants(self, source: str, target: str) -> Set[Operation]:
        return set(self._grants.get(_grant_key(source, target), set()))

    # -----------------------------------------------------------------------
    # State paths
    # -----------------------------------------------------------------------
    def validate_state_path(self, project: str, file_path: str) -> bool:
        """True when ``file_path`` lies inside the project's state directory."""
        state_dir = os.path.abspath(self._registry.state_dir(project))
        candidate = os.path.abspath(file_path)
        try:
            return os.path.commonpath([state_dir, candidate]) == state_dir
        except ValueError:
            return False

    # -----------------------------------------------------------------------
    # Violations
    # -----------------------------------------------------------------------
    def get_violations(self, project: Optional[str] = None) -> List[IsolationViolation]:
        if project is None:
            return list(self._violations)
        return [v for v in self._violations
                if v.source.project == project or v.target_project == project]

    def violation_summary(self) -> Dict[str, int]:
        critical = sum(1 for v in self._violations if v.severity == Severity.CRITICAL)
        return {
            "warning": len(self._violations) - critical,
            "critical": critical,
            "total": len(self._violations),
        }

    def clear_violations(self) -> None:
        self._violations = []
