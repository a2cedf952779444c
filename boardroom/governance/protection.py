#!/usr/bin/env python3
# CUI // SP-CTI
"""Governance Protection — self-modification prevention with audit logging.

No governed agent may modify the system that governs it. Every write an
agent attempts is checked here before it reaches the filesystem:

    1. Path traversal (resolves outside the project base)   -> out_of_scope
    2. Protected governance asset (board.yaml, agents/*.md)  -> governance_asset
       No scope can override this.
    3. Explicit agent scope given and no pattern matches     -> out_of_scope
    4. Otherwise allowed

Every check, allowed or denied, appends one immutable AuditLogEntry.
"""

import logging
import os
from collections import Counter
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

from boardroom.compat.datetime_utils import parse_iso, utc_now_iso
from boardroom.core.config import GovernanceConfig
from boardroom.core.errors import AccessDeniedError
from boardroom.core.notifier import EventType, GovernanceEvent, Notifier, publish
from boardroom.governance.glob_match import glob_match, literal_prefix
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

logger = logging.getLogger("boardroom.governance")

TOP_TARGETED_LIMIT = 10


class GovernanceProtection:
    """Write-access policy engine for one project base directory.

    Args:
        config: Governance section of the board config.
        base_dir: Project root every agent path is resolved against.
        notifier: Receives governance-asset denials.
    """

    def __init__(self, config: GovernanceConfig, base_dir: Union[str, Path],
                 notifier: Optional[Notifier] = None):
        self._patterns: Tuple[str, ...] = tuple(config.protected_assets)
        self._policy = SelfModificationPolicy(config.self_modification)
        self._base_dir = os.path.abspath(str(base_dir))
        self._notifier = notifier
        self._audit_log: List[AuditLogEntry] = []

    @property
    def base_dir(self) -> str:
        return self._base_dir

    @property
    def protected_assets(self) -> Tuple[str, ...]:
        return self._patterns

    @property
    def self_modification(self) -> SelfModificationPolicy:
        return self._policy

    # -----------------------------------------------------------------------
    # Path helpers
    # -----------------------------------------------------------------------
    def _relative(self, file_path: str) -> Tuple[str, bool]:
        """Resolve against the base. Returns (relative posix path, escaped)."""
        resolved = os.path.normpath(os.path.join(self._base_dir, str(file_path)))
        try:
            rel = os.path.relpath(resolved, self._base_dir)
        except ValueError:
            # Different drive on Windows.
            return resolved.replace(os.sep, "/"), True
        rel = rel.replace(os.sep, "/")
        escaped = rel == ".." or rel.startswith("../") or os.path.isabs(rel)
        return rel, escaped

    def _find_matching_pattern(self, relative_path: str) -> Optional[str]:
        for pattern in self._patterns:
            if glob_match(relative_path, pattern):
                return pattern
        return None

    @staticmethod
    def _in_scope(relative_path: str, allowed_paths: Sequence[str]) -> bool:
        for pattern in allowed_paths:
            if glob_match(relative_path, pattern):
                return True
            # "src/mymodule/*" also admits deeper paths under src/mymodule/.
            prefix = literal_prefix(pattern)
            if prefix != pattern and prefix.endswith("/") and relative_path.startswith(prefix):
                return True
        return False

    @staticmethod
    def _find_nearest_allowed(relative_path: str,
                              allowed_paths: Sequence[str]) -> Optional[str]:
        """Pattern sharing the longest literal prefix with the path."""
        best, best_len = None, 0
        for pattern in allowed_paths:
            prefix = literal_prefix(pattern)
            common = len(os.path.commonprefix([relative_path, prefix]))
            if common > best_len:
                best, best_len = pattern, common
        return best

    # -----------------------------------------------------------------------
    # Checks
    # -----------------------------------------------------------------------
    def is_protected_asset(self, relative_path: str) -> bool:
        return self._find_matching_pattern(relative_path) is not None

    def validate_paths(self, relative_paths: Sequence[str]) -> List[PathViolation]:
        """Batch check (e.g. a commit's changed files) for protected assets."""
        violations = []
        for path in relative_paths:
            pattern = self._find_matching_pattern(path)
            if pattern is not None:
                violations.append(PathViolation(path=path, pattern=pattern))
        return violations

    def check_write_access(self, agent_role: str, file_path: str,
                           allowed_paths: Optional[Sequence[str]] = None) -> AccessCheckResult:
        """Decide whether ``agent_role`` may write ``file_path``. Always audited."""
        scope = tuple(allowed_paths or ())
        relative_path, escaped = self._relative(file_path)

        if escaped:
            result = AccessCheckResult(
                allowed=False,
                reason=(f'Path "{file_path}" resolves outside the project base directory. '
                        "Potential path traversal."),
                violation_type=ViolationType.OUT_OF_SCOPE,
            )
            self._record(agent_role, relative_path, result, scope)
            return result

        matched = self._find_matching_pattern(relative_path)
        if matched is not None:
            result = AccessCheckResult(
                allowed=False,
                reason=(f'"{relative_path}" is a protected governance asset '
                        f'(matched pattern: "{matched}"). No governed agent may modify '
                        "governance infrastructure."),
                violation_type=ViolationType.GOVERNANCE_ASSET,
            )
            self._record(agent_role, relative_path, result, scope, matched)
            publish(self._notifier, GovernanceEvent(
                event_type=EventType.GOVERNANCE_VIOLATION,
                summary=f"{agent_role} attempted to modify governance asset {relative_path}",
                details={"agent_role": agent_role, "path": relative_path,
                         "pattern": matched},
            ))
            return result

        if scope and not self._in_scope(relative_path, scope):
            nearest = self._find_nearest_allowed(relative_path, scope)
            hint = f'. Nearest allowed: "{nearest}"' if nearest else ""
            result = AccessCheckResult(
                allowed=False,
                reason=(f'"{relative_path}" is outside agent "{agent_role}" scope. '
                        f"Allowed: [{', '.join(scope)}]{hint}"),
                violation_type=ViolationType.OUT_OF_SCOPE,
            )
            self._record(agent_role, relative_path, result, scope)
            return result

        result = AccessCheckResult(allowed=True)
        self._record(agent_role, relative_path, result, scope)
        return result

    def enforce_file_access(self, agent_role: str, file_path: str,
                            allowed_paths: Optional[Sequence[str]] = None
                            ) -> Optional[ViolationReport]:
        """Detailed denial report for adapters; None when the write is allowed."""
        result = self.check_write_access(agent_role, file_path, allowed_paths)
        if result.allowed:
            return None

        relative_path, _ = self._relative(file_path)
        report = ViolationReport(
            result=result,
            agent_role=agent_role,
            attempted_path=relative_path,
            timestamp=utc_now_iso(),
        )
        if result.violation_type == ViolationType.GOVERNANCE_ASSET:
            report.matched_pattern = self._find_matching_pattern(relative_path)
        elif result.violation_type == ViolationType.OUT_OF_SCOPE and allowed_paths:
            report.allowed_scope = list(allowed_paths)
            report.nearest_allowed = self._find_nearest_allowed(relative_path, allowed_paths)
        return report

    def require_write_access(self, agent_role: str, file_path: str,
                             allowed_paths: Optional[Sequence[str]] = None) -> None:
        """Raise AccessDeniedError unless the write is allowed."""
        result = self.check_write_access(agent_role, file_path, allowed_paths)
        if not result.allowed:
            raise AccessDeniedError(result.reason, violation_type=result.violation_type.value)

    # -----------------------------------------------------------------------
    # Audit log
    # -----------------------------------------------------------------------
    def _record(self, agent_role: str, relative_path: str, result: AccessCheckResult,
                scope: Tuple[str, ...], matched_pattern: Optional[str] = None) -> None:
        entry = AuditLogEntry(
            timestamp=utc_now_iso(),
            agent_role=agent_role,
            target_path=relative_path,
            allowed=result.allowed,
            reason="Access permitted" if result.allowed else (result.reason or "Denied"),
            violation_type=result.violation_type,
            matched_pattern=matched_pattern,
            scope=scope,
        )
        self._audit_log.append(entry)
        if not result.allowed:
            logger.warning("Write denied [%s] %s -> %s: %s", result.violation_type.value,
                           agent_role, relative_path, result.reason)

    def query_audit_log(self, query: Optional[AuditLogQuery] = None) -> List[AuditLogEntry]:
        """Conjunctive filter, newest first."""
        query = query or AuditLogQuery()
        after = parse_iso(query.after) if query.after else None
        before = parse_iso(query.before) if query.before else None

        results = []
        for entry in reversed(self._audit_log):
            if query.agent_role is not None and entry.agent_role != query.agent_role:
                continue
            if query.allowed is not None and entry.allowed != query.allowed:
                continue
            if query.violation_type is not None and entry.violation_type != query.violation_type:
                continue
            if query.path_contains and query.path_contains not in entry.target_path:
                continue
            if after or before:
                ts = parse_iso(entry.timestamp)
                if after and ts < after:
                    continue
                if before and ts > before:
                    continue
            results.append(entry)

        results.sort(key=lambda e: parse_iso(e.timestamp), reverse=True)
        if query.limit is not None and query.limit > 0:
            results = results[:query.limit]
        return results

    def get_audit_summary(self) -> AuditSummary:
        denied = [e for e in self._audit_log if not e.allowed]
        by_type = Counter(e.violation_type.value if e.violation_type else "unknown"
                          for e in denied)
        by_agent = Counter(e.agent_role for e in denied)
        by_path = Counter(e.target_path for e in denied)
        return AuditSummary(
            total_attempts=len(self._audit_log),
            total_denied=len(denied),
            total_allowed=len(self._audit_log) - len(denied),
            denials_by_type=dict(by_type),
            denials_by_agent=dict(by_agent),
            top_targeted_assets=[{"path": path, "count": count}
                                 for path, count in by_path.most_common(TOP_TARGETED_LIMIT)],
        )

    def export_audit_log(self) -> List[AuditLogEntry]:
        """Snapshot of the log; entries are frozen so the copy is shallow."""
        return list(self._audit_log)

    def clear_audit_log(self) -> None:
        self._audit_log = []

    def rotate_audit_log(self) -> List[AuditLogEntry]:
        """Export then clear in one step."""
        snapshot = self.export_audit_log()
        self.clear_audit_log()
        logger.info("Rotated governance audit log (%d entries)", len(snapshot))
        return snapshot
