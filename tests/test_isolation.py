# CUI // SP-CTI
"""Tests for boardroom.projects.isolation — cross-project access control."""
import os
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest

from boardroom.core.errors import AccessDeniedError, NotFoundError
from boardroom.core.notifier import EventType, MemoryNotifier
from boardroom.projects.isolation import IsolationEnforcer
from boardroom.projects.registry import ProjectRegistry
from boardroom.schemas.projects import (
    AccessRequest,
    IsolationContext,
    Operation,
    ProjectEntry,
    Severity,
)


@pytest.fixture
def registry(state_root):
    registry = ProjectRegistry(state_root)
    registry.register(ProjectEntry(name="alpha"))
    registry.register(ProjectEntry(name="beta"))
    return registry


@pytest.fixture
def notifier():
    return MemoryNotifier()


@pytest.fixture
def enforcer(registry, notifier):
    return IsolationEnforcer(registry, notifier=notifier)


def _request(source="alpha", target="beta", operation=Operation.READ, resource="decisions.json"):
    return AccessRequest(source=IsolationContext(project=source, agent_id="worker-1"),
                         target_project=target, operation=operation, resource=resource)


# ---------------------------------------------------------------------------
# Access checks
# ---------------------------------------------------------------------------
class TestCheckAccess:

    def test_same_project_allowed(self, enforcer):
        result = enforcer.check_access(_request(target="alpha", operation=Operation.WRITE))
        assert result.allowed
        assert enforcer.get_violations() == []

    def test_cross_project_denied_by_default(self, enforcer, notifier):
        result = enforcer.check_access(_request())
        assert not result.allowed
        assert result.violation.severity == Severity.WARNING
        assert [e.event_type for e in notifier.events] == [EventType.ISOLATION_VIOLATION]

    def test_write_violation_is_critical(self, enforcer):
        result = enforcer.check_access(_request(operation=Operation.WRITE))
        assert result.violation.severity == Severity.CRITICAL

    def test_grant_is_directional(self, enforcer):
        enforcer.grant_cross_project_access("alpha", "beta", [Operation.READ])
        assert enforcer.check_access(_request()).allowed
        assert not enforcer.check_access(_request(source="beta", target="alpha")).allowed

    def test_grant_covers_only_named_operations(self, enforcer):
        enforcer.grant_cross_project_access("alpha", "beta", [Operation.READ])
        assert not enforcer.check_access(_request(operation=Operation.WRITE)).allowed

    def test_wildcard_grant(self, enforcer):
        enforcer.grant_cross_project_access("alpha", "beta", ["*"])
        for operation in (Operation.READ, Operation.WRITE, Operation.EXECUTE):
            assert enforcer.check_access(_request(operation=operation)).allowed

    def test_require_access(self, enforcer):
        enforcer.require_access(_request(target="alpha"))
        with pytest.raises(AccessDeniedError) as exc_info:
            enforcer.require_access(_request())
        assert exc_info.value.violation_type == "cross_project"


# ---------------------------------------------------------------------------
# Grants
# ---------------------------------------------------------------------------
class TestGrants:

    def test_grants_accumulate(self, enforcer):
        enforcer.grant_cross_project_access("alpha", "beta", [Operation.READ])
        granted = enforcer.grant_cross_project_access("alpha", "beta", [Operation.EXECUTE])
        assert granted == {Operation.READ, Operation.EXECUTE}

    def test_partial_revoke(self, enforcer):
        enforcer.grant_cross_project_access("alpha", "beta", [Operation.READ, Operation.WRITE])
        remaining = enforcer.revoke_cross_project_access("alpha", "beta", [Operation.WRITE])
        assert remaining == {Operation.READ}
        assert not enforcer.check_access(_request(operation=Operation.WRITE)).allowed

    def test_full_revoke(self, enforcer):
        enforcer.grant_cross_project_access("alpha", "beta", [Operation.READ])
        assert enforcer.revoke_cross_project_access("alpha", "beta") == set()
        assert enforcer.get_grants("alpha", "beta") == set()
        assert not enforcer.check_access(_request()).allowed

    def test_grant_requires_registered_projects(self, enforcer):
        with pytest.raises(NotFoundError):
            enforcer.grant_cross_project_access("alpha", "ghost", [Operation.READ])
        with pytest.raises(NotFoundError):
            enforcer.revoke_cross_project_access("ghost", "beta")

    def test_get_grants_returns_copy(self, enforcer):
        enforcer.grant_cross_project_access("alpha", "beta", [Operation.READ])
        enforcer.get_grants("alpha", "beta").add(Operation.WRITE)
        assert enforcer.get_grants("alpha", "beta") == {Operation.READ}


# ---------------------------------------------------------------------------
# State paths and violations
# ---------------------------------------------------------------------------
class TestStatePathsAndViolations:

    def test_validate_state_path(self, enforcer, state_root):
        assert enforcer.validate_state_path("alpha", str(state_root / "alpha" / "decisions.json"))
        assert not enforcer.validate_state_path("alpha", str(state_root / "beta" / "x.json"))
        assert not enforcer.validate_state_path(
            "alpha", os.path.join(str(state_root), "alpha", "..", "beta", "x.json"))
        # a sibling whose name shares the prefix is not inside
        assert not enforcer.validate_state_path("alpha", str(state_root / "alpha-2" / "x"))

    def test_violations_by_project_and_summary(self, enforcer):
        enforcer.check_access(_request())
        enforcer.check_access(_request(operation=Operation.WRITE))
        enforcer.check_access(_request(source="beta", target="alpha"))

        assert len(enforcer.get_violations()) == 3
        assert len(enforcer.get_violations("alpha")) == 3
        assert enforcer.violation_summary() == {"warning": 2, "critical": 1, "total": 3}

        enforcer.clear_violations()
        assert enforcer.violation_summary()["total"] == 0
