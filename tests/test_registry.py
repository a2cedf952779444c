# CUI // SP-CTI
"""Tests for boardroom.projects.registry."""
import json
import os
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest

from boardroom.core.errors import (
    ConflictError,
    InvalidStateTransitionError,
    NotFoundError,
    StorageError,
)
from boardroom.projects.registry import ProjectRegistry, validate_project_name
from boardroom.schemas.projects import Priority, ProjectEntry, ProjectStatus
from boardroom.storage.backend import InMemoryBackend


@pytest.fixture
def registry(state_root):
    return ProjectRegistry(state_root)


def _entry(name="proj-a", **kwargs):
    return ProjectEntry(name=name, channel=f"#{name}", budget_total=100.0, **kwargs)


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------
class TestRegistration:

    def test_register_persists_project_json(self, registry, state_root):
        state = registry.register(_entry(priority=Priority.HIGH))
        path = state_root / "proj-a" / "project.json"
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["entry"]["name"] == "proj-a"
        assert data["entry"]["priority"] == "high"
        assert "stateDir" in data
        assert os.path.normpath(state.state_dir) == os.path.normpath(str(state_root / "proj-a"))
        assert state.entry.started
        assert registry.state_dir("proj-a") == os.path.normpath(str(state_root / "proj-a"))

    def test_duplicate_rejected(self, registry):
        registry.register(_entry())
        with pytest.raises(ConflictError):
            registry.register(_entry())

    @pytest.mark.parametrize("name", ["", ".", "..", "a/b", "a\\b", ".hidden"])
    def test_invalid_names(self, registry, name):
        with pytest.raises(ValueError):
            registry.register(_entry(name=name))

    def test_validate_project_name_accepts_plain(self):
        validate_project_name("proj-a_1")

    def test_reload_from_disk(self, registry, state_root):
        registry.register(_entry())
        registry.add_team("proj-a", "team-alpha")
        again = ProjectRegistry(state_root)
        state = again.get("proj-a")
        assert state.teams == ["team-alpha"]
        assert state.entry.team_count == 1

    def test_reload_skips_corrupt_record(self, registry, state_root):
        registry.register(_entry("good"))
        (state_root / "bad").mkdir()
        (state_root / "bad" / "project.json").write_text("{oops", encoding="utf-8")
        again = ProjectRegistry(state_root)
        assert again.project_names == ["good"]

    def test_reload_quarantines_malformed_record(self, registry, state_root):
        registry.register(_entry("good"))
        (state_root / "bad").mkdir()
        (state_root / "bad" / "project.json").write_text(
            json.dumps({"entry": {"priority": "urgent"}}), encoding="utf-8")
        again = ProjectRegistry(state_root)
        assert again.project_names == ["good"]
        assert any(p.name.startswith("project.json.corrupt-")
                   for p in (state_root / "bad").iterdir())

    def test_reload_ignores_directories_without_project(self, registry, state_root):
        (state_root / "scratch").mkdir()
        assert ProjectRegistry(state_root).project_names == []

    def test_in_memory_backend(self):
        backend = InMemoryBackend()
        registry = ProjectRegistry(backend=backend)
        registry.register(_entry())
        assert ProjectRegistry(backend=backend).get("proj-a") is not None

    def test_requires_root_or_backend(self):
        with pytest.raises(ValueError):
            ProjectRegistry()


# ---------------------------------------------------------------------------
# Lifecycle and updates
# ---------------------------------------------------------------------------
class TestLifecycle:

    def test_pause_resume_complete(self, registry):
        registry.register(_entry())
        assert registry.pause("proj-a").entry.status == ProjectStatus.PAUSED
        assert registry.resume("proj-a").entry.status == ProjectStatus.ACTIVE
        assert registry.complete("proj-a").entry.status == ProjectStatus.COMPLETED

    def test_resume_requires_paused(self, registry):
        registry.register(_entry())
        with pytest.raises(InvalidStateTransitionError):
            registry.resume("proj-a")

    def test_update_fields(self, registry):
        registry.register(_entry())
        state = registry.update("proj-a", priority="critical", current_phase=2)
        assert state.entry.priority == Priority.CRITICAL
        assert state.entry.current_phase == 2

    def test_update_rejects_unknown_and_name(self, registry):
        registry.register(_entry())
        with pytest.raises(ValueError):
            registry.update("proj-a", color="blue")
        with pytest.raises(ValueError):
            registry.update("proj-a", name="other")

    def test_unknown_project(self, registry):
        assert registry.get("ghost") is None
        with pytest.raises(NotFoundError):
            registry.pause("ghost")
        with pytest.raises(NotFoundError):
            registry.get_or_raise("ghost")

    def test_unregister_keeps_other_state(self, registry, state_root):
        registry.register(_entry())
        (state_root / "proj-a" / "decisions.json").write_text("[]", encoding="utf-8")
        registry.unregister("proj-a")
        assert registry.get("proj-a") is None
        assert not (state_root / "proj-a" / "project.json").exists()
        assert (state_root / "proj-a" / "decisions.json").exists()

    def test_reads_are_copies(self, registry):
        registry.register(_entry())
        registry.get("proj-a").entry.status = ProjectStatus.COMPLETED
        registry.list()[0].priority = Priority.LOW
        state = registry.get("proj-a")
        assert state.entry.status == ProjectStatus.ACTIVE
        assert state.entry.priority == Priority.NORMAL


# ---------------------------------------------------------------------------
# Teams, budget, aggregates
# ---------------------------------------------------------------------------
class TestTeamsAndBudget:

    def test_team_roster(self, registry):
        registry.register(_entry())
        registry.add_team("proj-a", "alpha")
        registry.add_team("proj-a", "beta")
        with pytest.raises(ConflictError):
            registry.add_team("proj-a", "alpha")
        state = registry.remove_team("proj-a", "alpha")
        assert state.teams == ["beta"]
        assert state.entry.team_count == 1
        with pytest.raises(NotFoundError):
            registry.remove_team("proj-a", "alpha")

    def test_budget_usage_accumulates(self, registry):
        registry.register(_entry())
        registry.record_budget_usage("proj-a", 40)
        state = registry.record_budget_usage("proj-a", 70)
        assert state.entry.budget_used == 110

    def test_snapshot_and_list(self, registry):
        registry.register(_entry("a"))
        registry.register(_entry("b"))
        registry.register(_entry("c"))
        registry.pause("b")
        registry.complete("c")
        registry.record_budget_usage("a", 25)

        snapshot = registry.snapshot()
        assert [e.name for e in snapshot.active] == ["a"]
        assert [e.name for e in snapshot.paused] == ["b"]
        assert [e.name for e in snapshot.completed] == ["c"]
        assert snapshot.total_budget_allocated == 300
        assert snapshot.total_budget_used == 25
        assert registry.active_count == 1
        assert [e.name for e in registry.list(ProjectStatus.PAUSED)] == ["b"]
        assert len(registry.list()) == 3


# ---------------------------------------------------------------------------
# Failed writes
# ---------------------------------------------------------------------------
class TestFailedWrites:

    def test_failed_register_leaves_nothing(self, failing_backend):
        registry = ProjectRegistry(backend=failing_backend)
        failing_backend.fail_on = "project.json"
        with pytest.raises(StorageError):
            registry.register(_entry())
        assert registry.get("proj-a") is None
        assert registry.project_names == []

    def test_failed_update_leaves_record_unchanged(self, failing_backend):
        registry = ProjectRegistry(backend=failing_backend)
        registry.register(_entry())
        failing_backend.fail_on = "project.json"
        with pytest.raises(StorageError):
            registry.pause("proj-a")
        with pytest.raises(StorageError):
            registry.add_team("proj-a", "team-alpha")
        state = registry.get("proj-a")
        assert state.entry.status == ProjectStatus.ACTIVE
        assert state.teams == []
