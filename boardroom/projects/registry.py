#!/usr/bin/env python3
# CUI // SP-CTI
"""Project Registry — sovereign per-project records.

Each project owns ``<stateRoot>/<name>/`` and its ``project.json`` (lifecycle,
priority, budget, team roster). Projects are never physically deleted except
by unregister(), which removes only ``project.json``.
"""

import copy
import dataclasses
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from boardroom.compat.datetime_utils import utc_now_iso
from boardroom.core.errors import (
    ConflictError,
    CorruptStateError,
    InvalidStateTransitionError,
    NotFoundError,
)
from boardroom.schemas.projects import (
    Priority,
    ProjectEntry,
    ProjectState,
    ProjectStatus,
    RegistrySnapshot,
)
from boardroom.storage.backend import JsonFileBackend, StateBackend

logger = logging.getLogger("boardroom.projects.registry")

PROJECT_DOCUMENT = "project.json"


def validate_project_name(name: str) -> None:
    """Project names become directory names under the state root."""
    if not name or name in (".", "..") or "/" in name or "\\" in name or name.startswith("."):
        raise ValueError(f"Invalid project name: {name!r}")


class ProjectRegistry:
    """Registry of projects under one state root."""

    def __init__(self, state_root: Union[str, Path, None] = None,
                 backend: Optional[StateBackend] = None):
        if backend is None:
            if state_root is None:
                raise ValueError("ProjectRegistry needs a state_root or a backend")
            backend = JsonFileBackend(state_root)
        self._backend = backend
        self._projects: Dict[str, ProjectState] = {}
        self._load()

    # -----------------------------------------------------------------------
    # Persistence
    # -----------------------------------------------------------------------
    @staticmethod
    def _document(name: str) -> str:
        return f"{name}/{PROJECT_DOCUMENT}"

    def _load(self) -> None:
        for directory in self._backend.list_dirs():
            document = self._document(directory)
            if not self._backend.exists(document):
                continue
            try:
                raw = self._backend.read_json(document)
                state = ProjectState.from_dict(raw)
            except CorruptStateError as exc:
                logger.error("Skipping unreadable project record: %s", exc)
                continue
            except (KeyError, TypeError, ValueError) as exc:
                quarantined = self._backend.quarantine(document)
                logger.error("Skipping malformed project record %s (moved to %s): %s",
                             document, quarantined, exc)
                continue
            state.state_dir = self._backend.path_for(directory)
            self._projects[state.entry.name] = state
        if self._projects:
            logger.debug("Loaded %d projects from %s", len(self._projects), self._backend.root)

    def _persist(self, state: ProjectState) -> None:
        """Write a working copy, then make it the registered record."""
        self._backend.write_json(self._document(state.entry.name), state.to_dict())
        self._projects[state.entry.name] = state

    def _require(self, name: str) -> ProjectState:
        state = self._projects.get(name)
        if state is None:
            raise NotFoundError("project", name)
        return state

    # -----------------------------------------------------------------------
    # CRUD
    # -----------------------------------------------------------------------
    def register(self, entry: ProjectEntry) -> ProjectState:
        """Register a new project and create its state directory.

        Raises:
            ConflictError: a project with this name already exists.
            ValueError: the name is not usable as a directory name.
        """
        validate_project_name(entry.name)
        if entry.name in self._projects:
            raise ConflictError(f"Project already registered: {entry.name}")

        entry = copy.deepcopy(entry)
        if not entry.started:
            entry.started = utc_now_iso()
        state = ProjectState(
            entry=entry,
            state_dir=self._backend.path_for(entry.name),
        )
        self._persist(state)
        logger.info("Registered project %s (priority=%s)", entry.name, entry.priority.value)
        return copy.deepcopy(state)

    def get(self, name: str) -> Optional[ProjectState]:
        state = self._projects.get(name)
        return copy.deepcopy(state) if state else None

    def get_or_raise(self, name: str) -> ProjectState:
        return copy.deepcopy(self._require(name))

    def list(self, status: Optional[ProjectStatus] = None) -> List[ProjectEntry]:
        entries = [s.entry for s in self._projects.values()]
        if status is not None:
            entries = [e for e in entries if e.status == ProjectStatus(status)]
        return copy.deepcopy(entries)

    def update(self, name: str, **updates: Any) -> ProjectState:
        """Partially update a project entry (any ProjectEntry field but name)."""
        state = self.get_or_raise(name)
        fields = {f.name for f in dataclasses.fields(ProjectEntry)} - {"name"}
        unknown = set(updates) - fields
        if unknown:
            raise ValueError(f"Cannot update project fields: {', '.join(sorted(unknown))}")
        if "status" in updates:
            updates["status"] = ProjectStatus(updates["status"])
        if "priority" in updates:
            updates["priority"] = Priority(updates["priority"])
        for key, value in updates.items():
            setattr(state.entry, key, value)
        self._persist(state)
        return copy.deepcopy(state)

    def pause(self, name: str) -> ProjectState:
        result = self.update(name, status=ProjectStatus.PAUSED)
        logger.info("Project %s paused", name)
        return result

    def resume(self, name: str) -> ProjectState:
        state = self._require(name)
        if state.entry.status != ProjectStatus.PAUSED:
            raise InvalidStateTransitionError(
                f"Project {name} is not paused (status: {state.entry.status.value})"
            )
        result = self.update(name, status=ProjectStatus.ACTIVE)
        logger.info("Project %s resumed", name)
        return result

    def complete(self, name: str) -> ProjectState:
        result = self.update(name, status=ProjectStatus.COMPLETED)
        logger.info("Project %s completed", name)
        return result

    def unregister(self, name: str) -> None:
        """Drop a project. Its other state files (decisions, phase) remain."""
        self._require(name)
        self._backend.delete(self._document(name))
        del self._projects[name]
        logger.info("Unregistered project %s", name)

    # -----------------------------------------------------------------------
    # Teams and budget
    # -----------------------------------------------------------------------
    def add_team(self, project: str, team: str) -> ProjectState:
        state = self.get_or_raise(project)
        if team in state.teams:
            raise ConflictError(f"Team {team} already in project {project}")
        state.teams.append(team)
        state.entry.team_count = len(state.teams)
        self._persist(state)
        return copy.deepcopy(state)

    def remove_team(self, project: str, team: str) -> ProjectState:
        state = self.get_or_raise(project)
        if team not in state.teams:
            raise NotFoundError("team", team, f"Team {team} not in project {project}")
        state.teams.remove(team)
        state.entry.team_count = len(state.teams)
        self._persist(state)
        return copy.deepcopy(state)

    def record_budget_usage(self, name: str, amount: float) -> ProjectState:
        state = self.get_or_raise(name)
        state.entry.budget_used += amount
        self._persist(state)
        if state.entry.budget_total and state.entry.budget_used > state.entry.budget_total:
            logger.warning("Project %s over budget: %s / %s", name,
                           state.entry.budget_used, state.entry.budget_total)
        return copy.deepcopy(state)

    # -----------------------------------------------------------------------
    # Aggregate views
    # -----------------------------------------------------------------------
    def snapshot(self) -> RegistrySnapshot:
        entries = self.list()
        return RegistrySnapshot(
            active=[e for e in entries if e.status == ProjectStatus.ACTIVE],
            paused=[e for e in entries if e.status == ProjectStatus.PAUSED],
            completed=[e for e in entries if e.status == ProjectStatus.COMPLETED],
            total_budget_allocated=sum(e.budget_total for e in entries),
            total_budget_used=sum(e.budget_used for e in entries),
        )

    @property
    def active_count(self) -> int:
        return sum(1 for s in self._projects.values()
                   if s.entry.status == ProjectStatus.ACTIVE)

    @property
    def project_names(self) -> List[str]:
        return list(self._projects)

    def state_dir(self, name: str) -> str:
        return os.path.normpath(self._require(name).state_dir)
