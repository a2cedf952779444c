#!/usr/bin/env python3
# CUI // SP-CTI
"""Boardroom engine — wires every governance component to one state root.

Nothing is process-global: two Boardroom instances on different state roots
are fully independent. Constructed with ``exclusive=True`` the instance holds
``<stateRoot>/.boardroom.lock`` until close(), so a second exclusive engine
on the same root fails fast instead of racing.

Usage:
    from boardroom.engine import Boardroom

    with Boardroom(state_root="state", exclusive=True) as board:
        board.registry.register(ProjectEntry(name="proj-a"))
        dec = board.decisions("proj-a").propose("ceo", DecisionType.PLANNING, ...)
        board.review("proj-a", dec.id, "cto", "challenge", "Too risky")
"""

import logging
import os
from pathlib import Path
from typing import Dict, Optional, Union

from boardroom.challenges.challenge_protocol import (
    ChallengeProtocol,
    ChallengeResult,
    ReviewAction,
)
from boardroom.core.config import BoardConfig, load_board_config
from boardroom.core.notifier import Notifier
from boardroom.decisions.decision_store import DecisionStore
from boardroom.gates.gate_enforcement import GateEnforcement
from boardroom.governance.protection import GovernanceProtection
from boardroom.projects.allocator import ResourceAllocator
from boardroom.projects.isolation import IsolationEnforcer
from boardroom.projects.registry import ProjectRegistry, validate_project_name
from boardroom.storage.backend import JsonFileBackend, StateBackend
from boardroom.storage.lock import StateRootLock

logger = logging.getLogger("boardroom.engine")


class Boardroom:
    """Composition root for one board and one state root.

    Args:
        config: Validated board config; loaded from args/board.yaml (or the
            built-in board) when omitted.
        state_root: State directory. Defaults to ``config.state.directory``
            resolved against ``base_dir``.
        base_dir: Project root for governance path checks (default: cwd).
        backend: Storage backend; overrides ``state_root``.
        notifier: Governance event sink.
        exclusive: Hold the single-writer lock on the state root.
    """

    def __init__(self, config: Optional[BoardConfig] = None,
                 state_root: Union[str, Path, None] = None,
                 base_dir: Union[str, Path, None] = None,
                 backend: Optional[StateBackend] = None,
                 notifier: Optional[Notifier] = None,
                 exclusive: bool = False):
        self.config = config or load_board_config()
        self.base_dir = os.path.abspath(str(base_dir or os.getcwd()))
        if backend is None:
            root = state_root or os.path.join(self.base_dir, self.config.state.directory)
            backend = JsonFileBackend(root)
        self.backend = backend
        self.notifier = notifier

        self._lock: Optional[StateRootLock] = None
        if exclusive:
            self._lock = StateRootLock(backend.root).acquire()
        try:
            self._build(notifier)
        except Exception:
            self.close()
            raise
        logger.info("Boardroom '%s' opened on %s%s", self.config.name, backend.root,
                    " (exclusive)" if exclusive else "")

    def _build(self, notifier: Optional[Notifier]) -> None:
        backend = self.backend
        self.registry = ProjectRegistry(backend=backend)
        self.allocator = ResourceAllocator(self.registry, self.config.resource_pool())
        self.isolation = IsolationEnforcer(self.registry, notifier=notifier)
        self.gates = GateEnforcement(self.config, backend=backend, notifier=notifier)
        self.challenges = ChallengeProtocol(self.config, notifier=notifier)
        self.governance = GovernanceProtection(self.config.governance, self.base_dir,
                                               notifier=notifier)
        self._stores: Dict[str, DecisionStore] = {}

    @property
    def state_root(self) -> str:
        return self.backend.root

    def decisions(self, project: str) -> DecisionStore:
        """The decision ledger for a project (one instance per project)."""
        store = self._stores.get(project)
        if store is None:
            validate_project_name(project)
            store = DecisionStore(project, backend=self.backend)
            self._stores[project] = store
        return store

    def review(self, project: str, decision_id: str, challenger: str,
               action: Union[ReviewAction, str], rationale: str,
               counter_proposal: Optional[str] = None) -> ChallengeResult:
        """Run one challenge-protocol action against a project's ledger."""
        return self.challenges.process_challenge(
            self.decisions(project), decision_id, challenger, action, rationale,
            counter_proposal,
        )

    def status(self) -> dict:
        """Aggregate auditor view across every component."""
        return {
            "board": self.config.name,
            "state_root": self.state_root,
            "projects": self.registry.snapshot().to_dict(),
            "resources": {
                "pool": self.allocator.total_pool.to_dict(),
                "available": self.allocator.available.to_dict(),
                "allocations": [a.to_dict() for a in self.allocator.get_all_allocations()],
            },
            "isolation": self.isolation.violation_summary(),
            "governance": self.governance.get_audit_summary().to_dict(),
        }

    def close(self) -> None:
        if self._lock is not None:
            self._lock.release()
            self._lock = None

    def __enter__(self) -> "Boardroom":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
