#!/usr/bin/env python3
# CUI // SP-CTI
"""Gate Enforcement — structural phase-transition state machine.

A project moves through a linear phase chain (planning -> architecture ->
implementation -> integration -> delivery by default). Leaving a phase
requires passing its exit gate: every role the gate requires must have an
unexpired PASS or CONDITIONAL verdict at that phase. A FAIL on a structural
gate marks the project ``gated_fail`` the moment it is recorded.

Persistence (relative to the state root):
    <project>/phase.json     PhaseState with the project's verdict log
    _gate_history.json       {"verdicts": [...]} across all projects

Usage:
    python -m boardroom.gates.gate_enforcement --state-root state status proj-a
    python -m boardroom.gates.gate_enforcement --state-root state check proj-a --from 2 --to 3
    python -m boardroom.gates.gate_enforcement --state-root state history --project proj-a --json
"""

import argparse
import copy
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

from boardroom.compat.datetime_utils import parse_iso, utc_now, utc_now_iso
from boardroom.core.config import BoardConfig, GateConfig, load_board_config
from boardroom.core.errors import (
    CorruptStateError,
    InvalidPhaseTransitionError,
    StorageError,
)
from boardroom.core.notifier import EventType, GovernanceEvent, Notifier, publish
from boardroom.schemas.gates import (
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
from boardroom.storage.backend import JsonFileBackend, StateBackend

logger = logging.getLogger("boardroom.gates")

HISTORY_DOCUMENT = "_gate_history.json"
PHASE_DOCUMENT = "phase.json"
_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class GateEnforcement:
    """Phase state machine over persisted gate verdicts.

    Args:
        config: Validated board configuration (gates and phases).
        state_root: Directory holding per-project state; ignored when
            ``backend`` is supplied.
        backend: Optional storage backend rooted at the state root.
        notifier: Receives structural gate failures.
    """

    def __init__(self, config: BoardConfig, state_root: Union[str, Path, None] = None,
                 backend: Optional[StateBackend] = None,
                 notifier: Optional[Notifier] = None):
        if backend is None:
            if state_root is None:
                raise ValueError("GateEnforcement needs a state_root or a backend")
            backend = JsonFileBackend(state_root)
        self._backend = backend
        self._gates = dict(config.gates)
        self._phases: List[PhaseDefinition] = config.phase_definitions()
        self._notifier = notifier

    # -----------------------------------------------------------------------
    # Configuration views
    # -----------------------------------------------------------------------
    @property
    def phases(self) -> List[PhaseDefinition]:
        return list(self._phases)

    def phase_definition(self, phase: int) -> Optional[PhaseDefinition]:
        if 0 <= phase < len(self._phases):
            return self._phases[phase]
        return None

    def get_gate(self, transition_name: str) -> Optional[GateConfig]:
        return self._gates.get(transition_name)

    def _gate_for_verdict(self, verdict: GateVerdict) -> Optional[GateConfig]:
        gate = self._gates.get(verdict.gate_id)
        if gate is not None:
            return gate
        definition = self.phase_definition(verdict.phase)
        if definition is not None and definition.exit_gate:
            return self._gates.get(definition.exit_gate)
        return None

    # -----------------------------------------------------------------------
    # Persistence
    # -----------------------------------------------------------------------
    @staticmethod
    def _phase_document(project: str) -> str:
        return f"{project}/{PHASE_DOCUMENT}"

    def get_phase_state(self, project: str) -> Optional[PhaseState]:
        document = self._phase_document(project)
        try:
            raw = self._backend.read_json(document)
        except CorruptStateError as exc:
            logger.error("Phase state for %s unreadable, treating as new: %s", project, exc)
            return None
        if not raw:
            return None
        try:
            return PhaseState.from_dict(raw)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            quarantined = self._backend.quarantine(document)
            logger.error("Phase state for %s malformed (moved to %s), treating as new: %s",
                         project, quarantined, exc)
            return None

    def _new_phase_state(self, project: str) -> PhaseState:
        now = utc_now_iso()
        first = self.phase_definition(0)
        return PhaseState(
            project=project,
            current_phase=0,
            phase_name=first.name if first else "planning",
            status=PhaseStatus.PLANNING,
            started_at=now,
            updated_at=now,
        )

    def _save_phase_state(self, state: PhaseState) -> None:
        self._backend.write_json(self._phase_document(state.project), state.to_dict())

    def _restore_phase_state(self, project: str, previous: Optional[PhaseState]) -> None:
        logger.error("Gate history write failed, restoring phase state of %s", project)
        try:
            if previous is None:
                self._backend.delete(self._phase_document(project))
            else:
                self._save_phase_state(previous)
        except StorageError as exc:
            logger.error("Could not restore phase state of %s: %s", project, exc)

    def _load_history(self) -> List[GateVerdict]:
        try:
            raw = self._backend.read_json(HISTORY_DOCUMENT, default={}) or {}
        except CorruptStateError as exc:
            logger.error("Gate history unreadable, starting empty: %s", exc)
            raw = {}
        try:
            return [GateVerdict.from_dict(v) for v in raw.get("verdicts", [])]
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            quarantined = self._backend.quarantine(HISTORY_DOCUMENT)
            logger.error("Gate history malformed (moved to %s), starting empty: %s",
                         quarantined, exc)
            return []

    def _write_history(self, history: List[GateVerdict]) -> None:
        self._backend.write_json(HISTORY_DOCUMENT,
                                 {"verdicts": [v.to_dict() for v in history]})

    # -----------------------------------------------------------------------
    # Gate checks
    # -----------------------------------------------------------------------
    def can_advance(self, project: str, from_phase: int, to_phase: int,
                    transition_name: str) -> GateCheck:
        """Evaluate whether the gate for a transition is satisfied.

        A transition with no registered gate is always allowed. For each
        required role only that role's most recent verdict at ``from_phase``
        counts.
        """
        gate = self._gates.get(transition_name)
        if gate is None:
            return GateCheck(allowed=True)

        state = self.get_phase_state(project)
        verdicts = state.gate_verdicts if state else []
        now = utc_now()

        check = GateCheck(allowed=True)
        for role in gate.required:
            verdict = _latest_verdict(verdicts, role, from_phase)
            if verdict is None:
                check.blockers.append(f"Missing verdict from {role}")
            elif verdict.verdict == VerdictType.FAIL:
                issues = "; ".join(verdict.blocking_issues) or "no details"
                check.blockers.append(f"{role} issued FAIL: {issues}")
            elif verdict.verdict == VerdictType.CONDITIONAL:
                expires = _parse_timestamp(verdict.expires_at) if verdict.expires_at else None
                if verdict.expires_at and expires is None:
                    check.blockers.append(
                        f"{role} CONDITIONAL verdict has unreadable expiry "
                        f"{verdict.expires_at!r}"
                    )
                elif expires is not None and expires <= now:
                    check.blockers.append(
                        f"{role} CONDITIONAL verdict expired at {verdict.expires_at}"
                    )
                else:
                    check.conditional = True
                    check.conditions.extend(verdict.conditions or [])
                    check.conditions.extend(verdict.warnings)
        check.allowed = not check.blockers
        return check

    def record_verdict(self, verdict: GateVerdict) -> PhaseState:
        """Append a verdict to the project log and the global history.

        Raises:
            ValueError: ``timestamp`` or ``expires_at`` is not ISO 8601.
                Nothing is persisted.
            StorageError: a write failed. The phase document is put back
                so both logs still agree.
        """
        for name in ("timestamp", "expires_at"):
            value = getattr(verdict, name)
            if value and _parse_timestamp(value) is None:
                raise ValueError(f"Verdict {name} is not an ISO 8601 timestamp: {value!r}")
        if not verdict.timestamp:
            verdict.timestamp = utc_now_iso()

        previous = self.get_phase_state(verdict.project)
        state = copy.deepcopy(previous) or self._new_phase_state(verdict.project)
        state.gate_verdicts.append(verdict)
        state.updated_at = utc_now_iso()

        gate = self._gate_for_verdict(verdict)
        structural_fail = (verdict.verdict == VerdictType.FAIL and gate is not None
                           and gate.verdict_type == GateKind.STRUCTURAL)
        if structural_fail:
            state.status = PhaseStatus.GATED_FAIL

        history = self._load_history()
        history.append(verdict)
        self._save_phase_state(state)
        try:
            self._write_history(history)
        except StorageError:
            self._restore_phase_state(verdict.project, previous)
            raise
        logger.info("Verdict %s on %s by %s for %s phase %d",
                    verdict.verdict.value, verdict.gate_id, verdict.issued_by,
                    verdict.project, verdict.phase)

        if structural_fail:
            logger.warning("Structural gate %s failed for %s; phase blocked",
                           verdict.gate_id, verdict.project)
            publish(self._notifier, GovernanceEvent(
                event_type=EventType.GATE_FAILED,
                summary=f"{verdict.issued_by} failed gate {verdict.gate_id}: "
                        f"{'; '.join(verdict.blocking_issues) or 'no details'}",
                project=verdict.project,
                details=verdict.to_dict(),
            ))
        return state

    def advance_phase(self, project: str, transition_name: str, from_phase: int,
                      to_phase: int, phase_name: Optional[str] = None) -> AdvanceResult:
        """Move a project to the next phase if its exit gate is satisfied.

        Raises:
            InvalidPhaseTransitionError: phase skip, rollback, stale
                ``from_phase``, terminal phase, or wrong gate name. These are
                checked before any verdict is consulted.
        """
        if to_phase != from_phase + 1:
            kind = "skip" if to_phase > from_phase else "rollback"
            raise InvalidPhaseTransitionError(
                f"Phase {kind} not allowed: {from_phase} -> {to_phase} "
                "(phases advance one at a time)",
                from_phase=from_phase, to_phase=to_phase,
            )

        state = self.get_phase_state(project) or self._new_phase_state(project)
        if state.current_phase != from_phase:
            raise InvalidPhaseTransitionError(
                f"Project {project} is in phase {state.current_phase}, not {from_phase}",
                from_phase=from_phase, to_phase=to_phase,
            )

        definition = self.phase_definition(from_phase)
        if definition is None or not definition.exit_gate:
            raise InvalidPhaseTransitionError(
                f"Phase {from_phase} has no exit gate; it is terminal",
                from_phase=from_phase, to_phase=to_phase,
            )
        if transition_name != definition.exit_gate:
            raise InvalidPhaseTransitionError(
                f'Transition "{transition_name}" does not match exit gate '
                f'"{definition.exit_gate}" of phase {from_phase}',
                from_phase=from_phase, to_phase=to_phase,
            )

        check = self.can_advance(project, from_phase, to_phase, transition_name)
        if not check.allowed:
            logger.warning("Phase advance blocked for %s (%s): %s",
                           project, transition_name, "; ".join(check.blockers))
            return AdvanceResult(advanced=False, blockers=check.blockers)

        target = self.phase_definition(to_phase)
        state.current_phase = to_phase
        state.phase_name = phase_name or (target.name if target else str(to_phase))
        state.status = (PhaseStatus.GATED_CONDITIONAL if check.conditional
                        else PhaseStatus.PLANNING)
        state.updated_at = utc_now_iso()
        self._save_phase_state(state)
        logger.info("Project %s advanced to phase %d (%s) via %s",
                    project, to_phase, state.phase_name, transition_name)
        return AdvanceResult(advanced=True, conditions=check.conditions, phase_state=state)

    def revert_phase(self, project: str) -> Optional[PhaseState]:
        """Manually mark the current phase as failed."""
        state = self.get_phase_state(project)
        if state is None:
            return None
        state.status = PhaseStatus.GATED_FAIL
        state.updated_at = utc_now_iso()
        self._save_phase_state(state)
        logger.warning("Phase %d of %s reverted to gated_fail", state.current_phase, project)
        return state

    def query_history(self, query: Optional[GateHistoryQuery] = None) -> List[GateVerdict]:
        """Filter the cross-project verdict log, newest first."""
        query = query or GateHistoryQuery()
        after = parse_iso(query.after) if query.after else None
        before = parse_iso(query.before) if query.before else None

        results = []
        for v in reversed(self._load_history()):
            if query.project is not None and v.project != query.project:
                continue
            if query.phase is not None and v.phase != query.phase:
                continue
            if query.verdict is not None and v.verdict != query.verdict:
                continue
            if query.issued_by is not None and v.issued_by != query.issued_by:
                continue
            if query.gate_id is not None and v.gate_id != query.gate_id:
                continue
            if after or before:
                ts = _parse_timestamp(v.timestamp)
                if ts is None:
                    continue
                if after and ts < after:
                    continue
                if before and ts > before:
                    continue
            results.append(v)

        # unreadable timestamps sort last
        results.sort(key=lambda v: _parse_timestamp(v.timestamp) or _EPOCH, reverse=True)
        if query.limit is not None and query.limit > 0:
            results = results[:query.limit]
        return results


def _parse_timestamp(value) -> Optional[datetime]:
    try:
        return parse_iso(value)
    except (AttributeError, TypeError, ValueError):
        return None


def _latest_verdict(verdicts: List[GateVerdict], role: str,
                    phase: int) -> Optional[GateVerdict]:
    for verdict in reversed(verdicts):
        if verdict.issued_by == role and verdict.phase == phase:
            return verdict
    return None


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------
def main(argv=None):
    parser = argparse.ArgumentParser(description="Inspect phase gates and verdict history")
    parser.add_argument("--state-root", required=True, help="Boardroom state root")
    parser.add_argument("--config", help="Path to board.yaml")
    parser.add_argument("--json", action="store_true", help="Output as JSON")
    subparsers = parser.add_subparsers(dest="command", required=True)

    hist_p = subparsers.add_parser("history", help="Query gate verdict history")
    hist_p.add_argument("--project")
    hist_p.add_argument("--phase", type=int)
    hist_p.add_argument("--verdict", choices=[v.value for v in VerdictType])
    hist_p.add_argument("--issued-by")
    hist_p.add_argument("--gate")
    hist_p.add_argument("--limit", type=int)

    status_p = subparsers.add_parser("status", help="Show a project's phase state")
    status_p.add_argument("project")

    check_p = subparsers.add_parser("check", help="Check whether a phase can advance")
    check_p.add_argument("project")
    check_p.add_argument("--from", dest="from_phase", type=int, required=True)
    check_p.add_argument("--to", dest="to_phase", type=int)
    check_p.add_argument("--transition", help="Gate name (default: exit gate of --from)")

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.WARNING,
                        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s")

    gates = GateEnforcement(load_board_config(args.config), state_root=args.state_root)

    if args.command == "history":
        verdicts = gates.query_history(GateHistoryQuery(
            project=args.project,
            phase=args.phase,
            verdict=VerdictType(args.verdict) if args.verdict else None,
            issued_by=args.issued_by,
            gate_id=args.gate,
            limit=args.limit,
        ))
        if args.json:
            print(json.dumps([v.to_dict() for v in verdicts], indent=2))
        elif not verdicts:
            print("No verdicts found.")
        else:
            for v in verdicts:
                print(f"{v.timestamp}  {v.project:<16} phase {v.phase}  "
                      f"{v.gate_id:<32} {v.verdict.value:<11} by {v.issued_by}")
        return 0

    if args.command == "status":
        state = gates.get_phase_state(args.project)
        if state is None:
            print(f"No phase state for {args.project}", file=sys.stderr)
            return 1
        if args.json:
            print(json.dumps(state.to_dict(), indent=2))
        else:
            print(f"{state.project}: phase {state.current_phase} ({state.phase_name}) "
                  f"status={state.status.value} verdicts={len(state.gate_verdicts)}")
        return 0

    to_phase = args.to_phase if args.to_phase is not None else args.from_phase + 1
    transition = args.transition
    if transition is None:
        definition = gates.phase_definition(args.from_phase)
        transition = definition.exit_gate if definition and definition.exit_gate else ""
    check = gates.can_advance(args.project, args.from_phase, to_phase, transition)
    if args.json:
        print(json.dumps(check.to_dict(), indent=2))
    else:
        print(f"{transition or '(no gate)'}: {'ALLOWED' if check.allowed else 'BLOCKED'}")
        for blocker in check.blockers:
            print(f"  - {blocker}")
        for condition in check.conditions:
            print(f"  * {condition}")
    return 0 if check.allowed else 1


if __name__ == "__main__":
    sys.exit(main())
