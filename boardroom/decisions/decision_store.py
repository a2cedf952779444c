#!/usr/bin/env python3
# CUI // SP-CTI
"""Decision Store — append-only decision ledger with lineage.

Decisions are first-class records, not messages in a log. Each project state
directory holds one ``decisions.json`` array. Records are never deleted; only
status and challenge fields change after creation.

Two reverse indices (superseded_by, depended_on) make forward traversal
proportional to the number of successors instead of a full scan.

Usage:
    python -m boardroom.decisions.decision_store --state-dir state/proj-a list
    python -m boardroom.decisions.decision_store --state-dir state/proj-a show DEC-0003
    python -m boardroom.decisions.decision_store --state-dir state/proj-a chain DEC-0007 --json
    python -m boardroom.decisions.decision_store --state-dir state/proj-a export --format markdown
"""

import argparse
import copy
import json
import logging
import os
import sys
from collections import deque
from pathlib import Path
from typing import Dict, List, Optional, Union

from boardroom.compat.datetime_utils import parse_iso, utc_now_iso
from boardroom.core.errors import (
    ConflictError,
    CorruptStateError,
    InvalidStateTransitionError,
    NotFoundError,
)
from boardroom.schemas.decisions import (
    ChallengeAction,
    ChallengeRound,
    DecisionQuery,
    DecisionRecord,
    DecisionStatus,
    DecisionType,
)
from boardroom.storage.backend import JsonFileBackend, StateBackend

logger = logging.getLogger("boardroom.decisions")

DOCUMENT_NAME = "decisions.json"
ID_PREFIX = "DEC-"


def format_decision_id(number: int) -> str:
    return f"{ID_PREFIX}{number:04d}"


def parse_decision_id(decision_id: str) -> int:
    try:
        return int(decision_id[len(ID_PREFIX):])
    except ValueError:
        return 0


class DecisionStore:
    """Append-only ledger of DecisionRecords for one project.

    Args:
        state_dir: The project's state directory. When ``backend`` is given
            it is taken relative to the backend root.
        backend: Optional storage backend; defaults to JSON files under
            ``state_dir``.
    """

    def __init__(self, state_dir: Union[str, Path] = "",
                 backend: Optional[StateBackend] = None):
        if backend is None:
            backend = JsonFileBackend(state_dir)
            self._document = DOCUMENT_NAME
        else:
            self._document = os.path.join(str(state_dir), DOCUMENT_NAME) if state_dir else DOCUMENT_NAME
        self._backend = backend
        self._decisions: List[DecisionRecord] = []
        self._by_id: Dict[str, DecisionRecord] = {}
        self._superseded_by: Dict[str, List[str]] = {}
        self._depended_on: Dict[str, List[str]] = {}
        self._next_id = 1
        self._load()

    @property
    def path(self) -> str:
        return self._backend.path_for(self._document)

    # -----------------------------------------------------------------------
    # Persistence
    # -----------------------------------------------------------------------
    def _load(self) -> None:
        try:
            raw = self._backend.read_json(self._document, default=[])
        except CorruptStateError as exc:
            logger.error("Decision ledger unreadable, starting empty: %s", exc)
            raw = []
        try:
            if not isinstance(raw, list):
                raise TypeError("ledger is not a JSON array")
            decisions = [DecisionRecord.from_dict(item) for item in raw]
            highest = max((parse_decision_id(d.id) for d in decisions), default=0)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            quarantined = self._backend.quarantine(self._document)
            logger.error("Decision ledger %s malformed (moved to %s), starting empty: %s",
                         self.path, quarantined, exc)
            decisions, highest = [], 0

        self._decisions = decisions
        self._by_id = {d.id: d for d in self._decisions}
        self._next_id = highest + 1
        self._rebuild_indices()
        if self._decisions:
            logger.debug("Loaded %d decisions from %s", len(self._decisions), self.path)

    def _commit(self, record: DecisionRecord) -> None:
        """Write the ledger with ``record`` added or replaced, then apply it.

        Memory only changes once the backend write succeeded.
        """
        is_new = record.id not in self._by_id
        decisions = [record if d.id == record.id else d for d in self._decisions]
        if is_new:
            decisions.append(record)
        self._backend.write_json(self._document, [d.to_dict() for d in decisions])

        self._decisions = decisions
        self._by_id[record.id] = record
        if is_new:
            self._index(record)
            self._next_id = max(self._next_id, parse_decision_id(record.id) + 1)

    def _rebuild_indices(self) -> None:
        self._superseded_by.clear()
        self._depended_on.clear()
        for record in self._decisions:
            self._index(record)

    def _index(self, record: DecisionRecord) -> None:
        if record.supersedes:
            self._superseded_by.setdefault(record.supersedes, []).append(record.id)
        for dep in record.dependencies:
            self._depended_on.setdefault(dep, []).append(record.id)

    def _require(self, decision_id: str) -> DecisionRecord:
        """Working copy of a stored record; see _commit()."""
        record = self._by_id.get(decision_id)
        if record is None:
            raise NotFoundError("decision", decision_id)
        return copy.deepcopy(record)

    # -----------------------------------------------------------------------
    # Mutations
    # -----------------------------------------------------------------------
    def propose(self, author: str, type: DecisionType, summary: str, rationale: str,
                evidence: Optional[List[str]] = None, phase: int = 0, project: str = "",
                supersedes: Optional[str] = None,
                dependencies: Optional[List[str]] = None) -> DecisionRecord:
        """Create a new decision with status ``proposed`` and the next id."""
        record = DecisionRecord(
            id=format_decision_id(self._next_id),
            timestamp=utc_now_iso(),
            author=author,
            type=DecisionType(type),
            summary=summary,
            rationale=rationale,
            evidence=list(evidence or []),
            supersedes=supersedes,
            dependencies=list(dependencies or []),
            phase=phase,
            project=project,
        )
        self._commit(record)
        logger.info("Decision %s proposed by %s (%s): %s",
                    record.id, author, record.type.value, summary)
        return copy.deepcopy(record)

    def challenge(self, decision_id: str, challenger: str, rationale: str,
                  counter_proposal: Optional[str] = None) -> DecisionRecord:
        """Record a challenge round. Only proposed or challenged decisions qualify."""
        record = self._require(decision_id)
        if record.status not in (DecisionStatus.PROPOSED, DecisionStatus.CHALLENGED):
            raise InvalidStateTransitionError(
                f"Decision {decision_id} is {record.status.value}, cannot challenge"
            )

        record.challenged_by = challenger
        record.challenge_rounds += 1
        record.status = DecisionStatus.CHALLENGED
        record.challenge_history.append(ChallengeRound(
            round=record.challenge_rounds,
            challenger=challenger,
            action=ChallengeAction.CHALLENGED,
            rationale=rationale,
            counter_proposal=counter_proposal,
            timestamp=utc_now_iso(),
        ))
        self._commit(record)
        logger.info("Decision %s challenged by %s (round %d)",
                    decision_id, challenger, record.challenge_rounds)
        return copy.deepcopy(record)

    def accept(self, decision_id: str, accepted_by: str,
               rationale: Optional[str] = None) -> DecisionRecord:
        """Accept a decision. With a rationale an ``accepted`` round is appended."""
        record = self._require(decision_id)
        record.status = DecisionStatus.ACCEPTED
        if rationale:
            record.challenge_history.append(ChallengeRound(
                round=len(record.challenge_history) + 1,
                challenger=accepted_by,
                action=ChallengeAction.ACCEPTED,
                rationale=rationale,
                timestamp=utc_now_iso(),
            ))
        self._commit(record)
        logger.info("Decision %s accepted by %s", decision_id, accepted_by)
        return copy.deepcopy(record)

    def escalate(self, decision_id: str) -> DecisionRecord:
        """Escalate a decision to the board chair."""
        record = self._require(decision_id)
        record.status = DecisionStatus.ESCALATED
        self._commit(record)
        logger.warning("Decision %s escalated after %d challenge rounds",
                       decision_id, record.challenge_rounds)
        return copy.deepcopy(record)

    def supersede(self, decision_id: str, new_decision_id: str) -> DecisionRecord:
        record = self._require(decision_id)
        record.status = DecisionStatus.SUPERSEDED
        self._commit(record)
        logger.info("Decision %s superseded by %s", decision_id, new_decision_id)
        return copy.deepcopy(record)

    # -----------------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------------
    def get(self, decision_id: str) -> Optional[DecisionRecord]:
        record = self._by_id.get(decision_id)
        return copy.deepcopy(record) if record else None

    def all(self) -> List[DecisionRecord]:
        return copy.deepcopy(self._decisions)

    def count(self) -> int:
        return len(self._decisions)

    def query(self, query: Optional[DecisionQuery] = None) -> List[DecisionRecord]:
        """Conjunctive filter over the ledger, in ledger order."""
        if query is None:
            return self.all()
        after = parse_iso(query.after) if query.after else None
        before = parse_iso(query.before) if query.before else None

        results = []
        for d in self._decisions:
            if query.author is not None and d.author != query.author:
                continue
            if query.type is not None and d.type != query.type:
                continue
            if query.status is not None and d.status != query.status:
                continue
            if query.project is not None and d.project != query.project:
                continue
            if query.phase is not None and d.phase != query.phase:
                continue
            if query.challenged is not None and query.challenged != d.was_challenged:
                continue
            if query.depends_on is not None and query.depends_on not in d.dependencies:
                continue
            if query.supersedes_id is not None and d.supersedes != query.supersedes_id:
                continue
            if after or before:
                ts = parse_iso(d.timestamp)
                if after and ts < after:
                    continue
                if before and ts > before:
                    continue
            results.append(d)
        return copy.deepcopy(results)

    # -----------------------------------------------------------------------
    # Lineage
    # -----------------------------------------------------------------------
    def chain(self, decision_id: str) -> List[DecisionRecord]:
        """Walk ``supersedes`` back to the root. Root first, the given id last."""
        lineage: List[DecisionRecord] = []
        seen = set()
        current = self._by_id.get(decision_id)
        while current is not None and current.id not in seen:
            seen.add(current.id)
            lineage.append(current)
            current = self._by_id.get(current.supersedes) if current.supersedes else None
        lineage.reverse()
        return copy.deepcopy(lineage)

    def forward_chain(self, decision_id: str) -> List[DecisionRecord]:
        """All transitive successors of a decision, breadth-first."""
        result: List[DecisionRecord] = []
        queue = deque([decision_id])
        visited = set()
        while queue:
            current = queue.popleft()
            if current in visited:
                continue
            visited.add(current)
            for successor_id in self._superseded_by.get(current, []):
                successor = self._by_id.get(successor_id)
                if successor is not None:
                    result.append(successor)
                    queue.append(successor_id)
        return copy.deepcopy(result)

    def dependents(self, decision_id: str) -> List[DecisionRecord]:
        """Decisions that list ``decision_id`` as a direct dependency."""
        return copy.deepcopy([self._by_id[i] for i in self._depended_on.get(decision_id, [])
                              if i in self._by_id])

    def dependency_graph(self, decision_id: str) -> List[DecisionRecord]:
        """Transitive dependencies in depth-first postorder, without the root."""
        result: List[DecisionRecord] = []
        visited = set()

        def walk(current_id: str) -> None:
            record = self._by_id.get(current_id)
            if record is None or current_id in visited:
                return
            visited.add(current_id)
            for dep in record.dependencies:
                walk(dep)
            result.append(record)

        walk(decision_id)
        return copy.deepcopy([d for d in result if d.id != decision_id])

    # -----------------------------------------------------------------------
    # Export / restore
    # -----------------------------------------------------------------------
    def export_json(self, query: Optional[DecisionQuery] = None) -> str:
        return json.dumps([d.to_dict() for d in self.query(query)], indent=2)

    def export_markdown(self, query: Optional[DecisionQuery] = None) -> str:
        """Markdown audit trail narrating every challenge round."""
        lines = ["# Decision Audit Trail", ""]
        for d in self.query(query):
            lines.append(f"## {d.id}: {d.summary}")
            lines.append("")
            lines.append(f"- **Author:** {d.author}")
            lines.append(f"- **Type:** {d.type.value}")
            lines.append(f"- **Status:** {d.status.value}")
            lines.append(f"- **Project:** {d.project}")
            lines.append(f"- **Phase:** {d.phase}")
            lines.append(f"- **Timestamp:** {d.timestamp}")
            if d.supersedes:
                lines.append(f"- **Supersedes:** {d.supersedes}")
            if d.dependencies:
                lines.append(f"- **Dependencies:** {', '.join(d.dependencies)}")
            lines.append("")
            lines.append(f"**Rationale:** {d.rationale}")
            lines.append("")
            if d.evidence:
                lines.append("**Evidence:**")
                lines.extend(f"- {item}" for item in d.evidence)
                lines.append("")
            if d.challenge_history:
                lines.append("**Challenge History:**")
                lines.append("")
                for r in d.challenge_history:
                    lines.append(f"### Round {r.round}: {r.action.value} by {r.challenger}")
                    lines.append("")
                    lines.append(f"- {r.rationale}")
                    if r.counter_proposal:
                        lines.append(f"- Counter-proposal: {r.counter_proposal}")
                    lines.append(f"- _{r.timestamp}_")
                    lines.append("")
            lines.append("---")
            lines.append("")
        return "\n".join(lines)

    @classmethod
    def restore(cls, state_dir: Union[str, Path], exported_json: str,
                backend: Optional[StateBackend] = None) -> "DecisionStore":
        """Load an ``export_json()`` payload into a fresh ledger.

        Raises:
            ConflictError: the target already holds decisions.
            ValueError: the payload is not a JSON array of decision records.
        """
        records = json.loads(exported_json)
        if not isinstance(records, list):
            raise ValueError("Exported decisions must be a JSON array")
        parsed = [DecisionRecord.from_dict(item) for item in records]

        store = cls(state_dir, backend=backend)
        if store.count():
            raise ConflictError(f"Decision ledger {store.path} is not empty")
        store._backend.write_json(store._document, [d.to_dict() for d in parsed])
        store._decisions = parsed
        store._by_id = {d.id: d for d in parsed}
        store._next_id = max((parse_decision_id(d.id) for d in parsed), default=0) + 1
        store._rebuild_indices()
        logger.info("Restored %d decisions into %s", len(parsed), store.path)
        return store


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------
def _print_records(records: List[DecisionRecord], as_json: bool) -> None:
    if as_json:
        print(json.dumps([r.to_dict() for r in records], indent=2))
        return
    if not records:
        print("No decisions found.")
        return
    for r in records:
        rounds = f" rounds={r.challenge_rounds}" if r.challenge_rounds else ""
        print(f"{r.id}  [{r.status.value:<10}] {r.author:<8} {r.type.value:<12} "
              f"{r.summary}{rounds}")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Inspect a project's decision ledger")
    parser.add_argument("--state-dir", required=True, help="Project state directory")
    parser.add_argument("--json", action="store_true", help="Output as JSON")
    subparsers = parser.add_subparsers(dest="command", required=True)

    list_p = subparsers.add_parser("list", help="List decisions")
    list_p.add_argument("--author", help="Filter by author role")
    list_p.add_argument("--status", choices=[s.value for s in DecisionStatus])
    list_p.add_argument("--type", choices=[t.value for t in DecisionType])
    list_p.add_argument("--phase", type=int, help="Filter by phase")
    list_p.add_argument("--challenged", action="store_true",
                        help="Only decisions challenged at least once")

    show_p = subparsers.add_parser("show", help="Show one decision")
    show_p.add_argument("decision_id")

    chain_p = subparsers.add_parser("chain", help="Show supersession lineage")
    chain_p.add_argument("decision_id")
    chain_p.add_argument("--forward", action="store_true",
                         help="Show successors instead of ancestors")

    export_p = subparsers.add_parser("export", help="Export the ledger")
    export_p.add_argument("--format", choices=["json", "markdown"], default="json")
    export_p.add_argument("--output", help="Write to file instead of stdout")

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.WARNING,
                        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s")

    store = DecisionStore(args.state_dir)

    if args.command == "list":
        query = DecisionQuery(
            author=args.author,
            status=DecisionStatus(args.status) if args.status else None,
            type=DecisionType(args.type) if args.type else None,
            phase=args.phase,
            challenged=True if args.challenged else None,
        )
        _print_records(store.query(query), args.json)

    elif args.command == "show":
        record = store.get(args.decision_id)
        if record is None:
            print(f"Decision {args.decision_id} not found", file=sys.stderr)
            return 1
        if args.json:
            print(json.dumps(record.to_dict(), indent=2))
        else:
            print(f"{record.id}: {record.summary}")
            print(f"  Author:      {record.author}")
            print(f"  Type:        {record.type.value}")
            print(f"  Status:      {record.status.value}")
            print(f"  Phase:       {record.phase}")
            print(f"  Rationale:   {record.rationale}")
            if record.supersedes:
                print(f"  Supersedes:  {record.supersedes}")
            if record.dependencies:
                print(f"  Depends on:  {', '.join(record.dependencies)}")
            for r in record.challenge_history:
                print(f"  Round {r.round}: {r.action.value} by {r.challenger}: {r.rationale}")

    elif args.command == "chain":
        records = (store.forward_chain(args.decision_id) if args.forward
                   else store.chain(args.decision_id))
        _print_records(records, args.json)

    elif args.command == "export":
        text = (store.export_markdown() if args.format == "markdown"
                else store.export_json())
        if args.output:
            Path(args.output).write_text(text, encoding="utf-8")
            print(f"Exported {store.count()} decisions to {args.output}")
        else:
            print(text)
    return 0


if __name__ == "__main__":
    sys.exit(main())
