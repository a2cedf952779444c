#!/usr/bin/env python3
# CUI // SP-CTI
"""Challenge Protocol — enforced adversarial review between board roles.

Each role's ``challenges`` list in board.yaml names the roles that review
(and may challenge) its decisions. A decision whose author has challengers
cannot execute until it is accepted or escalated. Challenge rounds are
capped by ``challenge.max_rounds``; exhaustion resolves per
``auto_escalation`` / ``default_action`` and never loops.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Union

from boardroom.core.config import BoardConfig, ChallengeConfig
from boardroom.core.errors import (
    AccessDeniedError,
    InvalidStateTransitionError,
    NotFoundError,
)
from boardroom.core.notifier import EventType, GovernanceEvent, Notifier, publish
from boardroom.decisions.decision_store import DecisionStore
from boardroom.schemas.decisions import DecisionRecord, DecisionStatus

logger = logging.getLogger("boardroom.challenges")

# Recorded as the acceptor when the round limit auto-accepts a decision.
ROUND_LIMIT_RESOLVER = "board"


class ReviewAction(str, Enum):
    ACCEPT = "accept"
    CHALLENGE = "challenge"


class ChallengeOutcome(str, Enum):
    ACCEPTED = "accepted"
    CHALLENGED = "challenged"
    ESCALATED = "escalated"


@dataclass
class ChallengeResult:
    decision: DecisionRecord
    outcome: ChallengeOutcome
    round: int
    requires_revision: bool
    requires_escalation: bool

    def to_dict(self) -> dict:
        return {
            "decision": self.decision.to_dict(),
            "outcome": self.outcome.value,
            "round": self.round,
            "requires_revision": self.requires_revision,
            "requires_escalation": self.requires_escalation,
        }


class ChallengeProtocol:
    """Authorizes challengers and drives decisions through review rounds."""

    def __init__(self, config: BoardConfig, notifier: Optional[Notifier] = None):
        self._config: ChallengeConfig = config.challenge
        self._notifier = notifier
        # author role -> roles allowed to challenge it
        self._challengers: Dict[str, List[str]] = {
            role: list(rc.challenges) for role, rc in config.roles.items() if rc.challenges
        }

    @property
    def max_rounds(self) -> int:
        return self._config.max_rounds

    @property
    def auto_escalation(self) -> bool:
        return self._config.auto_escalation

    def get_challengers(self, author_role: str) -> List[str]:
        return list(self._challengers.get(author_role, []))

    def requires_challenge(self, decision: DecisionRecord) -> bool:
        return bool(self._challengers.get(decision.author))

    def can_execute(self, decision: DecisionRecord) -> bool:
        if not self.requires_challenge(decision):
            return True
        return decision.status in (DecisionStatus.ACCEPTED, DecisionStatus.ESCALATED)

    def ensure_executable(self, decision: DecisionRecord) -> None:
        """Raise unless the decision has cleared review."""
        if not self.can_execute(decision):
            raise InvalidStateTransitionError(
                f"Decision {decision.id} by {decision.author} is {decision.status.value}; "
                f"review by {', '.join(self.get_challengers(decision.author))} "
                "must accept or escalate it before execution"
            )

    def process_challenge(self, store: DecisionStore, decision_id: str, challenger: str,
                          action: Union[ReviewAction, str], rationale: str,
                          counter_proposal: Optional[str] = None) -> ChallengeResult:
        """Apply one review action from ``challenger`` to a decision.

        Raises:
            NotFoundError: unknown decision.
            AccessDeniedError: ``challenger`` may not review this author.
            InvalidStateTransitionError: challenging a settled decision.
        """
        action = ReviewAction(action)
        decision = store.get(decision_id)
        if decision is None:
            raise NotFoundError("decision", decision_id)

        if challenger not in self.get_challengers(decision.author):
            logger.warning("Unauthorized challenge: %s may not review %s's decision %s",
                           challenger, decision.author, decision_id)
            raise AccessDeniedError(
                f'Role "{challenger}" is not authorized to challenge '
                f"{decision.author}'s decisions",
                violation_type="unauthorized_challenger",
            )

        if action == ReviewAction.ACCEPT:
            updated = store.accept(decision_id, challenger, rationale)
            return ChallengeResult(updated, ChallengeOutcome.ACCEPTED,
                                   updated.challenge_rounds, False, False)

        updated = store.challenge(decision_id, challenger, rationale, counter_proposal)
        if updated.challenge_rounds >= self._config.max_rounds:
            return self._resolve_round_limit(store, updated)
        return ChallengeResult(updated, ChallengeOutcome.CHALLENGED,
                               updated.challenge_rounds, True, False)

    def _resolve_round_limit(self, store: DecisionStore,
                             decision: DecisionRecord) -> ChallengeResult:
        rounds = decision.challenge_rounds
        if not self._config.auto_escalation and self._config.default_action == "accept":
            accepted = store.accept(
                decision.id, ROUND_LIMIT_RESOLVER,
                f"Auto-accepted: challenge limit of {self._config.max_rounds} rounds reached",
            )
            logger.info("Decision %s auto-accepted at round limit (%d)", decision.id, rounds)
            return ChallengeResult(accepted, ChallengeOutcome.ACCEPTED, rounds, False, False)

        escalated = store.escalate(decision.id)
        publish(self._notifier, GovernanceEvent(
            event_type=EventType.DECISION_ESCALATED,
            summary=f"Decision {decision.id} escalated after {rounds} challenge rounds: "
                    f"{decision.summary}",
            project=decision.project or None,
            details={"decision_id": decision.id, "author": decision.author,
                     "challenged_by": decision.challenged_by, "rounds": rounds},
        ))
        return ChallengeResult(escalated, ChallengeOutcome.ESCALATED, rounds, False, True)
