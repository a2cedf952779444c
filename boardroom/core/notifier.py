#!/usr/bin/env python3
# CUI // SP-CTI
"""Outbound governance event notifier — ABC interface + implementations.

The engine publishes escalations, structural gate failures and isolation
violations through a Notifier (chat channel, pager, dashboard feed). Delivery
is fire-and-forget: a notifier failure is logged and never changes the
outcome of the governance operation that produced the event.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from boardroom.compat.datetime_utils import utc_now_iso

logger = logging.getLogger("boardroom.notifier")


class EventType(str, Enum):
    DECISION_ESCALATED = "decision_escalated"
    GATE_FAILED = "gate_failed"
    ISOLATION_VIOLATION = "isolation_violation"
    GOVERNANCE_VIOLATION = "governance_violation"


@dataclass
class GovernanceEvent:
    event_type: EventType
    summary: str
    project: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["event_type"] = self.event_type.value
        return data


class Notifier(ABC):
    """Abstract sink for governance events."""

    @abstractmethod
    def notify(self, event: GovernanceEvent) -> None:
        """Deliver one event. May raise; callers go through publish()."""


class NullNotifier(Notifier):
    """Discards every event."""

    def notify(self, event: GovernanceEvent) -> None:
        return None


class LoggingNotifier(Notifier):
    """Writes events to the ``boardroom.events`` logger."""

    def __init__(self, level: int = logging.WARNING):
        self.level = level
        self._logger = logging.getLogger("boardroom.events")

    def notify(self, event: GovernanceEvent) -> None:
        self._logger.log(self.level, "[%s] %s%s", event.event_type.value, event.summary,
                         f" (project={event.project})" if event.project else "")


class MemoryNotifier(Notifier):
    """Keeps events in a list; handy for embedders polling for alerts."""

    def __init__(self):
        self.events: List[GovernanceEvent] = []

    def notify(self, event: GovernanceEvent) -> None:
        self.events.append(event)


def publish(notifier: Optional[Notifier], event: GovernanceEvent) -> None:
    """Fire-and-forget delivery."""
    if notifier is None:
        return
    try:
        notifier.notify(event)
    except Exception as exc:
        logger.error("Notifier %s failed on %s: %s",
                     type(notifier).__name__, event.event_type.value, exc)
