#!/usr/bin/env python3
# CUI // SP-CTI
"""Boardroom — Structured Exception Hierarchy.

Mutation APIs raise these; inspection APIs (check_write_access, can_advance,
check_access, can_execute) return structured results instead so that
high-frequency policy checks stay exception-free.

Usage:
    from boardroom.core.errors import NotFoundError, AccessDeniedError

    raise NotFoundError("decision", "DEC-0042")
"""

from typing import Optional


class BoardroomError(Exception):
    """Base exception for all governance engine errors.

    Attributes:
        retryable: Whether the caller may retry the operation unchanged.
    """

    def __init__(self, message: str, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable


class NotFoundError(BoardroomError):
    """Operation on a nonexistent decision, project, team or allocation."""

    def __init__(self, kind: str, identifier: str, message: str = ""):
        super().__init__(message or f"{kind.capitalize()} {identifier} not found")
        self.kind = kind
        self.identifier = identifier


class InvalidStateTransitionError(BoardroomError):
    """Lifecycle transition not allowed from the current status.

    Examples: challenging an accepted decision, resuming a non-paused project.
    """


class InvalidPhaseTransitionError(BoardroomError):
    """Phase sequencing violated: wrong exit gate, phase skip or rollback."""

    def __init__(self, message: str, from_phase: Optional[int] = None,
                 to_phase: Optional[int] = None):
        super().__init__(message)
        self.from_phase = from_phase
        self.to_phase = to_phase


class AccessDeniedError(BoardroomError):
    """Access refused by policy.

    Attributes:
        violation_type: Machine-readable violation (governance_asset,
            out_of_scope, cross_project, unauthorized_challenger, ...).
    """

    def __init__(self, message: str, violation_type: str):
        super().__init__(message)
        self.violation_type = violation_type


class ConflictError(BoardroomError):
    """Entity already exists (duplicate project registration, duplicate team)."""


class StorageError(BoardroomError):
    """Persistence I/O failure (disk full, permission denied, lock held).

    Attributes:
        path: The state file or directory involved.
    """

    def __init__(self, message: str, path: str = "", retryable: bool = True):
        super().__init__(message, retryable=retryable)
        self.path = path


class CorruptStateError(StorageError):
    """A persisted document could not be parsed and was quarantined.

    Attributes:
        quarantined_to: Where the unreadable file was moved.
    """

    def __init__(self, message: str, path: str = "", quarantined_to: str = ""):
        super().__init__(message, path=path, retryable=False)
        self.quarantined_to = quarantined_to


class ConfigurationError(BoardroomError):
    """Configuration error — missing or invalid board configuration."""

    def __init__(self, message: str, config_key: str = ""):
        super().__init__(message, retryable=False)
        self.config_key = config_key
