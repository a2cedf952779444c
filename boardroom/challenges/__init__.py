# CUI // SP-CTI
"""Challenge protocol between board roles."""
from boardroom.challenges.challenge_protocol import (  # noqa: F401
    ChallengeOutcome,
    ChallengeProtocol,
    ChallengeResult,
    ReviewAction,
)
