# CUI // SP-CTI
"""Decision ledger."""
from boardroom.decisions.decision_store import DecisionStore  # noqa: F401
