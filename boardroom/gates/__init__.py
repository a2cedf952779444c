# CUI // SP-CTI
"""Phase gates."""
from boardroom.gates.gate_enforcement import GateEnforcement  # noqa: F401
