# CUI // SP-CTI
"""Self-modification prevention and write-access audit."""
from boardroom.governance.glob_match import glob_match  # noqa: F401
from boardroom.governance.protection import GovernanceProtection  # noqa: F401
