#!/usr/bin/env python3
# CUI // SP-CTI
"""Boardroom — Board Configuration.

Loads ``board.yaml`` (roles, challenge limits, gates, phases, governance
assets, resource pool, state location) and validates it with Pydantic.
Cross-reference problems (a role challenged by an undefined role, a gate
requiring an undefined role, a broken phase chain) raise ConfigurationError
with the offending key.

Falls back to the built-in software-development board when no path is given
and args/board.yaml is absent.

Usage:
    from boardroom.core.config import load_board_config

    config = load_board_config("args/board.yaml")
    config.challenge.max_rounds
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from boardroom.core.errors import ConfigurationError
from boardroom.schemas.gates import DEFAULT_PHASES, GateKind, PhaseDefinition
from boardroom.schemas.governance import SelfModificationPolicy
from boardroom.schemas.projects import ResourcePool

BASE_DIR = Path(__file__).resolve().parent.parent.parent
CONFIG_PATH = Path(os.environ.get("BOARDROOM_CONFIG", str(BASE_DIR / "args" / "board.yaml")))

logger = logging.getLogger("boardroom.config")


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------
class RoleConfig(BaseModel):
    title: str
    prompt: str = ""
    responsibilities: List[str] = Field(default_factory=list)
    # Roles that challenge THIS role's decisions.
    challenges: List[str] = Field(default_factory=list)
    gates: List[str] = Field(default_factory=list)


class ChallengeConfig(BaseModel):
    max_rounds: int = Field(3, ge=1)
    auto_escalation: bool = True
    default_action: str = Field("challenge", pattern="^(challenge|accept)$")


class GateConfig(BaseModel):
    required: List[str] = Field(default_factory=list)
    verdict_type: GateKind = GateKind.ADVISORY


class PhaseConfig(BaseModel):
    phase: int = Field(..., ge=0)
    name: str
    exit_gate: Optional[str] = None


class GovernanceConfig(BaseModel):
    self_modification: SelfModificationPolicy
    protected_assets: List[str] = Field(default_factory=list)


class ResourcesConfig(BaseModel):
    workers: int = Field(10, ge=0)
    model_capacity: int = Field(4, ge=0)
    token_budget: int = Field(1_000_000, ge=0)


class StateConfig(BaseModel):
    directory: str = "state"


class BoardConfig(BaseModel):
    """Validated board configuration consumed by every engine component."""

    name: str = Field(..., min_length=1)
    version: int = 1
    roles: Dict[str, RoleConfig] = Field(..., min_length=1)
    challenge: ChallengeConfig = Field(default_factory=ChallengeConfig)
    gates: Dict[str, GateConfig] = Field(default_factory=dict)
    phases: List[PhaseConfig] = Field(
        default_factory=lambda: [PhaseConfig(**p.to_dict()) for p in DEFAULT_PHASES]
    )
    governance: GovernanceConfig
    resources: ResourcesConfig = Field(default_factory=ResourcesConfig)
    state: StateConfig = Field(default_factory=StateConfig)

    @model_validator(mode="after")
    def _check_references(self) -> "BoardConfig":
        # ConfigurationError is not a ValueError, so pydantic lets it through
        # unwrapped and the offending key survives.
        for role_name, role in self.roles.items():
            for challenger in role.challenges:
                if challenger not in self.roles:
                    raise ConfigurationError(
                        f'Role "{role_name}" challenges non-existent role "{challenger}"',
                        config_key=f"roles.{role_name}.challenges",
                    )
        for gate_name, gate in self.gates.items():
            for required in gate.required:
                if required not in self.roles:
                    raise ConfigurationError(
                        f'Gate "{gate_name}" requires non-existent role "{required}"',
                        config_key=f"gates.{gate_name}.required",
                    )

        numbers = [p.phase for p in self.phases]
        if numbers != list(range(len(numbers))):
            raise ConfigurationError(
                f"Phases must be numbered contiguously from 0 (got {numbers})",
                config_key="phases",
            )
        exit_gates = [p.exit_gate for p in self.phases if p.exit_gate]
        if len(exit_gates) != len(set(exit_gates)):
            raise ConfigurationError("Phase exit gates must be unique",
                                     config_key="phases")
        return self

    def phase_definitions(self) -> List[PhaseDefinition]:
        return [PhaseDefinition(p.phase, p.name, p.exit_gate) for p in self.phases]

    def resource_pool(self) -> ResourcePool:
        return ResourcePool(
            workers=self.resources.workers,
            model_capacity=self.resources.model_capacity,
            token_budget=self.resources.token_budget,
        )


# ---------------------------------------------------------------------------
# Built-in board (software development)
# ---------------------------------------------------------------------------
DEFAULT_BOARD: Dict[str, Any] = {
    "name": "Software Development Board",
    "version": 1,
    "roles": {
        "ceo": {"title": "CEO", "responsibilities": ["planning", "resource_allocation"],
                "challenges": ["cto"]},
        "cto": {"title": "CTO", "responsibilities": ["architecture", "design_review"],
                "challenges": ["ceo"]},
        "qa": {"title": "QA Engineer", "responsibilities": ["gate_verdicts", "validation"]},
        "auditor": {"title": "Auditor", "responsibilities": ["audit", "budget_monitoring"]},
    },
    "challenge": {"max_rounds": 3, "auto_escalation": True, "default_action": "challenge"},
    "gates": {
        "planning_to_architecture": {"required": ["ceo"], "verdict_type": "advisory"},
        "architecture_to_implementation": {"required": ["cto"], "verdict_type": "structural"},
        "implementation_to_integration": {"required": ["qa"], "verdict_type": "structural"},
        "integration_to_delivery": {"required": ["qa", "auditor"], "verdict_type": "structural"},
    },
    "governance": {
        "self_modification": "prohibited",
        "protected_assets": ["board.yaml", "agents/*.md", "CONSTITUTION.md", "templates/*.yaml"],
    },
    "resources": {"workers": 10, "model_capacity": 4, "token_budget": 1_000_000},
    "state": {"directory": "state"},
}


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------
def build_board_config(raw: Dict[str, Any]) -> BoardConfig:
    """Validate an already-parsed configuration mapping.

    Raises:
        ConfigurationError: on any missing field or broken reference.
    """
    if not isinstance(raw, dict):
        raise ConfigurationError("Board config must be a mapping")
    if not raw.get("name"):
        raise ConfigurationError('Board config missing "name"', config_key="name")
    if not raw.get("roles"):
        raise ConfigurationError("Board config must define at least one role",
                                 config_key="roles")
    if not (raw.get("governance") or {}).get("self_modification"):
        raise ConfigurationError(
            "Board config must define governance.self_modification",
            config_key="governance.self_modification",
        )
    try:
        return BoardConfig.model_validate(raw)
    except ValidationError as exc:
        first = exc.errors()[0]
        key = ".".join(str(part) for part in first.get("loc", ()))
        raise ConfigurationError(f"Invalid board config at {key or '<root>'}: {first['msg']}",
                                 config_key=key) from exc


def load_board_config(config_path=None) -> BoardConfig:
    """Load and validate board.yaml.

    Args:
        config_path: Optional path override. When omitted, args/board.yaml
            (or $BOARDROOM_CONFIG) is used if present, else the built-in board.

    Returns:
        A validated BoardConfig.
    """
    if config_path is None:
        if not CONFIG_PATH.exists():
            logger.info("Using built-in board config (no %s)", CONFIG_PATH)
            return build_board_config(DEFAULT_BOARD)
        path = CONFIG_PATH
    else:
        path = Path(config_path)
        if not path.exists():
            raise ConfigurationError(f"Board config not found: {path}",
                                     config_key="config_path")

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Board config {path} is not valid YAML: {exc}") from exc
    except OSError as exc:
        raise ConfigurationError(f"Cannot read board config {path}: {exc}") from exc

    config = build_board_config(raw)
    logger.info("Loaded board config '%s': %d roles, %d gates from %s",
                config.name, len(config.roles), len(config.gates), path)
    return config
