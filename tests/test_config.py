# CUI // SP-CTI
"""Tests for boardroom.core.config — board.yaml loading and validation."""
import copy
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest
import yaml

from boardroom.core import config as config_module
from boardroom.core.config import (
    DEFAULT_BOARD,
    BoardConfig,
    build_board_config,
    load_board_config,
)
from boardroom.core.errors import ConfigurationError
from boardroom.schemas.gates import GateKind
from boardroom.schemas.governance import SelfModificationPolicy


def _raw(**changes):
    raw = copy.deepcopy(DEFAULT_BOARD)
    raw.update(changes)
    return raw


class TestLoadBoardConfig:

    def test_loads_yaml_file(self, tmp_path):
        path = tmp_path / "board.yaml"
        path.write_text(yaml.safe_dump(DEFAULT_BOARD), encoding="utf-8")
        config = load_board_config(path)
        assert isinstance(config, BoardConfig)
        assert config.name == "Software Development Board"
        assert config.roles["ceo"].challenges == ["cto"]

    def test_repo_board_yaml_is_valid(self):
        config = load_board_config(config_module.BASE_DIR / "args" / "board.yaml")
        assert config.gates["implementation_to_integration"].required == ["qa"]
        assert config.gates["implementation_to_integration"].verdict_type == GateKind.STRUCTURAL

    def test_builtin_board_when_no_file(self, monkeypatch, tmp_path):
        monkeypatch.setattr(config_module, "CONFIG_PATH", tmp_path / "missing.yaml")
        config = load_board_config()
        assert config.name == DEFAULT_BOARD["name"]
        assert [p.name for p in config.phase_definitions()] == [
            "planning", "architecture", "implementation", "integration", "delivery",
        ]

    def test_explicit_missing_path_raises(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_board_config(tmp_path / "absent.yaml")

    def test_invalid_yaml_raises(self, tmp_path):
        path = tmp_path / "board.yaml"
        path.write_text("name: [unclosed", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="not valid YAML"):
            load_board_config(path)


class TestValidation:

    def test_missing_name(self):
        with pytest.raises(ConfigurationError) as exc_info:
            build_board_config(_raw(name=""))
        assert exc_info.value.config_key == "name"

    def test_no_roles(self):
        with pytest.raises(ConfigurationError) as exc_info:
            build_board_config(_raw(roles={}))
        assert exc_info.value.config_key == "roles"

    def test_missing_self_modification(self):
        with pytest.raises(ConfigurationError) as exc_info:
            build_board_config(_raw(governance={"protected_assets": []}))
        assert exc_info.value.config_key == "governance.self_modification"

    def test_challenge_references_unknown_role(self):
        roles = copy.deepcopy(DEFAULT_BOARD["roles"])
        roles["ceo"]["challenges"] = ["cfo"]
        with pytest.raises(ConfigurationError, match="non-existent role") as exc_info:
            build_board_config(_raw(roles=roles))
        assert exc_info.value.config_key == "roles.ceo.challenges"

    def test_gate_references_unknown_role(self):
        gates = {"implementation_to_integration": {"required": ["security"]}}
        with pytest.raises(ConfigurationError) as exc_info:
            build_board_config(_raw(gates=gates))
        assert exc_info.value.config_key == "gates.implementation_to_integration.required"

    def test_max_rounds_must_be_positive(self):
        with pytest.raises(ConfigurationError) as exc_info:
            build_board_config(_raw(challenge={"max_rounds": 0}))
        assert exc_info.value.config_key == "challenge.max_rounds"

    def test_phases_must_be_contiguous(self):
        phases = [{"phase": 0, "name": "planning", "exit_gate": "a"},
                  {"phase": 2, "name": "delivery"}]
        with pytest.raises(ConfigurationError) as exc_info:
            build_board_config(_raw(phases=phases))
        assert exc_info.value.config_key == "phases"

    def test_exit_gates_must_be_unique(self):
        phases = [{"phase": 0, "name": "a", "exit_gate": "same"},
                  {"phase": 1, "name": "b", "exit_gate": "same"},
                  {"phase": 2, "name": "c"}]
        with pytest.raises(ConfigurationError):
            build_board_config(_raw(phases=phases))

    def test_unknown_default_action(self):
        with pytest.raises(ConfigurationError):
            build_board_config(_raw(challenge={"max_rounds": 3, "default_action": "ignore"}))

    def test_restricted_policy_accepted(self):
        config = build_board_config(_raw(governance={
            "self_modification": "restricted", "protected_assets": ["board.yaml"],
        }))
        assert config.governance.self_modification == SelfModificationPolicy.RESTRICTED

    def test_resource_pool(self, board_config):
        pool = board_config.resource_pool()
        assert (pool.workers, pool.model_capacity, pool.token_budget) == (10, 4, 1_000_000)
