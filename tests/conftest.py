#!/usr/bin/env python3
# CUI // SP-CTI
"""Shared pytest fixtures for the Boardroom test suite.

Provides an isolated state root per test and the built-in software
development board config, plus a factory for variations of it.
"""

import copy
import sys
from pathlib import Path

import pytest

# Ensure project root is on sys.path
BASE_DIR = Path(__file__).resolve().parent.parent
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

from boardroom.core.config import DEFAULT_BOARD, build_board_config  # noqa: E402
from boardroom.core.errors import StorageError  # noqa: E402
from boardroom.storage.backend import InMemoryBackend  # noqa: E402


@pytest.fixture
def state_root(tmp_path):
    """Empty state root directory."""
    root = tmp_path / "state"
    root.mkdir()
    return root


@pytest.fixture
def board_config():
    """The built-in board: ceo<->cto challenge each other, qa gates integration."""
    return build_board_config(copy.deepcopy(DEFAULT_BOARD))


@pytest.fixture
def make_config():
    """Build a board config from the defaults with top-level sections replaced."""

    def _make(**sections):
        raw = copy.deepcopy(DEFAULT_BOARD)
        for key, value in sections.items():
            if isinstance(value, dict) and isinstance(raw.get(key), dict):
                raw[key] = {**raw[key], **value}
            else:
                raw[key] = value
        return build_board_config(raw)

    return _make


class FailingBackend(InMemoryBackend):
    """In-memory backend whose writes fail for documents ending in ``fail_on``."""

    def __init__(self):
        super().__init__()
        self.fail_on = None

    def write_json(self, relpath, data):
        if self.fail_on and relpath.endswith(self.fail_on):
            raise StorageError(f"Cannot write {relpath}: disk full", path=relpath)
        super().write_json(relpath, data)


@pytest.fixture
def failing_backend():
    """In-memory backend; set ``fail_on`` to make matching writes raise."""
    return FailingBackend()
