# CUI // SP-CTI
"""Boardroom state storage (JSON documents behind a backend interface)."""
from boardroom.storage.backend import (  # noqa: F401
    InMemoryBackend,
    JsonFileBackend,
    StateBackend,
)
from boardroom.storage.lock import StateRootLock  # noqa: F401
