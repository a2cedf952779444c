#!/usr/bin/env python3
# CUI // SP-CTI
"""Boardroom Storage — pluggable state backends.

Every persisted component (decision ledger, phase state, gate history,
project registry) reads and writes whole JSON documents addressed by a path
relative to the state root. Rewriting the whole document on each mutation is
an implementation detail of this layer; a log-structured or database backend
can replace JsonFileBackend without touching the components.

Backends (ABC + implementations):
    JsonFileBackend — one JSON file per document, atomic temp-file rename.
    InMemoryBackend — process-local documents, used by tests and embedders.

Corruption policy: an unreadable document is moved aside to
``<name>.corrupt-<UTC stamp>`` and CorruptStateError is raised; callers log
it and continue from an empty document. A document that parses but does
not decode into records is moved aside the same way through quarantine().
"""

import abc
import copy
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from boardroom.compat.datetime_utils import file_stamp
from boardroom.core.errors import CorruptStateError, StorageError

logger = logging.getLogger("boardroom.storage")


# ---------------------------------------------------------------------------
# ABC
# ---------------------------------------------------------------------------
class StateBackend(abc.ABC):
    """Abstract document store rooted at a single state directory."""

    @property
    @abc.abstractmethod
    def root(self) -> str:
        """Absolute state root this backend serves."""

    @abc.abstractmethod
    def read_json(self, relpath: str, default: Any = None) -> Any:
        """Return the parsed document, or ``default`` when it does not exist.

        Raises:
            CorruptStateError: the document exists but cannot be parsed
                (it has been quarantined).
            StorageError: any other I/O failure.
        """

    @abc.abstractmethod
    def write_json(self, relpath: str, data: Any) -> None:
        """Replace the whole document with ``data``."""

    @abc.abstractmethod
    def delete(self, relpath: str) -> bool:
        """Remove a document. Returns False when it did not exist."""

    @abc.abstractmethod
    def exists(self, relpath: str) -> bool:
        """Check whether a document exists."""

    @abc.abstractmethod
    def list_dirs(self, relpath: str = "") -> List[str]:
        """List immediate sub-directory names below ``relpath``."""

    @abc.abstractmethod
    def quarantine(self, relpath: str) -> Optional[str]:
        """Move a parseable but malformed document aside.

        Returns the quarantine location, or None when the document did not
        exist.
        """

    def path_for(self, relpath: str) -> str:
        """Absolute path a document or directory maps to."""
        return os.path.join(self.root, relpath) if relpath else self.root


# ---------------------------------------------------------------------------
# JSON file implementation (default)
# ---------------------------------------------------------------------------
class JsonFileBackend(StateBackend):
    """Filesystem backend: one pretty-printed JSON file per document.

    Writes go to a temp file in the same directory, are fsync'd, then
    renamed over the target with ``os.replace`` so readers never observe a
    half-written document.
    """

    def __init__(self, root: Union[str, Path]):
        self._root = str(Path(root).absolute())
        try:
            os.makedirs(self._root, exist_ok=True)
        except OSError as exc:
            raise StorageError(
                f"Cannot create state root {self._root}: {exc}", path=self._root
            ) from exc

    @property
    def root(self) -> str:
        return self._root

    def read_json(self, relpath: str, default: Any = None) -> Any:
        path = self.path_for(relpath)
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = f.read()
        except FileNotFoundError:
            return default
        except OSError as exc:
            raise StorageError(f"Cannot read {path}: {exc}", path=path) from exc

        try:
            return json.loads(raw)
        except ValueError as exc:
            quarantined = self._quarantine(path)
            logger.error("Unreadable state document %s quarantined to %s: %s",
                         path, quarantined, exc)
            raise CorruptStateError(
                f"State document {path} is corrupt (moved to {quarantined})",
                path=path,
                quarantined_to=quarantined,
            ) from exc

    def write_json(self, relpath: str, data: Any) -> None:
        path = self.path_for(relpath)
        directory = os.path.dirname(path)
        tmp_name = ""
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{os.path.basename(path)}.tmp.", dir=directory
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except OSError as exc:
            raise StorageError(f"Cannot write {path}: {exc}", path=path) from exc
        finally:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)

    def delete(self, relpath: str) -> bool:
        path = self.path_for(relpath)
        try:
            os.unlink(path)
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise StorageError(f"Cannot delete {path}: {exc}", path=path) from exc
        return True

    def exists(self, relpath: str) -> bool:
        return os.path.isfile(self.path_for(relpath))

    def list_dirs(self, relpath: str = "") -> List[str]:
        base = self.path_for(relpath)
        if not os.path.isdir(base):
            return []
        try:
            return sorted(
                name for name in os.listdir(base)
                if os.path.isdir(os.path.join(base, name))
            )
        except OSError as exc:
            raise StorageError(f"Cannot list {base}: {exc}", path=base) from exc

    def quarantine(self, relpath: str) -> Optional[str]:
        path = self.path_for(relpath)
        if not os.path.isfile(path):
            return None
        return self._quarantine(path)

    def _quarantine(self, path: str) -> str:
        target = f"{path}.corrupt-{file_stamp()}"
        try:
            os.replace(path, target)
        except OSError as exc:
            raise StorageError(
                f"Cannot quarantine corrupt document {path}: {exc}", path=path
            ) from exc
        return target


# ---------------------------------------------------------------------------
# In-memory implementation
# ---------------------------------------------------------------------------
class InMemoryBackend(StateBackend):
    """Process-local backend. Documents are deep-copied on read and write."""

    def __init__(self, root: str = "/boardroom-memory"):
        self._root = root
        self._documents: Dict[str, Any] = {}

    @property
    def root(self) -> str:
        return self._root

    def read_json(self, relpath: str, default: Any = None) -> Any:
        key = self._key(relpath)
        if key not in self._documents:
            return default
        return copy.deepcopy(self._documents[key])

    def write_json(self, relpath: str, data: Any) -> None:
        # Round-trip through JSON so non-serializable data fails like on disk.
        self._documents[self._key(relpath)] = json.loads(json.dumps(data))

    def delete(self, relpath: str) -> bool:
        return self._documents.pop(self._key(relpath), None) is not None

    def exists(self, relpath: str) -> bool:
        return self._key(relpath) in self._documents

    def list_dirs(self, relpath: str = "") -> List[str]:
        prefix = self._key(relpath)
        prefix = f"{prefix}/" if prefix else ""
        names = set()
        for key in self._documents:
            if key.startswith(prefix):
                rest = key[len(prefix):]
                if "/" in rest:
                    names.add(rest.split("/", 1)[0])
        return sorted(names)

    def quarantine(self, relpath: str) -> Optional[str]:
        key = self._key(relpath)
        if key not in self._documents:
            return None
        target = f"{key}.corrupt-{file_stamp()}"
        self._documents[target] = self._documents.pop(key)
        return self.path_for(target)

    @staticmethod
    def _key(relpath: str) -> str:
        return relpath.replace("\\", "/").strip("/")
