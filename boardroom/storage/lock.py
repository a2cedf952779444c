# CUI // SP-CTI
"""Single-writer lock for a state root.

Two processes sharing a state root otherwise race with last-writer-wins
semantics. Holding StateRootLock makes the second writer fail fast instead.

Usage:
    with StateRootLock("/var/boardroom/state"):
        ...  # exclusive access to the state root
"""

import logging
import os
import platform
from pathlib import Path
from typing import Optional, Union

from boardroom.core.errors import StorageError

logger = logging.getLogger("boardroom.storage.lock")

LOCK_FILE_NAME = ".boardroom.lock"


class StateRootLock:
    """Advisory exclusive lock on ``<state_root>/.boardroom.lock``.

    Uses ``fcntl.flock`` on POSIX and ``msvcrt.locking`` on Windows. The
    lock is non-blocking: acquiring a held lock raises StorageError.
    """

    def __init__(self, state_root: Union[str, Path]):
        self.path = os.path.join(str(state_root), LOCK_FILE_NAME)
        self._handle = None

    @property
    def held(self) -> bool:
        return self._handle is not None

    def acquire(self) -> "StateRootLock":
        if self._handle is not None:
            return self
        try:
            os.makedirs(os.path.dirname(self.path), exist_ok=True)
            handle = open(self.path, "a+", encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"Cannot open lock file {self.path}: {exc}",
                               path=self.path) from exc
        try:
            _lock(handle)
        except OSError as exc:
            handle.close()
            raise StorageError(
                f"State root is locked by another writer: {self.path}",
                path=self.path,
            ) from exc

        handle.seek(0)
        handle.truncate()
        handle.write(str(os.getpid()))
        handle.flush()
        self._handle = handle
        logger.debug("Acquired state root lock %s", self.path)
        return self

    def release(self) -> None:
        handle: Optional[object] = self._handle
        if handle is None:
            return
        self._handle = None
        try:
            _unlock(handle)
        except OSError as exc:
            logger.warning("Failed to release lock %s: %s", self.path, exc)
        finally:
            handle.close()
        logger.debug("Released state root lock %s", self.path)

    def __enter__(self) -> "StateRootLock":
        return self.acquire()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


def _lock(handle) -> None:
    if platform.system() == "Windows":
        import msvcrt

        handle.seek(0)
        msvcrt.locking(handle.fileno(), msvcrt.LK_NBLCK, 1)
    else:
        import fcntl

        fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)


def _unlock(handle) -> None:
    if platform.system() == "Windows":
        import msvcrt

        handle.seek(0)
        msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)
    else:
        import fcntl

        fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
