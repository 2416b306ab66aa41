"""Exclusive access to recognizer storage files."""

from __future__ import annotations

import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from ancv.core.exceptions import LockTimeoutError
from ancv.core.logger import get_logger

logger = get_logger("locks")


class StorageLockRegistry:
    """Thread-safe registry of one lock per recognizer storage path.

    Paths are resolved before lookup so different spellings of the same
    file share a lock.
    """

    def __init__(self) -> None:
        self._locks: dict[str, threading.Lock] = {}
        self._lock = threading.Lock()

    def _lock_for(self, path: Path) -> threading.Lock:
        key = os.path.abspath(os.fspath(path))
        with self._lock:
            if key not in self._locks:
                self._locks[key] = threading.Lock()
            return self._locks[key]

    @contextmanager
    def hold(self, path: Path, timeout: Optional[float] = None) -> Iterator[None]:
        """Hold the exclusive lock for ``path``.

        Args:
            path: Recognizer file to guard.
            timeout: Seconds to wait; None waits forever.

        Raises:
            LockTimeoutError: If the lock was not acquired in time.
        """
        lock = self._lock_for(path)
        acquired = lock.acquire(timeout=-1 if timeout is None else timeout)
        if not acquired:
            raise LockTimeoutError(
                f"Recognizer storage {path} is busy, gave up after {timeout}s"
            )
        logger.debug(f"Acquired storage lock: {path}")
        try:
            yield
        finally:
            lock.release()
            logger.debug(f"Released storage lock: {path}")

    def is_locked(self, path: Path) -> bool:
        return self._lock_for(path).locked()

    def get_lock_count(self) -> int:
        with self._lock:
            return len(self._locks)
