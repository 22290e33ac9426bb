# src/infrastructure/locks.py

import logging
import threading
import time
from contextlib import contextmanager
from typing import Iterable, Iterator

from src.domain.exceptions import LockTimeoutError

logger = logging.getLogger(__name__)


class ResourceLockRegistry:
    """
    Process-local exclusive locks keyed by string.

    Keys are always taken in sorted order so two callers asking for
    overlapping key sets cannot deadlock. Entries are dropped once no
    caller holds or waits on them.
    """

    def __init__(self) -> None:
        self._mutex = threading.Lock()
        self._entries: dict[str, list] = {}  # key -> [lock, users]

    @contextmanager
    def acquire(self, keys: Iterable[str], timeout: float) -> Iterator[None]:
        ordered = sorted(set(keys))
        deadline = time.monotonic() + timeout
        held: list[str] = []

        try:
            for key in ordered:
                lock = self._checkout(key)
                remaining = max(0.0, deadline - time.monotonic())
                if not lock.acquire(timeout=remaining):
                    self._release_entry(key)
                    logger.warning(
                        "Lock timeout on %s after %.2fs (holding %s)",
                        key,
                        timeout,
                        held,
                    )
                    raise LockTimeoutError(ordered, timeout)
                held.append(key)
            yield
        finally:
            for key in reversed(held):
                self._entries[key][0].release()
                self._release_entry(key)

    def held_keys(self) -> set[str]:
        with self._mutex:
            return {key for key, (lock, _) in self._entries.items() if lock.locked()}

    def _checkout(self, key: str) -> threading.Lock:
        with self._mutex:
            entry = self._entries.get(key)
            if entry is None:
                entry = [threading.Lock(), 0]
                self._entries[key] = entry
            entry[1] += 1
            return entry[0]

    def _release_entry(self, key: str) -> None:
        with self._mutex:
            entry = self._entries[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._entries[key]
