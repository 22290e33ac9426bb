# tests/unit/test_locks.py

import threading
import time

import pytest

from src.domain.exceptions import LockTimeoutError
from src.infrastructure.locks import ResourceLockRegistry


def test_acquire_and_release():
    registry = ResourceLockRegistry()

    with registry.acquire(["equipment:eq-1", "booking:b-1"], timeout=1.0):
        assert registry.held_keys() == {"equipment:eq-1", "booking:b-1"}

    assert registry.held_keys() == set()


def test_timeout_raises_and_releases_partial_holds():
    registry = ResourceLockRegistry()
    blocked = threading.Event()
    release = threading.Event()

    def holder():
        with registry.acquire(["provider_calendar:default"], timeout=1.0):
            blocked.set()
            release.wait(2.0)

    thread = threading.Thread(target=holder)
    thread.start()
    blocked.wait(1.0)

    started = time.monotonic()
    with pytest.raises(LockTimeoutError) as exc_info:
        with registry.acquire(["booking:b-1", "provider_calendar:default"], timeout=0.1):
            pass
    elapsed = time.monotonic() - started

    assert elapsed < 1.0
    assert exc_info.value.keys == ["booking:b-1", "provider_calendar:default"]
    # booking:b-1 was taken before the wait and must have been let go.
    assert registry.held_keys() == {"provider_calendar:default"}

    release.set()
    thread.join()
    assert registry.held_keys() == set()


def test_disjoint_keys_do_not_block_each_other():
    registry = ResourceLockRegistry()

    with registry.acquire(["equipment:eq-1"], timeout=0.1):
        with registry.acquire(["equipment:eq-2"], timeout=0.1):
            assert registry.held_keys() == {"equipment:eq-1", "equipment:eq-2"}


def test_overlapping_key_sets_in_any_order_do_not_deadlock():
    registry = ResourceLockRegistry()
    counter = {"value": 0}

    def worker(keys):
        for _ in range(50):
            with registry.acquire(keys, timeout=5.0):
                counter["value"] += 1

    threads = [
        threading.Thread(target=worker, args=(["a", "b"],)),
        threading.Thread(target=worker, args=(["b", "a"],)),
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert counter["value"] == 100
