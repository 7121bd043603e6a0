from __future__ import annotations

import threading
import time

from quizpath.locks import KeyedLock


def test_same_key_serializes() -> None:
    locks = KeyedLock()
    active = 0
    peak = 0
    guard = threading.Lock()

    def work() -> None:
        nonlocal active, peak
        with locks.hold("user-1"):
            with guard:
                active += 1
                peak = max(peak, active)
            time.sleep(0.01)
            with guard:
                active -= 1

    threads = [threading.Thread(target=work) for _ in range(5)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert peak == 1
    assert len(locks) == 0


def test_hold_is_reentrant() -> None:
    locks = KeyedLock()
    with locks.hold("k"):
        with locks.hold("k"):
            assert len(locks) == 1
    assert len(locks) == 0


def test_hold_all_deduplicates_keys() -> None:
    locks = KeyedLock()
    with locks.hold_all(("user", 1), ("progress", 1, "t"), ("user", 1)):
        assert len(locks) == 2
    assert len(locks) == 0
