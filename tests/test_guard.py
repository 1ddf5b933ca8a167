"""Non-reentrant guard."""

import threading
import time

import pytest

from eth_batch_savings.errors import ReentrantCall
from eth_batch_savings.guard import NonReentrantGuard, non_reentrant


class Counter:
    def __init__(self):
        self.guard = NonReentrantGuard()
        self.calls = 0

    @non_reentrant
    def bump(self, nested: bool = False):
        self.calls += 1
        if nested:
            self.bump()

    @non_reentrant
    def fail(self):
        raise RuntimeError("Boom")

    @non_reentrant
    def slow(self, log: list, name: str):
        log.append(f"{name} in")
        time.sleep(0.05)
        log.append(f"{name} out")


def test_nested_call_refused():
    counter = Counter()
    with pytest.raises(ReentrantCall):
        counter.bump(nested=True)
    assert not counter.guard.entered

    counter.bump()
    assert counter.calls == 2


def test_released_on_exception():
    counter = Counter()
    with pytest.raises(RuntimeError):
        counter.fail()
    assert not counter.guard.entered
    counter.bump()
    assert counter.calls == 1


def test_threads_serialised():
    """Calls from different threads wait for each other instead of interleaving."""
    counter = Counter()
    log = []
    threads = [threading.Thread(target=counter.slow, args=(log, name)) for name in ("a", "b")]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(log) == 4
    assert log[0][0] == log[1][0]
    assert log[2][0] == log[3][0]
