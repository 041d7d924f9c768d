from __future__ import annotations

import threading
import time

import pytest

from zeek_filter_pipeline.barrier import CountingBarrier


def test_wait_returns_immediately_when_nothing_registered() -> None:
    assert CountingBarrier("empty").wait(timeout=0.01) is True


def test_wait_times_out_while_pending() -> None:
    b = CountingBarrier("x")
    b.register(2)
    b.complete()
    assert b.pending == 1
    assert b.wait(timeout=0.05) is False


def test_waiter_released_after_all_complete() -> None:
    b = CountingBarrier("x")
    b.register(5)
    released = threading.Event()

    def waiter() -> None:
        b.wait()
        released.set()

    t = threading.Thread(target=waiter)
    t.start()

    workers = []
    for _ in range(5):
        w = threading.Thread(target=lambda: (time.sleep(0.01), b.complete()))
        workers.append(w)
        w.start()
    for w in workers:
        w.join()

    t.join(timeout=5)
    assert released.is_set()
    assert b.pending == 0


def test_over_completion_is_an_error() -> None:
    b = CountingBarrier("x")
    b.register()
    b.complete()
    with pytest.raises(ValueError):
        b.complete()


def test_negative_register_is_rejected() -> None:
    with pytest.raises(ValueError):
        CountingBarrier().register(-1)
