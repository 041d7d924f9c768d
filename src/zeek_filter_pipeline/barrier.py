"""Counting barrier for a dynamically registered set of concurrent units."""

from __future__ import annotations

import threading
from typing import Optional


class CountingBarrier:
    """Blocks waiters until every registered unit has completed.

    Units are registered before they are dispatched, so a waiter that starts
    after dispatch sees the full count.
    """

    def __init__(self, name: str = ""):
        self.name = name
        self._pending = 0
        self._cond = threading.Condition()

    @property
    def pending(self) -> int:
        with self._cond:
            return self._pending

    def register(self, count: int = 1) -> None:
        if count < 0:
            raise ValueError("count must be non-negative")
        with self._cond:
            self._pending += count

    def complete(self) -> None:
        with self._cond:
            if self._pending <= 0:
                raise ValueError(f"barrier {self.name!r} completed more times than registered")
            self._pending -= 1
            if self._pending == 0:
                self._cond.notify_all()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait for the count to reach zero; False if ``timeout`` expired first."""
        with self._cond:
            return self._cond.wait_for(lambda: self._pending == 0, timeout=timeout)

    def __repr__(self) -> str:
        return f"CountingBarrier(name={self.name!r}, pending={self.pending})"
