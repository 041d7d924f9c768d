"""Day and task progress counters with an optional live display."""

from __future__ import annotations

import sys
import threading
from dataclasses import asdict, dataclass
from typing import Dict, Optional, TextIO

from tqdm import tqdm


@dataclass
class ProgressCounter:
    total: int = 0
    done: int = 0


class ProgressTracker:
    """Tracks days and tasks completed.

    The task total is not known up front; the driver raises it as each hour
    is scanned while workers are already incrementing ``done``. Every mutation
    goes through one lock.
    """

    def __init__(self, display: bool = False, stream: Optional[TextIO] = None):
        self.days = ProgressCounter()
        self.tasks = ProgressCounter()
        self.lock = threading.Lock()
        self._finalized = False
        self._day_bar = None
        self._task_bar = None
        if display:
            out = stream or sys.stderr
            self._task_bar = tqdm(total=0, desc="Log Parses Complete", unit="log", position=0, file=out)
            self._day_bar = tqdm(total=0, desc="Days Complete", unit="day", position=1, file=out)

    @staticmethod
    def _sync(bar, counter: ProgressCounter) -> None:
        if bar is None:
            return
        bar.total = counter.total
        bar.n = counter.done
        bar.refresh()

    def set_day_total(self, total: int) -> None:
        with self.lock:
            self.days.total = int(total)
            self._sync(self._day_bar, self.days)

    def set_task_total(self, total: int) -> None:
        with self.lock:
            self.tasks.total = int(total)
            self._sync(self._task_bar, self.tasks)

    def add_task_total(self, count: int) -> None:
        if count <= 0:
            return
        with self.lock:
            self.tasks.total += int(count)
            self._sync(self._task_bar, self.tasks)

    def day_done(self) -> None:
        with self.lock:
            self.days.done += 1
            self._sync(self._day_bar, self.days)

    def task_done(self) -> None:
        with self.lock:
            self.tasks.done += 1
            self._sync(self._task_bar, self.tasks)

    def snapshot(self) -> Dict[str, Dict[str, int]]:
        with self.lock:
            return {"days": asdict(self.days), "tasks": asdict(self.tasks)}

    def finalize(self) -> None:
        """Close the live display. Safe to call more than once."""
        with self.lock:
            if self._finalized:
                return
            self._finalized = True
            for bar, counter in ((self._task_bar, self.tasks), (self._day_bar, self.days)):
                if bar is not None:
                    self._sync(bar, counter)
                    bar.close()
