from __future__ import annotations

import io
import threading

from zeek_filter_pipeline.progress import ProgressTracker


def test_raising_total_keeps_done() -> None:
    p = ProgressTracker()
    p.add_task_total(2)
    p.task_done()
    p.add_task_total(3)
    p.add_task_total(0)

    snap = p.snapshot()
    assert snap["tasks"] == {"total": 5, "done": 1}
    assert snap["days"] == {"total": 0, "done": 0}


def test_concurrent_updates_are_not_lost() -> None:
    p = ProgressTracker()
    p.set_day_total(10)

    def worker() -> None:
        for _ in range(500):
            p.add_task_total(1)
            p.task_done()

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    snap = p.snapshot()
    assert snap["tasks"] == {"total": 4000, "done": 4000}
    assert snap["days"]["total"] == 10


def test_display_writes_to_stream_and_finalize_is_idempotent() -> None:
    buf = io.StringIO()
    p = ProgressTracker(display=True, stream=buf)
    p.set_day_total(2)
    p.add_task_total(4)
    p.task_done()
    p.day_done()

    p.finalize()
    p.finalize()

    out = buf.getvalue()
    assert "Days Complete" in out
    assert "Log Parses Complete" in out
