from __future__ import annotations

import logging
import threading
from datetime import datetime
from pathlib import Path

from zeek_filter_pipeline.aggregate import DaySlot, aggregate_day


def _slot(out_dir: Path, artifacts=()) -> DaySlot:
    return DaySlot(day=datetime(2024, 1, 1), output_path=out_dir / "rdp-2024-01-01.json", artifacts=list(artifacts))


def test_empty_day_warns_and_writes_nothing(tmp_path: Path, unit_ctx, caplog) -> None:
    caplog.set_level(logging.INFO, logger="zeek_filter_pipeline")
    unit_ctx.global_barrier.register()
    slot = _slot(tmp_path)

    assert aggregate_day(unit_ctx, slot) is True

    assert not slot.output_path.exists()
    assert unit_ctx.global_barrier.pending == 0
    assert unit_ctx.progress.snapshot()["days"]["done"] == 1
    warnings = [r.getMessage() for r in caplog.records if r.levelno == logging.WARNING]
    assert any("No matches for date 2024/01/01" in m for m in warnings)
    assert any(r.getMessage() == "SUCCESS: 2024/01/01" for r in caplog.records)


def test_folds_artifacts_in_order_and_deletes_them(tmp_path: Path, unit_ctx) -> None:
    late = tmp_path / "2024010105rdp.05.log.json"
    early = tmp_path / "2024010100rdp.00.log.json"
    late.write_text("late\n")
    early.write_text("early\n")
    unit_ctx.global_barrier.register()
    slot = _slot(tmp_path, [late, early])

    assert aggregate_day(unit_ctx, slot) is True

    assert slot.output_path.read_text() == "early\nlate\n"
    assert not late.exists() and not early.exists()


def test_missing_artifact_is_tolerated(tmp_path: Path, unit_ctx) -> None:
    present = tmp_path / "2024010101rdp.01.log.json"
    present.write_text("ok\n")
    unit_ctx.global_barrier.register()
    slot = _slot(tmp_path, [tmp_path / "2024010100rdp.00.log.json", present])

    assert aggregate_day(unit_ctx, slot) is True
    assert slot.output_path.read_text() == "ok\n"


def test_waits_for_day_barrier(tmp_path: Path, unit_ctx) -> None:
    artifact = tmp_path / "2024010100rdp.00.log.json"
    unit_ctx.global_barrier.register()
    slot = _slot(tmp_path, [artifact])
    slot.barrier.register()

    t = threading.Thread(target=aggregate_day, args=(unit_ctx, slot))
    t.start()
    t.join(timeout=0.1)
    assert t.is_alive()
    assert not slot.output_path.exists()

    artifact.write_text("written late\n")
    slot.barrier.complete()
    t.join(timeout=5)

    assert not t.is_alive()
    assert slot.output_path.read_text() == "written late\n"
    assert unit_ctx.global_barrier.pending == 0


def test_concat_failure_reports_fail(tmp_path: Path, unit_ctx, caplog) -> None:
    artifact = tmp_path / "2024010100rdp.00.log.json"
    artifact.write_text("x\n")
    unit_ctx.global_barrier.register()
    slot = DaySlot(
        day=datetime(2024, 1, 1),
        output_path=tmp_path / "missing-dir" / "rdp-2024-01-01.json",
        artifacts=[artifact],
    )

    assert aggregate_day(unit_ctx, slot) is False

    assert any(r.getMessage() == "FAIL: 2024/01/01" for r in caplog.records)
    assert unit_ctx.global_barrier.pending == 0
    assert unit_ctx.progress.snapshot()["days"]["done"] == 1
