"""Pipeline driver.

Walks the requested time range day by day and hour by hour, dispatching one
filter task per matching log file and one aggregator per day:

    for each day in range:
        for each hour of that day in range:
            glob <logdir>/<YYYY-MM-DD>/<type>.<HH>*
            register + dispatch a task per match      -> <outdir>/<YYYYMMDDHH><name>.json
        register + dispatch the day's aggregator      -> <outdir>/<type>-<YYYY-MM-DD>.json
    wait for every day
    optionally fold every day into <outdir>/<type>.json or stdout

Tasks run on a thread pool sized by the parallelism setting, so at most that
many filter processes are alive at once. Aggregators run on their own pool so
a day waiting on its tasks never holds a task slot. Failures inside a task or
a day are logged and isolated; only configuration problems raised before
dispatch propagate.
"""

from __future__ import annotations

import glob
import logging
import os
import shutil
import sys
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import BinaryIO, List, Optional, Union

from .aggregate import DaySlot, aggregate_day
from .barrier import CountingBarrier
from .concat import concat_files, concat_to_stream
from .config import FinalMode, PipelineConfig
from .dirs import ensure_output_dir
from .errors import AggregationError, DiscoveryError
from .progress import ProgressTracker
from .runner import run_task
from .timeutil import (
    TIME_FORMAT_HUMAN,
    day_count,
    day_output_name,
    final_output_name,
    hour_glob,
    iter_days,
    iter_hours,
    temp_artifact_name,
)

logger = logging.getLogger(__name__)


@dataclass
class PipelineContext:
    """Shared coordination state handed to every dispatched unit."""

    config: PipelineConfig
    progress: ProgressTracker
    global_barrier: CountingBarrier = field(default_factory=lambda: CountingBarrier("all days"))
    task_pool: Optional[ThreadPoolExecutor] = None
    day_pool: Optional[ThreadPoolExecutor] = None


@dataclass
class PipelineResult:
    output_dir: Path
    day_files: List[Path] = field(default_factory=list)
    final_output: Optional[Union[Path, str]] = None
    tasks_dispatched: int = 0
    days_dispatched: int = 0


class PipelineDriver:
    """Runs one pipeline invocation end to end."""

    def __init__(
        self,
        config: PipelineConfig,
        progress: Optional[ProgressTracker] = None,
        stdout: Optional[BinaryIO] = None,
    ):
        self.config = config
        self.progress = progress or ProgressTracker(display=config.show_progress)
        self.stdout = stdout
        self.day_files: List[Path] = []
        self.tasks_dispatched = 0
        self.days_dispatched = 0

    def _check_free_space(self, path: Path) -> None:
        try:
            free_gb = shutil.disk_usage(str(path)).free / (1024 ** 3)
        except OSError as e:
            logger.debug(f"could not check free space at {path}: {e}")
            return
        if free_gb < self.config.min_free_space_gb:
            logger.warning(
                f"Low disk space at {path}: {free_gb:.1f} GB free, want {self.config.min_free_space_gb:.1f} GB"
            )

    def _discover(self, hour: datetime) -> List[str]:
        pattern = hour_glob(self.config.log_dir, self.config.log_type, hour)
        try:
            return sorted(glob.glob(pattern))
        except (OSError, ValueError) as e:
            err = DiscoveryError(f"glob '{pattern}' failed: {e}")
            logger.error(f"ERROR ({hour.strftime(TIME_FORMAT_HUMAN)}): {err}")
            return []

    def _iterate_hours(self, ctx: PipelineContext, slot: DaySlot) -> None:
        out_dir = self.config.output_dir
        for hour in iter_hours(slot.day, self.config.time_range):
            matches = self._discover(hour)
            self.progress.add_task_total(len(matches))

            for log_file in matches:
                temp_file = out_dir / temp_artifact_name(hour, log_file)
                slot.artifacts.append(temp_file)
                slot.barrier.register()
                logger.debug(f"queued: {log_file} -> {temp_file}")
                ctx.task_pool.submit(
                    run_task, ctx, self.config.command, log_file, temp_file, hour, slot.barrier
                )
                self.tasks_dispatched += 1

    def _dispatch(self, ctx: PipelineContext) -> None:
        for day in iter_days(self.config.time_range):
            slot = DaySlot(day=day, output_path=self.config.output_dir / day_output_name(self.config.log_type, day))
            self._iterate_hours(ctx, slot)

            ctx.global_barrier.register()
            self.day_files.append(slot.output_path)
            ctx.day_pool.submit(aggregate_day, ctx, slot)
            self.days_dispatched += 1

    def _finalize(self, out_dir: Path) -> Optional[Union[Path, str]]:
        mode = self.config.final_mode
        if mode == FinalMode.STDOUT:
            stream = self.stdout if self.stdout is not None else sys.stdout.buffer
            try:
                concat_to_stream(self.day_files, stream, delete_input=True, ignore_missing=True)
            except (AggregationError, OSError) as e:
                logger.error(f"ERROR: writing to stdout failed: {e}")
            try:
                os.rmdir(out_dir)
            except OSError as e:
                logger.error(f"ERROR: could not remove temp directory '{out_dir}': {e}")
            self.day_files = []
            return "-"

        if mode == FinalMode.SINGLE_FILE:
            final_path = out_dir / final_output_name(self.config.log_type)
            logger.info(f"Concat flag set. Concatting all output into a single {final_path.name} file.")
            try:
                concat_files(self.day_files, final_path, delete_input=True, ignore_missing=True)
            except (AggregationError, OSError) as e:
                logger.error(f"ERROR: {e}")
            self.day_files = [p for p in self.day_files if p.exists()]
            return final_path

        self.day_files = [p for p in self.day_files if p.exists()]
        return None

    def run(self) -> PipelineResult:
        out_dir = ensure_output_dir(self.config.output_dir, empty=True)
        self._check_free_space(out_dir)

        workers = self.config.parallelism
        self.progress.set_day_total(day_count(self.config.time_range))

        ctx = PipelineContext(config=self.config, progress=self.progress)
        try:
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="filter") as task_pool, \
                    ThreadPoolExecutor(max_workers=workers, thread_name_prefix="day") as day_pool:
                ctx.task_pool = task_pool
                ctx.day_pool = day_pool
                self._dispatch(ctx)

                logger.info("All routines queued. Waiting for them to finish.")
                ctx.global_barrier.wait()

            final_output = self._finalize(out_dir)
        finally:
            self.progress.finalize()

        return PipelineResult(
            output_dir=out_dir,
            day_files=list(self.day_files),
            final_output=final_output,
            tasks_dispatched=self.tasks_dispatched,
            days_dispatched=self.days_dispatched,
        )


def run_pipeline(
    config: PipelineConfig,
    progress: Optional[ProgressTracker] = None,
    stdout: Optional[BinaryIO] = None,
) -> PipelineResult:
    return PipelineDriver(config, progress=progress, stdout=stdout).run()
