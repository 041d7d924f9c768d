"""Per-day aggregation of task artifacts."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, List

from .barrier import CountingBarrier
from .concat import concat_files
from .errors import AggregationError
from .timeutil import TIME_FORMAT_DATE

if TYPE_CHECKING:
    from .pipeline import PipelineContext

logger = logging.getLogger(__name__)


@dataclass
class DaySlot:
    """One calendar day: its task barrier, temp artifacts and output file."""

    day: datetime
    output_path: Path
    artifacts: List[Path] = field(default_factory=list)
    barrier: CountingBarrier = field(default_factory=CountingBarrier)

    def __post_init__(self):
        if not self.barrier.name:
            self.barrier.name = self.label

    @property
    def label(self) -> str:
        return self.day.strftime(TIME_FORMAT_DATE)


def aggregate_day(ctx: "PipelineContext", day: DaySlot) -> bool:
    """Wait for the day's tasks, then fold their artifacts into the day file.

    Returns False only when concatenation failed; an empty day is a warning.
    The global barrier and day progress are signalled exactly once.
    """

    failure = False
    try:
        day.barrier.wait()
        logger.info(f"All logs for {day.label} finished. Concatenating into '{day.output_path}'")

        if not day.artifacts:
            logger.warning(f"No matches for date {day.label}. Skipping.")
        else:
            try:
                folded = concat_files(day.artifacts, day.output_path, delete_input=True)
                logger.debug(f"folded {folded}/{len(day.artifacts)} artifact(s) into {day.output_path}")
            except AggregationError as e:
                logger.error(f"ERROR: {e}")
                failure = True
            except OSError as e:
                logger.error(f"ERROR: writing {day.output_path} failed: {e}")
                failure = True
    except Exception:
        logger.exception(f"ERROR: unexpected failure aggregating {day.label}")
        failure = True
    finally:
        if failure:
            logger.error(f"FAIL: {day.label}")
        else:
            logger.info(f"SUCCESS: {day.label}")
        ctx.global_barrier.complete()
        ctx.progress.day_done()

    return not failure
