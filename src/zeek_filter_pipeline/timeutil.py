"""Time range parsing and the day/hour grid the pipeline walks.

All datetimes are naive local time. Days are cut at local midnight and hours
at the top of the hour, so a range that starts or ends mid-day only covers the
hours inside it.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterator, Optional

from .errors import ConfigurationError

TIME_FORMAT_SHORT = "%Y/%m/%d:%H"
TIME_FORMAT_LONG_NUM = "%Y%m%d:%H:%M:%S"
TIME_FORMAT_HUMAN = "%Y/%m/%d %H:%M:%S"
TIME_FORMAT_DATE = "%Y/%m/%d"
TIME_FORMAT_HOUR_NUM = "%Y%m%d%H"

ONE_HOUR = timedelta(hours=1)
ONE_DAY = timedelta(days=1)


def floor_hour(dt: datetime) -> datetime:
    return dt.replace(minute=0, second=0, microsecond=0)


def floor_day(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


@dataclass(frozen=True)
class TimeRange:
    """Inclusive ``[start, end]`` range at hour precision."""

    start: datetime
    end: datetime

    def __post_init__(self):
        object.__setattr__(self, "start", floor_hour(self.start))
        object.__setattr__(self, "end", floor_hour(self.end))
        if self.start > self.end:
            raise ConfigurationError(
                f"start time {self.start.strftime(TIME_FORMAT_HUMAN)} is after "
                f"end time {self.end.strftime(TIME_FORMAT_HUMAN)}"
            )

    def __str__(self) -> str:
        return f"{self.start.strftime(TIME_FORMAT_HUMAN)} - {self.end.strftime(TIME_FORMAT_HUMAN)}"


def parse_timestamp(text: str) -> datetime:
    """Parse ``YYYY/MM/DD:HH``."""
    try:
        return datetime.strptime(text.strip(), TIME_FORMAT_SHORT)
    except ValueError as e:
        raise ConfigurationError(f"malformed timestamp '{text}': expected YYYY/MM/DD:HH") from e


def parse_time_range(text: str) -> TimeRange:
    """Parse ``YYYY/MM/DD:HH-YYYY/MM/DD:HH`` into a :class:`TimeRange`."""
    parts = text.split("-")
    if len(parts) != 2:
        raise ConfigurationError(
            "Provided dates malformed. Please provide dates in the following format: "
            "YYYY/MM/DD:HH-YYYY/MM/DD:HH"
        )
    return TimeRange(parse_timestamp(parts[0]), parse_timestamp(parts[1]))


def default_time_range(now: Optional[datetime] = None) -> TimeRange:
    """The last 24 hours, ending at the current hour."""
    now = now or datetime.now()
    return TimeRange(now - ONE_DAY, now)


def format_time_range(time_range: TimeRange) -> str:
    return f"{time_range.start.strftime(TIME_FORMAT_SHORT)}-{time_range.end.strftime(TIME_FORMAT_SHORT)}"


def iter_days(time_range: TimeRange) -> Iterator[datetime]:
    """Yield the local midnight of every calendar day the range touches."""
    day = floor_day(time_range.start)
    last = floor_day(time_range.end)
    while day <= last:
        yield day
        day = day + ONE_DAY


def iter_hours(day: datetime, time_range: TimeRange) -> Iterator[datetime]:
    """Yield the hours of ``day`` that fall inside ``time_range`` (end inclusive)."""
    hour = max(floor_day(day), time_range.start)
    next_day = floor_day(day) + ONE_DAY
    while hour < next_day and hour <= time_range.end:
        yield hour
        hour = hour + ONE_HOUR


def day_count(time_range: TimeRange) -> int:
    """Inclusive number of calendar days in the range."""
    return (floor_day(time_range.end).date() - floor_day(time_range.start).date()).days + 1


def hour_glob(log_dir, log_type: str, hour: datetime) -> str:
    """Glob matching every input file for one hour."""
    return os.path.join(str(log_dir), hour.strftime("%Y-%m-%d"), f"{log_type}.{hour:%H}*")


def temp_artifact_name(hour: datetime, input_file) -> str:
    """Temp output name; the zero-padded hour prefix keeps name order chronological."""
    return f"{hour.strftime(TIME_FORMAT_HOUR_NUM)}{os.path.basename(str(input_file))}.json"


def day_output_name(log_type: str, day: datetime) -> str:
    return f"{log_type}-{day:%Y-%m-%d}.json"


def final_output_name(log_type: str) -> str:
    return f"{log_type}.json"
