"""Parallel hourly log filtering with per-day aggregation.

Discovers Zeek-style hourly logs under ``<logdir>/<YYYY-MM-DD>/<type>.<HH>*``,
runs each one through an external filter program, and folds the outputs into
one file per calendar day (optionally into a single file or stdout).
"""

from .errors import (
    AggregationError,
    ConfigurationError,
    ConflictError,
    DiscoveryError,
    NonEmptyError,
    PipelineError,
    TaskError,
)
from .config import FinalMode, PipelineConfig
from .pipeline import PipelineDriver, PipelineResult, run_pipeline
from .runner import FilterCommand
from .timeutil import TimeRange, parse_time_range

__version__ = "0.3.0"

__all__ = [
    "AggregationError",
    "ConfigurationError",
    "ConflictError",
    "DiscoveryError",
    "FilterCommand",
    "FinalMode",
    "NonEmptyError",
    "PipelineConfig",
    "PipelineDriver",
    "PipelineError",
    "PipelineResult",
    "TaskError",
    "TimeRange",
    "parse_time_range",
    "run_pipeline",
]
