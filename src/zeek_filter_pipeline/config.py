"""Pipeline configuration.

``PipelineConfig`` is what the driver consumes. It is built either from CLI
arguments (``run`` / ``parallel``) or from a JSON run file (``play``), with
machine-wide defaults coming from a global JSON config.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional, Sequence

import psutil

from .errors import ConfigurationError
from .runner import MODE_SCRIPT, MODE_STDIN, FilterCommand
from .timeutil import TimeRange, TIME_FORMAT_LONG_NUM, default_time_range, parse_time_range, parse_timestamp

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "ZEEK_FILTER_CONFIG"
SYSTEM_CONFIG_PATH = Path("/etc/zeek-filter-pipeline/config.json")
USER_CONFIG_PATH = Path("~/.config/zeek-filter-pipeline/config.json")


class FinalMode(str, Enum):
    NONE = "none"
    SINGLE_FILE = "single_file"
    STDOUT = "stdout"

    @classmethod
    def from_flags(cls, concat: bool, stdout: bool) -> "FinalMode":
        # stdout wins over concat, the same precedence the finalize step uses.
        if stdout:
            return cls.STDOUT
        if concat:
            return cls.SINGLE_FILE
        return cls.NONE


def _default_thread_count() -> int:
    return psutil.cpu_count() or 8


@dataclass
class GlobalDefaults:
    """Machine-wide defaults"""
    default_thread_count: int = field(default_factory=_default_thread_count)
    zeek_log_dir: str = "/data/zeek/logs"
    concat_by_default: bool = False

    @classmethod
    def from_json(cls, path: Path) -> "GlobalDefaults":
        with open(path) as f:
            data = json.load(f)
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


def _candidate_config_paths() -> List[Path]:
    # An explicit path in the environment replaces the search entirely.
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return [Path(env_path).expanduser()]
    return [SYSTEM_CONFIG_PATH, USER_CONFIG_PATH.expanduser()]


def load_global_defaults(paths: Optional[Sequence[Path]] = None, write_default: bool = True) -> GlobalDefaults:
    """Load the first global config found, writing a default one if none exists.

    Writing is best effort: every candidate location is tried in order and a
    failure to write anywhere only costs a warning.
    """

    candidates = [Path(p) for p in paths] if paths is not None else _candidate_config_paths()

    for path in candidates:
        if path.is_file():
            try:
                return GlobalDefaults.from_json(path)
            except (OSError, ValueError, TypeError) as e:
                raise ConfigurationError(f"could not read global config {path}: {e}") from e

    defaults = GlobalDefaults()
    if not write_default:
        return defaults

    logger.warning("could not find a config file. Trying to write a default.")
    for path in candidates:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w") as f:
                json.dump(asdict(defaults), f, indent=2)
            logger.warning(f"created a new config file at {path}")
            return defaults
        except OSError as e:
            logger.debug(f"could not write default config to {path}: {e}")

    logger.warning("could not write a default config file; using built-in defaults")
    return defaults


def default_output_dir(now: Optional[datetime] = None) -> Path:
    now = now or datetime.now()
    stamp = f"{now.strftime(TIME_FORMAT_LONG_NUM)}.{now.microsecond // 1000:03d}"
    return Path(os.path.abspath(f"./output-{stamp}"))


def resolve_executable(name: str, mode: str = MODE_STDIN) -> str:
    """Resolve a filter program to an absolute executable path.

    A local executable file wins; otherwise ``PATH`` is searched. Legacy
    script mode only accepts a file that exists on disk.
    """

    local = os.path.abspath(name)
    if os.path.isfile(local):
        if os.access(local, os.X_OK):
            return local
        if mode == MODE_SCRIPT:
            raise ConfigurationError(f"script '{local}' exists but is not marked as an executable.")
    elif mode == MODE_SCRIPT:
        raise ConfigurationError(f"script '{local}' does not exist.")

    found = shutil.which(name)
    if not found:
        raise ConfigurationError(
            f"could not find an executable '{name}'. Make sure it exists and is marked as executable."
        )
    return found


@dataclass
class PipelineConfig:
    """Validated parameters for one pipeline run"""
    log_type: str
    command: FilterCommand
    time_range: TimeRange
    log_dir: Path
    output_dir: Path
    parallelism: int = 8
    final_mode: FinalMode = FinalMode.NONE
    show_progress: bool = False
    min_free_space_gb: float = 1.0

    def __post_init__(self):
        self.log_dir = Path(os.path.abspath(os.fspath(self.log_dir)))
        self.output_dir = Path(os.path.abspath(os.fspath(self.output_dir)))
        self.final_mode = FinalMode(self.final_mode)
        self.parallelism = max(1, int(self.parallelism or 1))

    def validate(self) -> "PipelineConfig":
        """Check the inputs and resolve the filter executable in place."""
        if not self.log_type:
            raise ConfigurationError("log type must not be empty")
        if not self.log_dir.is_dir():
            raise ConfigurationError(
                f"invalid Zeek log directory {self.log_dir}, either does not exist or is not a directory."
            )
        self.command = FilterCommand(
            resolve_executable(self.command.executable, self.command.mode),
            self.command.args,
            self.command.mode,
        )
        return self

    @classmethod
    def from_json(cls, path: Path, defaults: Optional[GlobalDefaults] = None) -> "PipelineConfig":
        """Load a run configuration (the ``play`` subcommand)"""
        defaults = defaults or GlobalDefaults()
        try:
            with open(path) as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"could not read run config {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"run config {path} must be a JSON object")
        if not data.get("command"):
            raise ConfigurationError("config value 'command' not set")
        if not data.get("type"):
            raise ConfigurationError("config value 'type' not set. Ex. dns, rdp, smtp")

        time_range = data.get("time_range")
        if not isinstance(time_range, dict):
            raise ConfigurationError("No date range provided.")
        if not time_range.get("start_time") or not time_range.get("end_time"):
            raise ConfigurationError(
                "config value 'time_range' provided but sub fields 'start_time' and/or 'end_time' are not provided."
            )

        command = data["command"]
        if isinstance(command, str):
            command = command.split()

        return cls(
            log_type=str(data["type"]),
            command=FilterCommand(command[0], tuple(command[1:]), data.get("mode", MODE_STDIN)),
            time_range=TimeRange(parse_timestamp(time_range["start_time"]), parse_timestamp(time_range["end_time"])),
            log_dir=Path(data.get("logdir") or defaults.zeek_log_dir),
            output_dir=Path(data.get("outdir") or default_output_dir()),
            parallelism=int(data.get("threads") or defaults.default_thread_count),
            final_mode=FinalMode.from_flags(
                bool(data.get("concat", defaults.concat_by_default)), bool(data.get("stdout", False))
            ),
            show_progress=bool(data.get("progress", True)),
        )

    @classmethod
    def from_args(cls, args, defaults: Optional[GlobalDefaults] = None) -> "PipelineConfig":
        """Create config from parsed ``run`` / ``parallel`` arguments"""
        defaults = defaults or GlobalDefaults()
        mode = getattr(args, "mode", MODE_STDIN)
        command = list(args.command)
        if not command:
            raise ConfigurationError("no filter command given")

        time_range = parse_time_range(args.timerange) if args.timerange else default_time_range()
        concat = args.concat if args.concat is not None else defaults.concat_by_default

        return cls(
            log_type=args.log_type,
            command=FilterCommand(command[0], tuple(command[1:]), mode),
            time_range=time_range,
            log_dir=Path(args.logdir or defaults.zeek_log_dir),
            output_dir=Path(args.outdir or default_output_dir()),
            parallelism=args.threads or defaults.default_thread_count,
            final_mode=FinalMode.from_flags(bool(concat), bool(args.stdout)),
            show_progress=not getattr(args, "no_progress", False),
        )
