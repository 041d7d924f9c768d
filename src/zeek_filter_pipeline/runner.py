"""Runs the external filter over one discovered log file."""

from __future__ import annotations

import gzip
import logging
import shutil
import subprocess
import tempfile
import zlib
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO, List, Tuple, Union

from .barrier import CountingBarrier
from .errors import TaskError
from .timeutil import TIME_FORMAT_HUMAN

if TYPE_CHECKING:
    from .pipeline import PipelineContext

logger = logging.getLogger(__name__)

GZIP_MAGIC = b"\x1f\x8b"

MODE_STDIN = "stdin"
MODE_SCRIPT = "script"

_STDERR_TAIL_BYTES = 2048


@dataclass(frozen=True)
class FilterCommand:
    """External filter program.

    ``stdin`` mode pipes the (decompressed) log into the program and captures
    its stdout. ``script`` mode is the legacy contract where the program is
    called as ``<executable> <input> <output>`` and writes the output itself.
    """

    executable: str
    args: Tuple[str, ...] = field(default_factory=tuple)
    mode: str = MODE_STDIN

    def __post_init__(self):
        object.__setattr__(self, "args", tuple(self.args))
        if self.mode not in (MODE_STDIN, MODE_SCRIPT):
            raise ValueError(f"unknown filter mode '{self.mode}'")

    def argv(self, input_path=None, output_path=None) -> List[str]:
        if self.mode == MODE_SCRIPT:
            return [self.executable, *self.args, str(input_path), str(output_path)]
        return [self.executable, *self.args]

    def __str__(self) -> str:
        return " ".join([self.executable, *self.args])


def is_gzip(path: Union[str, Path]) -> bool:
    with open(path, "rb") as f:
        return f.read(2) == GZIP_MAGIC


def open_input(path: Union[str, Path]) -> BinaryIO:
    """Open a log for reading, decompressing gzip transparently."""
    if is_gzip(path):
        return gzip.open(path, "rb")
    return open(path, "rb")


def _stderr_tail(err: BinaryIO) -> str:
    err.seek(0, 2)
    size = err.tell()
    err.seek(max(0, size - _STDERR_TAIL_BYTES))
    return err.read().decode("utf-8", errors="replace").strip()


def _check_exit(command: FilterCommand, returncode: int, err: BinaryIO) -> None:
    if returncode != 0:
        tail = _stderr_tail(err)
        detail = f": {tail}" if tail else ""
        raise TaskError(f"'{command}' exited with status {returncode}{detail}")


def _run_piped(command: FilterCommand, input_path: Path, output_path: Path) -> None:
    try:
        src = open_input(input_path)
    except OSError as e:
        raise TaskError(f"could not open '{input_path}': {e}") from e

    with src, tempfile.TemporaryFile() as err:
        try:
            out = open(output_path, "wb")
        except OSError as e:
            raise TaskError(f"could not create '{output_path}': {e}") from e

        with out:
            # Plain files go straight to the child as its stdin.
            if not isinstance(src, gzip.GzipFile):
                try:
                    proc = subprocess.run(command.argv(), stdin=src, stdout=out, stderr=err)
                except OSError as e:
                    raise TaskError(f"could not run '{command}': {e}") from e
                _check_exit(command, proc.returncode, err)
                return

            try:
                proc = subprocess.Popen(command.argv(), stdin=subprocess.PIPE, stdout=out, stderr=err)
            except OSError as e:
                raise TaskError(f"could not run '{command}': {e}") from e

            feed_error = None
            try:
                shutil.copyfileobj(src, proc.stdin)
            except BrokenPipeError:
                logger.debug(f"'{command}' closed stdin early for {input_path}")
            except (OSError, EOFError, zlib.error) as e:
                feed_error = e
            finally:
                try:
                    proc.stdin.close()
                except BrokenPipeError:
                    pass
            returncode = proc.wait()

            if feed_error is not None:
                raise TaskError(f"could not decompress '{input_path}': {feed_error}") from feed_error
            _check_exit(command, returncode, err)


def _run_script(command: FilterCommand, input_path: Path, output_path: Path) -> None:
    with tempfile.TemporaryFile() as err:
        try:
            proc = subprocess.run(
                command.argv(input_path, output_path),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=err,
            )
        except OSError as e:
            raise TaskError(f"could not run '{command}': {e}") from e
        _check_exit(command, proc.returncode, err)


def run_task(
    ctx: "PipelineContext",
    command: FilterCommand,
    input_path: Union[str, Path],
    output_path: Union[str, Path],
    hour: datetime,
    day_barrier: CountingBarrier,
) -> bool:
    """Filter one input file into its temp artifact.

    Never raises: failures are logged and the artifact is left absent or
    partial. The day barrier and task progress are signalled exactly once.
    """

    input_path = Path(input_path)
    output_path = Path(output_path)
    try:
        logger.debug(f"started: {input_path} -> {output_path}")
        if command.mode == MODE_SCRIPT:
            _run_script(command, input_path, output_path)
        else:
            _run_piped(command, input_path, output_path)
        logger.debug(f"finished: {input_path}")
        return True
    except TaskError as e:
        logger.error(f"ERROR ({hour.strftime(TIME_FORMAT_HUMAN)}): {e}")
        return False
    except Exception:
        logger.exception(f"ERROR ({hour.strftime(TIME_FORMAT_HUMAN)}): unexpected failure filtering {input_path}")
        return False
    finally:
        day_barrier.complete()
        ctx.progress.task_done()
