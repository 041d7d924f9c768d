"""Line-by-line concatenation of artifacts into one destination.

Inputs are always folded in sorted path order. Callers name artifacts with a
zero-padded timestamp prefix inside a single directory, so sorted order is
chronological order; the shared-directory half of that is checked here.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import BinaryIO, Iterable, List, Union

from .errors import AggregationError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _sorted_sources(input_files: Iterable[PathLike]) -> List[str]:
    paths = sorted(os.fspath(p) for p in input_files)
    parents = {os.path.dirname(os.path.abspath(p)) for p in paths}
    if len(parents) > 1:
        raise AggregationError(
            f"refusing to concatenate files from {len(parents)} directories; "
            "sorted order is only chronological within one directory"
        )
    return paths


def _write_lines(src: BinaryIO, out: BinaryIO) -> None:
    for line in src:
        if line.endswith(b"\n"):
            line = line[:-1]
        if line.endswith(b"\r"):
            line = line[:-1]
        out.write(line + b"\n")


def _concat_into(
    paths: List[str],
    out: BinaryIO,
    *,
    delete_input: bool,
    ignore_missing: bool,
    strict: bool,
) -> int:
    folded = 0
    for path in paths:
        try:
            src = open(path, "rb")
        except OSError as e:
            if strict:
                raise AggregationError(f"could not read file '{path}': {e}") from e
            if ignore_missing and isinstance(e, FileNotFoundError):
                logger.debug(f"skipping missing file '{path}'")
            else:
                logger.error(f"could not read file '{path}': {e}")
            continue

        logger.debug(f"Concatting {path}")
        with src:
            _write_lines(src, out)
        folded += 1

        if delete_input:
            try:
                os.remove(path)
            except OSError as e:
                logger.error(f"could not remove temp file '{path}': {e}")

    return folded


def concat_files(
    input_files: Iterable[PathLike],
    output_file: PathLike,
    *,
    delete_input: bool = False,
    ignore_missing: bool = False,
    strict: bool = False,
) -> int:
    """Sort ``input_files`` and write their lines into ``output_file``.

    Unreadable sources are logged and skipped unless ``strict`` is set. With
    ``ignore_missing`` a source that no longer exists is skipped quietly.
    Returns the number of sources folded in.
    """

    paths = _sorted_sources(input_files)
    try:
        out = open(output_file, "wb")
    except OSError as e:
        raise AggregationError(f"could not create '{output_file}': {e}") from e

    with out:
        return _concat_into(
            paths, out, delete_input=delete_input, ignore_missing=ignore_missing, strict=strict
        )


def concat_to_stream(
    input_files: Iterable[PathLike],
    stream: BinaryIO,
    *,
    delete_input: bool = False,
    ignore_missing: bool = False,
    strict: bool = False,
    close: bool = False,
) -> int:
    """Like :func:`concat_files` but writes to an already open binary stream."""

    paths = _sorted_sources(input_files)
    try:
        return _concat_into(
            paths, stream, delete_input=delete_input, ignore_missing=ignore_missing, strict=strict
        )
    finally:
        stream.flush()
        if close:
            stream.close()
