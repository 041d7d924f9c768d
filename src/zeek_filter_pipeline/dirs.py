"""Output directory creation and validation."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Union

from .errors import ConfigurationError, ConflictError, NonEmptyError

logger = logging.getLogger(__name__)


def ensure_output_dir(path: Union[str, Path], empty: bool = True) -> Path:
    """Create ``path`` or confirm an existing directory is usable.

    The parent must already exist. An existing directory must be writable and,
    when ``empty`` is set, must have no entries. Nothing is touched on failure.
    """

    out_dir = Path(os.path.abspath(os.fspath(path)))

    if not out_dir.exists():
        parent = out_dir.parent
        if not parent.exists():
            raise ConfigurationError(f"cannot use parent directory {parent}: does not exist.")
        if not parent.is_dir():
            raise ConfigurationError(f"cannot use parent directory {parent}: exists but is not a directory.")
        try:
            out_dir.mkdir(mode=0o775)
        except OSError as e:
            raise ConfigurationError(f"cannot create output directory {out_dir}: {e}") from e
        logger.debug(f"created dir {out_dir}")
        return out_dir

    if not out_dir.is_dir():
        raise ConflictError(
            f"cannot create output directory {out_dir}: file of same name already exists, and is not a directory."
        )

    if not os.access(out_dir, os.W_OK | os.X_OK):
        raise ConfigurationError(f"cannot use specified directory {out_dir}: not writable.")

    if empty:
        with os.scandir(out_dir) as it:
            if any(True for _ in it):
                raise NonEmptyError(
                    f"cannot use specified directory {out_dir}: directory exists and is non-empty."
                )

    return out_dir
