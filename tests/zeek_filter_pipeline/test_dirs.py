from __future__ import annotations

import os
from pathlib import Path

import pytest

from zeek_filter_pipeline.dirs import ensure_output_dir
from zeek_filter_pipeline.errors import ConfigurationError, ConflictError, NonEmptyError


def test_creates_missing_directory(tmp_path: Path) -> None:
    target = tmp_path / "out"
    assert ensure_output_dir(target) == target
    assert target.is_dir()


def test_accepts_relative_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    out = ensure_output_dir("rel_out")
    assert out.is_absolute()
    assert (tmp_path / "rel_out").is_dir()


def test_missing_parent_is_configuration_error(tmp_path: Path) -> None:
    target = tmp_path / "nope" / "out"
    with pytest.raises(ConfigurationError):
        ensure_output_dir(target)
    assert not (tmp_path / "nope").exists()


def test_parent_that_is_a_file_is_rejected(tmp_path: Path) -> None:
    (tmp_path / "file").write_text("x")
    with pytest.raises(ConfigurationError):
        ensure_output_dir(tmp_path / "file" / "out")


def test_existing_file_is_conflict(tmp_path: Path) -> None:
    target = tmp_path / "out"
    target.write_text("x")
    with pytest.raises(ConflictError):
        ensure_output_dir(target)


def test_existing_empty_directory_is_accepted(tmp_path: Path) -> None:
    target = tmp_path / "out"
    target.mkdir()
    assert ensure_output_dir(target) == target


def test_non_empty_directory(tmp_path: Path) -> None:
    target = tmp_path / "out"
    target.mkdir()
    (target / "leftover.json").write_text("{}")
    with pytest.raises(NonEmptyError):
        ensure_output_dir(target, empty=True)
    assert ensure_output_dir(target, empty=False) == target


@pytest.mark.skipif(hasattr(os, "geteuid") and os.geteuid() == 0, reason="root bypasses permissions")
def test_unwritable_directory(tmp_path: Path) -> None:
    target = tmp_path / "out"
    target.mkdir()
    target.chmod(0o555)
    try:
        with pytest.raises(ConfigurationError):
            ensure_output_dir(target)
    finally:
        target.chmod(0o755)
