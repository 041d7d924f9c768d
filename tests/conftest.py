"""Pytest configuration and shared fixtures."""

import gzip
import os
import stat
import sys
from datetime import datetime
from pathlib import Path
from types import SimpleNamespace

import pytest

from zeek_filter_pipeline.barrier import CountingBarrier
from zeek_filter_pipeline.config import FinalMode, PipelineConfig
from zeek_filter_pipeline.progress import ProgressTracker
from zeek_filter_pipeline.runner import FilterCommand
from zeek_filter_pipeline.timeutil import TimeRange


# Copies stdin to stdout byte for byte.
CAT_SOURCE = "import sys; sys.stdout.buffer.write(sys.stdin.buffer.read())"


@pytest.fixture
def repo_root():
    """Return the repository root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def src_path(repo_root):
    """Return the src directory path."""
    return repo_root / "src"


@pytest.fixture
def log_dir(tmp_path):
    d = tmp_path / "zeek"
    d.mkdir()
    return d


@pytest.fixture
def make_log(log_dir):
    """Write ``<log_dir>/<YYYY-MM-DD>/<name>`` and return its path."""

    def _make(day: str, name: str, content: str, compress: bool = True) -> Path:
        day_dir = log_dir / day
        day_dir.mkdir(exist_ok=True)
        path = day_dir / name
        data = content.encode("utf-8")
        if compress:
            with gzip.open(path, "wb") as f:
                f.write(data)
        else:
            path.write_bytes(data)
        return path

    return _make


@pytest.fixture
def cat_command():
    return FilterCommand(sys.executable, ("-c", CAT_SOURCE))


@pytest.fixture
def make_script(tmp_path):
    """Write an executable python script and return its path."""

    def _make(name: str, body: str) -> Path:
        path = tmp_path / name
        path.write_text(f"#!{sys.executable}\n{body}\n", encoding="utf-8")
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return path

    return _make


@pytest.fixture
def make_config(log_dir, tmp_path, cat_command):
    def _make(start: datetime, end: datetime, final_mode=FinalMode.NONE, command=None, **kw) -> PipelineConfig:
        return PipelineConfig(
            log_type=kw.pop("log_type", "rdp"),
            command=command or cat_command,
            time_range=TimeRange(start, end),
            log_dir=log_dir,
            output_dir=kw.pop("output_dir", tmp_path / "out"),
            parallelism=kw.pop("parallelism", 4),
            final_mode=final_mode,
            show_progress=False,
            min_free_space_gb=0.0,
            **kw,
        )

    return _make


@pytest.fixture
def unit_ctx():
    """Minimal stand-in for the pipeline context used by single units."""
    return SimpleNamespace(progress=ProgressTracker(), global_barrier=CountingBarrier("all days"))


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Point the global config lookup at an isolated location."""
    cfg = tmp_path / "global_config.json"
    monkeypatch.setenv("ZEEK_FILTER_CONFIG", os.fspath(cfg))
    return cfg
