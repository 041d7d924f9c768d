#!/usr/bin/env python3
"""Pull and filter Zeek logs to a subset for easier parsing.

Examples:
  zeek-filter run -t 8 -r 2024/01/01:00-2024/01/02:23 rdp grepcidr 10.0.0.0/24
  zeek-filter parallel -t 8 dns ./my_script.py      # my_script.py <input> <output>
  zeek-filter play my_run.json
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, TextIO

from .config import GlobalDefaults, PipelineConfig, load_global_defaults
from .errors import ConfigurationError
from .pipeline import run_pipeline
from .runner import MODE_SCRIPT, MODE_STDIN

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        stream=sys.stderr,
    )


def _print_summary(config: PipelineConfig, out: TextIO) -> None:
    out.write(f"Zeek Log Directory:\t{config.log_dir}\n")
    out.write(f"Log Type:\t\t{config.log_type}\n")
    out.write(f"Date Range:\t\t{config.time_range}\n")
    out.write(f"Command to run:\t\t{config.command}\n")
    out.write(f"Threads:\t\t{config.parallelism}\n")
    out.write(f"Output Directory:\t{config.output_dir}\n")
    out.write(f"Final Output:\t\t{config.final_mode.value}\n\n")
    out.flush()


def confirm(out: TextIO = sys.stderr) -> bool:
    """Ask the user whether to continue. Refuses in non-interactive sessions."""
    if not sys.stdin.isatty():
        out.write("error: refusing to start without confirmation in non-interactive mode. Re-run with --noconfirm\n")
        return False
    out.write("Continue? [y/N] ")
    out.flush()
    try:
        answer = input().strip().lower()
    except EOFError:
        return False
    return answer in ("y", "yes")


def _execute(config: PipelineConfig, noconfirm: bool) -> int:
    err = sys.stderr
    try:
        config.validate()
    except ConfigurationError as e:
        err.write(f"error: {e}\n")
        return 1

    _print_summary(config, err)
    if not noconfirm and not confirm(err):
        return 0

    try:
        result = run_pipeline(config)
    except ConfigurationError as e:
        err.write(f"error: {e}\n")
        return 1

    location = "stdout" if result.final_output == "-" else str(result.output_dir)
    err.write(f"\nComplete. Output: {location}\n")
    return 0


def _cmd_run(args: argparse.Namespace, defaults: GlobalDefaults) -> int:
    args.command = [args.executable] + list(args.args)
    args.mode = MODE_STDIN
    config = PipelineConfig.from_args(args, defaults)
    return _execute(config, args.noconfirm)


def _cmd_parallel(args: argparse.Namespace, defaults: GlobalDefaults) -> int:
    args.command = [args.script]
    args.mode = MODE_SCRIPT
    config = PipelineConfig.from_args(args, defaults)
    return _execute(config, args.noconfirm)


def _cmd_play(args: argparse.Namespace, defaults: GlobalDefaults) -> int:
    config = PipelineConfig.from_json(args.config, defaults)
    if args.no_progress:
        config.show_progress = False
    return _execute(config, args.noconfirm)


def _add_shared_flags(ap: argparse.ArgumentParser) -> None:
    ap.add_argument("-v", "--verbose", action="store_true", help="verbose output")
    ap.add_argument("-N", "--noconfirm", action="store_true", help="Skip confirmation and begin operation.")
    ap.add_argument("--no-progress", action="store_true", help="Do not draw progress bars on stderr.")


def _add_range_flags(ap: argparse.ArgumentParser) -> None:
    ap.add_argument(
        "-r", "--timerange",
        default=None,
        help="time-range (local time). unspecified: last 24 hours. Format: YYYY/MM/DD:HH-YYYY/MM/DD:HH",
    )
    ap.add_argument("-o", "--outdir", default=None, help="filtered logs output directory (default: ./output-<now>)")
    ap.add_argument("-i", "--logdir", default=None, help="Zeek log directory (default: from global config)")
    ap.add_argument("-t", "--threads", type=int, default=None, help="Number of filters to run in parallel")
    ap.add_argument(
        "-c", "--concat",
        action="store_true",
        default=None,
        help="concat all output to one file, rather than files for each date.",
    )
    ap.add_argument(
        "-S", "--stdout",
        action="store_true",
        help="Do not keep the output directory, instead write everything to STDOUT.",
    )


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="zeek-filter",
        description="Pull and filter logs to a subset for easier parsing.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    sub = ap.add_subparsers(dest="cmd", required=True)

    ap_run = sub.add_parser(
        "run",
        help="Filter logs through a command that reads stdin and writes stdout.",
    )
    _add_range_flags(ap_run)
    _add_shared_flags(ap_run)
    ap_run.add_argument("log_type", help="log type, e.g. dns, rdp, smtp")
    ap_run.add_argument("executable", help="filter command")
    ap_run.add_argument("args", nargs=argparse.REMAINDER, help="arguments for the filter command")
    ap_run.set_defaults(func=_cmd_run)

    ap_parallel = sub.add_parser(
        "parallel",
        help="Legacy mode: run SCRIPT <input file> <output file> for every log.",
    )
    _add_range_flags(ap_parallel)
    _add_shared_flags(ap_parallel)
    ap_parallel.add_argument("log_type", help="log type, e.g. dns, rdp, smtp")
    ap_parallel.add_argument("script", help="script taking <input file> <output file>")
    ap_parallel.set_defaults(func=_cmd_parallel)

    ap_play = sub.add_parser("play", help="Run with settings from a JSON run config.")
    _add_shared_flags(ap_play)
    ap_play.add_argument("config", help="path to the JSON run config")
    ap_play.set_defaults(func=_cmd_play)

    return ap


def main(argv: Optional[list[str]] = None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)
    _configure_logging(args.verbose)

    try:
        defaults = load_global_defaults()
        return int(args.func(args, defaults))
    except ConfigurationError as e:
        sys.stderr.write(f"error: {e}\n")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
