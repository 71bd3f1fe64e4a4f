"""dwd-loader CLI entry points.

This module exposes the load, bootstrap and fetch commands.
It maps argparse commands onto pipeline calls.
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Sequence

from core.config import LoaderConfig
from core.config_file import load_config_file
from core.errors import DwdCancelledError, DwdError
from core.types import FileLoadResult
from ingest.pipeline import LoadPipelineRunner, bootstrap_store, fetch_sources

EXIT_FAILURE = 1
EXIT_CANCELLED = 130


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(
        prog="dwd-loader",
        description="Load DWD station and measurement archives into a relational store",
    )
    parser.add_argument("--config", help="YAML config file overlaying environment settings")
    parser.add_argument("--data-dir", help="Override DWD_DATA_DIR for this command")
    parser.add_argument("--database-url", help="Override DWD_DATABASE_URL for this command")
    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_load_command(subparsers)
    _add_bootstrap_command(subparsers)
    _add_fetch_command(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the dwd-loader CLI.

    Args:
        argv: Optional argument vector.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = _build_config(args)
        if args.command == "load":
            return _run_load_command(config, args)
        if args.command == "bootstrap":
            return _run_bootstrap_command(config)
        if args.command == "fetch":
            return _run_fetch_command(config)
    except DwdCancelledError as error:
        print(f"cancelled: {error}", file=sys.stderr)
        return EXIT_CANCELLED
    except KeyboardInterrupt:
        print("cancelled: interrupted", file=sys.stderr)
        return EXIT_CANCELLED
    except DwdError as error:
        print(f"error: {error}", file=sys.stderr)
        return EXIT_FAILURE
    parser.error(f"Unsupported command: {args.command}")
    return 2


def _build_config(args: argparse.Namespace) -> LoaderConfig:
    """Build config from environment, optional file and global flags.

    Args:
        args: Parsed CLI args.

    Returns:
        Effective configuration.
    """
    config = LoaderConfig.from_env()
    if args.config:
        config = load_config_file(args.config, config)
    if args.data_dir:
        config = replace(config, data_dir=Path(args.data_dir).expanduser().resolve())
    if args.database_url:
        config = replace(config, database_url=args.database_url)
    return config


def _run_load_command(config: LoaderConfig, args: argparse.Namespace) -> int:
    """Handle load command.

    Args:
        config: Effective configuration.
        args: Parsed CLI args.

    Returns:
        Exit code.
    """
    overrides: dict[str, Any] = {}
    if args.max_workers is not None:
        overrides["max_workers"] = args.max_workers
    if args.batch_size is not None:
        overrides["batch_size"] = args.batch_size
    if args.month:
        overrides["measurement_months"] = tuple(sorted(set(args.month)))
    if args.truncate:
        overrides["truncate_before_load"] = True
    runner = LoadPipelineRunner(replace(config, **overrides))
    summary = runner.run()
    _print_result("station", summary.stations)
    for result in summary.measurements:
        _print_result("measurement", result)
    return 0


def _run_bootstrap_command(config: LoaderConfig) -> int:
    """Handle bootstrap command."""
    bootstrap_store(config)
    print("schema ready")
    return 0


def _run_fetch_command(config: LoaderConfig) -> int:
    """Handle fetch command."""
    for local_path in fetch_sources(config):
        print(local_path)
    return 0


def _print_result(kind: str, result: FileLoadResult) -> None:
    print(
        f"{kind}\t"
        f"{result.source_path.name}\t"
        f"{result.records_written}\t"
        f"{result.duplicates_dropped}\t"
        f"{result.lines_skipped}\t"
        f"{result.batches_written}"
    )


def _add_load_command(subparsers: Any) -> None:
    """Register load subcommand."""
    parser = subparsers.add_parser("load", help="Load station file and all archives")
    parser.add_argument("--max-workers", type=int, help="Archives processed concurrently")
    parser.add_argument("--batch-size", type=int, help="Records per merge batch")
    parser.add_argument(
        "--month",
        type=int,
        action="append",
        choices=range(1, 13),
        metavar="MONTH",
        help="Only load measurements from this calendar month (repeatable)",
    )
    parser.add_argument(
        "--truncate",
        action="store_true",
        help="Delete all rows from both tables before loading",
    )


def _add_bootstrap_command(subparsers: Any) -> None:
    """Register bootstrap subcommand."""
    subparsers.add_parser("bootstrap", help="Create destination tables if missing")


def _add_fetch_command(subparsers: Any) -> None:
    """Register fetch subcommand."""
    subparsers.add_parser("fetch", help="Download source files from DWD_REMOTE_URI")
