"""
Command line front end.

Usage
  folder-sync run /src /replica /logs/sync.log 60
  folder-sync run /src /replica sync.log --ignore "*.tmp" --debounce 2
  folder-sync once /src /replica
"""

from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path
from typing import Optional

from .compare import IgnoreMatcher
from .config import DEFAULT_INTERVAL_SEC, SyncConfig, validate_log_file, validate_paths
from .digest import ContentComparer
from .errors import FatalConfigError
from .logsink import EventLogger, LockedFileTracker, setup_logger
from .models import EventKind
from .sync import synchronize
from .synchronizer import Synchronizer

EXIT_OK = 0
EXIT_SYNC_ERRORS = 1
EXIT_CONFIG = 2


def _positive_float(raw: str) -> float:
    try:
        value = float(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {raw!r}")
    if value <= 0:
        raise argparse.ArgumentTypeError(f"must be greater than zero: {raw!r}")
    return value


def _add_common(p: argparse.ArgumentParser) -> None:
    p.add_argument("source", help="Folder to mirror from.")
    p.add_argument("replica", help="Folder kept identical to source (created if missing).")
    p.add_argument("--case-sensitive", action="store_true",
                   help="Match relative paths case-sensitively (default: case-insensitive).")
    p.add_argument("--ignore", action="append", default=[], metavar="PATTERN",
                   help="gitignore-style pattern of source paths to leave out (repeatable).")
    p.add_argument("--no-color", action="store_true", help="Disable colored console output.")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="folder-sync", description="Mirror a folder onto a replica folder.")
    sub = p.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Sync now, then keep syncing on an interval and on changes.")
    _add_common(run)
    run.add_argument("log_file", help="Log file (appended).")
    run.add_argument("interval", nargs="?", type=_positive_float, default=DEFAULT_INTERVAL_SEC,
                     help="Seconds between scheduled syncs (default: 60).")
    run.add_argument("--debounce", type=_positive_float, default=None, metavar="SECONDS",
                     help="Also sync this many seconds after a detected change.")

    once = sub.add_parser("once", help="Sync once and exit.")
    _add_common(once)
    once.add_argument("log_file", nargs="?", default=None, help="Log file (appended).")
    return p


def parse_args(argv: list[str]) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def build_config(args: argparse.Namespace) -> SyncConfig:
    return SyncConfig(
        source=Path(args.source),
        replica=Path(args.replica),
        log_file=Path(args.log_file) if args.log_file else None,
        interval_sec=getattr(args, "interval", DEFAULT_INTERVAL_SEC),
        case_sensitive=args.case_sensitive,
        ignore_patterns=tuple(args.ignore),
        debounce_sec=getattr(args, "debounce", None),
    )


def _run_service(cfg: SyncConfig, logger, sink) -> int:
    synchronizer = Synchronizer(cfg, sink=sink, logger=logger)
    try:
        synchronizer.start()
    except FatalConfigError as e:
        logger.error("Config error: %s", e)
        return EXIT_CONFIG

    logger.info("Synchronization service started. Press Ctrl+C to exit.")
    logger.info("Sync interval: %s seconds", cfg.interval_sec)
    try:
        while True:
            time.sleep(0.5)
    except KeyboardInterrupt:
        logger.info("Stopping...")
    finally:
        synchronizer.stop()
    return EXIT_OK


def _run_once(cfg: SyncConfig, sink) -> int:
    events = synchronize(
        cfg.source,
        cfg.replica,
        case_sensitive=cfg.case_sensitive,
        ignore=IgnoreMatcher(cfg.ignore_patterns) if cfg.ignore_patterns else None,
        comparer=ContentComparer(chunk_size=cfg.chunk_size),
        on_event=sink,
    )
    if any(e.kind is EventKind.ERROR for e in events):
        return EXIT_SYNC_ERRORS
    return EXIT_OK


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    cfg = build_config(args)

    try:
        log_file = validate_log_file(cfg.log_file) if cfg.log_file else None
    except FatalConfigError as e:
        print(f"Error setting up log file: {e}", file=sys.stderr)
        return EXIT_CONFIG

    logger = setup_logger(log_file, use_color=False if args.no_color else None)

    try:
        source, replica = validate_paths(cfg.source, cfg.replica)
    except FatalConfigError as e:
        logger.error("Config error: %s", e)
        return EXIT_CONFIG
    logger.info("Source : %s", source)
    logger.info("Replica: %s", replica)

    locked = None
    if log_file is not None:
        locked = LockedFileTracker(log_file.parent / "locked.log", hold_hours=cfg.lock_hold_hours)
    sink = EventLogger(logger, locked)

    if args.command == "once":
        return _run_once(cfg, sink)
    return _run_service(cfg, logger, sink)
