"""
Daemon entry point for Perm Watcher.

Runs in the foreground until SIGINT/SIGTERM, until every watched
directory is gone, or until a fatal error::

    perm-watcher /etc/perm-watcher.toml
    python -m perm_watch /etc/perm-watcher.toml --log-level DEBUG

Exit codes are listed in :class:`ExitCode`.
"""

from __future__ import annotations

import argparse
import enum
import logging
import logging.handlers
import os
import signal
import sys
from collections.abc import Sequence

from perm_watch import __app_name__, __version__
from perm_watch.config import Config
from perm_watch.dispatcher import PermissionEnforcer, StopReason, setup_roots
from perm_watch.errors import PermWatchError, PrivilegeError
from perm_watch.watches import DirectoryWatcher

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class ExitCode(enum.IntEnum):
    STOPPED = 0
    SETUP_FAILED = 1
    FATAL = 2
    NO_WATCHES = 3


def check_privileges() -> None:
    """Raise :class:`PrivilegeError` unless running as root."""
    if os.geteuid() != 0:
        raise PrivilegeError("This program must be run as root")


def setup_logging(config: Config, level_name: str | None = None) -> None:
    """Configure the stderr handler and, if configured, a rotating file log."""
    level = getattr(logging, (level_name or config.log_level).upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    fmt = logging.Formatter(LOG_FORMAT)

    sh = logging.StreamHandler(sys.stderr)
    sh.setLevel(level)
    sh.setFormatter(fmt)
    root_logger.addHandler(sh)

    if config.log_file is not None:
        max_bytes = config.max_log_size_mb * 1024 * 1024
        fh = logging.handlers.RotatingFileHandler(
            str(config.log_file),
            maxBytes=max_bytes,
            backupCount=config.log_backup_count,
            encoding="utf-8",
        )
        fh.setLevel(level)
        fh.setFormatter(fmt)
        root_logger.addHandler(fh)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="perm-watcher",
        description="Enforce ownership and permissions on watched directory trees.",
    )
    parser.add_argument("config", help="path to the TOML (or .json) configuration file")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="override the log level from the configuration",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    return parser


def run(config: Config) -> ExitCode:
    """Set up the configured roots and dispatch events until told to stop."""
    try:
        watcher = DirectoryWatcher()
    except OSError as exc:
        logger.error("Failed to initialise inotify: %s, exiting", exc.strerror or exc)
        return ExitCode.SETUP_FAILED

    with watcher:
        try:
            setup_roots(config.mappings, watcher)
        except PermWatchError as exc:
            logger.error("%s, exiting", exc)
            return ExitCode.SETUP_FAILED

        dispatcher = PermissionEnforcer(
            config.mappings, watcher, poll_interval=config.poll_interval
        )

        def _handler(sig, frame):
            logger.info("Received %s", signal.Signals(sig).name)
            dispatcher.stop()

        signal.signal(signal.SIGINT, _handler)
        signal.signal(signal.SIGTERM, _handler)

        try:
            reason = dispatcher.run()
        except PermWatchError as exc:
            logger.error("%s, exiting", exc)
            return ExitCode.FATAL

    if reason is StopReason.NO_WATCHES:
        return ExitCode.NO_WATCHES
    return ExitCode.STOPPED


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the ``perm-watcher`` console script."""
    args = build_parser().parse_args(argv)

    try:
        check_privileges()
        config = Config(args.config)
    except PermWatchError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return ExitCode.SETUP_FAILED

    setup_logging(config, args.log_level)

    logger.info("%s %s starting with %s.", __app_name__, __version__, config.path)
    code = run(config)
    logger.info("%s stopped (%s).", __app_name__, code.name.lower())
    return code
