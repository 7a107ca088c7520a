# src/autoupdateplugins/cli.py

import argparse
import os
import sys
from pathlib import Path
from typing import List, Optional, TextIO

from autoupdateplugins import __version__, log_utils
from autoupdateplugins.config import (
    ensure_default_config,
    get_default_config_path,
    load_config,
)
from autoupdateplugins.log_utils import logger
from autoupdateplugins.scheduler import RunScheduler

WATCH_COMMANDS_HELP = "Commands: update, reload, stop, log, quit"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="autoupdateplugins",
        description="Keep plugin files up to date from GitHub, Jenkins, Spigot, Modrinth and other sources.",
    )
    parser.add_argument(
        "--config",
        help="Path to the YAML configuration file (default: the user config directory)",
    )
    parser.add_argument(
        "--log-level",
        help="Console log level (DEBUG, INFO, WARNING, ERROR)",
    )
    parser.add_argument(
        "--log-dir",
        help="Also write a rotating log file to this directory",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("init", help="Write the default configuration file")
    subparsers.add_parser("update", help="Run all configured updates once")
    subparsers.add_parser(
        "watch",
        help="Run updates on the configured schedule and accept commands on stdin",
    )
    return parser


def run_init(config_path: str) -> int:
    """
    Create the default configuration unless one exists.

    Returns:
        int: Process exit status.
    """
    if ensure_default_config(config_path):
        print(f"Configuration created at {config_path}")
    elif os.path.exists(config_path):
        print(f"Configuration already exists at {config_path}")
    else:
        return 1
    return 0


def run_update(config_path: str) -> int:
    """
    Perform one blocking update run.

    Returns:
        int: 0 when no entry failed, 1 otherwise or when there is no configuration.
    """
    if not os.path.exists(config_path):
        logger.error(
            f"No configuration at {config_path}. Run 'autoupdateplugins init' first."
        )
        return 1

    scheduler = RunScheduler(lambda: load_config(config_path))
    scheduler.reload_config()
    scheduler.request_run(block=True)
    report = scheduler.report
    return 1 if report is not None and report.failed else 0


def handle_watch_command(scheduler: RunScheduler, command: str) -> bool:
    """
    Execute one interactive command.

    Returns:
        bool: `False` when the watch loop should end.
    """
    if command in ("quit", "exit"):
        return False
    if command == "update":
        if scheduler.request_run():
            print("Update run started")
        else:
            print("An update run is already in progress")
    elif command == "reload":
        print(scheduler.request_reload())
    elif command == "stop":
        print(scheduler.request_stop())
    elif command == "log":
        lines = scheduler.get_log()
        if not lines:
            print("No update run has happened yet")
        for line in lines:
            print(line)
    elif command:
        print(WATCH_COMMANDS_HELP)
    return True


def run_watch(config_path: str, stream: Optional[TextIO] = None) -> int:
    """
    Start the scheduler and process commands from `stream` (stdin by default) until quit or EOF.

    Returns:
        int: Process exit status.
    """
    scheduler = RunScheduler(lambda: load_config(config_path))
    scheduler.start()
    print(WATCH_COMMANDS_HELP)
    input_stream = stream or sys.stdin
    try:
        for raw_line in input_stream:
            if not handle_watch_command(scheduler, raw_line.strip().lower()):
                break
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        scheduler.shutdown(timeout=5)
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.log_level:
        log_utils.set_log_level(args.log_level)
    if args.log_dir:
        log_utils.add_file_logging(Path(args.log_dir), args.log_level or "INFO")

    config_path = args.config or get_default_config_path()

    if args.command == "init":
        sys.exit(run_init(config_path))
    elif args.command == "update":
        sys.exit(run_update(config_path))
    elif args.command == "watch":
        sys.exit(run_watch(config_path))
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
