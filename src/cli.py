#!/usr/bin/env python3
"""
CLI for the polling file watcher.

Usage:
    python -m src.cli /path/to/folder1 /path/to/file.txt
    python -m src.cli --interval 500ms --cmd "make test" src tests
    python -m src.cli --config watcher.json
"""

import argparse
import json
import logging
import math
import os
import queue
import re
import shlex
import signal
import subprocess
import sys
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from src.pollwatch import (
    PollingWatcher,
    WatcherConfig,
    WatcherError,
)


logger = logging.getLogger("cli")

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


class ConfigError(Exception):
    """Raised when the configuration file is missing or invalid."""


def parse_duration(text: str) -> float:
    """
    Parse a duration such as "100ms", "1.5s" or "1m30s" into seconds.

    A bare number is taken as seconds.

    Raises:
        ValueError: If the text is not a valid duration
    """
    text = text.strip()
    if not text:
        raise ValueError("empty duration")

    try:
        total = float(text)
    except ValueError:
        total = 0.0
        pos = 0
        for match in _DURATION_PART.finditer(text):
            if match.start() != pos:
                break
            total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
            pos = match.end()
        if pos != len(text):
            raise ValueError(f"invalid duration: {text!r}")
    if not math.isfinite(total):
        raise ValueError(f"duration must be finite: {text!r}")
    return total


@dataclass
class CLIConfig:
    """
    Settings for a CLI run, from flags or a JSON config file.

    Attributes:
        interval: Poll interval as a duration string
        recursive: Watch folders recursively
        dotfiles: Watch dot files
        cmd: Command to run when an event occurs
        startcmd: Run the command once when the watcher starts
        listfiles: Print the watched files on start
        pipe: Pipe the event's description to the command's stdin
        keepalive: Keep running when the command exits non-zero
    """
    interval: str = "100ms"
    recursive: bool = True
    dotfiles: bool = True
    cmd: str = ""
    startcmd: bool = False
    listfiles: bool = False
    pipe: bool = False
    keepalive: bool = False

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "CLIConfig":
        """Create from parsed command-line flags."""
        return cls(
            interval=args.interval,
            recursive=args.recursive,
            dotfiles=args.dotfiles,
            cmd=args.cmd,
            startcmd=args.startcmd,
            listfiles=args.list,
            pipe=args.pipe,
            keepalive=args.keepalive,
        )

    @classmethod
    def from_dict(cls, data: dict) -> "CLIConfig":
        """
        Create from a config file dictionary; missing keys take defaults.

        Raises:
            ConfigError: If interval or cmd is not a string
        """
        for key in ("interval", "cmd"):
            value = data.get(key)
            if value is not None and not isinstance(value, str):
                raise ConfigError(f"'{key}' must be a string, got {type(value).__name__}")
        return cls(
            interval=data.get("interval") or "200ms",
            recursive=bool(data.get("recursive", True)),
            dotfiles=bool(data.get("dotfiles", True)),
            cmd=data.get("cmd") or "",
            startcmd=bool(data.get("startcmd", False)),
            listfiles=bool(data.get("listfiles", False)),
            pipe=bool(data.get("pipe", False)),
            keepalive=bool(data.get("keepalive", False)),
        )


def load_config_file(path: Path) -> CLIConfig:
    """
    Load CLI settings from a JSON file.

    Raises:
        ConfigError: If the file is missing or not a JSON object
    """
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration root must be an object: {path}")
    return CLIConfig.from_dict(data)


class CommandRunner:
    """Runs the user's command, optionally piping an event to its stdin."""

    def __init__(self, command: str, pipe: bool = False):
        self.argv = shlex.split(command)
        self.pipe = pipe
        if not self.argv:
            raise ConfigError("Command is empty")

    def run(self, event_text: Optional[str] = None) -> int:
        """
        Run the command and wait for it.

        Returns:
            The command's exit code
        """
        stdin_text = event_text if self.pipe and event_text is not None else None
        try:
            if stdin_text is not None:
                result = subprocess.run(self.argv, input=stdin_text, text=True)
            else:
                result = subprocess.run(self.argv)
        except OSError as e:
            logger.error("Failed to run %s: %s", self.argv[0], e)
            return 127
        if result.returncode != 0:
            logger.warning("Command exited with code %d", result.returncode)
        return result.returncode


class GracefulShutdown:
    """Handle graceful shutdown on SIGINT/SIGTERM."""

    def __init__(self):
        self.should_exit = False
        signal.signal(signal.SIGINT, self._handler)
        signal.signal(signal.SIGTERM, self._handler)

    def _handler(self, signum, frame):
        logger.info("Received shutdown signal, stopping...")
        self.should_exit = True


def consume(
    watcher: PollingWatcher,
    runner: Optional[CommandRunner],
    keepalive: bool,
    shutdown: GracefulShutdown,
) -> None:
    """Print events and errors, running the command for every event."""
    while not shutdown.should_exit and not watcher.closed.is_set():
        while True:
            try:
                error = watcher.errors.get_nowait()
            except queue.Empty:
                break
            logger.error("%s", error)
            if not watcher.roots():
                logger.error("Nothing left to watch")
                shutdown.should_exit = True

        try:
            event = watcher.events.get(timeout=0.1)
        except queue.Empty:
            continue

        print(event, flush=True)
        if runner is not None:
            code = runner.run(str(event))
            if code != 0 and not keepalive:
                shutdown.should_exit = True


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        description="Watch files and folders for changes by polling",
    )
    parser.add_argument(
        "paths",
        nargs="*",
        help="Files or folders to watch (default: current directory)",
    )
    parser.add_argument(
        "--config",
        help="JSON config file; its values replace the flags below",
    )
    parser.add_argument(
        "--interval",
        default=os.environ.get("POLLWATCH_INTERVAL", "100ms"),
        help="Poll interval, e.g. 100ms, 2s (default: 100ms or $POLLWATCH_INTERVAL)",
    )
    parser.add_argument(
        "--recursive",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Watch folders recursively",
    )
    parser.add_argument(
        "--dotfiles",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Watch dot files",
    )
    parser.add_argument("--cmd", default="", help="Command to run when an event occurs")
    parser.add_argument("--startcmd", action="store_true", help="Run the command when the watcher starts")
    parser.add_argument("--list", action="store_true", help="List watched files on start")
    parser.add_argument("--pipe", action="store_true", help="Pipe the event's info to the command's stdin")
    parser.add_argument("--keepalive", action="store_true", help="Keep running when the command exits non-zero")
    parser.add_argument(
        "--ignore",
        nargs="+",
        default=[],
        metavar="PATH",
        help="Paths to leave out",
    )
    parser.add_argument(
        "--max-events",
        type=int,
        default=0,
        help="Maximum events per polling cycle (0 = unlimited)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Run the watcher CLI."""
    env_file = Path(__file__).parent.parent / ".env"
    if env_file.exists():
        load_dotenv(env_file)
    else:
        load_dotenv()

    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    try:
        config = load_config_file(Path(args.config)) if args.config else CLIConfig.from_args(args)
        interval = parse_duration(config.interval)
        runner = CommandRunner(config.cmd, pipe=config.pipe) if config.cmd else None
    except (ConfigError, ValueError) as e:
        logger.error("%s", e)
        return 2

    paths = args.paths or [os.getcwd()]

    watcher = PollingWatcher(WatcherConfig(
        max_events=args.max_events,
        ignore_hidden=not config.dotfiles,
    ))

    try:
        if args.ignore:
            watcher.ignore(*args.ignore)
        for path in paths:
            watcher.add(path, recursive=config.recursive)
    except WatcherError as e:
        logger.error("%s", e)
        watcher.close()
        return 1

    watched = watcher.watched_files()
    if config.listfiles:
        for path in sorted(watched, key=str):
            print(f"{path}: {watched[path].name}")
        print()
    print(f"Watching {len(watched)} files")

    if runner is not None and config.startcmd:
        runner.run()

    shutdown = GracefulShutdown()

    with watcher:
        try:
            watcher.start_async(interval)
        except WatcherError as e:
            logger.error("%s", e)
            return 1

        consumer = threading.Thread(
            target=consume,
            args=(watcher, runner, config.keepalive, shutdown),
            name="EventConsumer",
            daemon=True,
        )
        consumer.start()

        logger.info("Press Ctrl+C to stop")
        while not shutdown.should_exit and not watcher.closed.is_set():
            time.sleep(0.2)

    consumer.join(timeout=2.0)
    logger.info("Watcher stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
