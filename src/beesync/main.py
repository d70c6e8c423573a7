"""Command line entry point: one pass over every configured sync module."""

import argparse
import logging
import signal
import sys
import threading
from functools import partial
from pathlib import Path
from typing import Optional

from . import __version__
from .clients.beeminder import BeeminderClient
from .config import Config, setup_logging
from .errors import ConfigInvalid
from .keys import SecretResolver
from .modules import build_modules
from .sync.engine import RunResult, SyncEngine

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CONFIG_INVALID = 2
EXIT_CANCELLED = 130


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="beesync",
        description="Sync activity from external services into Beeminder goals.",
    )
    parser.add_argument("config", nargs="?", help="config file (default: ./config.toml)")
    parser.add_argument("--debug", action="store_true", help="verbose logging")
    parser.add_argument(
        "--only",
        action="append",
        metavar="NAME",
        help="run only the named module (repeatable)",
    )
    parser.add_argument("--log-file", type=Path, help="log file (default: user log dir)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def report(result: RunResult) -> None:
    """Print one line per module."""
    for summary in result.summaries:
        marker = "✅" if summary.success else "❌"
        print(f"{marker} {summary.describe()}")
    if not result.summaries:
        print("No sync modules configured.")


class _SignalHandler:
    """First SIGINT/SIGTERM cancels the run; a second one interrupts immediately."""

    def __init__(self, engine: SyncEngine):
        self.engine = engine

    def __call__(self, signum, frame) -> None:
        if self.engine.is_cancelled:
            raise KeyboardInterrupt
        logger.warning(f"Received signal {signum}, finishing the current request and stopping")
        self.engine.cancel()

    def install(self) -> None:
        signal.signal(signal.SIGINT, self)
        signal.signal(signal.SIGTERM, self)


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)

    try:
        config = Config.load(args.config)
    except ConfigInvalid as e:
        setup_logging(args.debug, args.log_file)
        logger.error(f"Invalid configuration: {e}")
        return EXIT_CONFIG_INVALID

    setup_logging(args.debug or config.debug, args.log_file)
    logger.info(f"beesync {__version__} starting")

    modules = build_modules(config)
    if args.only:
        modules = [m for m in modules if m.name in args.only or m.kind in args.only]

    resolver = SecretResolver()
    cancel_event = threading.Event()
    beeminder = BeeminderClient(
        config.beeminder_username,
        token_source=partial(resolver.resolve, config.beeminder_key),
        base_url=config.beeminder_url,
        cancel_event=cancel_event,
    )
    engine = SyncEngine(beeminder, resolver=resolver, cancel_event=cancel_event)
    _SignalHandler(engine).install()

    try:
        result = engine.run(modules)
    finally:
        beeminder.close()
        resolver.clear()

    report(result)
    logger.info(f"Run finished: {result.created} datapoint(s) created")
    return EXIT_CANCELLED if result.cancelled else EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
