"""Command-line entry point for gwipt.

Watches the working tree of the repository containing ``--workdir`` (default:
the current directory) and records every settled change as a commit on the
``wip/<branch>`` shadow branch. Loads ``.env`` from the repository root if
present to populate environment variables.
"""

import os
import signal
import sys
import threading
from argparse import ArgumentParser
from pathlib import Path

from gwipt import __version__

# How often the idle loop checks on the observer thread
WATCHDOG_POLL_SECONDS = 10.0


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(
        prog="gwipt",
        description="Record work-in-progress snapshots on a wip/ shadow branch",
    )
    parser.add_argument(
        "-t",
        "--time-delay",
        type=float,
        help="Seconds a path must stay quiet before its change is processed (default 0.1)",
    )
    parser.add_argument(
        "-C",
        "--workdir",
        default=".",
        help="Directory inside the repository to watch (default: current directory)",
    )
    parser.add_argument(
        "--transport",
        choices=["chat", "completion"],
        help="Generation transport. Overrides GWIPT_TRANSPORT env var.",
    )
    parser.add_argument(
        "--model",
        help="Model name. Overrides GWIPT_MODEL env var.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--log-format",
        choices=["pretty", "json"],
        help="Log format (pretty or json). Overrides LOG_FORMAT env var.",
    )
    parser.add_argument(
        "--log-colors",
        type=lambda x: x.lower() in ("true", "1", "yes", "on"),
        help="Enable colored logs (true/false). Overrides LOG_COLORS env var.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: list[str] | None = None) -> int:
    # Parse arguments FIRST so --help works without a repository or logger
    args = build_parser().parse_args(argv)

    # Logging env vars must be set before the logger module is imported
    if args.log_format:
        os.environ["LOG_FORMAT"] = args.log_format
    if args.log_colors is not None:
        os.environ["LOG_COLORS"] = "true" if args.log_colors else "false"
    if args.verbose:
        os.environ["LOG_LEVEL"] = "DEBUG"

    from gwipt.utils.logger import get_logger

    startup_logger = get_logger("gwipt.startup")

    from gwipt.core.errors import (
        InvalidRepositoryStateError,
        RepositoryNotFoundError,
        WatchError,
    )
    from gwipt.core.repository import RepositoryHandle

    workdir = Path(args.workdir).expanduser().resolve()
    try:
        repo = RepositoryHandle.discover(workdir)
    except RepositoryNotFoundError as e:
        startup_logger.error("Not inside a git repository", path=str(workdir), error=str(e))
        return 1

    # Load .env from the repository root to populate environment variables for config
    from dotenv import load_dotenv

    env_file = repo.root / ".env"
    if env_file.exists():
        load_dotenv(dotenv_path=env_file, override=False)
        startup_logger.debug("Loaded .env file", path=str(env_file))

    from gwipt.config import settings

    settings.update(
        time_delay=args.time_delay,
        transport=args.transport,
        model=args.model,
    )
    try:
        transport = settings.transport
        time_delay = settings.time_delay
    except ValueError as e:
        startup_logger.error("Invalid configuration", error=str(e))
        return 1

    try:
        branch, _head = repo.head_branch()
    except InvalidRepositoryStateError as e:
        startup_logger.error("Cannot track this repository", error=str(e))
        return 1

    is_valid, errors = settings.validation_status()
    if not is_valid:
        # Keep watching; each run reports the missing key until it is configured
        startup_logger.warning(
            "Generation service not configured", errors=errors
        )

    from gwipt.core.pipeline import ChangeOrchestrator
    from gwipt.core.watcher import DebouncedWatcher
    from gwipt.services.message import MessageClient

    orchestrator = ChangeOrchestrator(repo, MessageClient(settings))
    startup_logger.info(
        "Watching repository",
        root=str(repo.root),
        branch=branch,
        transport=transport,
        model=settings.model,
        delay=time_delay,
    )

    shutdown = threading.Event()

    def signal_handler(signum, frame):
        """Handle shutdown signals gracefully."""
        sig_name = signal.Signals(signum).name
        startup_logger.info(f"Received {sig_name}, shutting down")
        shutdown.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    # Catch up on anything changed while we were not running
    orchestrator.run()

    watcher = DebouncedWatcher(repo.root, orchestrator.handle_batch, time_delay)
    try:
        watcher.start()
    except WatchError as e:
        startup_logger.error("Failed to start file watcher", error=str(e))
        watcher.stop()
        return 1

    try:
        while not shutdown.wait(WATCHDOG_POLL_SECONDS):
            if watcher.is_alive():
                continue
            err = WatchError("File watcher stopped unexpectedly")
            startup_logger.error("Watcher failure", kind=err.kind, error=str(err))
            try:
                watcher.restart()
                startup_logger.info("File watcher restarted")
            except WatchError as e:
                startup_logger.error("Failed to restart file watcher", error=str(e))
    finally:
        watcher.stop()

    startup_logger.info("Stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
