"""
Test-network harness CLI entry point.

Launch a network described by a test file, run its steps and report.

Usage::

    python -m netharness run tests/0001-basic.zndsl
    python -m netharness run tests/0001-basic.zndsl --report report.json --run-timeout 900
    python -m netharness run tests/0001-basic.zndsl --dry-run

Exit codes:
    0  every step passed
    1  at least one step failed, timed out or was skipped
    2  the test or network file is malformed
    3  the network could not be launched
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Final

from netharness.executor import Report
from netharness.metrics import generate_metrics
from netharness.runner import execute, prepare
from netharness.types import ConfigError, LaunchError

logger = logging.getLogger(__name__)

EXIT_PASSED: Final = 0
EXIT_FAILED: Final = 1
EXIT_CONFIG_ERROR: Final = 2
EXIT_LAUNCH_ERROR: Final = 3


class ColoredFormatter(logging.Formatter):
    """Logging formatter with ANSI colors for better readability."""

    # ANSI color codes
    GREY = "\x1b[38;5;244m"
    BLUE = "\x1b[38;5;39m"
    GREEN = "\x1b[38;5;40m"
    YELLOW = "\x1b[38;5;220m"
    RED = "\x1b[38;5;196m"
    BOLD_RED = "\x1b[38;5;196;1m"
    CYAN = "\x1b[38;5;51m"
    RESET = "\x1b[0m"

    LEVEL_COLORS = {
        logging.DEBUG: GREY,
        logging.INFO: GREEN,
        logging.WARNING: YELLOW,
        logging.ERROR: RED,
        logging.CRITICAL: BOLD_RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with colors."""
        color = self.LEVEL_COLORS.get(record.levelno, self.RESET)

        timestamp = self.formatTime(record, self.datefmt)
        colored_time = f"{self.CYAN}{timestamp}{self.RESET}"
        levelname = f"{color}{record.levelname:8}{self.RESET}"
        name = f"{self.BLUE}{record.name}{self.RESET}"

        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"

        return f"{colored_time} {levelname} {name}: {message}"


def setup_logging(verbose: bool = False, no_color: bool = False) -> None:
    """Configure logging for the harness with optional colors."""
    level = logging.DEBUG if verbose else logging.INFO

    handler = logging.StreamHandler()
    handler.setLevel(level)

    # Colors only make sense on a terminal.
    if no_color or not sys.stderr.isatty():
        formatter = logging.Formatter(
            "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        formatter = ColoredFormatter(datefmt="%Y-%m-%d %H:%M:%S")

    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(handler)

    # httpx logs every request at INFO, which drowns out the polling loop.
    if not verbose:
        logging.getLogger("httpx").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="netharness",
        description="Multi-node blockchain test-network harness",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored logging output",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    run = commands.add_parser("run", help="Launch the network of a test file and run its steps")
    run.add_argument("test_file", type=Path, help="Path to the test file")
    run.add_argument(
        "--report",
        type=Path,
        default=None,
        help="Write the JSON report to this path",
    )
    run.add_argument(
        "--run-timeout",
        type=float,
        default=None,
        help="Deadline for the whole run in seconds (default: network settings.timeout)",
    )
    run.add_argument(
        "--workdir",
        type=Path,
        default=None,
        help="Directory for node data and logs (default: a fresh temporary directory)",
    )
    run.add_argument(
        "--metrics-out",
        type=Path,
        default=None,
        help="Write harness metrics in Prometheus text format to this path",
    )
    run.add_argument(
        "--dry-run",
        action="store_true",
        help="Parse and resolve the test without launching anything",
    )
    return parser


async def run_command(args: argparse.Namespace) -> int:
    """Execute the `run` sub-command and return the process exit code."""
    try:
        plan = prepare(args.test_file)
    except ConfigError as exc:
        logger.error("%s", exc)
        return EXIT_CONFIG_ERROR

    if args.dry_run:
        print(plan.describe())
        return EXIT_PASSED

    try:
        report = await execute(plan, workdir=args.workdir, run_timeout=args.run_timeout)
    except LaunchError as exc:
        logger.error("%s", exc)
        return EXIT_LAUNCH_ERROR
    except ConfigError as exc:
        logger.error("%s", exc)
        return EXIT_CONFIG_ERROR
    finally:
        if args.metrics_out is not None:
            args.metrics_out.write_bytes(generate_metrics())

    write_report(report, args.report)
    return EXIT_PASSED if report.passed else EXIT_FAILED


def write_report(report: Report, path: Path | None) -> None:
    print(report.summary())
    if path is not None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(report.to_json(), encoding="utf-8")
        logger.info("Report written to %s", path)


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose, args.no_color)

    if args.run_timeout is not None and args.run_timeout <= 0:
        parser.error("--run-timeout must be positive")

    try:
        return asyncio.run(run_command(args))
    except KeyboardInterrupt:
        # asyncio.run() cancels the run; the supervisor tears the network down.
        logger.info("Interrupted")
        return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
