from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import sys
from signal import SIGINT, SIGTERM, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from dpresolver.app import force_check_schedule, resolve_schedule, run_engine
from dpresolver.config import configure_logging

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Resolve and reconcile warehouse document numbers")
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        help="Logging level (default: %(default)s)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Run the resolution and reconciliation loops")
    run.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing tables first (local databases only)",
    )

    force_check = subparsers.add_parser(
        "force-check",
        help="Reconcile one schedule's status with the ledger now",
    )
    force_check.add_argument("schedule_id", type=int, help="Schedule id")

    resolve = subparsers.add_parser(
        "resolve",
        help="Run one document-number resolution attempt for a schedule now",
    )
    resolve.add_argument("schedule_id", type=int, help="Schedule id")

    return parser.parse_args(list(argv))


def _parse_log_level(value: str) -> int:
    level = logging.getLevelName(value.strip().upper())
    if not isinstance(level, int):
        raise ValueError(f"Invalid log level: {value}")
    return level


async def _run(create_tables: bool) -> None:  # noqa: FBT001
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (SIGINT, SIGTERM):
        # Not available on Windows event loops; SIGINT then falls back to sigint_handler.
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(signum, stop_event.set)
    await run_engine(stop_event, create_tables=create_tables)


async def _dispatch(args: argparse.Namespace) -> None:
    if args.command == "run":
        await _run(args.create_tables)
    elif args.command == "force-check":
        result = await force_check_schedule(args.schedule_id)
        log.info(
            "Schedule %s: %s (%s)", args.schedule_id, result.outcome.value, result.message
        )
    elif args.command == "resolve":
        attempt = await resolve_schedule(args.schedule_id)
        log.info(
            "Schedule %s: %s, document=%s, strategy=%s",
            args.schedule_id,
            attempt.outcome.value,
            attempt.document_number or "-",
            attempt.match.strategy if attempt.match else "-",
        )
    else:
        raise ValueError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args: argparse.Namespace
    try:
        parsed_args = _parse_args(args_list)
        level = _parse_log_level(parsed_args.log_level)
    except ValueError:
        configure_logging()
        log.exception("CLI validation error")
        sys.exit(2)
    configure_logging(level=level)

    try:
        asyncio.run(_dispatch(parsed_args))
    except Exception:
        log.exception("Fatal error")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
