from __future__ import annotations

import argparse
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from trackoracle.app import list_states, reset_record, run_scheduler, run_single_pass
from trackoracle.config import ConfigurationError, configure_logging
from trackoracle.domain.model import RecordRef, StateKind

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from trackoracle.domain.model import ReconciliationState

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Close shipment tracking records on-chain")
    parser.add_argument(
        "--log-level",
        type=str.upper,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Root log level (default: %(default)s)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Run reconciliation passes on the cron schedule")
    run.add_argument(
        "--max-passes",
        type=int,
        help="Stop after this many passes (default: run until interrupted)",
    )

    subparsers.add_parser("pass", help="Run a single reconciliation pass and exit")

    states = subparsers.add_parser("states", help="List persisted record states")
    states.add_argument(
        "--kind",
        type=StateKind,
        action="append",
        choices=list(StateKind),
        help="Only show records in this state (repeatable)",
    )

    reset = subparsers.add_parser(
        "reset",
        help="Restart a rejected or vanished record from status resolution",
    )
    reset.add_argument("ref", type=str, help="Record reference as <tx_hash>#<output_index>")

    args = parser.parse_args(list(argv))
    if args.command == "run" and args.max_passes is not None and args.max_passes < 1:
        raise ValueError("--max-passes must be at least 1")
    if args.command == "reset":
        args.ref = RecordRef.parse(args.ref)
    return args


def _format_state(ref: RecordRef, state: ReconciliationState) -> str:
    parts = [str(ref), state.kind.value]
    if state.status is not None:
        parts.append(f"status={state.status.value}")
    if state.attempt_count:
        parts.append(f"attempts={state.attempt_count}")
    if state.next_attempt_at is not None:
        parts.append(f"next={state.next_attempt_at.isoformat()}")
    if state.tx_ref is not None:
        parts.append(f"tx={state.tx_ref}")
    if state.rejection is not None:
        parts.append(f"rejection={state.rejection.value}")
    if state.reason:
        parts.append(f"reason={state.reason!r}")
    parts.append(f"updated={state.updated_at.isoformat()}")
    return " ".join(parts)


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    parsed_args: argparse.Namespace
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
    except ValueError:
        configure_logging()
        log.exception("CLI validation error")
        sys.exit(2)
    configure_logging(level=logging.getLevelName(parsed_args.log_level))

    try:
        if parsed_args.command == "run":
            run_scheduler(max_passes=parsed_args.max_passes)
        elif parsed_args.command == "pass":
            report = run_single_pass()
            if report.aborted:
                sys.exit(1)
        elif parsed_args.command == "states":
            for ref, state in list_states(parsed_args.kind):
                sys.stdout.write(_format_state(ref, state) + "\n")
        elif parsed_args.command == "reset":
            reset_record(parsed_args.ref)
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301

    except (ConfigurationError, ValueError):
        log.exception("Invalid configuration or input")
        sys.exit(2)
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
