"""Command-line entry for stratflow_lite.

Offers a preview of recurring-series expansion and a dump of the effective
client settings, both without touching the network.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date, datetime
from typing import Optional

from . import _init_logging
from .lite_logging import configure_lite_logging


def _parse_datetime(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid ISO date-time: {value!r}") from e


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid ISO date: {value!r}") from e


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the stratflow_lite CLI."""
    parser = argparse.ArgumentParser(
        prog="stratflow_lite",
        description="StratFlow Lite - scheduling and resilience utilities for the back office",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m stratflow_lite expand --anchor 2024-01-01T09:00 --until 2024-01-05 --frequency daily
  python -m stratflow_lite expand --anchor 2024-01-31T10:30 --until 2024-06-30 --frequency monthly --json
  python -m stratflow_lite config
        """,
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        metavar="LEVEL",
        help="Root log level (default: WARNING, or DEBUG when STRATFLOW_DEBUG is set)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    expand = subparsers.add_parser("expand", help="List the occurrences of a recurring appointment")
    expand.add_argument("--anchor", required=True, type=_parse_datetime, help="First occurrence (ISO date-time)")
    expand.add_argument("--until", required=True, type=_parse_date, help="Inclusive end date (ISO date)")
    expand.add_argument(
        "--frequency",
        required=True,
        help="daily, weekly or monthly",
    )
    expand.add_argument("--max-occurrences", type=int, default=250, help="Series size limit (default: 250)")
    expand.add_argument("--json", action="store_true", help="Print a JSON array instead of one line per occurrence")

    subparsers.add_parser("config", help="Print effective client settings as JSON")

    return parser


def _run_expand(args: argparse.Namespace) -> int:
    from stratflow_lite.core.recurrence import RecurrenceExpander
    from stratflow_lite.exceptions import RecurrenceValidationError

    expander = RecurrenceExpander(max_occurrences=args.max_occurrences)
    try:
        request = expander.validate(args.anchor, args.until, args.frequency)
    except RecurrenceValidationError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    occurrences = [when.isoformat() for when in expander.expand_request(request)]
    if args.json:
        print(json.dumps(occurrences))
    else:
        for when in occurrences:
            print(when)
    return 0


def _run_config() -> int:
    from stratflow_lite.core.config_manager import ClientSettings

    print(json.dumps(ClientSettings.from_env().to_dict(), indent=2, sort_keys=True))
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Run the stratflow_lite CLI and return the exit status."""
    parser = _create_parser()
    args = parser.parse_args(argv)
    _init_logging(args.log_level)
    if logging.getLogger().level == logging.DEBUG:
        configure_lite_logging(force_debug=True)

    if args.command == "expand":
        return _run_expand(args)
    return _run_config()


if __name__ == "__main__":
    sys.exit(main())
