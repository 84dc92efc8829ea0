# ruff: noqa: T201

from __future__ import annotations

import argparse
import json
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from safemerge.app import USER_WARNING, explain, locate, merge, open_context, plan_merge, settings
from safemerge.config import ConfigurationError, configure_logging, verbosity_level
from safemerge.domain.model import (
    Blocked,
    ExecutionFailure,
    NotFound,
    PartiallyFound,
    Ready,
    SchemaInconsistency,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from safemerge.app import MergeContext, MergeExplanation
    from safemerge.domain.model import MergeResult

log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_VALIDATION = 2
EXIT_REFUSED = 3


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Check and perform safe automatic merges of duplicate records",
        epilog=USER_WARNING,
    )
    parser.add_argument(
        "--rules",
        type=str,
        help="Path to a TOML merge-rules file (defaults to $SAFEMERGE_RULES or packaged rules)",
    )
    parser.add_argument(
        "--database-uri",
        type=str,
        help="SQLAlchemy database URL (defaults to $SAFEMERGE_DATABASE_URI / $DATABASE_URI)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase log output (repeat for debug)",
    )
    parser.add_argument("-q", "--quiet", action="store_true", help="Only log errors")
    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("plan", "Check whether LOSE can be merged into KEEP without changing anything"),
        ("merge", "Merge LOSE into KEEP when the plan is clean"),
        ("explain", "Show locations, plan buckets and column verdicts for a merge"),
    ):
        command = subparsers.add_parser(name, help=help_text)
        command.add_argument("keep", type=int, help="Id of the record to keep")
        command.add_argument("lose", type=int, help="Id of the duplicate to fold in")

    locate_parser = subparsers.add_parser("locate", help="List columns referring to an id")
    locate_parser.add_argument("entity_id", type=int, help="Entity id to look for")

    subparsers.add_parser("settings", help="Print the effective merge rules")

    return parser.parse_args(list(argv))


def describe_result(result: MergeResult) -> list[str]:
    lines = [f"{result.status}: keep={result.keep} lose={result.lose}"]
    if isinstance(result, Ready):
        lines.append(f"{len(result.commands)} command(s):")
        lines.extend(f"  {command.describe()}" for command in result.commands)
    elif isinstance(result, Blocked):
        lines.append("blocked by:")
        lines.extend(f"  {reason.describe()}" for reason in result.reasons)
    elif isinstance(result, NotFound):
        lines.append("neither id is an active record")
    elif isinstance(result, PartiallyFound):
        lines.append(f"only {result.found} is an active record")
    elif isinstance(result, SchemaInconsistency):
        lines.append("merge rules name tables or columns the schema does not have:")
        lines.extend(f"  {name}" for name in result.missing)
    elif isinstance(result, ExecutionFailure):
        lines.append(f"rolled back: {result.reason}")
    return lines


def describe_explanation(explanation: MergeExplanation) -> list[str]:
    lines = [f"locations of {explanation.lose}:"]
    lines.extend(
        f"  {location.key} ({location.row_count} row(s))"
        for location in sorted(explanation.locations)
    )
    plan = explanation.plan
    if plan is not None:
        for bucket, locations in (
            ("update", plan.update),
            ("delete", plan.delete),
            ("examine", plan.examine),
            ("unclassified", plan.blockers),
        ):
            keys = ", ".join(location.key for location in sorted(locations)) or "-"
            lines.append(f"{bucket}: {keys}")
    for examination in explanation.examinations:
        lines.append(
            f"{examination.table} ({examination.key_column} "
            f"{examination.keep_id} vs {examination.lose_id}):"
        )
        if not examination.table_classified:
            lines.append("  no column behaviour entries; every column compares strictly")
        for verdict in examination.verdicts:
            mark = "BLOCK" if verdict.blocked else "ok"
            lines.append(
                f"  {mark:<5} {verdict.column} [{verdict.behavior}, {verdict.source}] "
                f"keep={verdict.keep_value!r} lose={verdict.lose_value!r}"
            )
    lines.extend(describe_result(explanation.result))
    return lines


def _context(args: argparse.Namespace) -> MergeContext:
    return open_context(rules_path=args.rules, database_uri=args.database_uri)


def _run(args: argparse.Namespace) -> int:
    if args.command == "settings":
        print(json.dumps(settings(rules_path=args.rules), indent=2, default=str))
        return EXIT_OK

    if args.command == "locate":
        locations = locate(args.entity_id, context=_context(args))
        for location in sorted(locations):
            print(f"{location.key}\t{location.row_count}")
        return EXIT_OK

    if args.command == "plan":
        result = plan_merge(args.keep, args.lose, context=_context(args))
    elif args.command == "merge":
        result = merge(args.keep, args.lose, context=_context(args))
    elif args.command == "explain":
        explanation = explain(args.keep, args.lose, context=_context(args))
        print("\n".join(describe_explanation(explanation)))
        result = explanation.result
    else:
        raise ValueError(f"Unsupported command: {args.command}")

    if args.command != "explain":
        print("\n".join(describe_result(result)))
    return EXIT_OK if isinstance(result, Ready) else EXIT_REFUSED


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(level=verbosity_level(verbose=parsed_args.verbose, quiet=parsed_args.quiet))

    try:
        code = _run(parsed_args)
    except (ValueError, ConfigurationError) as exc:
        log.error("Validation error: %s", exc)  # noqa: TRY400
        sys.exit(EXIT_VALIDATION)
    except Exception:
        log.exception("Fatal error during %s", parsed_args.command)
        sys.exit(EXIT_FATAL)
    sys.exit(code)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    """Console-script entry point: load ``.env`` and install the SIGINT handler."""
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
