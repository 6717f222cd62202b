#!/usr/bin/env python3
"""Command-line interface for the event importer.

Commands:
  - event-import feed         : Import a JSON event feed
  - event-import spreadsheet  : Import an Excel upload workbook
  - event-import sources      : List configured feed sources

Typical usage:
  event-import feed destination_one --dry-run
  event-import feed split_hr --populate-missing
  event-import spreadsheet events.xlsx --category 3 --country 58
"""

from __future__ import annotations

import argparse
import sys
from typing import Any, Iterable

import psycopg2
from pydantic import ValidationError

from event_importer import __version__
from event_importer.configs.config import Config
from event_importer.configs.settings import get_settings
from event_importer.ingestion.errors import EventImportError
from event_importer.ingestion.factory import OrchestratorFactory
from event_importer.ingestion.orchestrator import RunMode, RunResult, RunStatus
from event_importer.monitoring.logging import LoggingOptions, setup_logging


def _logging_parser(defaults: bool) -> argparse.ArgumentParser:
    # Subcommand copies use SUPPRESS so they don't overwrite the global values
    p = argparse.ArgumentParser(add_help=False)
    p.add_argument(
        "--json-logs",
        action="store_true",
        default=False if defaults else argparse.SUPPRESS,
        help="Emit JSON logs",
    )
    p.add_argument(
        "--log-level",
        default=None if defaults else argparse.SUPPRESS,
        help="Override LOG_LEVEL",
    )
    return p


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="event-import",
        description="Event Importer CLI",
        parents=[_logging_parser(defaults=True)],
    )
    p.add_argument("--version", action="store_true", help="Print version and exit")
    sub = p.add_subparsers(dest="cmd")
    common = [_logging_parser(defaults=False)]

    # feed
    pf = sub.add_parser("feed", help="Import a JSON event feed", parents=common)
    pf.add_argument("source", help="Source name (e.g. destination_one, split_hr)")
    pf.add_argument("--url", default=None, help="Feed URL (overrides configuration)")
    pf.add_argument("--config", "-c", default=None, help="Path to sources.yaml")
    pf.add_argument(
        "--dry-run",
        action="store_true",
        help="Run without saving to the database",
    )
    modes = pf.add_mutually_exclusive_group()
    modes.add_argument(
        "--populate-missing",
        action="store_true",
        help="Fill empty fields of already imported entries",
    )
    modes.add_argument(
        "--update-matching",
        action="store_true",
        help="Update entries where title, start and end dates match",
    )
    modes.add_argument(
        "--update-all-matching",
        action="store_true",
        help="Update ALL fields (incl. title, dates, slug, cover image) of matching entries",
    )

    # spreadsheet
    ps = sub.add_parser("spreadsheet", help="Import an Excel upload workbook", parents=common)
    ps.add_argument("path", help="Path to the .xlsx file")
    ps.add_argument("--sheet", default=None, help="Worksheet name (default: Upload sheet)")
    ps.add_argument(
        "--category",
        type=int,
        action="append",
        default=[],
        help="Category id attached to every entry (repeatable)",
    )
    ps.add_argument("--country", type=int, default=None, help="Country id for every entry")

    # sources
    sub.add_parser("sources", help="List configured feed sources", parents=common)

    return p.parse_args(argv)


def _select_mode(args: argparse.Namespace) -> RunMode:
    if args.populate_missing:
        return RunMode.POPULATE_MISSING
    if args.update_matching:
        return RunMode.UPDATE_MATCHING
    if args.update_all_matching:
        return RunMode.UPDATE_ALL_MATCHING
    if args.dry_run:
        return RunMode.DRY_RUN
    return RunMode.IMPORT


def _print_table(rows: Iterable[tuple[str, Any]]) -> None:
    print(f"{'METRIC':<24} {'COUNT'}")
    print("-" * 32)
    for name, value in rows:
        print(f"{name:<24} {value}")


def _print_run_summary(result: RunResult) -> None:
    suffix = " (DRY RUN)" if result.dry_run else ""
    print(f"{result.mode.value} completed for {result.source_name}{suffix}")
    rows = [
        (name.replace("_", " ").capitalize(), count)
        for name, count in result.stats.as_dict().items()
    ]
    _print_table(rows or [("Processed", 0)])


def main(argv: list[str] | None = None) -> int:
    """Entry point. Returns the process exit code."""
    try:
        return _main_impl(argv)
    except EventImportError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except ValidationError as e:
        print(f"Error: Invalid settings: {e}", file=sys.stderr)
        return 1
    except psycopg2.Error as e:
        print(f"Error: Database unavailable: {e}", file=sys.stderr)
        return 1


def _main_impl(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    if args.version:
        print(f"event-importer version {__version__}")
        return 0

    if not args.cmd:
        print("Error: Command required. Use --help for usage info.", file=sys.stderr)
        return 1

    settings = get_settings()
    setup_logging(
        LoggingOptions(
            level=args.log_level or settings.LOG_LEVEL,
            json_logs=args.json_logs or settings.JSON_LOGS,
        )
    )

    if args.cmd == "sources":
        config = Config(settings.CONFIG_PATH, settings=settings)
        print(f"{'SOURCE':<20} {'ENABLED':<8} {'SCHEDULE':<10} {'URL'}")
        print("-" * 60)
        for name in config.list_sources():
            feed = config.get_feed_config(name)
            print(
                f"{name:<20} {str(feed.import_enabled):<8} "
                f"{feed.import_schedule:<10} {feed.api_url or '-'}"
            )
        return 0

    config = Config(args.config, settings=settings) if getattr(args, "config", None) else None
    factory = OrchestratorFactory(settings=settings, config=config)

    if args.cmd == "feed":
        with factory.connect() as conn:
            orchestrator = factory.create_orchestrator(args.source, conn)
            result = orchestrator.run(_select_mode(args), url=args.url, dry_run=args.dry_run)
        if result.status == RunStatus.DISABLED:
            print(f"Import for {args.source} is disabled in configuration.")
            return 0
        _print_run_summary(result)
        return 0

    if args.cmd == "spreadsheet":
        with factory.connect() as conn:
            importer = factory.create_spreadsheet_importer(conn)
            outcome = importer.import_file(
                args.path,
                sheet_name=args.sheet,
                category_ids=args.category,
                country_id=args.country,
            )
        _print_table(
            [
                ("Created", outcome.success),
                ("Skipped", outcome.skipped),
                ("Failed", outcome.failed),
            ]
        )
        for error in outcome.errors:
            print(f"  - {error}", file=sys.stderr)
        return 0

    print(f"Unknown command: {args.cmd}", file=sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(main())
