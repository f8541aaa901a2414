"""Shift engine command line interface.

Provides operational tools for:
- Schema creation
- Penalty table inspection
- The periodic no-show sweep
- Occurrence availability

Usage:
    shift-engine init-db
    shift-engine penalty-table --json
    shift-engine sweep-no-shows --now 2024-05-01T12:00:00
    shift-engine availability --shift-id X --date 2024-05-01
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from datetime import date, datetime, timezone
from typing import Awaitable, Callable, TypeVar
from uuid import UUID

from shift_engine.calculators.cancellation_policy import PENALTY_TABLE_VERSION, penalty_table
from shift_engine.config import configure_logging, get_settings
from shift_engine.database import create_schema, dispose_db, init_db
from shift_engine.services.allocation_service import AllocationService
from shift_engine.services.errors import AllocationError


T = TypeVar("T")


def parse_datetime(s: str) -> datetime:
    """Parse ISO datetime string into naive UTC."""
    value = datetime.fromisoformat(s.replace("Z", "+00:00"))
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_date(s: str) -> date:
    """Parse ISO date string."""
    return date.fromisoformat(s)


def parse_uuid(s: str) -> UUID:
    """Parse UUID string."""
    return UUID(s)


class ShiftEngineCli:
    """Shift engine Command Line Interface."""

    def __init__(self) -> None:
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="shift-engine",
            description="Shift engine operational tools",
        )
        parser.add_argument(
            "--database-url",
            type=str,
            help="Override DATABASE_URL",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        subparsers.add_parser(
            "init-db",
            help="Create all tables on the configured database",
        )

        table = subparsers.add_parser(
            "penalty-table",
            help="Print the cancellation penalty table",
        )
        table.add_argument(
            "--json",
            action="store_true",
            help="Output as JSON",
        )

        sweep = subparsers.add_parser(
            "sweep-no-shows",
            help="Mark overdue bookings without a clock-in as no-shows",
        )
        sweep.add_argument(
            "--now",
            type=parse_datetime,
            help="Reference time (ISO format, default: current UTC time)",
        )

        availability = subparsers.add_parser(
            "availability",
            help="Show seat counters for a shift occurrence",
        )
        availability.add_argument(
            "--shift-id",
            type=parse_uuid,
            required=True,
            help="Shift ID",
        )
        availability.add_argument(
            "--date",
            type=parse_date,
            required=True,
            help="Occurrence date (YYYY-MM-DD)",
        )

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        handlers: dict[str, Callable[..., int]] = {
            "init-db": self._cmd_init_db,
            "penalty-table": self._cmd_penalty_table,
            "sweep-no-shows": self._cmd_sweep_no_shows,
            "availability": self._cmd_availability,
        }

        handler = handlers.get(parsed.command)
        if handler:
            return handler(parsed)

        print(f"Unknown command: {parsed.command}", file=sys.stderr)
        return 1

    def _cmd_init_db(self, args: argparse.Namespace) -> int:
        """Create the schema."""

        async def work(service: AllocationService) -> None:
            engine, _ = init_db()
            await create_schema(engine)

        self._run_async(args, work)
        print("Schema created.")
        return 0

    def _cmd_penalty_table(self, args: argparse.Namespace) -> int:
        """Print the cancellation penalty table."""
        rows = penalty_table()
        if args.json:
            print(json.dumps({"version": PENALTY_TABLE_VERSION, "rules": rows}, indent=2))
            return 0

        print(f"Cancellation penalties (table {PENALTY_TABLE_VERSION})")
        print("=" * 50)
        for row in rows:
            print(f"  {row['label']:<30} ${row['penalty']:>6}")
        return 0

    def _cmd_sweep_no_shows(self, args: argparse.Namespace) -> int:
        """Run one no-show sweep."""

        async def work(service: AllocationService) -> list[UUID]:
            return await service.sweep_no_shows(now=args.now)

        try:
            marked = self._run_async(args, work)
        except AllocationError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 1

        print(f"Marked {len(marked)} application(s) as no-show")
        for application_id in marked:
            print(f"  - {application_id}")
        return 0

    def _cmd_availability(self, args: argparse.Namespace) -> int:
        """Show occurrence seat counters."""

        async def work(service: AllocationService):
            return await service.availability(args.shift_id, args.date)

        try:
            snapshot = self._run_async(args, work)
        except AllocationError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 1

        print(f"Shift {snapshot.shift_id} on {snapshot.occurrence_date.isoformat()}")
        print(f"  Primary:  {snapshot.filled_primary}/{snapshot.vacancy}")
        print(f"  Standby:  {snapshot.filled_standby}/{snapshot.standby_vacancy}")
        print(f"  Label:    {snapshot.slot_label}")
        return 0

    def _run_async(
        self,
        args: argparse.Namespace,
        work: Callable[[AllocationService], Awaitable[T]],
    ) -> T:
        if args.database_url:
            os.environ["DATABASE_URL"] = args.database_url
            get_settings.cache_clear()

        async def runner() -> T:
            _, factory = init_db()
            service = AllocationService(factory, config=get_settings().allocation)
            try:
                return await work(service)
            finally:
                await dispose_db()

        return asyncio.run(runner())


def main() -> int:
    """CLI entry point."""
    configure_logging()
    cli = ShiftEngineCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
