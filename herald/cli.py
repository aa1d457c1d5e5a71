"""Command-line tools for schedules: translate, tick, and run-ticker.

Usage
-----
::

    herald translate weekly 09:30
    herald tick --database-url sqlite+aiosqlite:///herald.db --dry-run
    herald run-ticker --sweep-every 10

"""

from __future__ import annotations

import argparse
import asyncio
import datetime as dt
import os
import signal
import typing as typ

import msgspec

from herald.logging import configure_logging, get_logger, log_info, log_warning
from herald.schedule.errors import ScheduleError
from herald.schedule.ticker import DEFAULT_SWEEP_INTERVAL
from herald.schedule.translator import translate

if typ.TYPE_CHECKING:
    from herald.schedule.ticker import Trigger, TriggerEnqueuer

logger = get_logger(__name__)


class _DryRunEnqueuer:
    """Enqueuer that accepts triggers without sending them anywhere."""

    def enqueue(self, report_id: str, scheduled_period: str) -> None:
        """Drop the trigger."""


def _parse_now(raw: str) -> dt.datetime:
    moment = dt.datetime.fromisoformat(raw)
    if moment.tzinfo is None:
        msg = f"timestamp must include a UTC offset: {raw!r}"
        raise argparse.ArgumentTypeError(msg)
    return moment


def _parse_sweep_minutes(raw: str) -> dt.timedelta:
    try:
        minutes = int(raw)
    except ValueError:
        minutes = -1
    if minutes < 0:
        msg = f"sweep interval must be a whole number of minutes, got {raw!r}"
        raise argparse.ArgumentTypeError(msg)
    return dt.timedelta(minutes=minutes)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="herald", description=__doc__)
    commands = parser.add_subparsers(dest="command", required=True)

    translate_cmd = commands.add_parser(
        "translate", help="Print the recurrence rule for a cadence and time"
    )
    translate_cmd.add_argument("cadence", help="daily, weekly or monthly")
    translate_cmd.add_argument("time_of_day", help="UTC delivery time as HH:MM")
    translate_cmd.add_argument(
        "--json", action="store_true", help="Print the full rule as JSON"
    )

    for name, help_text in (
        ("tick", "Enqueue triggers for rules due in one minute"),
        ("run-ticker", "Enqueue due triggers at the top of every minute"),
    ):
        command = commands.add_parser(name, help=help_text)
        command.add_argument(
            "--database-url",
            default=os.environ.get("HERALD_DATABASE_URL"),
            help="SQLAlchemy URL (default: $HERALD_DATABASE_URL)",
        )

    tick_cmd = commands.choices["tick"]
    tick_cmd.add_argument(
        "--now",
        type=_parse_now,
        default=None,
        help="Evaluate this minute instead of the current one (ISO, with offset)",
    )
    tick_cmd.add_argument(
        "--dry-run",
        action="store_true",
        help="List due triggers without enqueuing them",
    )
    commands.choices["run-ticker"].add_argument(
        "--sweep-every",
        type=_parse_sweep_minutes,
        default=DEFAULT_SWEEP_INTERVAL,
        metavar="MINUTES",
        help="Queue a stalled execution sweep this often; 0 disables (default: 5)",
    )
    return parser


def _translate(args: argparse.Namespace) -> int:
    try:
        rule = translate(args.cadence, args.time_of_day)
    except ScheduleError as exc:
        print(f"error: {exc}")
        return 1

    if args.json:
        payload = msgspec.to_builtins(rule) | {"expression": rule.expression}
        print(msgspec.json.encode(payload).decode())
    else:
        print(rule.expression)
    return 0


def _enqueuer_for(database_url: str, *, dry_run: bool) -> TriggerEnqueuer:
    if dry_run:
        return _DryRunEnqueuer()
    from herald.dispatch.actor import DramatiqTriggerEnqueuer

    return DramatiqTriggerEnqueuer(database_url)


async def _tick(
    database_url: str, now: dt.datetime | None, *, dry_run: bool
) -> list[Trigger]:
    from herald.dispatch.wiring import session_scope
    from herald.schedule.registry import DatabaseScheduleRegistry
    from herald.schedule.ticker import ScheduleTicker

    async with session_scope(database_url) as session_factory:
        ticker = ScheduleTicker(
            DatabaseScheduleRegistry(session_factory),
            _enqueuer_for(database_url, dry_run=dry_run),
        )
        return await ticker.tick(now)


async def _run_ticker(database_url: str, sweep_every: dt.timedelta) -> None:
    from herald.dispatch.actor import DramatiqSweepEnqueuer
    from herald.dispatch.wiring import session_scope
    from herald.schedule.registry import DatabaseScheduleRegistry
    from herald.schedule.ticker import ScheduleTicker, run_ticker

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    async with session_scope(database_url) as session_factory:
        ticker = ScheduleTicker(
            DatabaseScheduleRegistry(session_factory),
            _enqueuer_for(database_url, dry_run=False),
        )
        sweeper = DramatiqSweepEnqueuer(database_url) if sweep_every else None
        log_info(logger, "Schedule ticker started")
        await run_ticker(ticker, stop, sweeper=sweeper, sweep_every=sweep_every)
    log_info(logger, "Schedule ticker stopped")


def main(argv: list[str] | None = None) -> int:
    """Run the ``herald`` command line.

    Parameters
    ----------
    argv : list[str] | None, optional
        Command-line arguments. ``None`` defaults to ``sys.argv``.

    Returns
    -------
    int
        Exit code: 0 on success, 1 when the input is rejected.

    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    raw_level = os.environ.get("HERALD_LOG_LEVEL", "INFO")
    level, invalid = configure_logging(raw_level)
    if invalid:
        log_warning(
            logger, "Invalid HERALD_LOG_LEVEL %r, falling back to %s", raw_level, level
        )

    if args.command == "translate":
        return _translate(args)

    if not args.database_url:
        parser.error("--database-url or HERALD_DATABASE_URL is required")

    if args.command == "tick":
        triggers = asyncio.run(
            _tick(args.database_url, args.now, dry_run=args.dry_run)
        )
        for trigger in triggers:
            print(f"{trigger.report_id} {trigger.scheduled_period}")
        return 0

    asyncio.run(_run_ticker(args.database_url, args.sweep_every))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
