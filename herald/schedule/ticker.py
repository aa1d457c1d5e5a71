"""Minute ticker that turns registered rules into trigger messages.

The ticker is the in-house time-triggering facility: once per minute it
asks the ``DatabaseScheduleRegistry`` which rules fire and enqueues one
``(report_id, scheduled_period)`` trigger for each through a
``TriggerEnqueuer``. Delivery is at-least-once; a tick that runs twice for
the same minute produces duplicate triggers, which the execution state
machine collapses.
"""

from __future__ import annotations

import asyncio
import dataclasses as dc
import datetime as dt
import functools
import typing as typ

from herald.common.time import floor_to_minute, utcnow
from herald.logging import get_logger, log_error, log_info

if typ.TYPE_CHECKING:
    from herald.schedule.registry import DatabaseScheduleRegistry

logger = get_logger(__name__)

_SECONDS_PER_MINUTE = 60
_MINUTE = dt.timedelta(minutes=1)

DEFAULT_SWEEP_INTERVAL = dt.timedelta(minutes=5)


@typ.runtime_checkable
class TriggerEnqueuer(typ.Protocol):
    """Port for handing a trigger to the dispatch workers."""

    def enqueue(self, report_id: str, scheduled_period: str) -> None:
        """Queue a dispatch of ``report_id`` for ``scheduled_period``."""
        ...


@typ.runtime_checkable
class SweepEnqueuer(typ.Protocol):
    """Port for requesting a sweep of stalled executions."""

    def enqueue_sweep(self, now: dt.datetime) -> None:
        """Queue a sweep evaluated at ``now``."""
        ...


@dc.dataclass(frozen=True, slots=True)
class Trigger:
    """One enqueued trigger."""

    report_id: str
    scheduled_period: str


class ScheduleTicker:
    """Evaluate due rules and enqueue triggers for them."""

    def __init__(
        self,
        registry: DatabaseScheduleRegistry,
        enqueuer: TriggerEnqueuer,
    ) -> None:
        """Configure the ticker with its rule source and trigger sink."""
        self._registry = registry
        self._enqueuer = enqueuer

    async def tick(self, now: dt.datetime | None = None) -> list[Trigger]:
        """Enqueue triggers for every rule due in the minute of ``now``.

        The scheduled period is the evaluated minute, so re-running a tick
        for the same minute yields identical triggers.
        """
        minute = floor_to_minute(now or utcnow())
        scheduled_period = minute.isoformat()
        triggers: list[Trigger] = []
        for due in await self._registry.due_rules(minute):
            self._enqueuer.enqueue(due.report_id, scheduled_period)
            triggers.append(Trigger(due.report_id, scheduled_period))
        log_info(
            logger,
            "Schedule tick at %s enqueued %d trigger(s)",
            scheduled_period,
            len(triggers),
        )
        return triggers


def seconds_until_next_minute(now: dt.datetime) -> float:
    """Return the delay from ``now`` to the start of the following minute."""
    elapsed = now.second + now.microsecond / 1_000_000
    return _SECONDS_PER_MINUTE - elapsed


def minutes_to_evaluate(
    last_evaluated: dt.datetime, current: dt.datetime
) -> list[dt.datetime]:
    """Return every minute after ``last_evaluated`` up to ``current``.

    Both arguments are minute-floored. A slow tick or a late wake-up can
    leave a gap of several minutes; each of them is returned so no rule is
    skipped.

    Examples
    --------
    >>> import datetime as dt
    >>> last = dt.datetime(2024, 6, 1, 8, 59, tzinfo=dt.UTC)
    >>> [f"{m:%H:%M}" for m in minutes_to_evaluate(last, last.replace(minute=1))]
    ['09:00', '09:01']

    """
    minutes: list[dt.datetime] = []
    minute = last_evaluated + _MINUTE
    while minute <= current:
        minutes.append(minute)
        minute += _MINUTE
    return minutes


async def _wait_for_stop(stop: asyncio.Event, timeout: float) -> None:
    try:
        await asyncio.wait_for(stop.wait(), timeout=timeout)
    except TimeoutError:
        return


async def _catch_up(
    ticker: ScheduleTicker, last_evaluated: dt.datetime, current: dt.datetime
) -> dt.datetime:
    """Tick each outstanding minute in order; return the last one that ran.

    A failed tick stops the catch-up so the same minute is retried on the
    next wake-up. Repeated triggers are collapsed by dispatch.
    """
    for minute in minutes_to_evaluate(last_evaluated, current):
        try:
            await ticker.tick(minute)
        except Exception:  # noqa: BLE001 - the loop outlives a failed minute
            log_error(
                logger,
                "Schedule tick for %s failed; retrying on the next wake-up",
                minute.isoformat(),
                exc_info=True,
            )
            return last_evaluated
        last_evaluated = minute
    return last_evaluated


def _request_sweep(sweeper: SweepEnqueuer, now: dt.datetime) -> bool:
    try:
        sweeper.enqueue_sweep(now)
    except Exception:  # noqa: BLE001 - the loop outlives a failed enqueue
        log_error(
            logger,
            "Could not enqueue stalled execution sweep at %s",
            now.isoformat(),
            exc_info=True,
        )
        return False
    return True


async def run_ticker(  # noqa: PLR0913
    ticker: ScheduleTicker,
    stop: asyncio.Event,
    *,
    sweeper: SweepEnqueuer | None = None,
    sweep_every: dt.timedelta = DEFAULT_SWEEP_INTERVAL,
    clock: typ.Callable[[], dt.datetime] = utcnow,
    wait: typ.Callable[[float], typ.Awaitable[None]] | None = None,
) -> None:
    """Tick every minute until ``stop`` is set.

    Parameters
    ----------
    ticker
        Evaluates and enqueues the rules due in one minute.
    stop
        Set to end the loop after the current wake-up.
    sweeper
        When given, asked every ``sweep_every`` to queue a sweep of stalled
        executions.
    sweep_every
        Interval between sweep requests.
    clock
        Source of the current UTC time.
    wait
        Coroutine sleeping for the given number of seconds; defaults to
        waiting on ``stop`` with that timeout.

    Notes
    -----
    Each wake-up evaluates every minute since the last evaluated one, so a
    tick that overruns a minute boundary does not drop the next minute.
    Failed ticks and failed sweep requests are logged and retried on the
    next wake-up.

    """
    pause = wait or functools.partial(_wait_for_stop, stop)
    last_evaluated = floor_to_minute(clock()) - _MINUTE
    last_sweep: dt.datetime | None = None

    while not stop.is_set():
        now = clock()
        last_evaluated = await _catch_up(ticker, last_evaluated, floor_to_minute(now))
        sweep_due = last_sweep is None or now - last_sweep >= sweep_every
        if sweeper is not None and sweep_due and _request_sweep(sweeper, now):
            last_sweep = now
        await pause(seconds_until_next_minute(clock()))
