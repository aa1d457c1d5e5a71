"""Dramatiq actors for trigger dispatch, retries, ticks and sweeps.

Each actor builds its engine for the duration of one invocation through
``worker_scope`` and runs the async work with ``asyncio.run``.

Usage
-----
Queue a trigger for a report:

>>> dispatch_trigger_job.send(
...     database_url="postgresql+asyncpg://...",
...     report_id="550e8400-e29b-41d4-a716-446655440000",
...     scheduled_period="2024-06-01T09:00:00+00:00",
... )

Evaluate the schedule for the current minute:

>>> tick_schedules_job.send(database_url="postgresql+asyncpg://...")

"""

from __future__ import annotations

import asyncio
import datetime as dt
import typing as typ

import dramatiq

from herald.dispatch._broker import ensure_broker_configured
from herald.dispatch.wiring import session_scope, worker_scope
from herald.execution.config import EngineConfig
from herald.logging import get_logger, log_info
from herald.schedule.registry import DatabaseScheduleRegistry
from herald.schedule.ticker import ScheduleTicker

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from herald.dispatch.wiring import EngineComponents

logger = get_logger(__name__)

# Actor decorators bind to the global broker when this module is imported.
ensure_broker_configured()

_TIME_LIMIT_MS = EngineConfig.from_env().invocation_budget_ms


class _DelayedSender(typ.Protocol):
    def send_with_options(
        self,
        *,
        args: tuple[typ.Any, ...] = (),
        kwargs: dict[str, typ.Any] | None = None,
        delay: int | None = None,
    ) -> object: ...


class _Sender(typ.Protocol):
    def send(self, *args: typ.Any, **kwargs: typ.Any) -> object: ...


class DramatiqRetryScheduler:
    """RetryScheduler that enqueues ``resume_execution_job`` with a delay.

    Parameters
    ----------
    database_url
        Database the resumed invocation connects to.
    actor
        Actor receiving the resume message; defaults to
        ``resume_execution_job``.

    """

    def __init__(
        self, database_url: str, *, actor: _DelayedSender | None = None
    ) -> None:
        """Bind the scheduler to a database and resume actor."""
        self._database_url = database_url
        self._actor = actor

    def schedule_resume(
        self,
        report_id: str,
        period_key: str,
        *,
        expected_attempts: int,
        delay: dt.timedelta,
    ) -> None:
        """Enqueue a resume message delivered after ``delay``."""
        actor = self._actor or resume_execution_job
        delay_ms = max(int(delay.total_seconds() * 1000), 0)
        actor.send_with_options(
            args=(self._database_url, report_id, period_key, expected_attempts),
            delay=delay_ms or None,
        )


class DramatiqTriggerEnqueuer:
    """TriggerEnqueuer that sends ``dispatch_trigger_job`` messages."""

    def __init__(self, database_url: str, *, actor: _Sender | None = None) -> None:
        """Bind the enqueuer to a database and dispatch actor."""
        self._database_url = database_url
        self._actor = actor

    def enqueue(self, report_id: str, scheduled_period: str) -> None:
        """Queue a dispatch for ``report_id``."""
        actor = self._actor or dispatch_trigger_job
        actor.send(self._database_url, report_id, scheduled_period)


class DramatiqResendEnqueuer:
    """ResendEnqueuer that sends ``resend_delivery_job`` messages."""

    def __init__(self, database_url: str, *, actor: _Sender | None = None) -> None:
        """Bind the enqueuer to a database and resend actor."""
        self._database_url = database_url
        self._actor = actor

    def enqueue_resend(self, report_id: str, period_key: str) -> None:
        """Queue a resend of the execution's delivery."""
        actor = self._actor or resend_delivery_job
        actor.send(self._database_url, report_id, period_key)


class DramatiqSweepEnqueuer:
    """SweepEnqueuer that sends ``sweep_stalled_executions_job`` messages."""

    def __init__(self, database_url: str, *, actor: _Sender | None = None) -> None:
        """Bind the enqueuer to a database and sweep actor."""
        self._database_url = database_url
        self._actor = actor

    def enqueue_sweep(self, now: dt.datetime) -> None:
        """Queue a sweep of executions stalled as of ``now``."""
        actor = self._actor or sweep_stalled_executions_job
        actor.send(self._database_url, now_iso=now.isoformat())


def _parse_now_iso(now_iso: str | None) -> dt.datetime | None:
    """Parse an ISO timestamp, requiring timezone information.

    Raises
    ------
    ValueError
        If the timestamp lacks timezone information.

    """
    if now_iso is None:
        return None
    parsed = dt.datetime.fromisoformat(now_iso)
    if parsed.tzinfo is None:
        msg = (
            f"now_iso must include timezone information, got naive datetime: "
            f"{now_iso!r}. Use ISO format with offset (e.g., '2024-06-01T09:00:00Z')."
        )
        raise ValueError(msg)
    return parsed


def _run_in_worker_scope[T](
    database_url: str,
    async_fn: cabc.Callable[[EngineComponents], cabc.Awaitable[T]],
) -> T:
    """Run ``async_fn`` against a freshly built engine."""
    ensure_broker_configured()

    async def run() -> T:
        async with worker_scope(
            database_url,
            retry_scheduler=DramatiqRetryScheduler(database_url),
        ) as components:
            return await async_fn(components)

    return asyncio.run(run())


async def _dispatch_async(
    components: EngineComponents, report_id: str, scheduled_period: str
) -> str:
    result = await components.dispatcher.dispatch(report_id, scheduled_period)
    if result.discarded is not None:
        return f"discarded:{result.discarded}"
    if result.start is None or not result.start.started:
        return "duplicate"
    return result.start.record.status


async def _tick_async(
    database_url: str, now: dt.datetime | None, enqueuer: DramatiqTriggerEnqueuer
) -> int:
    async with session_scope(database_url) as session_factory:
        ticker = ScheduleTicker(DatabaseScheduleRegistry(session_factory), enqueuer)
        return len(await ticker.tick(now))


@dramatiq.actor(time_limit=_TIME_LIMIT_MS)
def dispatch_trigger_job(
    database_url: str,
    report_id: str,
    scheduled_period: str,
) -> str:
    """Dramatiq actor handling one ``(report_id, scheduled_period)`` trigger.

    Returns
    -------
    str
        The resulting execution status, ``duplicate``, or
        ``discarded:<reason>``.

    Raises
    ------
    InvalidScheduledPeriodError
        If ``scheduled_period`` is not an ISO date or aware datetime.

    """

    async def execute(components: EngineComponents) -> str:
        return await _dispatch_async(components, report_id, scheduled_period)

    return _run_in_worker_scope(database_url, execute)


@dramatiq.actor(time_limit=_TIME_LIMIT_MS)
def resume_execution_job(
    database_url: str,
    report_id: str,
    period_key: str,
    expected_attempts: int,
) -> str | None:
    """Dramatiq actor running the next attempt of a retrying execution.

    Returns
    -------
    str | None
        The record status after the attempt, or ``None`` for stale messages.

    """

    async def execute(components: EngineComponents) -> str | None:
        record = await components.machine.resume_execution(
            report_id, period_key, expected_attempts
        )
        return None if record is None else record.status

    return _run_in_worker_scope(database_url, execute)


@dramatiq.actor(time_limit=_TIME_LIMIT_MS)
def resend_delivery_job(
    database_url: str, report_id: str, period_key: str
) -> str | None:
    """Dramatiq actor re-delivering a completed execution.

    Returns
    -------
    str | None
        The resulting delivery status annotation.

    """

    async def execute(components: EngineComponents) -> str | None:
        record = await components.machine.resend_delivery(report_id, period_key)
        return record.delivery_status

    return _run_in_worker_scope(database_url, execute)


@dramatiq.actor
def tick_schedules_job(database_url: str, *, now_iso: str | None = None) -> int:
    """Dramatiq actor enqueuing triggers for rules due in the current minute.

    Returns
    -------
    int
        Number of triggers enqueued.

    """
    ensure_broker_configured()
    now = _parse_now_iso(now_iso)
    enqueuer = DramatiqTriggerEnqueuer(database_url)
    return asyncio.run(_tick_async(database_url, now, enqueuer))


@dramatiq.actor(time_limit=_TIME_LIMIT_MS)
def sweep_stalled_executions_job(
    database_url: str, *, now_iso: str | None = None
) -> int:
    """Dramatiq actor scheduling resumes for stalled executions.

    Returns
    -------
    int
        Number of executions handed back for resumption.

    """
    now = _parse_now_iso(now_iso)

    async def execute(components: EngineComponents) -> int:
        recovered = await components.machine.recover_stalled(now)
        log_info(logger, "Stalled execution sweep recovered %d record(s)", recovered)
        return recovered

    return _run_in_worker_scope(database_url, execute)
