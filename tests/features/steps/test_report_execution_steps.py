"""Behavioural coverage for scheduled report execution."""

from __future__ import annotations

import asyncio
import datetime as dt
import typing as typ

import pytest
from pytest_bdd import given, parsers, scenario, then, when

from herald.definitions import DefinitionFields
from herald.dispatch import worker_scope
from herald.execution import EngineConfig
from herald.research import OpenAIResearchError
from tests.helpers.fakes import (
    RecordingChannel,
    RecordingRetryScheduler,
    ScriptedResearchModel,
)

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from herald.dispatch import EngineComponents


class ExecutionContext(typ.TypedDict):
    """Shared mutable scenario state."""

    database_url: str
    model: ScriptedResearchModel
    channel: RecordingChannel
    scheduler: RecordingRetryScheduler


@scenario(
    "../report_execution.feature",
    "A scheduled trigger researches and delivers a report",
)
def test_scheduled_trigger_delivers_report() -> None:
    """Wrap the pytest-bdd scenario."""


@scenario("../report_execution.feature", "Inactive reports are not executed")
def test_inactive_report_is_not_executed() -> None:
    """Inactive definitions should produce no execution."""


@scenario(
    "../report_execution.feature", "A redelivered trigger runs the report once"
)
def test_redelivered_trigger_runs_once() -> None:
    """Duplicate triggers should not repeat research or delivery."""


@scenario(
    "../report_execution.feature",
    "A rate-limited attempt is retried with backoff",
)
def test_rate_limited_attempt_is_retried() -> None:
    """Transient failures should be retried through the scheduler."""


@pytest.fixture
def execution_context(database_url: str) -> ExecutionContext:
    """Provision scripted adapters shared by every step."""
    return {
        "database_url": database_url,
        "model": ScriptedResearchModel(),
        "channel": RecordingChannel(),
        "scheduler": RecordingRetryScheduler(),
    }


def _run[T](
    context: ExecutionContext,
    work: cabc.Callable[[EngineComponents], cabc.Awaitable[T]],
) -> T:
    """Run ``work`` inside a worker scope on a fresh event loop."""

    async def run() -> T:
        async with worker_scope(
            context["database_url"],
            retry_scheduler=context["scheduler"],
            research_model=context["model"],
            delivery_channel=context["channel"],
            config=EngineConfig(),
        ) as components:
            return await work(components)

    return asyncio.run(run())


def _create_report(
    context: ExecutionContext,
    report_id: str,
    topic: str,
    delivery_time: str,
    *,
    active: bool,
) -> None:
    async def create(components: EngineComponents) -> None:
        await components.definitions.create(
            "owner-1",
            DefinitionFields(
                title=f"{topic} watch",
                topics=[topic],
                cadence="daily",
                delivery_time=delivery_time,
                recipient="analyst@example.com",
                active=active,
            ),
            report_id=report_id,
        )

    _run(context, create)


@given(
    parsers.parse(
        'an active daily report "{report_id}" on "{topic}" delivered at "{time}"'
    )
)
def active_report(
    execution_context: ExecutionContext, report_id: str, topic: str, time: str
) -> None:
    """Create an active definition."""
    _create_report(execution_context, report_id, topic, time, active=True)


@given(
    parsers.parse(
        'an inactive daily report "{report_id}" on "{topic}" delivered at "{time}"'
    )
)
def inactive_report(
    execution_context: ExecutionContext, report_id: str, topic: str, time: str
) -> None:
    """Create a definition that is switched off."""
    _create_report(execution_context, report_id, topic, time, active=False)


@given("the research model is rate limited once")
def rate_limited_once(execution_context: ExecutionContext) -> None:
    """Script a single 429 before the model starts answering."""
    execution_context["model"] = ScriptedResearchModel(
        [OpenAIResearchError.rate_limited()]
    )


@when(parsers.parse('the trigger for "{report_id}" fires at "{scheduled_period}"'))
def trigger_fires(
    execution_context: ExecutionContext, report_id: str, scheduled_period: str
) -> None:
    """Dispatch a trigger as the worker would."""

    async def dispatch(components: EngineComponents) -> None:
        await components.dispatcher.dispatch(report_id, scheduled_period)

    _run(execution_context, dispatch)


@when("the scheduled retry runs")
def scheduled_retry_runs(execution_context: ExecutionContext) -> None:
    """Deliver the most recent resume message."""
    call = execution_context["scheduler"].calls[-1]

    async def resume(components: EngineComponents) -> None:
        await components.machine.resume_execution(
            call.report_id, call.period_key, call.expected_attempts
        )

    _run(execution_context, resume)


@then(
    parsers.re(
        r'the execution for "(?P<report_id>[^"]+)" on "(?P<period_key>[^"]+)" '
        r'is "(?P<status>[a-z]+)" after (?P<attempts>\d+) attempts?'
    ),
    converters={"attempts": int},
)
def execution_has_status(
    execution_context: ExecutionContext,
    report_id: str,
    period_key: str,
    status: str,
    attempts: int,
) -> None:
    """Check the stored record."""

    async def load(components: EngineComponents) -> tuple[str, int] | None:
        record = await components.store.get(report_id, period_key)
        return None if record is None else (record.status, record.attempt_count)

    assert _run(execution_context, load) == (status, attempts), (
        f"unexpected execution state for {report_id}/{period_key}"
    )


@then(parsers.parse('no execution exists for "{report_id}" on "{period_key}"'))
def no_execution(
    execution_context: ExecutionContext, report_id: str, period_key: str
) -> None:
    """Check that no record was created."""

    async def load(components: EngineComponents) -> object:
        return await components.store.get(report_id, period_key)

    assert _run(execution_context, load) is None, "expected no execution record"


@then(parsers.parse('{count:d} report was delivered to "{recipient}"'))
def reports_delivered_to(
    execution_context: ExecutionContext, count: int, recipient: str
) -> None:
    """Check deliveries to one recipient."""
    messages = execution_context["channel"].messages
    assert [m.recipient for m in messages] == [recipient] * count


@then(parsers.parse("{count:d} reports were delivered"))
def reports_delivered(execution_context: ExecutionContext, count: int) -> None:
    """Check the total number of deliveries."""
    assert len(execution_context["channel"].messages) == count


@then(parsers.parse("a retry is scheduled after {seconds:d} seconds"))
def retry_scheduled(execution_context: ExecutionContext, seconds: int) -> None:
    """Check the backoff handed to the retry scheduler."""
    (call,) = execution_context["scheduler"].calls
    assert call.delay == dt.timedelta(seconds=seconds)
    assert call.expected_attempts == 1
