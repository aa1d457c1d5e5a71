"""Unit tests for the Dramatiq actor module and its queue adapters."""

from __future__ import annotations

import datetime as dt
import typing as typ

import pytest

from herald.definitions import DefinitionFields
from herald.dispatch import EngineDependencies, build_components
from herald.dispatch.actor import (
    DramatiqResendEnqueuer,
    DramatiqRetryScheduler,
    DramatiqSweepEnqueuer,
    DramatiqTriggerEnqueuer,
    _dispatch_async,
    _parse_now_iso,
)
from herald.execution import EngineConfig
from tests.helpers.fakes import (
    RecordingChannel,
    RecordingRetryScheduler,
    ScriptedResearchModel,
)

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from herald.dispatch import EngineComponents

DATABASE_URL = "sqlite+aiosqlite:///herald.db"


class _FakeActor:
    """Stand-in for a Dramatiq actor recording queued messages."""

    def __init__(self) -> None:
        self.sent: list[tuple[typ.Any, ...]] = []
        self.sent_kwargs: list[dict[str, typ.Any]] = []
        self.sent_with_options: list[dict[str, typ.Any]] = []

    def send(self, *args: typ.Any, **kwargs: typ.Any) -> None:  # noqa: ANN401
        """Record a plain send."""
        self.sent.append(args)
        self.sent_kwargs.append(kwargs)

    def send_with_options(
        self,
        *,
        args: tuple[typ.Any, ...] = (),
        kwargs: dict[str, typ.Any] | None = None,
        delay: int | None = None,
    ) -> None:
        """Record a send with options."""
        self.sent_with_options.append({"args": args, "delay": delay})


class TestDramatiqRetryScheduler:
    """Tests for DramatiqRetryScheduler.schedule_resume()."""

    def test_sends_resume_with_delay_in_ms(self) -> None:
        """The backoff becomes a Dramatiq delay in milliseconds."""
        actor = _FakeActor()
        scheduler = DramatiqRetryScheduler(DATABASE_URL, actor=actor)

        scheduler.schedule_resume(
            "r1", "2024-06-01", expected_attempts=2, delay=dt.timedelta(seconds=90)
        )

        assert actor.sent_with_options == [
            {"args": (DATABASE_URL, "r1", "2024-06-01", 2), "delay": 90_000}
        ]

    def test_zero_delay_sends_immediately(self) -> None:
        """Immediate resumes carry no delay option."""
        actor = _FakeActor()
        scheduler = DramatiqRetryScheduler(DATABASE_URL, actor=actor)

        scheduler.schedule_resume(
            "r1", "2024-06-01", expected_attempts=0, delay=dt.timedelta(0)
        )

        assert actor.sent_with_options[0]["delay"] is None


def test_trigger_enqueuer_sends_dispatch_message() -> None:
    """Triggers are queued with the database URL first."""
    actor = _FakeActor()

    DramatiqTriggerEnqueuer(DATABASE_URL, actor=actor).enqueue(
        "r1", "2024-06-01T09:00:00+00:00"
    )

    assert actor.sent == [(DATABASE_URL, "r1", "2024-06-01T09:00:00+00:00")]


def test_resend_enqueuer_sends_resend_message() -> None:
    """Resends are queued with the database URL first."""
    actor = _FakeActor()

    DramatiqResendEnqueuer(DATABASE_URL, actor=actor).enqueue_resend(
        "r1", "2024-06-01"
    )

    assert actor.sent == [(DATABASE_URL, "r1", "2024-06-01")]


def test_sweep_enqueuer_sends_sweep_message() -> None:
    """Sweeps are queued with the evaluation time as an ISO timestamp."""
    actor = _FakeActor()
    now = dt.datetime(2024, 6, 1, 9, 5, tzinfo=dt.UTC)

    DramatiqSweepEnqueuer(DATABASE_URL, actor=actor).enqueue_sweep(now)

    assert actor.sent == [(DATABASE_URL,)]
    assert actor.sent_kwargs == [{"now_iso": "2024-06-01T09:05:00+00:00"}]


class TestParseNowIso:
    """Tests for _parse_now_iso()."""

    def test_none_means_now(self) -> None:
        """A missing timestamp is passed through as None."""
        assert _parse_now_iso(None) is None

    def test_parses_aware_timestamp(self) -> None:
        """Offsets are honoured."""
        parsed = _parse_now_iso("2024-06-01T09:00:00+00:00")
        assert parsed == dt.datetime(2024, 6, 1, 9, tzinfo=dt.UTC)

    def test_rejects_naive_timestamp(self) -> None:
        """Naive timestamps are ambiguous and rejected."""
        with pytest.raises(ValueError, match="timezone"):
            _parse_now_iso("2024-06-01T09:00:00")


@pytest.fixture
def components(
    session_factory: async_sessionmaker[AsyncSession],
) -> EngineComponents:
    """Wire the engine over the test database with scripted adapters."""
    return build_components(
        session_factory,
        EngineDependencies(
            retry_scheduler=RecordingRetryScheduler(),
            research_model=ScriptedResearchModel(),
            delivery_channel=RecordingChannel(),
        ),
        config=EngineConfig(),
    )


async def _create_definition(components: EngineComponents, *, active: bool) -> None:
    await components.definitions.create(
        "owner-1",
        DefinitionFields(
            title="Acme watch",
            topics=["Acme Corp"],
            cadence="daily",
            delivery_time="09:00",
            recipient="analyst@example.com",
            active=active,
        ),
        report_id="r1",
    )


class TestDispatchAsync:
    """Tests for the coroutine behind dispatch_trigger_job."""

    @pytest.mark.asyncio
    async def test_returns_final_status(self, components: EngineComponents) -> None:
        """A fresh trigger reports the execution's final status."""
        await _create_definition(components, active=True)

        status = await _dispatch_async(components, "r1", "2024-06-01T09:00:00Z")

        assert status == "completed"

    @pytest.mark.asyncio
    async def test_redelivery_is_duplicate(self, components: EngineComponents) -> None:
        """A redelivered trigger reports a duplicate."""
        await _create_definition(components, active=True)
        await _dispatch_async(components, "r1", "2024-06-01T09:00:00Z")

        status = await _dispatch_async(components, "r1", "2024-06-01")

        assert status == "duplicate"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("create", "expected"),
        [
            (False, "discarded:definition_not_found"),
            (True, "discarded:definition_inactive"),
        ],
        ids=["missing", "inactive"],
    )
    async def test_discards_report_reason(
        self, components: EngineComponents, *, create: bool, expected: str
    ) -> None:
        """Discarded triggers name the reason."""
        if create:
            await _create_definition(components, active=False)

        status = await _dispatch_async(components, "r1", "2024-06-01")

        assert status == expected
