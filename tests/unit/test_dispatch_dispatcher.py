"""Unit tests for trigger dispatch and period key derivation."""

from __future__ import annotations

import typing as typ

import pytest

from herald.definitions import DefinitionFields, ReportDefinitionService
from herald.delivery.coordinator import DeliveryCoordinator
from herald.dispatch import (
    DiscardReason,
    InvalidScheduledPeriodError,
    TriggerDispatcher,
    compute_period_key,
)
from herald.execution import (
    ExecutionStateMachine,
    ExecutionStatus,
    ExecutionStore,
)
from herald.research.orchestrator import ResearchOrchestrator
from herald.schedule.registry import DatabaseScheduleRegistry
from tests.helpers.fakes import (
    RecordingChannel,
    RecordingRetryScheduler,
    ScriptedResearchModel,
)
from tests.helpers.femtologging_capture import capture_femto_logs

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


class TestComputePeriodKey:
    """Tests for compute_period_key()."""

    @pytest.mark.parametrize(
        ("scheduled_period", "expected"),
        [
            ("2024-06-01", "2024-06-01"),
            ("2024-06-01T09:00:00Z", "2024-06-01"),
            ("2024-06-01T09:00:00+00:00", "2024-06-01"),
            ("2024-06-01T23:30:00-02:00", "2024-06-02"),
            ("2024-06-02T00:30:00+02:00", "2024-06-01"),
            (" 2024-06-01 ", "2024-06-01"),
        ],
    )
    def test_derives_utc_date(self, scheduled_period: str, expected: str) -> None:
        """Dates pass through and datetimes map to their UTC date."""
        assert compute_period_key(scheduled_period) == expected

    @pytest.mark.parametrize(
        "scheduled_period",
        ["2024-06-01T09:00:00", "yesterday", "2024-13-01", "", "2024-02-30"],
    )
    def test_rejects_invalid_values(self, scheduled_period: str) -> None:
        """Naive datetimes and non-ISO values are rejected."""
        with pytest.raises(InvalidScheduledPeriodError):
            compute_period_key(scheduled_period)

    def test_is_deterministic(self) -> None:
        """Repeated calls yield the same key."""
        value = "2024-06-01T09:00:00Z"
        assert compute_period_key(value) == compute_period_key(value)


class DispatchHarness(typ.NamedTuple):
    """Dispatcher with the fakes it was built from."""

    dispatcher: TriggerDispatcher
    definitions: ReportDefinitionService
    store: ExecutionStore
    model: ScriptedResearchModel
    channel: RecordingChannel


@pytest.fixture
def harness(session_factory: async_sessionmaker[AsyncSession]) -> DispatchHarness:
    """Build a dispatcher over a real store and scripted adapters."""
    definitions = ReportDefinitionService(
        session_factory, DatabaseScheduleRegistry(session_factory)
    )
    store = ExecutionStore(session_factory)
    model = ScriptedResearchModel()
    channel = RecordingChannel()
    machine = ExecutionStateMachine(
        store=store,
        orchestrator=ResearchOrchestrator(model, timeout_s=5),
        coordinator=DeliveryCoordinator(channel, timeout_s=5),
        retry_scheduler=RecordingRetryScheduler(),
        deactivator=definitions,
    )
    return DispatchHarness(
        TriggerDispatcher(definitions, machine), definitions, store, model, channel
    )


async def _create_definition(
    definitions: ReportDefinitionService, *, active: bool = True
) -> None:
    await definitions.create(
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


class TestTriggerDispatcher:
    """Tests for TriggerDispatcher.dispatch()."""

    @pytest.mark.asyncio
    async def test_active_definition_runs_execution(
        self, harness: DispatchHarness
    ) -> None:
        """An active definition produces a completed execution."""
        await _create_definition(harness.definitions)

        result = await harness.dispatcher.dispatch("r1", "2024-06-01T09:00:00Z")

        assert result.dispatched, "expected the trigger to reach the machine"
        assert result.period_key == "2024-06-01"
        assert result.start is not None
        assert result.start.record.status == ExecutionStatus.COMPLETED
        assert len(harness.channel.messages) == 1, "expected one delivery"

    @pytest.mark.asyncio
    async def test_inactive_definition_is_discarded(
        self, harness: DispatchHarness
    ) -> None:
        """Inactive definitions create no record and log a discard."""
        await _create_definition(harness.definitions, active=False)

        with capture_femto_logs("herald.execution.observability") as capture:
            result = await harness.dispatcher.dispatch("r1", "2024-06-01")
            record = capture.wait_for_message("trigger.discarded")

        assert result.discarded is DiscardReason.DEFINITION_INACTIVE
        assert "reason=definition_inactive" in record.message
        assert await harness.store.get("r1", "2024-06-01") is None
        assert harness.model.requests == [], "research must not run"

    @pytest.mark.asyncio
    async def test_missing_definition_is_discarded(
        self, harness: DispatchHarness
    ) -> None:
        """Unknown reports are discarded without a record."""
        result = await harness.dispatcher.dispatch("ghost", "2024-06-01")

        assert result.discarded is DiscardReason.DEFINITION_NOT_FOUND
        assert await harness.store.get("ghost", "2024-06-01") is None

    @pytest.mark.asyncio
    async def test_invalid_period_is_rejected(self, harness: DispatchHarness) -> None:
        """Malformed periods raise before any definition lookup."""
        await _create_definition(harness.definitions)

        with pytest.raises(InvalidScheduledPeriodError):
            await harness.dispatcher.dispatch("r1", "2024-06-01T09:00:00")

    @pytest.mark.asyncio
    async def test_redelivered_trigger_is_duplicate(
        self, harness: DispatchHarness
    ) -> None:
        """A second trigger for the same day does no work."""
        await _create_definition(harness.definitions)
        await harness.dispatcher.dispatch("r1", "2024-06-01T09:00:00Z")

        again = await harness.dispatcher.dispatch("r1", "2024-06-01T09:00:30Z")

        assert again.start is not None
        assert again.start.started is False, "expected duplicate"
        assert len(harness.model.requests) == 1, "research must run once"
        assert len(harness.channel.messages) == 1, "delivery must run once"
