"""Execution lifecycle for one report period.

``ExecutionStateMachine`` owns the path of a ``(report_id, period_key)``
execution from admission to its terminal state::

    pending -> processing -> completed | failed

Admission is a conditional insert, so concurrent triggers for the same pair
elect exactly one winner; losers get the existing record back and do no
work. Each research attempt is claimed by conditionally incrementing
``attempt_count`` before the call. A resolved attempt becomes a tagged
outcome (``Completed``, ``Retry`` or ``Failed``) that selects the next
action.

Usage
-----
>>> machine = ExecutionStateMachine(
...     store=ExecutionStore(session_factory),
...     orchestrator=ResearchOrchestrator(model, timeout_s=240),
...     coordinator=DeliveryCoordinator(channel, timeout_s=30),
...     retry_scheduler=scheduler,
... )
>>> result = await machine.start_execution("r1", "2024-06-01", snapshot)
>>> result.record.status
'completed'

"""

from __future__ import annotations

import datetime as dt
import typing as typ

from herald.common.time import utcnow
from herald.definitions.models import ReportSnapshot
from herald.delivery.coordinator import DeliveryFailed, DeliverySent
from herald.delivery.rendering import build_subject
from herald.execution.config import EngineConfig
from herald.execution.errors import (
    ConditionalWriteConflictError,
    ExecutionNotCompletedError,
    ExecutionNotFoundError,
)
from herald.execution.observability import ExecutionEventLogger
from herald.execution.outcomes import (
    AttemptOutcome,
    Completed,
    Failed,
    Retry,
    StartResult,
)
from herald.execution.retry import backoff_delay
from herald.execution.storage import DeliveryStatus, ExecutionStatus
from herald.logging import get_logger, log_info, log_warning
from herald.research.models import (
    FailureKind,
    FailureReason,
    ResearchFailure,
    ResearchSucceeded,
    ResearchWindow,
)
from herald.schedule.translator import cadence_window, parse_time_of_day

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from herald.delivery.coordinator import DeliveryCoordinator
    from herald.execution.retry import RetryScheduler
    from herald.execution.storage import ExecutionRecord
    from herald.execution.store import ExecutionStore
    from herald.research.orchestrator import ResearchOrchestrator

logger = get_logger(__name__)


@typ.runtime_checkable
class ReportDeactivator(typ.Protocol):
    """Port used to switch off a report after repeated failures."""

    async def deactivate(self, report_id: str) -> bool:
        """Deactivate ``report_id``; return ``True`` if this call flipped it."""
        ...


def scheduled_moment(period_key: str, delivery_time: str) -> dt.datetime:
    """Return the UTC delivery moment of ``period_key``."""
    time_of_day = parse_time_of_day(delivery_time)
    return dt.datetime.combine(
        dt.date.fromisoformat(period_key),
        dt.time(time_of_day.hour, time_of_day.minute),
        tzinfo=dt.UTC,
    )


def research_window(snapshot: ReportSnapshot, period_key: str) -> ResearchWindow:
    """Return the window a snapshot's report covers for ``period_key``."""
    end = scheduled_moment(period_key, snapshot.delivery_time)
    start, end = cadence_window(snapshot.cadence, end)
    return ResearchWindow(start=start, end=end)


class ExecutionStateMachine:
    """Drive executions through research, retry and delivery.

    Parameters
    ----------
    store
        Conditional persistence for execution records.
    orchestrator
        Runs one research attempt and classifies its failure.
    coordinator
        Hands completed content to the delivery channel.
    retry_scheduler
        Host hook used to resume an execution after a delay.
    deactivator
        Optional hook that switches off a report after
        ``deactivate_after_failures`` consecutive failed executions.
    config
        Retry and policy settings. Defaults to ``EngineConfig()``.
    event_logger
        Lifecycle telemetry sink. Defaults to ``ExecutionEventLogger()``.
    clock
        Source of the current UTC time.

    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        store: ExecutionStore,
        orchestrator: ResearchOrchestrator,
        coordinator: DeliveryCoordinator,
        retry_scheduler: RetryScheduler,
        deactivator: ReportDeactivator | None = None,
        config: EngineConfig | None = None,
        event_logger: ExecutionEventLogger | None = None,
        clock: cabc.Callable[[], dt.datetime] = utcnow,
    ) -> None:
        """Wire the machine to its collaborators."""
        self._store = store
        self._orchestrator = orchestrator
        self._coordinator = coordinator
        self._retry_scheduler = retry_scheduler
        self._deactivator = deactivator
        self._config = config or EngineConfig()
        self._events = event_logger or ExecutionEventLogger()
        self._clock = clock

    @property
    def config(self) -> EngineConfig:
        """Return the active engine configuration."""
        return self._config

    async def start_execution(
        self,
        report_id: str,
        period_key: str,
        snapshot: ReportSnapshot,
    ) -> StartResult:
        """Admit and run the execution for ``(report_id, period_key)``.

        Returns
        -------
        StartResult
            ``started=True`` with the record after this invocation's work,
            or ``started=False`` with the pre-existing record when another
            trigger already owns the pair.

        """
        try:
            await self._store.create_pending(
                report_id, period_key, snapshot.to_payload(), now=self._clock()
            )
        except ConditionalWriteConflictError:
            existing = await self._require(report_id, period_key)
            self._events.log_duplicate(
                report_id=report_id, period_key=period_key, status=existing.status
            )
            return StartResult(started=False, record=existing)

        try:
            record = await self._store.mark_processing(
                report_id, period_key, now=self._clock()
            )
        except ConditionalWriteConflictError:
            # A sweep resumed the record between insert and advance.
            return StartResult(
                started=True, record=await self._require(report_id, period_key)
            )

        self._events.log_started(report_id=report_id, period_key=period_key)
        record = await self._run_attempt(record, snapshot)
        return StartResult(started=True, record=record)

    async def resume_execution(
        self,
        report_id: str,
        period_key: str,
        expected_attempts: int,
    ) -> ExecutionRecord | None:
        """Run the next attempt of a retrying or stalled execution.

        Does nothing and returns ``None`` when the record is missing,
        terminal, or has moved past ``expected_attempts``; such messages are
        stale duplicates.
        """
        record = await self._store.get(report_id, period_key)
        if record is None or record.execution_status.is_terminal:
            log_info(
                logger,
                "Ignoring resume for %s/%s: no active execution",
                report_id,
                period_key,
            )
            return None

        if record.execution_status is ExecutionStatus.PENDING:
            try:
                record = await self._store.mark_processing(
                    report_id, period_key, now=self._clock()
                )
            except ConditionalWriteConflictError:
                return None
            self._events.log_started(report_id=report_id, period_key=period_key)

        if record.attempt_count != expected_attempts:
            log_info(
                logger,
                "Ignoring stale resume for %s/%s: expected %s attempts, found %s",
                report_id,
                period_key,
                expected_attempts,
                record.attempt_count,
            )
            return None

        snapshot = ReportSnapshot.from_payload(record.snapshot)
        return await self._run_attempt(record, snapshot)

    async def recover_stalled(self, now: dt.datetime | None = None) -> int:
        """Schedule a resume for every stalled non-terminal execution.

        Returns
        -------
        int
            Number of executions handed back to the retry scheduler.

        """
        moment = now or self._clock()
        cutoff = moment - self._config.stall_after
        stalled = await self._store.list_stalled(cutoff=cutoff)
        for record in stalled:
            log_warning(
                logger,
                "Recovering stalled execution %s/%s (status=%s, attempts=%s)",
                record.report_id,
                record.period_key,
                record.status,
                record.attempt_count,
            )
            self._retry_scheduler.schedule_resume(
                record.report_id,
                record.period_key,
                expected_attempts=record.attempt_count,
                delay=dt.timedelta(0),
            )
        return len(stalled)

    async def resend_delivery(self, report_id: str, period_key: str) -> ExecutionRecord:
        """Deliver a completed execution's content again.

        Raises
        ------
        ExecutionNotFoundError
            If no record exists for the pair.
        ExecutionNotCompletedError
            If the execution has no completed content to send.

        """
        record = await self._store.get(report_id, period_key)
        if record is None:
            raise ExecutionNotFoundError(report_id, period_key)
        if record.execution_status is not ExecutionStatus.COMPLETED:
            raise ExecutionNotCompletedError(report_id, period_key, record.status)
        snapshot = ReportSnapshot.from_payload(record.snapshot)
        return await self._deliver(record, snapshot)

    async def _run_attempt(
        self, record: ExecutionRecord, snapshot: ReportSnapshot
    ) -> ExecutionRecord:
        report_id, period_key = record.report_id, record.period_key
        if record.attempt_count >= self._config.retry_limit:
            # The host lost the last permitted attempt before it resolved.
            abandoned = ResearchFailure(
                kind=FailureKind.TRANSIENT,
                reason=FailureReason.ABANDONED,
                message=(
                    f"attempt {record.attempt_count} did not resolve before the "
                    "invocation ended"
                ),
            )
            return await self._apply(record, Failed(abandoned))

        try:
            claimed = await self._store.claim_attempt(
                report_id,
                period_key,
                expected_attempts=record.attempt_count,
                now=self._clock(),
            )
        except ConditionalWriteConflictError:
            log_info(
                logger,
                "Attempt %s for %s/%s already claimed elsewhere",
                record.attempt_count + 1,
                report_id,
                period_key,
            )
            return await self._require(report_id, period_key)

        outcome = await self._attempt(claimed, snapshot)
        return await self._apply(claimed, outcome, snapshot)

    async def _attempt(
        self, record: ExecutionRecord, snapshot: ReportSnapshot
    ) -> AttemptOutcome:
        result = await self._orchestrator.research(
            snapshot.topics,
            snapshot.keywords,
            research_window(snapshot, record.period_key),
        )
        match result:
            case ResearchSucceeded(content=content, model=model, metrics=metrics):
                return Completed(content=content, model=model, metrics=metrics)
            case ResearchFailure() if (
                result.is_transient
                and record.attempt_count < self._config.retry_limit
            ):
                return Retry(
                    attempt_count=record.attempt_count,
                    delay=backoff_delay(record.attempt_count, self._config),
                    failure=result,
                )
            case _:
                return Failed(failure=result)

    async def _apply(
        self,
        record: ExecutionRecord,
        outcome: AttemptOutcome,
        snapshot: ReportSnapshot | None = None,
    ) -> ExecutionRecord:
        report_id, period_key = record.report_id, record.period_key
        try:
            match outcome:
                case Completed(content=content, model=model, metrics=metrics):
                    completed = await self._store.complete(
                        report_id, period_key, content=content, now=self._clock()
                    )
                    self._events.log_completed(
                        report_id=report_id,
                        period_key=period_key,
                        attempt_count=completed.attempt_count,
                        model=model,
                        metrics=metrics,
                    )
                    return await self._deliver(
                        completed,
                        snapshot or ReportSnapshot.from_payload(completed.snapshot),
                    )
                case Retry(attempt_count=attempts, delay=delay, failure=failure):
                    now = self._clock()
                    retrying = await self._store.record_retry(
                        report_id,
                        period_key,
                        attempt_count=attempts,
                        failure=failure,
                        next_attempt_at=now + delay,
                        now=now,
                    )
                    self._retry_scheduler.schedule_resume(
                        report_id,
                        period_key,
                        expected_attempts=attempts,
                        delay=delay,
                    )
                    self._events.log_retry_scheduled(
                        report_id=report_id,
                        period_key=period_key,
                        attempt_count=attempts,
                        delay=delay,
                        failure=failure,
                    )
                    return retrying
                case Failed(failure=failure):
                    failed = await self._store.fail(
                        report_id, period_key, failure=failure, now=self._clock()
                    )
                    self._events.log_failed(
                        report_id=report_id,
                        period_key=period_key,
                        attempt_count=failed.attempt_count,
                        failure=failure,
                    )
                    await self._apply_failure_policy(report_id)
                    return failed
        except ConditionalWriteConflictError as exc:
            log_warning(
                logger,
                "Outcome for %s/%s not recorded: %s",
                report_id,
                period_key,
                exc,
            )
            return await self._require(report_id, period_key)

    async def _deliver(
        self, record: ExecutionRecord, snapshot: ReportSnapshot
    ) -> ExecutionRecord:
        report_id, period_key = record.report_id, record.period_key
        result = await self._coordinator.deliver(
            snapshot.recipient,
            build_subject(snapshot.title, snapshot.cadence, period_key),
            record.content or "",
            reference=f"{report_id}/{period_key}",
        )
        match result:
            case DeliverySent(channel=channel, delivered_at=delivered_at):
                self._events.log_delivery_sent(
                    report_id=report_id, period_key=period_key, channel=channel
                )
                return await self._store.annotate_delivery(
                    report_id,
                    period_key,
                    status=DeliveryStatus.SENT,
                    error=None,
                    delivered_at=delivered_at,
                    now=self._clock(),
                )
            case DeliveryFailed(channel=channel, reason=reason, message=message):
                self._events.log_delivery_failed(
                    report_id=report_id,
                    period_key=period_key,
                    channel=channel,
                    reason=reason,
                )
                return await self._store.annotate_delivery(
                    report_id,
                    period_key,
                    status=DeliveryStatus.FAILED,
                    error=f"{reason}: {message}",
                    delivered_at=None,
                    now=self._clock(),
                )

    async def _apply_failure_policy(self, report_id: str) -> None:
        threshold = self._config.deactivate_after_failures
        if threshold == 0 or self._deactivator is None:
            return
        statuses = await self._store.recent_terminal_statuses(
            report_id, limit=threshold
        )
        if len(statuses) < threshold:
            return
        if any(status is not ExecutionStatus.FAILED for status in statuses):
            return
        if await self._deactivator.deactivate(report_id):
            self._events.log_report_deactivated(
                report_id=report_id, consecutive_failures=threshold
            )

    async def _require(self, report_id: str, period_key: str) -> ExecutionRecord:
        record = await self._store.get(report_id, period_key)
        if record is None:
            raise ExecutionNotFoundError(report_id, period_key)
        return record
