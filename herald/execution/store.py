"""Conditional persistence for execution records.

Every state change is a conditional write: the insert relies on the
composite primary key, and updates carry the expected status (and attempt
count where relevant) in their ``WHERE`` clause. A write whose condition no
longer holds raises ``ConditionalWriteConflictError`` instead of silently
overwriting a concurrent worker's progress.
"""

from __future__ import annotations

import typing as typ

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError

from herald.execution.errors import (
    ConditionalWriteConflictError,
    InvalidTransitionError,
)
from herald.execution.storage import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    DeliveryFilter,
    DeliveryStatus,
    ExecutionRecord,
    ExecutionStatus,
)

if typ.TYPE_CHECKING:
    import datetime as dt

    from sqlalchemy import Select
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from herald.research.models import ResearchFailure

ALLOWED_TRANSITIONS: dict[ExecutionStatus, frozenset[ExecutionStatus]] = {
    ExecutionStatus.PENDING: frozenset({ExecutionStatus.PROCESSING}),
    ExecutionStatus.PROCESSING: frozenset(
        {ExecutionStatus.COMPLETED, ExecutionStatus.FAILED}
    ),
    ExecutionStatus.COMPLETED: frozenset(),
    ExecutionStatus.FAILED: frozenset(),
}


def ensure_transition(current: ExecutionStatus, target: ExecutionStatus) -> None:
    """Raise ``InvalidTransitionError`` unless ``current -> target`` is allowed."""
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionError(current.value, target.value)


def execution_range_query(
    report_id: str,
    *,
    status: ExecutionStatus | None = None,
    delivery: DeliveryFilter | None = None,
    limit: int = 50,
) -> Select[tuple[ExecutionRecord]]:
    """Select a report's records, newest period first.

    Shared by :meth:`ExecutionStore.list_for_report` and the execution API,
    which runs it on the request session.
    """
    stmt = select(ExecutionRecord).where(ExecutionRecord.report_id == report_id)
    if status is not None:
        stmt = stmt.where(ExecutionRecord.status == status.value)
    if delivery is DeliveryFilter.NONE:
        stmt = stmt.where(ExecutionRecord.delivery_status.is_(None))
    elif delivery is not None:
        stmt = stmt.where(ExecutionRecord.delivery_status == delivery.value)
    return stmt.order_by(ExecutionRecord.period_key.desc()).limit(limit)


class ExecutionStore:
    """Read and conditionally write ``execution_records``."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Store the session factory used for all record access."""
        self._session_factory = session_factory

    async def create_pending(
        self,
        report_id: str,
        period_key: str,
        snapshot: dict[str, typ.Any],
        *,
        now: dt.datetime,
    ) -> ExecutionRecord:
        """Insert a ``pending`` record for the pair.

        Raises
        ------
        ConditionalWriteConflictError
            If a record for ``(report_id, period_key)`` already exists.

        """
        record = ExecutionRecord(
            report_id=report_id,
            period_key=period_key,
            status=ExecutionStatus.PENDING.value,
            snapshot=snapshot,
            attempt_count=0,
            delivery_attempts=0,
            created_at=now,
            updated_at=now,
        )
        async with self._session_factory() as session:
            session.add(record)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise ConditionalWriteConflictError(
                    report_id, period_key, "no existing record"
                ) from exc
        return record

    async def get(self, report_id: str, period_key: str) -> ExecutionRecord | None:
        """Return the record for the pair, if any."""
        async with self._session_factory() as session:
            return await session.get(ExecutionRecord, (report_id, period_key))

    async def mark_processing(
        self, report_id: str, period_key: str, *, now: dt.datetime
    ) -> ExecutionRecord:
        """Move a ``pending`` record to ``processing`` and stamp ``start_time``."""
        ensure_transition(ExecutionStatus.PENDING, ExecutionStatus.PROCESSING)
        return await self._conditional_update(
            report_id,
            period_key,
            expected=ExecutionStatus.PENDING,
            values={
                "status": ExecutionStatus.PROCESSING.value,
                "start_time": now,
                "updated_at": now,
            },
        )

    async def claim_attempt(
        self,
        report_id: str,
        period_key: str,
        *,
        expected_attempts: int,
        now: dt.datetime,
    ) -> ExecutionRecord:
        """Increment ``attempt_count`` if it still equals ``expected_attempts``.

        The claim happens before the research call, so a host timeout during
        the call still leaves evidence of the attempt.
        """
        return await self._conditional_update(
            report_id,
            period_key,
            expected=ExecutionStatus.PROCESSING,
            expected_attempts=expected_attempts,
            values={
                "attempt_count": expected_attempts + 1,
                "next_attempt_at": None,
                "updated_at": now,
            },
        )

    async def complete(
        self,
        report_id: str,
        period_key: str,
        *,
        content: str,
        now: dt.datetime,
    ) -> ExecutionRecord:
        """Move a ``processing`` record to ``completed`` with its content."""
        ensure_transition(ExecutionStatus.PROCESSING, ExecutionStatus.COMPLETED)
        return await self._conditional_update(
            report_id,
            period_key,
            expected=ExecutionStatus.PROCESSING,
            values={
                "status": ExecutionStatus.COMPLETED.value,
                "content": content,
                "end_time": now,
                "next_attempt_at": None,
                "error_kind": None,
                "error_reason": None,
                "error_message": None,
                "updated_at": now,
            },
        )

    async def fail(
        self,
        report_id: str,
        period_key: str,
        *,
        failure: ResearchFailure,
        now: dt.datetime,
    ) -> ExecutionRecord:
        """Move a ``processing`` record to ``failed`` with error details."""
        ensure_transition(ExecutionStatus.PROCESSING, ExecutionStatus.FAILED)
        return await self._conditional_update(
            report_id,
            period_key,
            expected=ExecutionStatus.PROCESSING,
            values={
                "status": ExecutionStatus.FAILED.value,
                "end_time": now,
                "next_attempt_at": None,
                "error_kind": failure.kind.value,
                "error_reason": failure.reason.value,
                "error_message": failure.message,
                "updated_at": now,
            },
        )

    async def record_retry(
        self,
        report_id: str,
        period_key: str,
        *,
        attempt_count: int,
        failure: ResearchFailure,
        next_attempt_at: dt.datetime,
        now: dt.datetime,
    ) -> ExecutionRecord:
        """Record a transient failure and when the next attempt is due."""
        return await self._conditional_update(
            report_id,
            period_key,
            expected=ExecutionStatus.PROCESSING,
            expected_attempts=attempt_count,
            values={
                "error_kind": failure.kind.value,
                "error_reason": failure.reason.value,
                "error_message": failure.message,
                "next_attempt_at": next_attempt_at,
                "updated_at": now,
            },
        )

    async def annotate_delivery(
        self,
        report_id: str,
        period_key: str,
        *,
        status: DeliveryStatus,
        error: str | None,
        delivered_at: dt.datetime | None,
        now: dt.datetime,
    ) -> ExecutionRecord:
        """Record a delivery outcome on a ``completed`` record.

        Never changes ``status``.
        """
        async with self._session_factory() as session, session.begin():
            result = await session.execute(
                update(ExecutionRecord)
                .where(
                    ExecutionRecord.report_id == report_id,
                    ExecutionRecord.period_key == period_key,
                    ExecutionRecord.status == ExecutionStatus.COMPLETED.value,
                )
                .values(
                    delivery_status=status.value,
                    delivery_error=error,
                    delivered_at=delivered_at,
                    delivery_attempts=ExecutionRecord.delivery_attempts + 1,
                    updated_at=now,
                )
            )
            if not result.rowcount:
                raise ConditionalWriteConflictError(
                    report_id, period_key, "status=completed"
                )
            return await self._reload(session, report_id, period_key)

    async def list_for_report(
        self,
        report_id: str,
        *,
        status: ExecutionStatus | None = None,
        delivery: DeliveryFilter | None = None,
        limit: int = 50,
    ) -> list[ExecutionRecord]:
        """Return a report's records, newest period first."""
        stmt = execution_range_query(
            report_id, status=status, delivery=delivery, limit=limit
        )
        async with self._session_factory() as session:
            return list((await session.scalars(stmt)).all())

    async def recent_terminal_statuses(
        self, report_id: str, *, limit: int
    ) -> list[ExecutionStatus]:
        """Return statuses of a report's latest terminal records, newest first."""
        stmt = (
            select(ExecutionRecord.status)
            .where(
                ExecutionRecord.report_id == report_id,
                ExecutionRecord.status.in_([s.value for s in TERMINAL_STATUSES]),
            )
            .order_by(ExecutionRecord.period_key.desc())
            .limit(limit)
        )
        async with self._session_factory() as session:
            return [ExecutionStatus(s) for s in (await session.scalars(stmt)).all()]

    async def list_stalled(
        self, *, cutoff: dt.datetime, limit: int = 100
    ) -> list[ExecutionRecord]:
        """Return non-terminal records untouched since ``cutoff``.

        Records waiting on a retry that is not yet overdue are skipped.
        """
        stmt = (
            select(ExecutionRecord)
            .where(
                ExecutionRecord.status.in_([s.value for s in ACTIVE_STATUSES]),
                ExecutionRecord.updated_at < cutoff,
                or_(
                    ExecutionRecord.next_attempt_at.is_(None),
                    ExecutionRecord.next_attempt_at < cutoff,
                ),
            )
            .order_by(ExecutionRecord.updated_at)
            .limit(limit)
        )
        async with self._session_factory() as session:
            return list((await session.scalars(stmt)).all())

    async def _conditional_update(
        self,
        report_id: str,
        period_key: str,
        *,
        expected: ExecutionStatus,
        values: dict[str, typ.Any],
        expected_attempts: int | None = None,
    ) -> ExecutionRecord:
        conditions = [
            ExecutionRecord.report_id == report_id,
            ExecutionRecord.period_key == period_key,
            ExecutionRecord.status == expected.value,
        ]
        condition = f"status={expected.value}"
        if expected_attempts is not None:
            conditions.append(ExecutionRecord.attempt_count == expected_attempts)
            condition = f"{condition} attempt_count={expected_attempts}"

        async with self._session_factory() as session, session.begin():
            result = await session.execute(
                update(ExecutionRecord).where(*conditions).values(**values)
            )
            if not result.rowcount:
                raise ConditionalWriteConflictError(report_id, period_key, condition)
            return await self._reload(session, report_id, period_key)

    async def _reload(
        self, session: AsyncSession, report_id: str, period_key: str
    ) -> ExecutionRecord:
        record = await session.get(
            ExecutionRecord, (report_id, period_key), populate_existing=True
        )
        if record is None:
            raise ConditionalWriteConflictError(report_id, period_key, "record exists")
        return record
