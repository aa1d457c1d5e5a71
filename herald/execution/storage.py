"""Table tracking one execution per report and period."""

from __future__ import annotations

import datetime as dt  # noqa: TC003
import enum
import typing as typ

from sqlalchemy import JSON, CheckConstraint, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from herald.common.storage import Base, UTCDateTime
from herald.common.time import utcnow


class ExecutionStatus(enum.StrEnum):
    """Lifecycle states of an execution record."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Return whether no further transition is allowed."""
        return self in TERMINAL_STATUSES


class DeliveryStatus(enum.StrEnum):
    """Outcome of the most recent delivery hand-off."""

    SENT = "sent"
    FAILED = "failed"


class DeliveryFilter(enum.StrEnum):
    """Delivery states a range query can select.

    ``NONE`` matches completed records that never recorded a hand-off, for
    example when the worker stopped between completion and delivery.
    """

    SENT = "sent"
    FAILED = "failed"
    NONE = "none"


TERMINAL_STATUSES: frozenset[ExecutionStatus] = frozenset(
    {ExecutionStatus.COMPLETED, ExecutionStatus.FAILED}
)
ACTIVE_STATUSES: frozenset[ExecutionStatus] = frozenset(
    {ExecutionStatus.PENDING, ExecutionStatus.PROCESSING}
)

_TERMINAL_SQL = "('completed', 'failed')"


class ExecutionRecord(Base):
    """The durable state of one ``(report_id, period_key)`` execution.

    The composite primary key is the de-duplication key: only one insert per
    pair can succeed, which is what makes dispatch single-flight.
    """

    __tablename__ = "execution_records"
    __table_args__ = (
        CheckConstraint(
            f"(status IN {_TERMINAL_SQL} AND end_time IS NOT NULL) OR "
            f"(status NOT IN {_TERMINAL_SQL} AND end_time IS NULL)",
            name="ck_execution_records_end_time_terminal",
        ),
        Index("ix_execution_records_status_updated", "status", "updated_at"),
    )

    report_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    period_key: Mapped[str] = mapped_column(String(10), primary_key=True)
    status: Mapped[str] = mapped_column(
        String(16), default=ExecutionStatus.PENDING.value, nullable=False
    )
    start_time: Mapped[dt.datetime | None] = mapped_column(UTCDateTime())
    end_time: Mapped[dt.datetime | None] = mapped_column(UTCDateTime())
    content: Mapped[str | None] = mapped_column(Text)
    error_kind: Mapped[str | None] = mapped_column(String(16))
    error_reason: Mapped[str | None] = mapped_column(String(64))
    error_message: Mapped[str | None] = mapped_column(Text)
    attempt_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    snapshot: Mapped[dict[str, typ.Any]] = mapped_column(JSON, nullable=False)
    next_attempt_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime())
    delivery_status: Mapped[str | None] = mapped_column(String(16))
    delivery_error: Mapped[str | None] = mapped_column(Text)
    delivery_attempts: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    delivered_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime())
    created_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow, nullable=False
    )

    @property
    def execution_status(self) -> ExecutionStatus:
        """Return ``status`` as an ``ExecutionStatus``."""
        return ExecutionStatus(self.status)
