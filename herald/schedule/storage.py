"""Persisted schedule rules backing the in-house trigger facility."""

from __future__ import annotations

import datetime as dt  # noqa: TC003

from sqlalchemy import Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from herald.common.storage import Base, UTCDateTime
from herald.common.time import utcnow
from herald.schedule.translator import Cadence, RecurrenceRule


class ScheduleRuleRow(Base):
    """One registered recurrence rule per active report definition."""

    __tablename__ = "schedule_rules"
    __table_args__ = (Index("ix_schedule_rules_fire_time", "hour", "minute"),)

    rule_name: Mapped[str] = mapped_column(String(96), primary_key=True)
    report_id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False)
    cadence: Mapped[str] = mapped_column(String(16), nullable=False)
    expression: Mapped[str] = mapped_column(String(64), nullable=False)
    hour: Mapped[int] = mapped_column(Integer, nullable=False)
    minute: Mapped[int] = mapped_column(Integer, nullable=False)
    day_of_month: Mapped[int | None] = mapped_column(Integer, default=None)
    day_of_week: Mapped[int | None] = mapped_column(Integer, default=None)
    created_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow, nullable=False
    )

    def to_rule(self) -> RecurrenceRule:
        """Rebuild the ``RecurrenceRule`` stored in this row."""
        return RecurrenceRule(
            cadence=Cadence(self.cadence),
            hour=self.hour,
            minute=self.minute,
            day_of_month=self.day_of_month,
            day_of_week=self.day_of_week,
        )

    def apply(self, rule: RecurrenceRule) -> None:
        """Overwrite the stored schedule with ``rule``."""
        self.cadence = rule.cadence.value
        self.expression = rule.expression
        self.hour = rule.hour
        self.minute = rule.minute
        self.day_of_month = rule.day_of_month
        self.day_of_week = rule.day_of_week
