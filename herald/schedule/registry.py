"""Idempotent registration of schedule rules.

``ScheduleRegistry`` is the port through which definition management
registers and removes the recurrence rule for a report. Registering a rule
for a report that already has one overwrites it; removing a rule that does
not exist is a no-op. ``DatabaseScheduleRegistry`` persists rules so the
``ScheduleTicker`` can evaluate which reports are due each minute.

Usage
-----
>>> registry = DatabaseScheduleRegistry(session_factory)
>>> await registry.register("report-1", translate("daily", "09:00"))
>>> await registry.deregister("report-1")

"""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import typing as typ

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError

from herald.logging import get_logger, log_info
from herald.schedule.storage import ScheduleRuleRow

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from herald.schedule.translator import RecurrenceRule

logger = get_logger(__name__)

_RULE_PREFIX = "herald-report-"


def rule_name_for(report_id: str) -> str:
    """Return the stable rule identity for a report."""
    return f"{_RULE_PREFIX}{report_id}"


@dc.dataclass(frozen=True, slots=True)
class DueRule:
    """A rule that fires during the evaluated minute."""

    report_id: str
    rule: RecurrenceRule


@typ.runtime_checkable
class ScheduleRegistry(typ.Protocol):
    """Port for registering report schedules with a trigger facility."""

    async def register(self, report_id: str, rule: RecurrenceRule) -> None:
        """Create or overwrite the rule for ``report_id``."""
        ...

    async def deregister(self, report_id: str) -> None:
        """Remove the rule for ``report_id`` if one exists."""
        ...


class DatabaseScheduleRegistry:
    """Schedule registry persisted in the ``schedule_rules`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Store the session factory used for rule persistence."""
        self._session_factory = session_factory

    async def register(self, report_id: str, rule: RecurrenceRule) -> None:
        """Create or overwrite the rule for ``report_id``.

        Concurrent registrations for the same report converge on a single
        row: the loser of the insert race updates the winner's row.
        """
        name = rule_name_for(report_id)
        async with self._session_factory() as session:
            existing = await session.get(ScheduleRuleRow, name)
            if existing is None:
                row = ScheduleRuleRow(rule_name=name, report_id=report_id)
                row.apply(rule)
                session.add(row)
                try:
                    await session.commit()
                except IntegrityError:
                    await session.rollback()
                else:
                    self._log_registered(report_id, rule)
                    return
                existing = await session.get(ScheduleRuleRow, name)
                if existing is None:
                    msg = f"Schedule rule {name} vanished during registration"
                    raise RuntimeError(msg)

            existing.apply(rule)
            await session.commit()
        self._log_registered(report_id, rule)

    async def deregister(self, report_id: str) -> None:
        """Remove the rule for ``report_id``; absent rules are ignored."""
        name = rule_name_for(report_id)
        async with self._session_factory() as session, session.begin():
            result = await session.execute(
                delete(ScheduleRuleRow).where(ScheduleRuleRow.rule_name == name)
            )
        if result.rowcount:
            log_info(logger, "Deregistered schedule rule %s", name)

    async def get(self, report_id: str) -> RecurrenceRule | None:
        """Return the registered rule for ``report_id``, if any."""
        async with self._session_factory() as session:
            row = await session.get(ScheduleRuleRow, rule_name_for(report_id))
        return None if row is None else row.to_rule()

    async def due_rules(self, moment: dt.datetime) -> list[DueRule]:
        """Return the rules that fire during the UTC minute of ``moment``."""
        utc = moment.astimezone(dt.UTC)
        stmt = (
            select(ScheduleRuleRow)
            .where(
                ScheduleRuleRow.hour == utc.hour,
                ScheduleRuleRow.minute == utc.minute,
            )
            .order_by(ScheduleRuleRow.report_id)
        )
        async with self._session_factory() as session:
            rows = (await session.scalars(stmt)).all()

        due: list[DueRule] = []
        for row in rows:
            rule = row.to_rule()
            if rule.matches(utc):
                due.append(DueRule(report_id=row.report_id, rule=rule))
        return due

    def _log_registered(self, report_id: str, rule: RecurrenceRule) -> None:
        log_info(
            logger,
            "Registered schedule rule %s expression=%s",
            rule_name_for(report_id),
            rule.expression,
        )
