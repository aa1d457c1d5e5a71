"""Report definition management and schedule synchronisation.

``ReportDefinitionService`` is the call site of the schedule translator:
every create, update, toggle, and delete re-derives the recurrence rule and
registers or removes it so no rule outlives an active definition.

Usage
-----
>>> service = ReportDefinitionService(session_factory, registry)
>>> definition = await service.create(
...     "owner-1",
...     DefinitionFields(
...         title="Acme watch",
...         topics=["Acme Corp"],
...         cadence="daily",
...         delivery_time="09:00",
...         recipient="analyst@example.com",
...     ),
... )
>>> await service.set_active("owner-1", definition.report_id, active=False)

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

from sqlalchemy import select, update

from herald.definitions.errors import DefinitionNotFoundError
from herald.definitions.models import (
    normalize_terms,
    normalize_topics,
    require_text,
    validate_recipient,
)
from herald.definitions.storage import ReportDefinitionRow
from herald.logging import get_logger, log_info
from herald.schedule.translator import parse_cadence, parse_time_of_day, translate

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from herald.schedule.registry import ScheduleRegistry

logger = get_logger(__name__)


@dc.dataclass(frozen=True, slots=True)
class DefinitionFields:
    """Fields supplied when creating a report definition."""

    title: str
    topics: cabc.Sequence[str]
    cadence: str
    delivery_time: str
    recipient: str
    keywords: cabc.Sequence[str] = ()
    active: bool = True


@dc.dataclass(frozen=True, slots=True)
class DefinitionChanges:
    """Partial update for a report definition; ``None`` leaves a field as is."""

    title: str | None = None
    topics: cabc.Sequence[str] | None = None
    keywords: cabc.Sequence[str] | None = None
    cadence: str | None = None
    delivery_time: str | None = None
    recipient: str | None = None


class ReportDefinitionService:
    """Create, edit, toggle, and delete report definitions."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        registry: ScheduleRegistry,
    ) -> None:
        """Configure the service with storage and the schedule registry."""
        self._session_factory = session_factory
        self._registry = registry

    async def get(self, report_id: str) -> ReportDefinitionRow | None:
        """Return the definition for ``report_id`` regardless of owner."""
        async with self._session_factory() as session:
            return await session.get(ReportDefinitionRow, report_id)

    async def list_for_owner(self, owner_id: str) -> list[ReportDefinitionRow]:
        """Return an owner's definitions ordered by creation time."""
        stmt = (
            select(ReportDefinitionRow)
            .where(ReportDefinitionRow.owner_id == owner_id)
            .order_by(ReportDefinitionRow.created_at)
        )
        async with self._session_factory() as session:
            return list((await session.scalars(stmt)).all())

    async def create(
        self,
        owner_id: str,
        fields: DefinitionFields,
        *,
        report_id: str | None = None,
    ) -> ReportDefinitionRow:
        """Validate and persist a new definition, registering its schedule.

        Raises
        ------
        InvalidDefinitionError
            If topics, title, or recipient are unusable.
        InvalidCadenceError
            If the cadence is not supported.
        InvalidTimeFormatError
            If the delivery time is not strict ``HH:MM``.

        """
        cadence = parse_cadence(fields.cadence)
        delivery_time = str(parse_time_of_day(fields.delivery_time))
        row = ReportDefinitionRow(
            owner_id=owner_id,
            title=require_text("title", fields.title),
            topics=normalize_topics(fields.topics),
            keywords=normalize_terms(fields.keywords),
            cadence=cadence.value,
            delivery_time=delivery_time,
            recipient=validate_recipient(fields.recipient),
            active=fields.active,
        )
        if report_id is not None:
            row.report_id = report_id

        async with self._session_factory() as session, session.begin():
            session.add(row)

        await self._sync_schedule(row)
        log_info(
            logger,
            "Created report definition %s for owner %s",
            row.report_id,
            owner_id,
        )
        return row

    async def update(
        self,
        owner_id: str,
        report_id: str,
        changes: DefinitionChanges,
    ) -> ReportDefinitionRow:
        """Apply ``changes`` and re-register the schedule."""
        async with self._session_factory() as session, session.begin():
            row = await self._load_owned(session, owner_id, report_id)
            self._apply_changes(row, changes)

        await self._sync_schedule(row)
        return row

    async def set_active(
        self,
        owner_id: str,
        report_id: str,
        *,
        active: bool,
    ) -> ReportDefinitionRow:
        """Toggle a definition, registering or removing its schedule."""
        async with self._session_factory() as session, session.begin():
            row = await self._load_owned(session, owner_id, report_id)
            row.active = active

        await self._sync_schedule(row)
        log_info(
            logger,
            "Report definition %s active=%s",
            report_id,
            active,
        )
        return row

    async def delete(self, owner_id: str, report_id: str) -> None:
        """Delete a definition and remove its schedule rule."""
        async with self._session_factory() as session, session.begin():
            row = await self._load_owned(session, owner_id, report_id)
            await session.delete(row)

        await self._registry.deregister(report_id)
        log_info(logger, "Deleted report definition %s", report_id)

    async def deactivate(self, report_id: str) -> bool:
        """Switch a definition off if it is still active.

        Used by the execution engine's failure policy. Returns ``True`` only
        for the caller whose conditional update flipped the flag.
        """
        stmt = (
            update(ReportDefinitionRow)
            .where(
                ReportDefinitionRow.report_id == report_id,
                ReportDefinitionRow.active.is_(True),
            )
            .values(active=False)
        )
        async with self._session_factory() as session, session.begin():
            result = await session.execute(stmt)
        if not result.rowcount:
            return False
        await self._registry.deregister(report_id)
        return True

    async def _load_owned(
        self,
        session: AsyncSession,
        owner_id: str,
        report_id: str,
    ) -> ReportDefinitionRow:
        row = await session.get(ReportDefinitionRow, report_id)
        if row is None or row.owner_id != owner_id:
            raise DefinitionNotFoundError(owner_id, report_id)
        return row

    def _apply_changes(
        self,
        row: ReportDefinitionRow,
        changes: DefinitionChanges,
    ) -> None:
        if changes.title is not None:
            row.title = require_text("title", changes.title)
        if changes.topics is not None:
            row.topics = normalize_topics(changes.topics)
        if changes.keywords is not None:
            row.keywords = normalize_terms(changes.keywords)
        if changes.cadence is not None:
            row.cadence = parse_cadence(changes.cadence).value
        if changes.delivery_time is not None:
            row.delivery_time = str(parse_time_of_day(changes.delivery_time))
        if changes.recipient is not None:
            row.recipient = validate_recipient(changes.recipient)

    async def _sync_schedule(self, row: ReportDefinitionRow) -> None:
        if row.active:
            rule = translate(row.cadence, row.delivery_time)
            await self._registry.register(row.report_id, rule)
        else:
            await self._registry.deregister(row.report_id)
