"""Declarative base, UTC column type and schema bootstrap for Herald tables."""

from __future__ import annotations

import datetime as dt
import typing as typ

from sqlalchemy import DateTime
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator

if typ.TYPE_CHECKING:
    from sqlalchemy.engine import Dialect
    from sqlalchemy.ext.asyncio import AsyncEngine


class TimezoneAwareRequiredError(ValueError):
    """A naive datetime was written to a :class:`UTCDateTime` column."""

    def __init__(self, context: str = "datetime column values") -> None:
        """Name what was being stored in the message."""
        super().__init__(f"{context} must be timezone aware")


class Base(DeclarativeBase):
    """Declarative base shared by every Herald table."""


class UTCDateTime(TypeDecorator[dt.datetime]):
    """Timezone-aware timestamp column normalised to UTC.

    SQLite drops tzinfo on the way back, so results are re-tagged as UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Reject naive values and convert aware ones to UTC."""
        if value is None:
            return None
        if value.tzinfo is None:
            raise TimezoneAwareRequiredError
        return value.astimezone(dt.UTC)

    def process_result_value(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Return stored values as aware UTC datetimes."""
        if value is None:
            return None
        return (
            value.replace(tzinfo=dt.UTC)
            if value.tzinfo is None
            else value.astimezone(dt.UTC)
        )


async def init_storage(engine: AsyncEngine) -> None:
    """Create definition, schedule, and execution tables if absent."""
    # Importing the table modules registers them with Base.metadata.
    import herald.definitions.storage
    import herald.execution.storage
    import herald.schedule.storage  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
