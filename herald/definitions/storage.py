"""Table for user-defined report definitions."""

from __future__ import annotations

import datetime as dt  # noqa: TC003
import uuid

from sqlalchemy import JSON, Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from herald.common.storage import Base, UTCDateTime
from herald.common.time import utcnow


class ReportDefinitionRow(Base):
    """A report an owner asked Herald to research and email on a cadence."""

    __tablename__ = "report_definitions"
    __table_args__ = (Index("ix_report_definitions_owner", "owner_id"),)

    report_id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    owner_id: Mapped[str] = mapped_column(String(128), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    topics: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    keywords: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    cadence: Mapped[str] = mapped_column(String(16), nullable=False)
    delivery_time: Mapped[str] = mapped_column(String(5), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    recipient: Mapped[str] = mapped_column(String(320), nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow, nullable=False
    )
