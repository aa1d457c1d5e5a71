"""Common time utilities."""

from __future__ import annotations

import datetime as dt


def utcnow() -> dt.datetime:
    """Return an aware UTC timestamp suitable for DB defaults."""
    return dt.datetime.now(dt.UTC)


def floor_to_minute(moment: dt.datetime) -> dt.datetime:
    """Return ``moment`` in UTC with seconds and microseconds dropped."""
    return moment.astimezone(dt.UTC).replace(second=0, microsecond=0)
