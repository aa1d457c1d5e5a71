"""Translate report cadences into cron-style recurrence rules.

Every rule fires once per period at the report's delivery time (UTC):

- ``daily``: every day
- ``weekly``: every Monday
- ``monthly``: the first day of each month

Rules render to the six-field ``cron(...)`` syntax understood by managed
schedulers and can be evaluated locally with ``RecurrenceRule.matches``.

Usage
-----
>>> rule = translate("daily", "09:00")
>>> rule.expression
'cron(0 9 * * ? *)'

"""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import enum
import re

from herald.schedule.errors import InvalidCadenceError, InvalidTimeFormatError

_TIME_OF_DAY = re.compile(r"([01][0-9]|2[0-3]):([0-5][0-9])")
_MONDAY = 1
_FIRST_OF_MONTH = 1
_WEEKDAY_NAMES = {1: "MON", 2: "TUE", 3: "WED", 4: "THU", 5: "FRI", 6: "SAT", 7: "SUN"}


class Cadence(enum.StrEnum):
    """Supported report cadences."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


@dc.dataclass(frozen=True, slots=True)
class TimeOfDay:
    """A validated UTC delivery time."""

    hour: int
    minute: int

    def __str__(self) -> str:
        """Render as ``HH:MM``."""
        return f"{self.hour:02d}:{self.minute:02d}"


@dc.dataclass(frozen=True, slots=True)
class RecurrenceRule:
    """A materialised schedule for one cadence and delivery time.

    Attributes
    ----------
    cadence
        Cadence the rule was derived from.
    hour
        UTC hour of day the rule fires.
    minute
        Minute of the hour the rule fires.
    day_of_month
        Day of month for monthly rules, otherwise ``None``.
    day_of_week
        ISO weekday (1 = Monday) for weekly rules, otherwise ``None``.

    """

    cadence: Cadence
    hour: int
    minute: int
    day_of_month: int | None = None
    day_of_week: int | None = None

    @property
    def expression(self) -> str:
        """Return the rule as a six-field ``cron(...)`` expression."""
        if self.day_of_week is not None:
            dom, dow = "?", _WEEKDAY_NAMES[self.day_of_week]
        elif self.day_of_month is not None:
            dom, dow = str(self.day_of_month), "?"
        else:
            dom, dow = "*", "?"
        return f"cron({self.minute} {self.hour} {dom} * {dow} *)"

    def matches(self, moment: dt.datetime) -> bool:
        """Return whether the rule fires during the UTC minute of ``moment``."""
        utc = moment.astimezone(dt.UTC)
        if (utc.hour, utc.minute) != (self.hour, self.minute):
            return False
        if self.day_of_week is not None and utc.isoweekday() != self.day_of_week:
            return False
        return self.day_of_month is None or utc.day == self.day_of_month


def parse_cadence(raw: str | Cadence) -> Cadence:
    """Return the ``Cadence`` named by ``raw``.

    Raises
    ------
    InvalidCadenceError
        If ``raw`` does not name a supported cadence.

    """
    if isinstance(raw, Cadence):
        return raw
    try:
        return Cadence(raw.strip().lower())
    except (AttributeError, ValueError) as exc:
        raise InvalidCadenceError(str(raw), (c.value for c in Cadence)) from exc


def parse_time_of_day(raw: str) -> TimeOfDay:
    """Parse a strict 24-hour ``HH:MM`` string.

    Raises
    ------
    InvalidTimeFormatError
        If ``raw`` is not exactly two-digit hour 00-23, a colon, and a
        two-digit minute 00-59.

    """
    match = _TIME_OF_DAY.fullmatch(raw) if isinstance(raw, str) else None
    if match is None:
        raise InvalidTimeFormatError(str(raw))
    return TimeOfDay(hour=int(match.group(1)), minute=int(match.group(2)))


def translate(cadence: str | Cadence, time_of_day: str) -> RecurrenceRule:
    """Convert a cadence and delivery time into a ``RecurrenceRule``.

    Parameters
    ----------
    cadence
        ``daily``, ``weekly`` or ``monthly``.
    time_of_day
        Delivery time as ``HH:MM`` (UTC).

    Returns
    -------
    RecurrenceRule
        Rule firing once per period at the delivery time.

    Raises
    ------
    InvalidCadenceError
        If the cadence is not supported.
    InvalidTimeFormatError
        If the delivery time is malformed or out of range.

    """
    parsed_cadence = parse_cadence(cadence)
    parsed_time = parse_time_of_day(time_of_day)
    match parsed_cadence:
        case Cadence.DAILY:
            return RecurrenceRule(parsed_cadence, parsed_time.hour, parsed_time.minute)
        case Cadence.WEEKLY:
            return RecurrenceRule(
                parsed_cadence,
                parsed_time.hour,
                parsed_time.minute,
                day_of_week=_MONDAY,
            )
        case Cadence.MONTHLY:
            return RecurrenceRule(
                parsed_cadence,
                parsed_time.hour,
                parsed_time.minute,
                day_of_month=_FIRST_OF_MONTH,
            )


def _one_month_before(moment: dt.datetime) -> dt.datetime:
    if moment.month == 1:
        year, month = moment.year - 1, 12
    else:
        year, month = moment.year, moment.month - 1
    # Clamp to the last day of the shorter month.
    for day in range(moment.day, 27, -1):
        try:
            return moment.replace(year=year, month=month, day=day)
        except ValueError:
            continue
    return moment.replace(year=year, month=month, day=min(moment.day, 28))


def cadence_window(
    cadence: str | Cadence, end: dt.datetime
) -> tuple[dt.datetime, dt.datetime]:
    """Return the ``(start, end)`` research window covered by one period.

    The window spans one day, seven days, or one calendar month ending at
    ``end``.
    """
    match parse_cadence(cadence):
        case Cadence.DAILY:
            return (end - dt.timedelta(days=1), end)
        case Cadence.WEEKLY:
            return (end - dt.timedelta(days=7), end)
        case Cadence.MONTHLY:
            return (_one_month_before(end), end)


__all__ = [
    "Cadence",
    "RecurrenceRule",
    "TimeOfDay",
    "cadence_window",
    "parse_cadence",
    "parse_time_of_day",
    "translate",
]
