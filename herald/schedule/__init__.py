"""Report schedules: cadence translation, rule registry, and minute ticker.

Public API
----------
Cadence
    Supported report cadences.
RecurrenceRule
    Materialised schedule for one cadence and delivery time.
translate
    Pure translation of cadence + ``HH:MM`` into a ``RecurrenceRule``.
ScheduleRegistry
    Port for idempotent rule registration.
DatabaseScheduleRegistry
    Registry persisted in the ``schedule_rules`` table.
ScheduleTicker
    Enqueues triggers for rules due in a given minute.
InvalidCadenceError, InvalidTimeFormatError
    Translation errors.

"""

from __future__ import annotations

from herald.schedule.errors import (
    InvalidCadenceError,
    InvalidTimeFormatError,
    ScheduleError,
)
from herald.schedule.registry import (
    DatabaseScheduleRegistry,
    DueRule,
    ScheduleRegistry,
    rule_name_for,
)
from herald.schedule.ticker import (
    ScheduleTicker,
    SweepEnqueuer,
    Trigger,
    TriggerEnqueuer,
)
from herald.schedule.translator import (
    Cadence,
    RecurrenceRule,
    TimeOfDay,
    cadence_window,
    parse_cadence,
    parse_time_of_day,
    translate,
)

__all__ = [
    "Cadence",
    "DatabaseScheduleRegistry",
    "DueRule",
    "InvalidCadenceError",
    "InvalidTimeFormatError",
    "RecurrenceRule",
    "ScheduleError",
    "ScheduleRegistry",
    "ScheduleTicker",
    "SweepEnqueuer",
    "TimeOfDay",
    "Trigger",
    "TriggerEnqueuer",
    "cadence_window",
    "parse_cadence",
    "parse_time_of_day",
    "rule_name_for",
    "translate",
]
