"""Errors raised while translating report cadences into schedule rules."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    import collections.abc as cabc


class ScheduleError(ValueError):
    """Base class for schedule translation errors."""


class InvalidCadenceError(ScheduleError):
    """Raised when a cadence is outside the supported set.

    Attributes
    ----------
    cadence
        The rejected cadence value.

    """

    def __init__(self, cadence: str, valid: cabc.Iterable[str]) -> None:
        """Record the rejected cadence and list the accepted values."""
        self.cadence = cadence
        options = ", ".join(f"'{value}'" for value in sorted(valid))
        super().__init__(f"Invalid cadence {cadence!r}. Valid options are: {options}")


class InvalidTimeFormatError(ScheduleError):
    """Raised when a delivery time is not a strict 24-hour ``HH:MM`` value.

    Attributes
    ----------
    value
        The rejected time-of-day string.

    """

    def __init__(self, value: str) -> None:
        """Record the rejected time-of-day string."""
        self.value = value
        super().__init__(
            f"Invalid delivery time {value!r}. Expected HH:MM with hour 00-23 "
            "and minute 00-59"
        )
