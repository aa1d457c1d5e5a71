"""Exceptions raised while dispatching triggers."""

from __future__ import annotations


class InvalidScheduledPeriodError(ValueError):
    """Raised when a trigger's scheduled period cannot yield a period key."""

    def __init__(self, value: str, reason: str) -> None:
        """Record the rejected value and why it was rejected."""
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid scheduled period {value!r}: {reason}")
