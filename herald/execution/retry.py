"""Retry scheduling port and backoff policy."""

from __future__ import annotations

import datetime as dt
import typing as typ

if typ.TYPE_CHECKING:
    from herald.execution.config import EngineConfig


@typ.runtime_checkable
class RetryScheduler(typ.Protocol):
    """Port for asking the host to resume an execution later."""

    def schedule_resume(
        self,
        report_id: str,
        period_key: str,
        *,
        expected_attempts: int,
        delay: dt.timedelta,
    ) -> None:
        """Arrange for ``resume_execution`` to run after ``delay``."""
        ...


def backoff_delay(attempt_count: int, config: EngineConfig) -> dt.timedelta:
    """Return the exponential backoff after ``attempt_count`` failed attempts.

    >>> backoff_delay(1, EngineConfig()).total_seconds()
    60.0
    >>> backoff_delay(3, EngineConfig()).total_seconds()
    240.0

    """
    exponent = max(attempt_count - 1, 0)
    seconds = min(config.retry_backoff_s * 2**exponent, config.retry_backoff_max_s)
    return dt.timedelta(seconds=seconds)
