"""Configuration for the execution state machine.

Usage
-----
>>> config = EngineConfig()
>>> config.retry_limit
3

Or load from environment variables:

>>> import os
>>> os.environ["HERALD_RETRY_LIMIT"] = "5"
>>> EngineConfig.from_env().retry_limit
5

"""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import os

from herald.execution.errors import EngineConfigError


@dc.dataclass(frozen=True, slots=True)
class EngineConfig:
    """Retry, timeout and failure-policy settings.

    Attributes
    ----------
    retry_limit
        Maximum research attempts per execution, including the first.
    retry_backoff_s
        Delay before the first retry; doubles on each later retry.
    retry_backoff_max_s
        Upper bound for the retry delay.
    research_timeout_s
        Timeout for one research attempt.
    delivery_timeout_s
        Timeout for one delivery hand-off.
    invocation_budget_s
        Time limit of a single worker invocation. Research and delivery
        timeouts together must fit inside it.
    deactivate_after_failures
        Consecutive failed executions after which a report is switched off.
        ``0`` disables the policy.
    stall_after_s
        Age after which an untouched non-terminal record counts as stalled.

    """

    retry_limit: int = 3
    retry_backoff_s: int = 60
    retry_backoff_max_s: int = 900
    research_timeout_s: int = 240
    delivery_timeout_s: int = 30
    invocation_budget_s: int = 300
    deactivate_after_failures: int = 3
    stall_after_s: int = 900

    def __post_init__(self) -> None:
        """Reject timeouts and stall windows that do not fit the budget."""
        busy_s = self.research_timeout_s + self.delivery_timeout_s
        if busy_s >= self.invocation_budget_s:
            raise EngineConfigError.timeouts_exceed_budget(
                self.research_timeout_s,
                self.delivery_timeout_s,
                self.invocation_budget_s,
            )
        if self.stall_after_s <= self.invocation_budget_s:
            raise EngineConfigError.stall_window_too_short(
                self.stall_after_s, self.invocation_budget_s
            )

    @property
    def stall_after(self) -> dt.timedelta:
        """Return ``stall_after_s`` as a timedelta."""
        return dt.timedelta(seconds=self.stall_after_s)

    @property
    def invocation_budget_ms(self) -> int:
        """Return the invocation budget in milliseconds, for actor limits."""
        return self.invocation_budget_s * 1000

    @staticmethod
    def _parse_int(env_var: str, default: int, *, minimum: int = 1) -> int:
        """Read an integer env var no smaller than ``minimum``."""
        raw = os.environ.get(env_var, "")
        if not raw.strip():
            return default
        try:
            value = int(raw)
        except ValueError as exc:
            raise EngineConfigError.not_an_integer(env_var, raw) from exc
        if value < minimum:
            constraint = "positive" if minimum == 1 else f">= {minimum}"
            raise EngineConfigError.out_of_range(env_var, value, constraint)
        return value

    @classmethod
    def from_env(cls) -> EngineConfig:
        """Create configuration from ``HERALD_*`` environment variables.

        Reads ``HERALD_RETRY_LIMIT``, ``HERALD_RETRY_BACKOFF_SECONDS``,
        ``HERALD_RETRY_BACKOFF_MAX_SECONDS``,
        ``HERALD_RESEARCH_TIMEOUT_SECONDS``,
        ``HERALD_DELIVERY_TIMEOUT_SECONDS``,
        ``HERALD_INVOCATION_BUDGET_SECONDS``,
        ``HERALD_DEACTIVATE_AFTER_FAILURES`` (``0`` disables) and
        ``HERALD_STALL_AFTER_SECONDS``.

        Raises
        ------
        EngineConfigError
            If a value is not an integer, is out of range, or the timeouts
            do not fit inside the invocation budget.

        """
        return cls(
            retry_limit=cls._parse_int("HERALD_RETRY_LIMIT", 3),
            retry_backoff_s=cls._parse_int("HERALD_RETRY_BACKOFF_SECONDS", 60),
            retry_backoff_max_s=cls._parse_int("HERALD_RETRY_BACKOFF_MAX_SECONDS", 900),
            research_timeout_s=cls._parse_int("HERALD_RESEARCH_TIMEOUT_SECONDS", 240),
            delivery_timeout_s=cls._parse_int("HERALD_DELIVERY_TIMEOUT_SECONDS", 30),
            invocation_budget_s=cls._parse_int("HERALD_INVOCATION_BUDGET_SECONDS", 300),
            deactivate_after_failures=cls._parse_int(
                "HERALD_DEACTIVATE_AFTER_FAILURES", 3, minimum=0
            ),
            stall_after_s=cls._parse_int("HERALD_STALL_AFTER_SECONDS", 900),
        )
