"""Exceptions raised by the execution store, state machine and config."""

from __future__ import annotations


class ExecutionError(Exception):
    """Base class for execution engine errors."""


class ConditionalWriteConflictError(ExecutionError):
    """Raised when a conditional write found the record in another state.

    Either another worker won the race for the same ``(report_id,
    period_key)`` or the record has already moved on.
    """

    def __init__(self, report_id: str, period_key: str, condition: str) -> None:
        """Describe the record and the condition that did not hold."""
        self.report_id = report_id
        self.period_key = period_key
        self.condition = condition
        super().__init__(
            f"Conditional write on execution {report_id}/{period_key} "
            f"lost: expected {condition}"
        )


class InvalidTransitionError(ExecutionError):
    """Raised when code requests a transition the lifecycle forbids."""

    def __init__(self, current: str, target: str) -> None:
        """Record the rejected ``current -> target`` transition."""
        self.current = current
        self.target = target
        super().__init__(f"Invalid execution transition {current} -> {target}")


class ExecutionNotFoundError(ExecutionError):
    """Raised when no record exists for a ``(report_id, period_key)`` pair."""

    def __init__(self, report_id: str, period_key: str) -> None:
        """Record the missing execution identity."""
        self.report_id = report_id
        self.period_key = period_key
        super().__init__(f"Execution not found: {report_id}/{period_key}")


class ExecutionNotCompletedError(ExecutionError):
    """Raised when delivery is resent for an execution without content."""

    def __init__(self, report_id: str, period_key: str, status: str) -> None:
        """Record the execution identity and its current status."""
        self.report_id = report_id
        self.period_key = period_key
        self.status = status
        super().__init__(
            f"Execution {report_id}/{period_key} is {status}, not completed"
        )


class EngineConfigError(ValueError):
    """Raised when execution engine configuration is invalid."""

    @classmethod
    def not_an_integer(cls, env_var: str, raw: str) -> EngineConfigError:
        """Create error for a non-integer environment value."""
        return cls(f"{env_var} must be an integer, got: {raw!r}")

    @classmethod
    def out_of_range(
        cls, env_var: str, value: int, constraint: str
    ) -> EngineConfigError:
        """Create error for a value outside its allowed range."""
        return cls(f"{env_var} must be {constraint}, got: {value}")

    @classmethod
    def stall_window_too_short(
        cls, stall_after_s: int, budget_s: int
    ) -> EngineConfigError:
        """Create error when a live invocation could be mistaken for a stall."""
        return cls(
            "stall window must be longer than the invocation budget "
            f"({stall_after_s}s <= {budget_s}s)"
        )

    @classmethod
    def timeouts_exceed_budget(
        cls, research_timeout_s: int, delivery_timeout_s: int, budget_s: int
    ) -> EngineConfigError:
        """Create error when timeouts leave no room inside the budget."""
        return cls(
            "research timeout plus delivery timeout must be shorter than the "
            f"invocation budget ({research_timeout_s}s + {delivery_timeout_s}s "
            f">= {budget_s}s)"
        )
