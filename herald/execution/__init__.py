"""Execution records and the state machine that drives them.

Public API
----------
ExecutionStateMachine
    Admits, researches, retries and delivers one execution per period.
ExecutionStore
    Conditional persistence for ``execution_records``.
EngineConfig
    Retry, timeout and failure-policy settings.
"""

from __future__ import annotations

from .config import EngineConfig
from .errors import (
    ConditionalWriteConflictError,
    EngineConfigError,
    ExecutionError,
    ExecutionNotCompletedError,
    ExecutionNotFoundError,
    InvalidTransitionError,
)
from .machine import (
    ExecutionStateMachine,
    ReportDeactivator,
    research_window,
    scheduled_moment,
)
from .observability import ExecutionEventLogger, ExecutionEventType
from .outcomes import AttemptOutcome, Completed, Failed, Retry, StartResult
from .retry import RetryScheduler, backoff_delay
from .storage import DeliveryFilter, DeliveryStatus, ExecutionRecord, ExecutionStatus
from .store import (
    ALLOWED_TRANSITIONS,
    ExecutionStore,
    ensure_transition,
    execution_range_query,
)

__all__ = [
    "ALLOWED_TRANSITIONS",
    "AttemptOutcome",
    "Completed",
    "ConditionalWriteConflictError",
    "DeliveryFilter",
    "DeliveryStatus",
    "EngineConfig",
    "EngineConfigError",
    "ExecutionError",
    "ExecutionEventLogger",
    "ExecutionEventType",
    "ExecutionNotCompletedError",
    "ExecutionNotFoundError",
    "ExecutionRecord",
    "ExecutionStateMachine",
    "ExecutionStatus",
    "ExecutionStore",
    "Failed",
    "InvalidTransitionError",
    "ReportDeactivator",
    "Retry",
    "RetryScheduler",
    "StartResult",
    "backoff_delay",
    "ensure_transition",
    "execution_range_query",
    "research_window",
    "scheduled_moment",
]
