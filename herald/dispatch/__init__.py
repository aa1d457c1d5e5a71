"""Trigger dispatch and the Dramatiq worker surface."""

from __future__ import annotations

from .dispatcher import (
    DefinitionReader,
    DiscardReason,
    DispatchResult,
    TriggerDispatcher,
    compute_period_key,
)
from .errors import InvalidScheduledPeriodError
from .wiring import (
    EngineComponents,
    EngineDependencies,
    build_components,
    session_scope,
    worker_scope,
)

__all__ = [
    "DefinitionReader",
    "DiscardReason",
    "DispatchResult",
    "EngineComponents",
    "EngineDependencies",
    "InvalidScheduledPeriodError",
    "TriggerDispatcher",
    "build_components",
    "compute_period_key",
    "session_scope",
    "worker_scope",
]
