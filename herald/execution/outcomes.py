"""Result values produced by the execution state machine."""

from __future__ import annotations

import dataclasses as dc
import datetime as dt  # noqa: TC003
import typing as typ

if typ.TYPE_CHECKING:
    from herald.execution.storage import ExecutionRecord
    from herald.research.metrics import ModelInvocationMetrics
    from herald.research.models import ResearchFailure


@dc.dataclass(frozen=True, slots=True)
class Completed:
    """The attempt produced report content."""

    content: str
    model: str
    metrics: ModelInvocationMetrics | None = None


@dc.dataclass(frozen=True, slots=True)
class Retry:
    """The attempt failed transiently and another attempt is allowed.

    Attributes
    ----------
    attempt_count
        Attempts consumed so far; the resumed attempt must find this value.
    delay
        Backoff before the next attempt.
    failure
        The transient failure that triggered the retry.

    """

    attempt_count: int
    delay: dt.timedelta
    failure: ResearchFailure


@dc.dataclass(frozen=True, slots=True)
class Failed:
    """The attempt failed permanently or exhausted the retry budget."""

    failure: ResearchFailure


type AttemptOutcome = Completed | Retry | Failed


@dc.dataclass(frozen=True, slots=True)
class StartResult:
    """What ``start_execution`` did for a trigger.

    ``started`` is ``False`` when another trigger already owns the pair; the
    existing record is then returned unchanged.
    """

    started: bool
    record: ExecutionRecord
