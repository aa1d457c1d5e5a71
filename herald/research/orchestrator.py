"""Single-attempt research invocation with timeout and classification.

The orchestrator never retries. It turns one call to a ``ResearchModel``
into either ``ResearchSucceeded`` or a classified ``ResearchFailure`` and
leaves the retry decision to the execution state machine.
"""

from __future__ import annotations

import asyncio
import typing as typ

from herald.logging import get_logger, log_warning
from herald.research.errors import ResearchError
from herald.research.models import (
    FailureKind,
    FailureReason,
    ResearchFailure,
    ResearchRequest,
    ResearchSucceeded,
)

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from herald.research.models import ResearchOutcome, ResearchWindow
    from herald.research.protocol import ResearchModel

logger = get_logger(__name__)


class ResearchOrchestrator:
    """Invoke a research model once within a bounded timeout.

    Parameters
    ----------
    model
        Backend producing the report text.
    timeout_s
        Upper bound for one attempt, in seconds.

    """

    def __init__(self, model: ResearchModel, *, timeout_s: float) -> None:
        """Bind the orchestrator to a model and attempt timeout."""
        self._model = model
        self._timeout_s = timeout_s

    @property
    def timeout_s(self) -> float:
        """Return the per-attempt timeout in seconds."""
        return self._timeout_s

    async def research(
        self,
        topics: cabc.Sequence[str],
        keywords: cabc.Sequence[str],
        window: ResearchWindow,
    ) -> ResearchOutcome:
        """Run one research attempt.

        Parameters
        ----------
        topics
            Topics to cover; an empty sequence is a permanent failure.
        keywords
            Optional keywords to prioritise.
        window
            Time span the report should cover.

        Returns
        -------
        ResearchSucceeded | ResearchFailure
            The report text, or the classified failure.

        """
        if not topics:
            return ResearchFailure(
                kind=FailureKind.PERMANENT,
                reason=FailureReason.INVALID_INPUT,
                message="at least one topic is required",
            )

        request = ResearchRequest(
            topics=tuple(topics),
            keywords=tuple(keywords),
            window=window,
        )
        try:
            async with asyncio.timeout(self._timeout_s):
                content = await self._model.research(request)
        except TimeoutError:
            log_warning(
                logger,
                "Research attempt timed out after %ss (model=%s)",
                self._timeout_s,
                self._model.model_name,
            )
            return ResearchFailure(
                kind=FailureKind.TRANSIENT,
                reason=FailureReason.TIMEOUT,
                message=f"research timed out after {self._timeout_s}s",
            )
        except ResearchError as exc:
            log_warning(
                logger,
                "Research attempt failed (model=%s, kind=%s, reason=%s): %s",
                self._model.model_name,
                exc.kind,
                exc.reason,
                exc,
            )
            return ResearchFailure(kind=exc.kind, reason=exc.reason, message=str(exc))

        if not content.strip():
            return ResearchFailure(
                kind=FailureKind.TRANSIENT,
                reason=FailureReason.MALFORMED_RESPONSE,
                message="research returned empty content",
            )
        return ResearchSucceeded(
            content=content,
            model=self._model.model_name,
            metrics=self._model.last_invocation_metrics,
        )
