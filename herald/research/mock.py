"""Mock implementation of ResearchModel for testing and development."""

from __future__ import annotations

import typing as typ

from herald.research.errors import ResearchInputError
from herald.research.metrics import ModelInvocationMetrics

if typ.TYPE_CHECKING:
    from herald.research.models import ResearchRequest


class MockResearchModel:
    """Deterministic ResearchModel that never calls a remote service.

    Produces one section per topic, listing the keywords it was asked to
    look for, so repeated calls with the same request yield identical text.

    Examples
    --------
    >>> import asyncio
    >>> model = MockResearchModel()
    >>> text = asyncio.run(model.research(request))
    >>> text.startswith("# Research briefing")
    True

    """

    def __init__(self) -> None:
        """Initialise invocation metrics storage."""
        self._last_invocation_metrics: ModelInvocationMetrics | None = None

    @property
    def model_name(self) -> str:
        """Return the fixed mock model name."""
        return "mock"

    @property
    def last_invocation_metrics(self) -> ModelInvocationMetrics | None:
        """Return metrics captured from the latest invocation."""
        return self._last_invocation_metrics

    async def research(self, request: ResearchRequest) -> str:
        """Return a deterministic briefing for ``request``."""
        if not request.topics:
            msg = "at least one topic is required"
            raise ResearchInputError(msg)

        self._last_invocation_metrics = ModelInvocationMetrics(
            prompt_tokens=0,
            completion_tokens=0,
            total_tokens=0,
        )
        window = request.window
        lines = [
            "# Research briefing",
            "",
            f"Coverage from {window.start.date().isoformat()} "
            f"to {window.end.date().isoformat()}.",
        ]
        for topic in request.topics:
            lines.extend(["", f"## {topic}", ""])
            if request.keywords:
                lines.extend(
                    f"- No notable developments mentioning {keyword}."
                    for keyword in request.keywords
                )
            else:
                lines.append("- No notable developments in this window.")
        return "\n".join(lines)

    async def aclose(self) -> None:
        """Nothing to release."""
