"""ResearchModel protocol for report text generation."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    from herald.research.metrics import ModelInvocationMetrics
    from herald.research.models import ResearchRequest


@typ.runtime_checkable
class ResearchModel(typ.Protocol):
    """Protocol for producing report text from topics, keywords and a window.

    Implementations raise ``ResearchError`` subclasses for failures they
    can classify; the orchestrator treats anything else as a defect.

    Examples
    --------
    >>> from herald.research import MockResearchModel, ResearchModel
    >>> model: ResearchModel = MockResearchModel()
    >>> isinstance(model, ResearchModel)
    True

    """

    @property
    def model_name(self) -> str:
        """Identifier of the model producing the text."""
        ...

    @property
    def last_invocation_metrics(self) -> ModelInvocationMetrics | None:
        """Metrics from the most recent call, when available."""
        ...

    async def research(self, request: ResearchRequest) -> str:
        """Generate report text for ``request``.

        Parameters
        ----------
        request
            Topics, keywords and the time window to cover.

        Returns
        -------
        str
            Markdown-flavoured report text.

        """
        ...

    async def aclose(self) -> None:
        """Release any owned resources."""
        ...
