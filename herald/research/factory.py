"""Factory for creating ResearchModel implementations from the environment."""

from __future__ import annotations

import os
import typing as typ

from herald.research.errors import ResearchModelConfigError
from herald.research.mock import MockResearchModel

if typ.TYPE_CHECKING:
    from herald.research.protocol import ResearchModel

_VALID_BACKENDS = frozenset({"mock", "openai"})


def create_research_model() -> ResearchModel:
    """Create a ResearchModel selected by ``HERALD_RESEARCH_BACKEND``.

    ``mock`` needs no further configuration. ``openai`` reads the
    ``HERALD_OPENAI_*`` variables described on
    ``OpenAIResearchModelConfig.from_env``.

    Raises
    ------
    ResearchModelConfigError
        If the backend is missing, unknown, or its configuration is
        invalid.

    Examples
    --------
    >>> import os
    >>> os.environ["HERALD_RESEARCH_BACKEND"] = "mock"
    >>> isinstance(create_research_model(), MockResearchModel)
    True

    """
    raw_backend = os.environ.get("HERALD_RESEARCH_BACKEND")
    if raw_backend is None:
        raise ResearchModelConfigError.missing_backend()

    backend = raw_backend.strip().lower()
    if backend not in _VALID_BACKENDS:
        raise ResearchModelConfigError.invalid_backend(raw_backend, _VALID_BACKENDS)

    if backend == "mock":
        return MockResearchModel()

    from herald.research.config import OpenAIResearchModelConfig
    from herald.research.openai_client import OpenAIResearchModel

    return OpenAIResearchModel(OpenAIResearchModelConfig.from_env())
