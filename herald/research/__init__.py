"""Research capability: protocol, backends and the single-attempt orchestrator."""

from __future__ import annotations

from .config import OpenAIResearchModelConfig
from .errors import (
    OpenAIResearchError,
    OpenAIResponseShapeError,
    ResearchError,
    ResearchInputError,
    ResearchModelConfigError,
)
from .factory import create_research_model
from .metrics import ModelInvocationMetrics
from .mock import MockResearchModel
from .models import (
    FailureKind,
    FailureReason,
    ResearchFailure,
    ResearchOutcome,
    ResearchRequest,
    ResearchSucceeded,
    ResearchWindow,
)
from .openai_client import OpenAIResearchModel
from .orchestrator import ResearchOrchestrator
from .protocol import ResearchModel

__all__ = [
    "FailureKind",
    "FailureReason",
    "MockResearchModel",
    "ModelInvocationMetrics",
    "OpenAIResearchError",
    "OpenAIResearchModel",
    "OpenAIResearchModelConfig",
    "OpenAIResponseShapeError",
    "ResearchError",
    "ResearchFailure",
    "ResearchInputError",
    "ResearchModel",
    "ResearchModelConfigError",
    "ResearchOrchestrator",
    "ResearchOutcome",
    "ResearchRequest",
    "ResearchSucceeded",
    "ResearchWindow",
    "create_research_model",
]
