"""Unit tests for ResearchOrchestrator and MockResearchModel."""

from __future__ import annotations

import asyncio
import datetime as dt

import pytest

from herald.research import (
    FailureKind,
    FailureReason,
    MockResearchModel,
    OpenAIResearchError,
    ResearchFailure,
    ResearchModel,
    ResearchOrchestrator,
    ResearchRequest,
    ResearchSucceeded,
    ResearchWindow,
)
from tests.helpers.fakes import ScriptedResearchModel

WINDOW = ResearchWindow(
    start=dt.datetime(2024, 5, 31, 9, tzinfo=dt.UTC),
    end=dt.datetime(2024, 6, 1, 9, tzinfo=dt.UTC),
)


class _HangingModel(ScriptedResearchModel):
    """Model that never answers."""

    async def research(self, request: ResearchRequest) -> str:
        """Sleep well past any test timeout."""
        self.requests.append(request)
        await asyncio.sleep(60)
        return "unreachable"


class TestResearchOrchestrator:
    """Tests for ResearchOrchestrator.research()."""

    @pytest.mark.asyncio
    async def test_success_returns_content_and_model(self) -> None:
        """Successful attempts carry the content and the model name."""
        orchestrator = ResearchOrchestrator(
            ScriptedResearchModel(["# Report"]), timeout_s=1
        )

        outcome = await orchestrator.research(["Acme Corp"], [], WINDOW)

        assert outcome == ResearchSucceeded(content="# Report", model="scripted")

    @pytest.mark.asyncio
    async def test_empty_topics_is_permanent(self) -> None:
        """No topics means a permanent invalid-input failure without a call."""
        model = ScriptedResearchModel()
        orchestrator = ResearchOrchestrator(model, timeout_s=1)

        outcome = await orchestrator.research([], ["plant"], WINDOW)

        assert isinstance(outcome, ResearchFailure)
        assert outcome.kind is FailureKind.PERMANENT
        assert outcome.reason is FailureReason.INVALID_INPUT
        assert model.requests == [], "the model must not be called"

    @pytest.mark.asyncio
    async def test_timeout_is_transient(self) -> None:
        """Attempts exceeding the timeout become transient timeout failures."""
        orchestrator = ResearchOrchestrator(_HangingModel(), timeout_s=0.01)

        outcome = await orchestrator.research(["Acme Corp"], [], WINDOW)

        assert outcome == ResearchFailure(
            kind=FailureKind.TRANSIENT,
            reason=FailureReason.TIMEOUT,
            message="research timed out after 0.01s",
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("error", "kind", "reason"),
        [
            (
                OpenAIResearchError.rate_limited(30),
                FailureKind.TRANSIENT,
                FailureReason.RATE_LIMITED,
            ),
            (
                OpenAIResearchError.http_error(502),
                FailureKind.TRANSIENT,
                FailureReason.UPSTREAM_ERROR,
            ),
            (
                OpenAIResearchError.http_error(401),
                FailureKind.PERMANENT,
                FailureReason.UNAUTHORIZED,
            ),
            (
                OpenAIResearchError.content_policy(),
                FailureKind.PERMANENT,
                FailureReason.CONTENT_POLICY,
            ),
        ],
        ids=["rate-limited", "bad-gateway", "unauthorized", "content-policy"],
    )
    async def test_classifies_backend_errors(
        self,
        error: OpenAIResearchError,
        kind: FailureKind,
        reason: FailureReason,
    ) -> None:
        """Backend errors keep their classification."""
        orchestrator = ResearchOrchestrator(ScriptedResearchModel([error]), timeout_s=1)

        outcome = await orchestrator.research(["Acme Corp"], [], WINDOW)

        assert isinstance(outcome, ResearchFailure)
        assert (outcome.kind, outcome.reason) == (kind, reason)
        assert outcome.message == str(error)

    @pytest.mark.asyncio
    async def test_blank_content_is_malformed(self) -> None:
        """Whitespace-only text is treated as a transient malformed response."""
        orchestrator = ResearchOrchestrator(
            ScriptedResearchModel(["  \n"]), timeout_s=1
        )

        outcome = await orchestrator.research(["Acme Corp"], [], WINDOW)

        assert isinstance(outcome, ResearchFailure)
        assert outcome.reason is FailureReason.MALFORMED_RESPONSE
        assert outcome.is_transient

    @pytest.mark.asyncio
    async def test_unexpected_errors_propagate(self) -> None:
        """Unclassified exceptions are defects and are not swallowed."""
        orchestrator = ResearchOrchestrator(
            ScriptedResearchModel([RuntimeError("bug")]), timeout_s=1
        )

        with pytest.raises(RuntimeError, match="bug"):
            await orchestrator.research(["Acme Corp"], [], WINDOW)


class TestMockResearchModel:
    """Tests for MockResearchModel."""

    def test_satisfies_protocol(self) -> None:
        """The mock is a ResearchModel."""
        assert isinstance(MockResearchModel(), ResearchModel)

    @pytest.mark.asyncio
    async def test_output_is_deterministic(self) -> None:
        """Identical requests yield identical briefings."""
        request = ResearchRequest(
            topics=("Acme Corp",), keywords=("plant",), window=WINDOW
        )
        model = MockResearchModel()

        first = await model.research(request)
        second = await model.research(request)

        assert first == second
        assert first.startswith("# Research briefing")
        assert "## Acme Corp" in first
        assert "- No notable developments mentioning plant." in first
        assert model.last_invocation_metrics is not None
