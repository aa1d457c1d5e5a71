"""Request and outcome types for the research capability."""

from __future__ import annotations

import dataclasses as dc
import datetime as dt  # noqa: TC003
import enum

from herald.research.metrics import ModelInvocationMetrics  # noqa: TC001


class FailureKind(enum.StrEnum):
    """Classification driving retry versus terminal failure."""

    TRANSIENT = "transient"
    PERMANENT = "permanent"


class FailureReason(enum.StrEnum):
    """Short machine-readable causes recorded on failed attempts."""

    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    UPSTREAM_ERROR = "upstream_error"
    NETWORK_ERROR = "network_error"
    MALFORMED_RESPONSE = "malformed_response"
    INVALID_INPUT = "invalid_input"
    UNAUTHORIZED = "unauthorized"
    CONTENT_POLICY = "content_policy"
    ABANDONED = "abandoned"


@dc.dataclass(frozen=True, slots=True)
class ResearchWindow:
    """Time span the report should cover.

    Attributes
    ----------
    start
        Start of the window (inclusive).
    end
        End of the window (exclusive); the scheduled delivery moment.

    """

    start: dt.datetime
    end: dt.datetime


@dc.dataclass(frozen=True, slots=True)
class ResearchRequest:
    """Input handed to a ``ResearchModel``."""

    topics: tuple[str, ...]
    keywords: tuple[str, ...]
    window: ResearchWindow


@dc.dataclass(frozen=True, slots=True)
class ResearchSucceeded:
    """Report text produced by one research attempt."""

    content: str
    model: str
    metrics: ModelInvocationMetrics | None = None


@dc.dataclass(frozen=True, slots=True)
class ResearchFailure:
    """Normalised failure of one research attempt."""

    kind: FailureKind
    reason: FailureReason
    message: str

    @property
    def is_transient(self) -> bool:
        """Return whether the failure is eligible for retry."""
        return self.kind is FailureKind.TRANSIENT


type ResearchOutcome = ResearchSucceeded | ResearchFailure
