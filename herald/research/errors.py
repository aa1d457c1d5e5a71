"""Exceptions raised by research backends.

Every backend error carries a ``FailureKind`` so the orchestrator can turn
it into a ``ResearchFailure`` without knowing which vendor raised it.
"""

from __future__ import annotations

import typing as typ

from herald.research.models import FailureKind, FailureReason

if typ.TYPE_CHECKING:
    import collections.abc as cabc

_CONTENT_PREVIEW_LIMIT = 100
_HTTP_SERVER_ERROR = 500
_UNAUTHORIZED_STATUSES = frozenset({401, 403})


class ResearchError(Exception):
    """Base exception for research backend failures.

    Attributes
    ----------
    kind
        Whether the failure is worth retrying.
    reason
        Machine-readable failure cause.

    """

    def __init__(
        self,
        message: str,
        *,
        kind: FailureKind,
        reason: FailureReason,
    ) -> None:
        """Initialise the error with its classification."""
        self.kind = kind
        self.reason = reason
        super().__init__(message)


class ResearchInputError(ResearchError):
    """Raised when a request cannot be researched as given."""

    def __init__(self, message: str) -> None:
        """Classify the error as a permanent invalid-input failure."""
        super().__init__(
            message,
            kind=FailureKind.PERMANENT,
            reason=FailureReason.INVALID_INPUT,
        )


class OpenAIResearchError(ResearchError):
    """Raised when the OpenAI-compatible endpoint fails a request.

    Attributes
    ----------
    status_code
        HTTP status code from the API response, if available.

    """

    def __init__(
        self,
        message: str,
        *,
        kind: FailureKind,
        reason: FailureReason,
        status_code: int | None = None,
    ) -> None:
        """Initialise the error with classification and status code."""
        self.status_code = status_code
        super().__init__(message, kind=kind, reason=reason)

    @classmethod
    def http_error(cls, status_code: int) -> OpenAIResearchError:
        """Classify an HTTP error response.

        5xx responses are transient upstream errors, 401/403 are permanent
        credential problems, and remaining 4xx responses are permanent
        invalid-input rejections.
        """
        msg = f"OpenAI API HTTP error {status_code}"
        if status_code >= _HTTP_SERVER_ERROR:
            return cls(
                msg,
                kind=FailureKind.TRANSIENT,
                reason=FailureReason.UPSTREAM_ERROR,
                status_code=status_code,
            )
        reason = (
            FailureReason.UNAUTHORIZED
            if status_code in _UNAUTHORIZED_STATUSES
            else FailureReason.INVALID_INPUT
        )
        return cls(
            msg,
            kind=FailureKind.PERMANENT,
            reason=reason,
            status_code=status_code,
        )

    @classmethod
    def rate_limited(cls, retry_after: int | None = None) -> OpenAIResearchError:
        """Create a transient error for 429 responses."""
        msg = "OpenAI API rate limited"
        if retry_after is not None:
            msg = f"{msg}, retry after {retry_after}s"
        return cls(
            msg,
            kind=FailureKind.TRANSIENT,
            reason=FailureReason.RATE_LIMITED,
            status_code=429,
        )

    @classmethod
    def timeout(cls) -> OpenAIResearchError:
        """Create a transient error for client-side request timeouts."""
        return cls(
            "OpenAI API request timed out",
            kind=FailureKind.TRANSIENT,
            reason=FailureReason.TIMEOUT,
        )

    @classmethod
    def network_error(cls, detail: str) -> OpenAIResearchError:
        """Create a transient error for DNS, connection, or TLS failures."""
        return cls(
            f"OpenAI API network error: {detail}",
            kind=FailureKind.TRANSIENT,
            reason=FailureReason.NETWORK_ERROR,
        )

    @classmethod
    def content_policy(cls, detail: str | None = None) -> OpenAIResearchError:
        """Create a permanent error for content-policy rejections."""
        msg = "OpenAI API rejected the request under its content policy"
        if detail:
            msg = f"{msg}: {detail}"
        return cls(
            msg,
            kind=FailureKind.PERMANENT,
            reason=FailureReason.CONTENT_POLICY,
        )


class OpenAIResponseShapeError(ResearchError):
    """Raised when a response is missing expected fields or is malformed.

    Treated as transient: a garbled upstream reply usually succeeds on a
    later attempt.
    """

    def __init__(self, message: str) -> None:
        """Classify the error as a transient malformed response."""
        super().__init__(
            message,
            kind=FailureKind.TRANSIENT,
            reason=FailureReason.MALFORMED_RESPONSE,
        )

    @classmethod
    def missing(cls, field: str) -> OpenAIResponseShapeError:
        """Create error for a missing response field."""
        return cls(f"OpenAI response missing expected field: {field}")

    @classmethod
    def invalid_json(cls, content: str) -> OpenAIResponseShapeError:
        """Create error for an unparseable body, with a truncated preview."""
        if len(content) > _CONTENT_PREVIEW_LIMIT:
            preview = content[:_CONTENT_PREVIEW_LIMIT] + "..."
        else:
            preview = content
        return cls(f"Failed to parse JSON from response: {preview}")

    @classmethod
    def empty_content(cls) -> OpenAIResponseShapeError:
        """Create error for a completion with no report text."""
        return cls("OpenAI response contained no report content")


class ResearchModelConfigError(Exception):
    """Raised when research backend configuration is invalid."""

    @classmethod
    def missing_backend(cls) -> ResearchModelConfigError:
        """Create error when ``HERALD_RESEARCH_BACKEND`` is not set."""
        return cls("HERALD_RESEARCH_BACKEND environment variable is required")

    @classmethod
    def invalid_backend(
        cls, name: str, valid_backends: cabc.Iterable[str]
    ) -> ResearchModelConfigError:
        """Create error for an unrecognised backend name."""
        options = ", ".join(f"'{b}'" for b in sorted(valid_backends))
        return cls(f"Invalid research backend '{name}'. Valid options are: {options}")

    @classmethod
    def missing_api_key(cls) -> ResearchModelConfigError:
        """Create error for a missing API key environment variable."""
        return cls("HERALD_OPENAI_API_KEY environment variable is required")

    @classmethod
    def empty_api_key(cls) -> ResearchModelConfigError:
        """Create error for a blank API key."""
        return cls("OpenAI API key must be non-empty")

    @classmethod
    def invalid_parameter(
        cls, parameter_name: str, value: str, constraint: str
    ) -> ResearchModelConfigError:
        """Create error for an out-of-range configuration value."""
        return cls(f"Invalid {parameter_name} '{value}'. {constraint}")
