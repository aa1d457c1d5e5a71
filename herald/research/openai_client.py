"""OpenAI-compatible implementation of the ResearchModel protocol."""

from __future__ import annotations

import time
import typing as typ

import httpx
import msgspec

from herald.research.errors import (
    OpenAIResearchError,
    OpenAIResponseShapeError,
    ResearchInputError,
    ResearchModelConfigError,
)
from herald.research.metrics import ModelInvocationMetrics
from herald.research.prompts import SYSTEM_PROMPT, build_user_prompt

if typ.TYPE_CHECKING:
    from herald.research.config import OpenAIResearchModelConfig
    from herald.research.models import ResearchRequest

_HTTP_ERROR_STATUS_THRESHOLD = 400
_HTTP_RATE_LIMITED = 429
_CONTENT_POLICY_CODES = frozenset({"content_policy_violation", "content_filter"})
_CONTENT_FILTER_FINISH = "content_filter"


class _Usage(msgspec.Struct, kw_only=True):
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None


class _Message(msgspec.Struct, kw_only=True):
    content: str | None = None


class _Choice(msgspec.Struct, kw_only=True):
    message: _Message | None = None
    finish_reason: str | None = None


class ChatCompletion(msgspec.Struct, kw_only=True):
    """Subset of the chat completions response Herald reads.

    Attributes
    ----------
    choices
        Completion choices; only the first is used.
    usage
        Token accounting, when the endpoint reports it.

    """

    choices: list[_Choice] = msgspec.field(default_factory=list)
    usage: _Usage | None = None


class _ErrorDetail(msgspec.Struct, kw_only=True):
    code: str | None = None
    message: str | None = None


class _ErrorBody(msgspec.Struct, kw_only=True):
    error: _ErrorDetail | None = None


def _retry_after_seconds(response: httpx.Response) -> int | None:
    """Return a numeric ``Retry-After`` header as seconds."""
    value = response.headers.get("Retry-After", "")
    return int(value) if value.isdigit() else None


def _error_detail(response: httpx.Response) -> _ErrorDetail | None:
    try:
        body = msgspec.json.decode(response.content, type=_ErrorBody)
    except msgspec.DecodeError:
        return None
    return body.error


class OpenAIResearchModel:
    """Research backend that asks a chat completions endpoint for the report.

    The assistant message of the first choice becomes the report body.
    Failures are classified into :class:`OpenAIResearchError` so the engine
    can decide between retrying and failing the execution.

    Parameters
    ----------
    config
        Endpoint, credentials and sampling settings.
    http_client
        Client to send requests with. When omitted the model builds one
        and closes it in :meth:`aclose`.

    Examples
    --------
    >>> import asyncio
    >>> config = OpenAIResearchModelConfig(api_key="sk-...")
    >>> model = OpenAIResearchModel(config)
    >>> # text = asyncio.run(model.research(request))
    >>> asyncio.run(model.aclose())

    """

    def __init__(
        self,
        config: OpenAIResearchModelConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Validate the key and prepare the HTTP client."""
        if not config.api_key.strip():
            raise ResearchModelConfigError.empty_api_key()

        self._config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=config.timeout_s,
            headers={
                "Authorization": f"Bearer {config.api_key}",
                "Content-Type": "application/json",
            },
        )
        self._last_invocation_metrics: ModelInvocationMetrics | None = None

    @property
    def config(self) -> OpenAIResearchModelConfig:
        """Settings this model was built with."""
        return self._config

    @property
    def model_name(self) -> str:
        """Model identifier sent in each request."""
        return self._config.model

    @property
    def last_invocation_metrics(self) -> ModelInvocationMetrics | None:
        """Usage figures from the latest successful call, if any."""
        return self._last_invocation_metrics

    async def aclose(self) -> None:
        """Close the HTTP client when this model created it."""
        if self._owns_client:
            await self._client.aclose()

    async def research(self, request: ResearchRequest) -> str:
        """Generate report text for ``request``.

        Raises
        ------
        ResearchInputError
            If the request has no topics.
        OpenAIResearchError
            If the API returns an error response, rejects the content, or
            the request times out.
        OpenAIResponseShapeError
            If the response is malformed or carries no content.

        """
        if not request.topics:
            msg = "at least one topic is required"
            raise ResearchInputError(msg)

        payload = self._build_payload(build_user_prompt(request))
        started = time.perf_counter()
        response = await self._send_request(payload)
        latency_ms = (time.perf_counter() - started) * 1000
        self._check_response_errors(response)
        completion = self._decode_completion(response)
        self._last_invocation_metrics = self._usage_metrics(completion, latency_ms)
        return self._extract_content(completion)

    def _build_payload(self, user_prompt: str) -> dict[str, object]:
        return {
            "model": self._config.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": self._config.temperature,
            "max_tokens": self._config.max_tokens,
        }

    async def _send_request(self, payload: dict[str, object]) -> httpx.Response:
        """POST ``payload`` to the completions endpoint.

        Raises
        ------
        OpenAIResearchError
            If a timeout or network error occurs.

        """
        try:
            return await self._client.post(self._config.endpoint, json=payload)
        except httpx.TimeoutException as exc:
            raise OpenAIResearchError.timeout() from exc
        except httpx.RequestError as exc:
            raise OpenAIResearchError.network_error(str(exc)) from exc

    def _check_response_errors(self, response: httpx.Response) -> None:
        """Raise a classified error for non-success responses."""
        if response.status_code == _HTTP_RATE_LIMITED:
            raise OpenAIResearchError.rate_limited(_retry_after_seconds(response))

        if response.status_code < _HTTP_ERROR_STATUS_THRESHOLD:
            return

        detail = _error_detail(response)
        if detail is not None and detail.code in _CONTENT_POLICY_CODES:
            raise OpenAIResearchError.content_policy(detail.message)
        raise OpenAIResearchError.http_error(response.status_code)

    def _decode_completion(self, response: httpx.Response) -> ChatCompletion:
        try:
            return msgspec.json.decode(response.content, type=ChatCompletion)
        except msgspec.DecodeError as exc:
            raise OpenAIResponseShapeError.invalid_json(response.text) from exc

    def _usage_metrics(
        self, completion: ChatCompletion, latency_ms: float
    ) -> ModelInvocationMetrics:
        usage = completion.usage
        metrics = (
            ModelInvocationMetrics()
            if usage is None
            else ModelInvocationMetrics(
                prompt_tokens=usage.prompt_tokens,
                completion_tokens=usage.completion_tokens,
                total_tokens=usage.total_tokens,
            )
        )
        return metrics.with_latency(latency_ms)

    def _extract_content(self, completion: ChatCompletion) -> str:
        """Return the first choice's text.

        Raises
        ------
        OpenAIResearchError
            If the completion was cut off by the content filter.
        OpenAIResponseShapeError
            If no choice or no non-blank content is present.

        """
        if not completion.choices:
            raise OpenAIResponseShapeError.missing("choices")

        first_choice = completion.choices[0]
        if first_choice.finish_reason == _CONTENT_FILTER_FINISH:
            raise OpenAIResearchError.content_policy()
        if first_choice.message is None:
            raise OpenAIResponseShapeError.missing("choices[0].message")

        content = first_choice.message.content
        if content is None:
            raise OpenAIResponseShapeError.missing("choices[0].message.content")
        if not content.strip():
            raise OpenAIResponseShapeError.empty_content()
        return content
