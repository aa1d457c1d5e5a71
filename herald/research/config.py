"""Environment-driven settings for the OpenAI research backend."""

from __future__ import annotations

import dataclasses
import os
import typing as typ

from herald.research.errors import ResearchModelConfigError

_DEFAULT_ENDPOINT = "https://api.openai.com/v1/chat/completions"
_DEFAULT_MODEL = "gpt-4o-mini"
_DEFAULT_TIMEOUT_S = 240.0
_DEFAULT_TEMPERATURE = 0.3
_DEFAULT_MAX_TOKENS = 4096


def _tuning_value[N: (int, float)](
    env_var: str,
    parameter: str,
    convert: typ.Callable[[str], N],
    *,
    default: N,
    accept: typ.Callable[[N], bool],
    constraint: str,
) -> N:
    """Read one numeric tuning knob, falling back to ``default`` when unset."""
    raw = os.environ.get(env_var)
    if raw is None:
        return default
    try:
        value = convert(raw)
    except ValueError as exc:
        raise ResearchModelConfigError.invalid_parameter(
            parameter, raw, constraint
        ) from exc
    if not accept(value):
        raise ResearchModelConfigError.invalid_parameter(parameter, raw, constraint)
    return value


@dataclasses.dataclass(frozen=True, slots=True)
class OpenAIResearchModelConfig:
    """Settings for :class:`~herald.research.openai_client.OpenAIResearchModel`.

    Attributes
    ----------
    api_key
        Bearer token sent with every completion request.
    endpoint
        Chat completions URL; any OpenAI-compatible server works.
    model
        Model identifier placed in the request body.
    timeout_s
        httpx client timeout. Each research attempt also runs under the
        engine's own, normally shorter, timeout.
    temperature
        Sampling temperature between 0.0 and 2.0.
    max_tokens
        Upper bound on the generated report length.

    """

    api_key: str
    endpoint: str = _DEFAULT_ENDPOINT
    model: str = _DEFAULT_MODEL
    timeout_s: float = _DEFAULT_TIMEOUT_S
    temperature: float = _DEFAULT_TEMPERATURE
    max_tokens: int = _DEFAULT_MAX_TOKENS

    @classmethod
    def from_env(cls) -> OpenAIResearchModelConfig:
        """Read ``HERALD_OPENAI_*`` variables.

        ``HERALD_OPENAI_API_KEY`` is required. ``HERALD_OPENAI_ENDPOINT``,
        ``HERALD_OPENAI_MODEL``, ``HERALD_OPENAI_TEMPERATURE`` and
        ``HERALD_OPENAI_MAX_TOKENS`` override the defaults.

        Raises
        ------
        ResearchModelConfigError
            When the key is missing or blank, or a tuning value does not
            parse or is out of range.

        """
        raw_api_key = os.environ.get("HERALD_OPENAI_API_KEY")
        if raw_api_key is None:
            raise ResearchModelConfigError.missing_api_key()
        api_key = raw_api_key.strip()
        if not api_key:
            raise ResearchModelConfigError.empty_api_key()

        return cls(
            api_key=api_key,
            endpoint=os.environ.get("HERALD_OPENAI_ENDPOINT", _DEFAULT_ENDPOINT),
            model=os.environ.get("HERALD_OPENAI_MODEL", _DEFAULT_MODEL),
            temperature=_tuning_value(
                "HERALD_OPENAI_TEMPERATURE",
                "temperature",
                float,
                default=_DEFAULT_TEMPERATURE,
                accept=lambda value: 0.0 <= value <= 2.0,  # noqa: PLR2004
                constraint="Temperature must be a number between 0.0 and 2.0.",
            ),
            max_tokens=_tuning_value(
                "HERALD_OPENAI_MAX_TOKENS",
                "max_tokens",
                int,
                default=_DEFAULT_MAX_TOKENS,
                accept=lambda value: value > 0,
                constraint="Max tokens must be a positive integer.",
            ),
        )
