"""Token and latency figures reported by research backends."""

from __future__ import annotations

import dataclasses as dc


@dc.dataclass(frozen=True, slots=True)
class ModelInvocationMetrics:
    """Usage of the research call behind one attempt.

    Backends fill in what they know; every field may be ``None``. The mock
    backend reports zero tokens and no latency.
    """

    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None
    latency_ms: float | None = None

    @property
    def latency_text(self) -> str:
        """Latency with three decimals for log lines, or ``"None"``."""
        return "None" if self.latency_ms is None else f"{self.latency_ms:.3f}"

    def with_latency(self, latency_ms: float) -> ModelInvocationMetrics:
        """Return a copy stamped with the measured ``latency_ms``."""
        return dc.replace(self, latency_ms=latency_ms)
