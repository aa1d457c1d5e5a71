"""Configuration for delivery channels."""

from __future__ import annotations

import dataclasses as dc
import os
from pathlib import Path

from herald.delivery.errors import DeliveryConfigError

_DEFAULT_TIMEOUT_S = 30.0


def _required(name: str, error: DeliveryConfigError) -> str:
    value = os.environ.get(name, "").strip()
    if not value:
        raise error
    return value


@dc.dataclass(frozen=True, slots=True)
class HttpEmailChannelConfig:
    """Configuration for the JSON email API channel.

    Attributes
    ----------
    endpoint
        URL accepting ``POST`` requests with a JSON message body.
    sender
        ``From`` address for outgoing reports.
    api_key
        Optional bearer token for the email API.
    timeout_s
        HTTP client timeout in seconds.

    """

    endpoint: str
    sender: str
    api_key: str | None = None
    timeout_s: float = _DEFAULT_TIMEOUT_S

    @classmethod
    def from_env(cls) -> HttpEmailChannelConfig:
        """Build configuration from ``HERALD_EMAIL_*`` variables.

        Raises
        ------
        DeliveryConfigError
            If the endpoint or sender is missing.

        """
        endpoint = _required(
            "HERALD_EMAIL_ENDPOINT", DeliveryConfigError.missing_endpoint()
        )
        sender = _required("HERALD_EMAIL_SENDER", DeliveryConfigError.missing_sender())
        api_key = os.environ.get("HERALD_EMAIL_API_KEY", "").strip() or None
        return cls(endpoint=endpoint, sender=sender, api_key=api_key)


@dc.dataclass(frozen=True, slots=True)
class OutboxChannelConfig:
    """Configuration for the filesystem outbox channel."""

    path: Path

    @classmethod
    def from_env(cls) -> OutboxChannelConfig:
        """Build configuration from ``HERALD_OUTBOX_PATH``."""
        raw = _required("HERALD_OUTBOX_PATH", DeliveryConfigError.missing_outbox_path())
        return cls(path=Path(raw))
