"""Factory for creating DeliveryChannel implementations from the environment."""

from __future__ import annotations

import os
import typing as typ

from herald.delivery.config import HttpEmailChannelConfig, OutboxChannelConfig
from herald.delivery.errors import DeliveryConfigError
from herald.delivery.http_channel import HttpEmailChannel
from herald.delivery.outbox import OutboxDeliveryChannel

if typ.TYPE_CHECKING:
    from herald.delivery.protocol import DeliveryChannel

_VALID_BACKENDS = frozenset({"http", "outbox"})


def create_delivery_channel() -> DeliveryChannel:
    """Create a DeliveryChannel selected by ``HERALD_DELIVERY_BACKEND``.

    ``http`` reads ``HERALD_EMAIL_ENDPOINT``, ``HERALD_EMAIL_SENDER`` and
    the optional ``HERALD_EMAIL_API_KEY``. ``outbox`` reads
    ``HERALD_OUTBOX_PATH``.

    Raises
    ------
    DeliveryConfigError
        If the backend is missing, unknown, or its configuration is
        incomplete.

    """
    raw_backend = os.environ.get("HERALD_DELIVERY_BACKEND")
    if raw_backend is None:
        raise DeliveryConfigError.missing_backend()

    backend = raw_backend.strip().lower()
    if backend not in _VALID_BACKENDS:
        raise DeliveryConfigError.invalid_backend(raw_backend, _VALID_BACKENDS)

    if backend == "outbox":
        return OutboxDeliveryChannel(OutboxChannelConfig.from_env().path)
    return HttpEmailChannel(HttpEmailChannelConfig.from_env())
