"""Delivery of completed reports through pluggable channels.

Public API
----------
DeliveryChannel
    Port implemented by transports.
DeliveryCoordinator
    Renders content and hands it off within a timeout.
HttpEmailChannel, OutboxDeliveryChannel
    Concrete transports.
create_delivery_channel
    Factory selecting a transport from ``HERALD_DELIVERY_BACKEND``.
"""

from __future__ import annotations

from .config import HttpEmailChannelConfig, OutboxChannelConfig
from .coordinator import (
    DeliveryCoordinator,
    DeliveryFailed,
    DeliveryResult,
    DeliverySent,
)
from .errors import DeliveryConfigError, DeliveryError
from .factory import create_delivery_channel
from .http_channel import HttpEmailChannel
from .outbox import OutboxDeliveryChannel
from .protocol import DeliveryChannel, DeliveryMessage
from .rendering import build_subject, render_html, render_text

__all__ = [
    "DeliveryChannel",
    "DeliveryConfigError",
    "DeliveryCoordinator",
    "DeliveryError",
    "DeliveryFailed",
    "DeliveryMessage",
    "DeliveryResult",
    "DeliverySent",
    "HttpEmailChannel",
    "HttpEmailChannelConfig",
    "OutboxChannelConfig",
    "OutboxDeliveryChannel",
    "build_subject",
    "create_delivery_channel",
    "render_html",
    "render_text",
]
