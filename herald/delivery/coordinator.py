"""Hand completed report content to a delivery channel.

The coordinator renders the message, applies the delivery timeout and
returns a result value. Delivery problems are reported, never raised, so a
failed hand-off cannot disturb the execution that produced the content.
"""

from __future__ import annotations

import asyncio
import dataclasses as dc
import datetime as dt  # noqa: TC003
import typing as typ

from herald.common.time import utcnow
from herald.delivery.errors import DeliveryError
from herald.delivery.protocol import DeliveryMessage
from herald.delivery.rendering import render_html, render_text
from herald.logging import get_logger, log_warning

if typ.TYPE_CHECKING:
    from herald.delivery.protocol import DeliveryChannel

logger = get_logger(__name__)


@dc.dataclass(frozen=True, slots=True)
class DeliverySent:
    """The channel accepted the message."""

    channel: str
    delivered_at: dt.datetime


@dc.dataclass(frozen=True, slots=True)
class DeliveryFailed:
    """The channel rejected the message or timed out."""

    channel: str
    reason: str
    message: str


type DeliveryResult = DeliverySent | DeliveryFailed


class DeliveryCoordinator:
    """Render and send report content within a bounded timeout.

    Parameters
    ----------
    channel
        Transport used to hand off the message.
    timeout_s
        Upper bound for one hand-off, in seconds.

    """

    def __init__(self, channel: DeliveryChannel, *, timeout_s: float) -> None:
        """Bind the coordinator to a channel and timeout."""
        self._channel = channel
        self._timeout_s = timeout_s

    async def deliver(
        self,
        recipient: str,
        subject: str,
        content: str,
        *,
        reference: str | None = None,
    ) -> DeliveryResult:
        """Send ``content`` to ``recipient``.

        Parameters
        ----------
        recipient
            Destination address.
        subject
            Subject line.
        content
            Markdown-flavoured report text.
        reference
            Stable message identifier passed through to the channel.

        Returns
        -------
        DeliverySent | DeliveryFailed
            Outcome of the hand-off.

        """
        message = DeliveryMessage(
            recipient=recipient,
            subject=subject,
            body_text=render_text(content),
            body_html=render_html(content),
            reference=reference,
        )
        try:
            async with asyncio.timeout(self._timeout_s):
                await self._channel.send(message)
        except TimeoutError:
            error = DeliveryError.timeout(self._timeout_s)
            return self._failed(error, reference)
        except DeliveryError as exc:
            return self._failed(exc, reference)
        return DeliverySent(channel=self._channel.name, delivered_at=utcnow())

    def _failed(self, error: DeliveryError, reference: str | None) -> DeliveryFailed:
        log_warning(
            logger,
            "Delivery via %s failed for %s: %s",
            self._channel.name,
            reference,
            error,
        )
        return DeliveryFailed(
            channel=self._channel.name,
            reason=error.reason,
            message=str(error),
        )
