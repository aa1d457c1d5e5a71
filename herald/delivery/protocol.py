"""DeliveryChannel protocol for handing finished reports to recipients.

Adapters implement this port to send a rendered message through a concrete
transport: an HTTP email API, a local outbox directory, and so on.

Usage
-----
Type-check a concrete adapter:

>>> from herald.delivery.protocol import DeliveryChannel
>>> from pathlib import Path
>>> from herald.delivery.outbox import OutboxDeliveryChannel
>>> isinstance(OutboxDeliveryChannel(Path(".")), DeliveryChannel)
True

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ


@dc.dataclass(frozen=True, slots=True)
class DeliveryMessage:
    """A rendered message ready for hand-off.

    Attributes
    ----------
    recipient
        Destination email address.
    subject
        Subject line.
    body_text
        Plain-text body.
    body_html
        HTML body, when the channel supports it.
    reference
        Stable identifier for the message (``<report_id>/<period_key>``),
        usable by transports for de-duplication.

    """

    recipient: str
    subject: str
    body_text: str
    body_html: str | None = None
    reference: str | None = None


@typ.runtime_checkable
class DeliveryChannel(typ.Protocol):
    """Protocol for sending a rendered report to its recipient."""

    @property
    def name(self) -> str:
        """Short channel identifier used in logs."""
        ...

    async def send(self, message: DeliveryMessage) -> None:
        """Send ``message``.

        Raises
        ------
        DeliveryError
            If the transport rejects or fails to accept the message.

        """
        ...

    async def aclose(self) -> None:
        """Release any owned resources."""
        ...
