r"""Filesystem outbox adapter for the DeliveryChannel protocol.

Writes each message as a pair of files for local runs and inspection::

    {base_path}/{reference}.txt
    {base_path}/{reference}.html

The ``.txt`` file starts with ``To:`` and ``Subject:`` header lines. A
message without a reference is named after its subject. Sending the same
reference again overwrites the earlier files.

Usage
-----
>>> import asyncio
>>> from pathlib import Path
>>> channel = OutboxDeliveryChannel(Path("/tmp/herald-outbox"))
>>> msg = DeliveryMessage("a@example.com", "Hi", "Body\n", reference="r1/2024-06-01")
>>> asyncio.run(channel.send(msg))

"""

from __future__ import annotations

import asyncio
import re
import typing as typ

from herald.delivery.errors import DeliveryError

if typ.TYPE_CHECKING:
    from pathlib import Path

    from herald.delivery.protocol import DeliveryMessage

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def outbox_stem(message: DeliveryMessage) -> str:
    """Return the filename stem used for ``message``."""
    source = message.reference or message.subject
    return _UNSAFE_CHARS.sub("_", source).strip("_") or "message"


class OutboxDeliveryChannel:
    """Write messages to a local directory instead of sending them.

    Parameters
    ----------
    base_path
        Directory receiving the message files. Created on first send.

    """

    def __init__(self, base_path: Path) -> None:
        """Initialise the channel with a base directory path."""
        self._base_path = base_path

    @property
    def name(self) -> str:
        """Return the channel identifier."""
        return "outbox"

    async def send(self, message: DeliveryMessage) -> None:
        """Write ``message`` to ``.txt`` and, if present, ``.html`` files.

        Raises
        ------
        DeliveryError
            If the directory or files cannot be written.

        """
        stem = outbox_stem(message)
        text = (
            f"To: {message.recipient}\nSubject: {message.subject}\n\n"
            f"{message.body_text}"
        )
        try:
            await asyncio.to_thread(
                self._base_path.mkdir, parents=True, exist_ok=True
            )
            await asyncio.to_thread(
                (self._base_path / f"{stem}.txt").write_text, text, "utf-8"
            )
            if message.body_html is not None:
                await asyncio.to_thread(
                    (self._base_path / f"{stem}.html").write_text,
                    message.body_html,
                    "utf-8",
                )
        except OSError as exc:
            raise DeliveryError.write_failed(str(exc)) from exc

    async def aclose(self) -> None:
        """Nothing to release."""
