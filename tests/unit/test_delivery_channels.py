"""Unit tests for the HTTP email and outbox delivery channels."""

from __future__ import annotations

import json
import typing as typ

import httpx
import pytest

from herald.delivery import (
    DeliveryChannel,
    DeliveryError,
    DeliveryMessage,
    HttpEmailChannel,
    HttpEmailChannelConfig,
    OutboxDeliveryChannel,
)
from herald.delivery.outbox import outbox_stem

if typ.TYPE_CHECKING:
    from pathlib import Path

MESSAGE = DeliveryMessage(
    recipient="analyst@example.com",
    subject="Acme watch: daily research report for 2024-06-01",
    body_text="# Acme Corp\n",
    body_html="<h1>Acme Corp</h1>",
    reference="r1/2024-06-01",
)
CONFIG = HttpEmailChannelConfig(
    endpoint="https://mail.test/send", sender="herald@example.com"
)


class _RecordingTransport(httpx.AsyncBaseTransport):
    """Transport answering with a fixed status and recording requests."""

    def __init__(self, status_code: int = 202) -> None:
        self.status_code = status_code
        self.requests: list[httpx.Request] = []

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        """Record the request and answer with the configured status."""
        self.requests.append(request)
        return httpx.Response(self.status_code, json={"id": "msg-1"})


class _TimeoutTransport(httpx.AsyncBaseTransport):
    """Transport that raises TimeoutException."""

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        """Raise timeout exception."""
        raise httpx.WriteTimeout("timeout", request=request)


class _NetworkErrorTransport(httpx.AsyncBaseTransport):
    """Transport that raises ConnectError."""

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        """Raise network connection error."""
        raise httpx.ConnectError("refused", request=request)


async def _send_via(transport: httpx.AsyncBaseTransport) -> None:
    async with httpx.AsyncClient(transport=transport) as client:
        channel = HttpEmailChannel(CONFIG, http_client=client)
        await channel.send(MESSAGE)
        await channel.aclose()


class TestHttpEmailChannel:
    """Tests for HttpEmailChannel.send()."""

    @pytest.mark.asyncio
    async def test_satisfies_protocol(self) -> None:
        """The HTTP channel is a DeliveryChannel."""
        channel = HttpEmailChannel(CONFIG)
        try:
            assert isinstance(channel, DeliveryChannel)
            assert channel.name == "http"
        finally:
            await channel.aclose()

    @pytest.mark.asyncio
    async def test_posts_json_message(self) -> None:
        """The request body carries every message field."""
        transport = _RecordingTransport()

        await _send_via(transport)

        (request,) = transport.requests
        assert request.method == "POST"
        assert str(request.url) == "https://mail.test/send"
        assert json.loads(request.content) == {
            "from": "herald@example.com",
            "to": "analyst@example.com",
            "subject": "Acme watch: daily research report for 2024-06-01",
            "text": "# Acme Corp\n",
            "html": "<h1>Acme Corp</h1>",
            "reference": "r1/2024-06-01",
        }

    @pytest.mark.asyncio
    async def test_error_status_raises_with_reason(self) -> None:
        """4xx/5xx answers raise DeliveryError tagged with the status."""
        with pytest.raises(DeliveryError) as exc_info:
            await _send_via(_RecordingTransport(500))

        assert exc_info.value.reason == "http_500"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("transport", "reason"),
        [
            (_TimeoutTransport(), "timeout"),
            (_NetworkErrorTransport(), "network_error"),
        ],
        ids=["timeout", "network"],
    )
    async def test_transport_errors(
        self, transport: httpx.AsyncBaseTransport, reason: str
    ) -> None:
        """Transport failures raise DeliveryError with a short reason."""
        with pytest.raises(DeliveryError) as exc_info:
            await _send_via(transport)

        assert exc_info.value.reason == reason

    @pytest.mark.asyncio
    async def test_owned_client_sends_bearer_token(self) -> None:
        """An API key becomes an Authorization header on the owned client."""
        channel = HttpEmailChannel(
            HttpEmailChannelConfig(
                endpoint="https://mail.test/send",
                sender="herald@example.com",
                api_key="mail-key",
            )
        )
        try:
            assert channel._client.headers["Authorization"] == "Bearer mail-key"
        finally:
            await channel.aclose()


class TestOutboxDeliveryChannel:
    """Tests for OutboxDeliveryChannel.send()."""

    @pytest.mark.asyncio
    async def test_writes_text_and_html_files(self, tmp_path: Path) -> None:
        """Each message becomes a ``.txt`` and ``.html`` pair."""
        outbox = tmp_path / "outbox"
        channel = OutboxDeliveryChannel(outbox)

        await channel.send(MESSAGE)

        text = (outbox / "r1_2024-06-01.txt").read_text(encoding="utf-8")
        assert text == (
            "To: analyst@example.com\n"
            "Subject: Acme watch: daily research report for 2024-06-01\n"
            "\n"
            "# Acme Corp\n"
        )
        html = (outbox / "r1_2024-06-01.html").read_text(encoding="utf-8")
        assert html == "<h1>Acme Corp</h1>"

    @pytest.mark.asyncio
    async def test_unwritable_path_raises(self, tmp_path: Path) -> None:
        """Filesystem errors surface as ``write_failed``."""
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("x", encoding="utf-8")
        channel = OutboxDeliveryChannel(blocker)

        with pytest.raises(DeliveryError) as exc_info:
            await channel.send(MESSAGE)

        assert exc_info.value.reason == "write_failed"

    @pytest.mark.parametrize(
        ("reference", "subject", "expected"),
        [
            ("r1/2024-06-01", "ignored", "r1_2024-06-01"),
            (None, "Acme: daily", "Acme_daily"),
            (None, "///", "message"),
        ],
    )
    def test_outbox_stem(
        self, reference: str | None, subject: str, expected: str
    ) -> None:
        """Stems are filesystem-safe and prefer the reference."""
        message = DeliveryMessage(
            recipient="a@example.com",
            subject=subject,
            body_text="",
            reference=reference,
        )
        assert outbox_stem(message) == expected
