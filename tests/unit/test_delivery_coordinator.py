"""Unit tests for DeliveryCoordinator."""

from __future__ import annotations

import asyncio

import pytest

from herald.delivery import (
    DeliveryCoordinator,
    DeliveryFailed,
    DeliveryMessage,
    DeliverySent,
)
from tests.helpers.fakes import FailingChannel, RecordingChannel


class _SlowChannel(RecordingChannel):
    """Channel that never finishes sending."""

    async def send(self, message: DeliveryMessage) -> None:
        """Block well past any test timeout."""
        await asyncio.sleep(60)


class TestDeliveryCoordinator:
    """Tests for DeliveryCoordinator.deliver()."""

    @pytest.mark.asyncio
    async def test_sends_rendered_message(self) -> None:
        """Content is rendered to text and HTML before hand-off."""
        channel = RecordingChannel()
        coordinator = DeliveryCoordinator(channel, timeout_s=1)

        result = await coordinator.deliver(
            "analyst@example.com",
            "Acme watch: daily research report for 2024-06-01",
            "# Acme Corp\n\n- New plant.\n",
            reference="r1/2024-06-01",
        )

        assert isinstance(result, DeliverySent)
        assert result.channel == "recording"
        (message,) = channel.messages
        assert message.recipient == "analyst@example.com"
        assert message.body_text == "# Acme Corp\n\n- New plant.\n"
        assert message.body_html == (
            "<h1>Acme Corp</h1>\n<ul>\n<li>New plant.</li>\n</ul>"
        )
        assert message.reference == "r1/2024-06-01"

    @pytest.mark.asyncio
    async def test_channel_errors_become_failed_results(self) -> None:
        """DeliveryError is reported with its reason, not raised."""
        coordinator = DeliveryCoordinator(FailingChannel(), timeout_s=1)

        result = await coordinator.deliver("a@example.com", "s", "body")

        assert result == DeliveryFailed(
            channel="recording",
            reason="http_503",
            message="Email API HTTP error 503",
        )

    @pytest.mark.asyncio
    async def test_timeout_becomes_failed_result(self) -> None:
        """Hand-offs exceeding the timeout fail with reason ``timeout``."""
        coordinator = DeliveryCoordinator(_SlowChannel(), timeout_s=0.01)

        result = await coordinator.deliver("a@example.com", "s", "body")

        assert isinstance(result, DeliveryFailed)
        assert result.reason == "timeout"
        assert result.message == "Delivery timed out after 0.01s"
