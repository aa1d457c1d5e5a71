"""Delivery channel posting messages to a JSON email API over httpx."""

from __future__ import annotations

import typing as typ

import httpx

from herald.delivery.errors import DeliveryError

if typ.TYPE_CHECKING:
    from herald.delivery.config import HttpEmailChannelConfig
    from herald.delivery.protocol import DeliveryMessage

_HTTP_ERROR_STATUS_THRESHOLD = 400


class HttpEmailChannel:
    """Send reports through an HTTP email API.

    The request body is ``{"from", "to", "subject", "text", "html",
    "reference"}``; any 2xx/3xx response counts as accepted.

    Parameters
    ----------
    config
        Endpoint, sender and credentials.
    http_client
        Optional httpx.AsyncClient for testing. If not provided, the
        instance creates and owns its own client.

    """

    def __init__(
        self,
        config: HttpEmailChannelConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the channel with configuration."""
        self._config = config
        self._owns_client = http_client is None
        headers = {"Content-Type": "application/json"}
        if config.api_key:
            headers["Authorization"] = f"Bearer {config.api_key}"
        self._client = http_client or httpx.AsyncClient(
            timeout=config.timeout_s,
            headers=headers,
        )

    @property
    def name(self) -> str:
        """Return the channel identifier."""
        return "http"

    async def send(self, message: DeliveryMessage) -> None:
        """Post ``message`` to the email API.

        Raises
        ------
        DeliveryError
            On timeouts, network failures and 4xx/5xx responses.

        """
        payload = {
            "from": self._config.sender,
            "to": message.recipient,
            "subject": message.subject,
            "text": message.body_text,
            "html": message.body_html,
            "reference": message.reference,
        }
        try:
            response = await self._client.post(self._config.endpoint, json=payload)
        except httpx.TimeoutException as exc:
            raise DeliveryError.timeout() from exc
        except httpx.RequestError as exc:
            raise DeliveryError.network_error(str(exc)) from exc

        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise DeliveryError.http_error(response.status_code)

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()
