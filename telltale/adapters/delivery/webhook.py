"""Generic webhook notification adapter."""

import logging

import httpx

from telltale.core.models import Alert
from telltale.core.ports import AlertChannelPort
from telltale.core.serialization import alert_to_dict

logger = logging.getLogger(__name__)


class WebhookAlertChannel(AlertChannelPort):
    """Sends the serialized alert to an arbitrary HTTP endpoint."""

    def __init__(
        self,
        url: str,
        method: str = "POST",
        headers: dict[str, str] | None = None,
        enabled: bool = True,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.url = url
        self.method = method.upper()
        self.headers = {"Content-Type": "application/json", **(headers or {})}
        self.enabled = enabled
        self.timeout_seconds = timeout_seconds
        self._client = client

    @property
    def is_configured(self) -> bool:
        return self.enabled and bool(self.url)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout_seconds)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def send(self, alert: Alert) -> None:
        client = await self._get_client()
        response = await client.request(
            self.method, self.url, headers=self.headers, json=alert_to_dict(alert)
        )
        response.raise_for_status()
        logger.info(
            f"Webhook alert sent: {response.status_code}",
            extra={"rule_id": alert.rule.id, "event_id": alert.event.id},
        )
