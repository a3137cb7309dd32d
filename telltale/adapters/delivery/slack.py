"""Slack notification adapter.

Implements AlertChannelPort by posting an attachment-style message to
a Slack incoming webhook.
"""

import logging
from typing import Any

import httpx

from telltale.core.models import Alert, Level
from telltale.core.ports import AlertChannelPort

logger = logging.getLogger(__name__)


class SlackAlertChannel(AlertChannelPort):
    """Posts fired alerts to a Slack incoming webhook."""

    def __init__(
        self,
        webhook_url: str,
        channel: str = "",
        username: str = "ErrorBot",
        icon_emoji: str = "🚨",
        enabled: bool = True,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.webhook_url = webhook_url
        self.channel = channel
        self.username = username
        self.icon_emoji = icon_emoji
        self.enabled = enabled
        self.timeout_seconds = timeout_seconds
        self._client = client

    @property
    def is_configured(self) -> bool:
        return self.enabled and bool(self.webhook_url)

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
        response = await client.post(self.webhook_url, json=self.format_message(alert))
        response.raise_for_status()
        logger.info(
            f"Slack alert sent: {alert.rule.name}",
            extra={"rule_id": alert.rule.id, "event_id": alert.event.id},
        )

    def format_message(self, alert: Alert) -> dict[str, Any]:
        """Build the webhook payload for an alert."""
        event = alert.event
        color = "danger" if alert.rule.severity == Level.CRITICAL else "warning"
        return {
            "channel": self.channel,
            "username": self.username,
            "icon_emoji": self.icon_emoji,
            "text": f"{self.icon_emoji} {alert.rule.name}",
            "attachments": [
                {
                    "color": color,
                    "fields": [
                        {"title": "Error Message", "value": event.message, "short": False},
                        {"title": "Environment", "value": alert.environment, "short": True},
                        {
                            "title": "User",
                            "value": event.user.username or event.user.id,
                            "short": True,
                        },
                    ],
                    "ts": int(alert.timestamp.timestamp()),
                }
            ],
        }
