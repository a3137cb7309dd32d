"""Fan-out of events and alerts to delivery channels.

Every failure is caught and logged here: capture must never fail the
host application because a collector or webhook is down.
"""

import logging
from collections.abc import Mapping

from .models import Alert, AlertChannel, ErrorEvent
from .ports import AlertChannelPort, EventSinkPort

logger = logging.getLogger(__name__)


class DeliveryDispatcher:
    """Routes alerts to channel adapters and events to the collector."""

    def __init__(
        self,
        channels: Mapping[AlertChannel, AlertChannelPort] | None = None,
        event_sink: EventSinkPort | None = None,
    ):
        self.channels = dict(channels or {})
        self.event_sink = event_sink

    async def send(self, channel: AlertChannel, alert: Alert) -> None:
        """Deliver an alert to one channel. Never raises."""
        adapter = self.channels.get(channel)
        if adapter is None:
            logger.debug(f"No adapter registered for alert channel {channel.value}")
            return
        if not adapter.is_configured:
            return

        try:
            await adapter.send(alert)
        except Exception as e:
            logger.error(
                f"Failed to send alert to {channel.value}: {e}",
                extra={"rule_id": alert.rule.id, "event_id": alert.event.id},
            )

    async def send_alert(self, alert: Alert) -> None:
        """Deliver an alert to each of its rule's channels in order."""
        for channel in alert.rule.channels:
            await self.send(channel, alert)

    async def send_event(self, event: ErrorEvent) -> None:
        """Forward an event to the remote collector. Never raises."""
        if self.event_sink is None or not self.event_sink.is_configured:
            return

        try:
            await self.event_sink.send_event(event)
        except Exception as e:
            logger.warning(
                f"Failed to send error to external service: {e}",
                extra={"event_id": event.id},
            )

    async def close(self) -> None:
        adapters: list[AlertChannelPort | EventSinkPort] = list(self.channels.values())
        if self.event_sink is not None:
            adapters.append(self.event_sink)
        for adapter in adapters:
            try:
                await adapter.close()
            except Exception as e:
                logger.warning(f"Failed to close delivery adapter: {e}")
