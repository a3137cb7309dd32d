"""Remote collector adapter.

Implements EventSinkPort by POSTing each admitted event as JSON to
the configured collector endpoint.
"""

import logging

import httpx

from telltale.core.models import ErrorEvent
from telltale.core.ports import EventSinkPort
from telltale.core.serialization import event_to_dict

logger = logging.getLogger(__name__)


class CollectorEventSink(EventSinkPort):
    """Ships events to ``{dsn}{collector_path}``."""

    def __init__(
        self,
        dsn: str,
        collector_path: str = "/api/errors",
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize the collector sink.

        Args:
            dsn: Collector base URL. Empty disables delivery.
            collector_path: Path appended to the base URL.
            timeout_seconds: Per-request timeout.
            client: Optional pre-built client (tests inject a mock transport).
        """
        self.dsn = dsn
        self.collector_path = collector_path
        self.timeout_seconds = timeout_seconds
        self._client = client

    @property
    def is_configured(self) -> bool:
        return bool(self.dsn)

    @property
    def endpoint(self) -> str:
        return f"{self.dsn.rstrip('/')}/{self.collector_path.lstrip('/')}"

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout_seconds)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def send_event(self, event: ErrorEvent) -> None:
        client = await self._get_client()
        response = await client.post(self.endpoint, json=event_to_dict(event))
        response.raise_for_status()
        logger.debug(
            f"Event delivered to collector: {response.status_code}",
            extra={"event_id": event.id},
        )
