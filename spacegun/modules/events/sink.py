import logging
from typing import Optional, Protocol

import httpx

from spacegun.modules.api import Event

logger = logging.getLogger("spacegun.events")


class EventSink(Protocol):
    """Protocol for event sinks."""

    # Only events carrying this topic are delivered; None receives everything
    topic: Optional[str]

    async def log(self, event: Event) -> None:
        ...


class LoggingEventSink:
    """Writes every event to the application log."""

    topic = None

    async def log(self, event: Event) -> None:
        details = ", ".join(f"{field.title}: {field.value}" for field in event.fields)
        logger.info(f"{event.message} - {event.description}" + (f" ({details})" if details else ""))


class SlackEventSink:
    """Posts events to a Slack incoming webhook."""

    topic = "slack"

    def __init__(
        self,
        webhook_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.webhook_url = webhook_url
        self.timeout = timeout
        self._transport = transport

    def _payload(self, event: Event) -> dict:
        failed = any(field.title == "Failure" for field in event.fields)
        return {
            "text": event.message,
            "attachments": [
                {
                    "color": "danger" if failed else "good",
                    "title": event.description,
                    "ts": int(event.timestamp.timestamp()),
                    "fields": [
                        {"title": field.title, "value": field.value, "short": True}
                        for field in event.fields
                    ],
                }
            ],
        }

    async def log(self, event: Event) -> None:
        """
        Deliver an event.

        Delivery failures are logged, never raised: alerting must not break
        the operation that produced the event.
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.webhook_url, json=self._payload(event))
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Failed to post event '{event.message}' to Slack: {e}")
