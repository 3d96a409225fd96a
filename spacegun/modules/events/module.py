from datetime import UTC, datetime
from typing import List, Sequence

from spacegun.modules.api import ApplyReport, Event, EventField
from spacegun.modules.dispatcher import OperationRegistry

from .sink import EventSink

LOG = "events.log"


def declare(registry: OperationRegistry) -> None:
    registry.declare(LOG, Event, type(None))


def report_event(message: str, description: str, report: ApplyReport, topics: Sequence[str] = ("slack",)) -> Event:
    """Summarize a batch outcome, failures first."""
    return Event(
        message=message,
        timestamp=datetime.now(UTC),
        topics=list(topics),
        description=description,
        fields=[EventField(title="Failure", value=value) for value in report.errored]
        + [EventField(title="Success", value=value) for value in report.applied],
    )


class EventsModule:
    """Fans events out to the configured sinks."""

    def __init__(self, sinks: List[EventSink]):
        self.sinks = sinks

    def bind(self, registry: OperationRegistry) -> None:
        declare(registry)
        registry.bind(LOG, self.log)

    async def log(self, event: Event) -> None:
        for sink in self.sinks:
            if sink.topic is None or sink.topic in event.topics:
                await sink.log(event)
