"""
Events Module - Black Box Interface

Purpose: Deliver structured notifications for external alerting
Interface: events.log operation, report_event()
Hidden: Sink selection by topic, Slack payload format

Sinks can be added without touching the modules that emit events.
"""

from .module import LOG, EventsModule, declare, report_event
from .sink import EventSink, LoggingEventSink, SlackEventSink

__all__ = [
    "LOG",
    "EventSink",
    "EventsModule",
    "LoggingEventSink",
    "SlackEventSink",
    "declare",
    "report_event",
]
