"""Observability — structured events for the watch-diff-broadcast pipeline.

Records events from:
- **Watchers**: emitted changes and dropped notifications
- **BroadcastHub**: fan-outs and slow-subscriber drops
- **TransportServer**: subscriber connects and disconnects

All events are frozen dataclasses with nanosecond timestamps, safe for
concurrent production from watcher threads and the event loop.

Quick Start:
    >>> from difftail.observability import Collector, EventLog
    >>> log = EventLog()
    >>> collector = Collector(log)
    >>> collector.record_change("/tmp/a.log", "modified", added=1)

"""

from difftail.observability.collector import Collector
from difftail.observability.events import (
    ChangeDropped,
    FileChanged,
    MessageBroadcast,
    StackEvent,
    SubscriberConnected,
    SubscriberDropped,
    now_ns,
)
from difftail.observability.log import EventLog

__all__ = [
    "ChangeDropped",
    "Collector",
    "EventLog",
    "FileChanged",
    "MessageBroadcast",
    "StackEvent",
    "SubscriberConnected",
    "SubscriberDropped",
    "now_ns",
]
