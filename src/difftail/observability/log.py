"""Event log — the bounded store behind ``get_stats``.

Keeps the most recent pipeline events so a subscriber can ask what the
session has been doing: how many changes each file produced and which
notifications were dropped.

Thread Safety:
    Guarded by a ``threading.Lock``. Watcher threads append while the event
    loop reads.

"""

import threading
from collections import Counter, deque
from typing import Any

from difftail.observability.events import ChangeDropped, FileChanged, StackEvent


class EventLog:
    """Ring buffer of StackEvents; the oldest fall off once full.

    Args:
        max_events: Capacity of the buffer.

    """

    __slots__ = ("_buffer", "_guard")

    def __init__(self, max_events: int = 10_000) -> None:
        self._buffer: deque[StackEvent] = deque(maxlen=max_events)
        self._guard = threading.Lock()

    @property
    def max_events(self) -> int:
        return self._buffer.maxlen or 0

    def append(self, event: StackEvent) -> None:
        with self._guard:
            self._buffer.append(event)

    def _snapshot(self) -> list[StackEvent]:
        with self._guard:
            return list(self._buffer)

    def query(
        self,
        *,
        event_type: type | None = None,
        path: str | None = None,
        limit: int | None = None,
    ) -> list[StackEvent]:
        """Matching events, newest first.

        ``path`` matches exactly; events that carry no path never match it.
        """
        matches: list[StackEvent] = []
        for event in reversed(self._snapshot()):
            if limit is not None and len(matches) >= limit:
                break
            if event_type is not None and not isinstance(event, event_type):
                continue
            if path is not None and getattr(event, "path", None) != path:
                continue
            matches.append(event)
        return matches

    def change_counts(self) -> dict[str, int]:
        """Number of FileChanged events retained per path."""
        counts = Counter(event.path for event in self.query(event_type=FileChanged))
        return dict(counts)

    def recent_drops(self, limit: int = 10) -> list[dict[str, str]]:
        """The latest dropped notifications as ``{path, reason}`` dicts."""
        return [
            {"path": event.path, "reason": event.reason}
            for event in self.query(event_type=ChangeDropped, limit=limit)
        ]

    def __len__(self) -> int:
        with self._guard:
            return len(self._buffer)

    def stats(self) -> dict[str, Any]:
        """Totals per event type, plus capacity."""
        by_type = Counter(type(event).__name__ for event in self._snapshot())
        return {
            "total": sum(by_type.values()),
            "max_events": self.max_events,
            "by_type": dict(by_type),
        }
