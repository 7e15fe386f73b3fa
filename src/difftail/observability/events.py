"""Event model for watch-and-broadcast observability.

All events are frozen dataclasses with:
- ``timestamp_ns``: Monotonic nanosecond timestamp
- Descriptive fields for the specific event type

Thread Safety:
    All events are frozen (immutable) and safe to share across threads.

"""

import time
from dataclasses import dataclass
from typing import Literal, TypeAlias


# ---------------------------------------------------------------------------
# Watch events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FileChanged:
    """A watcher emitted a ChangeRecord.

    Attributes:
        path: Absolute path of the changed file.
        operation: created, modified, removed or renamed.
        added: Number of added lines (modified only).
        removed: Number of removed lines (modified only).
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    path: str
    operation: str
    added: int
    removed: int
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class ChangeDropped:
    """A notification was dropped without emitting a ChangeRecord.

    Attributes:
        path: Path the notification referred to.
        reason: Why it was dropped.
        detail: Error text.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    path: str
    reason: Literal["too_large", "read_error"]
    detail: str
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Subscriber events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SubscriberConnected:
    """A WebSocket subscriber registered with the hub."""

    client_id: str
    remote: str
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class SubscriberDropped:
    """A subscriber left the hub.

    Attributes:
        client_id: Subscriber identifier.
        reason: ``disconnected`` for a normal close, ``slow`` when its queue
            filled up and the hub dropped it.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    client_id: str
    reason: Literal["disconnected", "slow"]
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class MessageBroadcast:
    """The dispatcher fanned one message out.

    Attributes:
        delivered: Subscribers the message was queued for.
        dropped: Subscribers removed because their queue was full.
        size: Message length in characters.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    delivered: int
    dropped: int
    size: int
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Union type
# ---------------------------------------------------------------------------

StackEvent: TypeAlias = (
    FileChanged
    | ChangeDropped
    | SubscriberConnected
    | SubscriberDropped
    | MessageBroadcast
)


def now_ns() -> int:
    """Return the current monotonic clock value in nanoseconds."""
    return time.monotonic_ns()
