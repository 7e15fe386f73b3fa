"""Collector — the pipeline's logging front end.

Every noteworthy pipeline step goes through a Collector, which stores a
structured event in the EventLog and, unless quiet, prints a one-line summary
to stderr.

Thread Safety:
    The collector delegates to ``EventLog`` which is internally locked.
    Safe for concurrent use from watcher threads and the event loop.

"""

from __future__ import annotations

import sys

from difftail.observability.events import (
    ChangeDropped,
    FileChanged,
    MessageBroadcast,
    SubscriberConnected,
    SubscriberDropped,
    now_ns,
)
from difftail.observability.log import EventLog


class Collector:
    """Unified event collector for watchers, the hub and the server.

    Args:
        log: The EventLog to store events in.
        quiet: Suppress stderr output.

    """

    __slots__ = ("_log", "_quiet")

    def __init__(self, log: EventLog | None = None, *, quiet: bool = False) -> None:
        self._log = log if log is not None else EventLog()
        self._quiet = quiet

    @property
    def log(self) -> EventLog:
        """The underlying event log."""
        return self._log

    def _echo(self, line: str) -> None:
        if not self._quiet:
            print(f"  {line}", file=sys.stderr)

    # ----- Watch events -----

    def record_change(
        self,
        path: str,
        operation: str,
        *,
        added: int = 0,
        removed: int = 0,
    ) -> None:
        """Record an emitted ChangeRecord."""
        self._log.append(
            FileChanged(
                path=path,
                operation=operation,
                added=added,
                removed=removed,
                timestamp_ns=now_ns(),
            )
        )
        if operation == "modified":
            self._echo(f"{path} modified (+{added} -{removed})")
        else:
            self._echo(f"{path} {operation}")

    def record_drop(self, path: str, reason: str, *, detail: str = "") -> None:
        """Record a notification dropped by a watcher.

        The watcher has already printed the error line.
        """
        self._log.append(
            ChangeDropped(
                path=path,
                reason=reason,  # type: ignore[arg-type]
                detail=detail,
                timestamp_ns=now_ns(),
            )
        )

    # ----- Subscriber events -----

    def record_connect(self, client_id: str, *, remote: str = "") -> None:
        """Record a subscriber joining."""
        self._log.append(
            SubscriberConnected(client_id=client_id, remote=remote, timestamp_ns=now_ns())
        )
        self._echo(f"client connected: {remote or client_id}")

    def record_disconnect(self, client_id: str, *, reason: str = "disconnected") -> None:
        """Record a subscriber leaving (``disconnected`` or ``slow``)."""
        self._log.append(
            SubscriberDropped(
                client_id=client_id,
                reason=reason,  # type: ignore[arg-type]
                timestamp_ns=now_ns(),
            )
        )
        if reason == "slow":
            self._echo(f"client dropped (queue full): {client_id}")
        else:
            self._echo(f"client disconnected: {client_id}")

    def record_broadcast(self, *, delivered: int, dropped: int = 0, size: int = 0) -> None:
        """Record one dispatcher fan-out."""
        self._log.append(
            MessageBroadcast(
                delivered=delivered,
                dropped=dropped,
                size=size,
                timestamp_ns=now_ns(),
            )
        )
