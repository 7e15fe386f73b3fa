"""Notification backends — the OS change-notification capability.

Watchers never talk to the OS directly. They register paths with a
NotificationBackend and consume the RawEvent stream it produces, which lets
tests drive a watcher with synthetic events.

The production backend wraps watchfiles. watchfiles cannot add paths to a
running watch, so each registered path is watched by its own thread and the
threads share one event queue.
"""

from __future__ import annotations

import queue
import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from watchfiles import Change

if TYPE_CHECKING:
    from collections.abc import Iterator

    from difftail._types import RawKind


@dataclass(frozen=True, slots=True)
class RawEvent:
    """One notification as delivered by a backend.

    Attributes:
        kind: ``write``, ``create``, ``remove`` or ``rename``.
        path: Absolute path the notification refers to.

    """

    kind: RawKind
    path: Path


@dataclass(frozen=True, slots=True)
class WatchRegistration:
    """A path registered with a backend (non-recursive)."""

    path: Path


class NotificationBackend(Protocol):
    """Capability interface over an OS change-notification mechanism."""

    def register(self, path: Path) -> WatchRegistration:
        """Start reporting events for path (a file, or a directory's entries)."""
        ...

    def events(self) -> Iterator[RawEvent]:
        """Block for and yield events until the backend is closed."""
        ...

    def close(self) -> None:
        """Stop the event stream; ``events()`` returns soon after."""
        ...


# Mapping from watchfiles Change enum to raw kinds.
_CHANGE_KIND_MAP: dict[Change, RawKind] = {
    Change.added: "create",
    Change.modified: "write",
    Change.deleted: "remove",
}


class WatchfilesBackend:
    """NotificationBackend backed by ``watchfiles.watch``.

    Every registered path gets its own non-recursive ``watch()`` running in a
    daemon thread; all of them feed one queue that ``events()`` drains. A path
    registered while events are being consumed starts its own watch and never
    disturbs the ones already running.

    watchfiles' default filter (which hides ``.git``, ``node_modules``,
    editor swap files and the like) is disabled: every path is reported.

    watchfiles delivers changes in debounced batches (sets). Within a batch,
    events are ordered by path and then created < modified < deleted.

    Args:
        debounce_ms: Debounce window for grouping changes.
        step_ms: Polling step while waiting for changes.

    """

    def __init__(self, *, debounce_ms: int = 50, step_ms: int = 50) -> None:
        self._debounce_ms = debounce_ms
        self._step_ms = step_ms
        self._paths: list[Path] = []
        self._threads: list[threading.Thread] = []
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._queue: queue.Queue[RawEvent | None] = queue.Queue()
        self._started = False

    @property
    def paths(self) -> tuple[Path, ...]:
        """Registered paths, in registration order."""
        with self._lock:
            return tuple(self._paths)

    def register(self, path: Path) -> WatchRegistration:
        """Register path; starts watching it at once if events() is running."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(path)
        with self._lock:
            if path not in self._paths:
                self._paths.append(path)
                if self._started and not self._stop_event.is_set():
                    self._spawn(path)
        return WatchRegistration(path=path)

    def events(self) -> Iterator[RawEvent]:
        """Yield RawEvents until close() is called."""
        with self._lock:
            if self._stop_event.is_set() or not self._paths:
                return
            self._started = True
            for path in self._paths:
                self._spawn(path)

        while True:
            event = self._queue.get()
            if event is None:
                return
            yield event

    def close(self) -> None:
        """Stop every watch thread and end the event stream."""
        self._stop_event.set()
        self._queue.put(None)
        with self._lock:
            threads = list(self._threads)
        for thread in threads:
            thread.join(timeout=5.0)

    def _spawn(self, path: Path) -> None:
        thread = threading.Thread(
            target=self._watch_path,
            args=(path,),
            name=f"difftail-watchfiles-{path.name}",
            daemon=True,
        )
        self._threads.append(thread)
        thread.start()

    def _watch_path(self, path: Path) -> None:
        """Watch thread for one path: push its changes onto the queue."""
        from watchfiles import watch

        try:
            for batch in watch(
                path,
                watch_filter=None,
                stop_event=self._stop_event,
                recursive=False,
                debounce=self._debounce_ms,
                step=self._step_ms,
            ):
                for change_type, path_str in sorted(batch, key=lambda c: (c[1], c[0])):
                    kind = _CHANGE_KIND_MAP.get(change_type)
                    if kind is not None:
                        self._queue.put(RawEvent(kind=kind, path=Path(path_str)))
        except Exception as exc:
            # This path is lost (e.g. its directory was removed); others keep going
            print(f"  Watch error: {path}: {exc}", file=sys.stderr)
