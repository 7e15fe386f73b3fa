"""File watcher — turns filesystem notifications into ChangeRecords.

Two modes share one event-handling core:

- FileWatcher: a single file. The cache is seeded before registration so the
  first write is diffed against the real prior content.
- DirectoryWatcher: a directory tree. Every directory is registered at
  startup; directories created later are registered as they appear.

On a write the watcher reads the file, diffs it against the cached content,
stores the new content and hands a ChangeRecord to the callback. Create,
remove and rename notifications are reported without reading the file.
"""

from __future__ import annotations

import enum
import os
import sys
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from difftail._errors import FileReadError, FileTooLargeError, WatchError
from difftail.config import MAX_FILE_SIZE
from difftail.content.backend import RawEvent, WatchfilesBackend, WatchRegistration
from difftail.content.cache import ContentCache
from difftail.content.differ import LineChange, compare_lines, summarize

if TYPE_CHECKING:
    from difftail._types import ChangeCallback, Operation, RawKind, WatchMode
    from difftail.content.backend import NotificationBackend
    from difftail.observability.collector import Collector


@dataclass(frozen=True, slots=True)
class FileMetadata:
    """Stat information captured when a file was read."""

    size: int
    modified_ns: int


@dataclass(frozen=True, slots=True)
class ChangeRecord:
    """One observed filesystem event.

    Attributes:
        path: Absolute path of the file.
        operation: What happened to it.
        content: Text after the event (``modified`` only).
        previous_content: Text before the event (``modified`` only).
        line_changes: Line diff from previous_content to content.
        metadata: Size and mtime at read time, None when not read.

    """

    path: str
    operation: Operation
    content: str = ""
    previous_content: str = ""
    line_changes: tuple[LineChange, ...] = field(default=())
    metadata: FileMetadata | None = None

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready payload of a ``log`` message.

        Full contents and metadata stay server-side.
        """
        return {
            "path": self.path,
            "op": self.operation,
            "line_changes": [change.to_wire() for change in self.line_changes],
        }


class WatchState(enum.Enum):
    """Lifecycle of a watcher."""

    IDLE = "idle"
    WATCHING = "watching"
    CLOSED = "closed"
    ERROR = "error"


# Operations reported without reading the file.
_PASSTHROUGH_OPS: dict[RawKind, Operation] = {
    "create": "created",
    "remove": "removed",
    "rename": "renamed",
}


def read_file_content(path: Path, max_size: int = MAX_FILE_SIZE) -> tuple[str, FileMetadata]:
    """Read a file as UTF-8 text, refusing anything over max_size bytes.

    Line endings are preserved as-is.

    Raises:
        FileTooLargeError: The file is larger than max_size.
        FileReadError: The file could not be opened, stat'ed or decoded.

    """
    try:
        with open(path, "rb") as fh:
            st = os.fstat(fh.fileno())
            metadata = FileMetadata(size=st.st_size, modified_ns=st.st_mtime_ns)
            if st.st_size > max_size:
                msg = f"{path}: {st.st_size} bytes exceeds limit of {max_size}"
                raise FileTooLargeError(msg)
            # The file may have grown since fstat
            data = fh.read(max_size + 1)
        if len(data) > max_size:
            msg = f"{path}: grew past limit of {max_size} bytes while reading"
            raise FileTooLargeError(msg)
        return data.decode("utf-8"), metadata
    except (OSError, UnicodeDecodeError) as exc:
        msg = f"{path}: {exc}"
        raise FileReadError(msg) from exc


class Watcher:
    """Base watcher: lifecycle, event loop and the read-diff-notify path.

    Subclasses decide what gets registered at startup and which raw events
    are handled.

    The notification loop runs in a daemon thread and blocks on the backend.
    Per-event failures are reported and dropped; only startup registration
    errors propagate (as WatchError).

    Args:
        target: File or directory to watch.
        callback: Receives every ChangeRecord. Called on the watch thread.
        cache: Content cache (a private one is created if omitted).
        backend: Notification backend (watchfiles if omitted).
        max_file_size: Read size cap in bytes.
        collector: Optional observability collector.

    """

    mode: WatchMode

    def __init__(
        self,
        target: Path,
        callback: ChangeCallback | None = None,
        *,
        cache: ContentCache | None = None,
        backend: NotificationBackend | None = None,
        max_file_size: int = MAX_FILE_SIZE,
        collector: Collector | None = None,
    ) -> None:
        self._target = Path(target).absolute()
        self._callback = callback
        self._cache = cache if cache is not None else ContentCache()
        self._backend: NotificationBackend = (
            backend if backend is not None else WatchfilesBackend()
        )
        self._max_file_size = max_file_size
        self._collector = collector
        self._registrations: list[WatchRegistration] = []
        self._state = WatchState.IDLE
        self._thread: threading.Thread | None = None

    @property
    def target(self) -> Path:
        """The watch target."""
        return self._target

    @property
    def cache(self) -> ContentCache:
        """The content cache this watcher reads and writes."""
        return self._cache

    @property
    def state(self) -> WatchState:
        """Current lifecycle state."""
        return self._state

    @property
    def registrations(self) -> tuple[WatchRegistration, ...]:
        """Paths registered with the backend so far."""
        return tuple(self._registrations)

    @property
    def is_running(self) -> bool:
        """Whether the watch thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Register with the backend and start the watch thread.

        Raises:
            WatchError: The target is missing, of the wrong kind, or could
                not be registered. The watcher is left in the ERROR state.

        """
        if self._state is WatchState.WATCHING:
            return
        try:
            self._register()
        except WatchError:
            self._state = WatchState.ERROR
            raise
        except (OSError, FileReadError) as exc:
            self._state = WatchState.ERROR
            msg = f"cannot watch {self._target}: {exc}"
            raise WatchError(msg) from exc

        self._state = WatchState.WATCHING
        self._thread = threading.Thread(
            target=self._watch_loop,
            name=f"difftail-watch-{self._target.name}",
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        """Close the backend and wait for the thread to finish."""
        self._backend.close()
        if self._thread is not None:
            self._thread.join(timeout=5.0)
            self._thread = None
        if self._state is not WatchState.ERROR:
            self._state = WatchState.CLOSED

    def handle_event(self, event: RawEvent) -> ChangeRecord | None:
        """Process one raw notification, invoking the callback on a record."""
        record = self._dispatch(event)
        if record is not None:
            if self._collector is not None:
                added, removed = summarize(record.line_changes)
                self._collector.record_change(
                    record.path, record.operation, added=added, removed=removed,
                )
            self._emit(record)
        return record

    # ----- subclass hooks -----

    def _register(self) -> None:
        raise NotImplementedError

    def _dispatch(self, event: RawEvent) -> ChangeRecord | None:
        raise NotImplementedError

    # ----- shared machinery -----

    def _add_registration(self, path: Path) -> None:
        self._registrations.append(self._backend.register(path))

    def _watch_loop(self) -> None:
        """Background thread: feed backend events through handle_event."""
        try:
            for event in self._backend.events():
                self.handle_event(event)
        except Exception as exc:
            # The notification channel itself failed; this watcher is done.
            print(f"  Watch error: {self._target}: {exc}", file=sys.stderr)
        if self._state is WatchState.WATCHING:
            self._state = WatchState.CLOSED

    def _emit(self, record: ChangeRecord) -> None:
        if self._callback is None:
            return
        try:
            self._callback(record)
        except Exception as exc:
            print(f"  Callback error: {Path(record.path).name}: {exc}", file=sys.stderr)

    def _read_and_diff(self, path: Path) -> ChangeRecord | None:
        """Read path, diff against the cache and update it."""
        try:
            content, metadata = read_file_content(path, self._max_file_size)
        except FileTooLargeError as exc:
            self._drop(path, "too_large", exc)
            return None
        except FileReadError as exc:
            self._drop(path, "read_error", exc)
            return None

        key = str(path)
        previous = self._cache.get(key)
        changes = compare_lines(previous, content)
        self._cache.set(key, content)

        return ChangeRecord(
            path=key,
            operation="modified",
            content=content,
            previous_content=previous,
            line_changes=changes,
            metadata=metadata,
        )

    def _drop(self, path: Path, reason: str, exc: Exception) -> None:
        label = "File too large" if reason == "too_large" else "Read error"
        print(f"  {label}: {path.name}: {exc}", file=sys.stderr)
        if self._collector is not None:
            self._collector.record_drop(str(path), reason, detail=str(exc))


class FileWatcher(Watcher):
    """Watches exactly one file; only write notifications are handled."""

    mode = "file"

    def _register(self) -> None:
        if not self._target.is_file():
            msg = f"not a file: {self._target}"
            raise WatchError(msg)
        # Seed before registering so the first write diffs against real content
        content, _ = read_file_content(self._target, self._max_file_size)
        self._cache.set(str(self._target), content)
        self._add_registration(self._target)

    def _dispatch(self, event: RawEvent) -> ChangeRecord | None:
        if event.kind != "write":
            return None
        return self._read_and_diff(event.path)


class DirectoryWatcher(Watcher):
    """Watches every directory under a root.

    New subdirectories are registered when their create notification
    arrives. Files in a directory created between its creation and its
    registration are not reported.

    """

    mode = "directory"

    def _register(self) -> None:
        if not self._target.is_dir():
            msg = f"not a directory: {self._target}"
            raise WatchError(msg)

        def _raise(exc: OSError) -> None:
            raise exc

        for dirpath, _dirnames, _filenames in os.walk(self._target, onerror=_raise):
            self._add_registration(Path(dirpath))

    def _dispatch(self, event: RawEvent) -> ChangeRecord | None:
        path = event.path
        op = _PASSTHROUGH_OPS.get(event.kind)

        if op is not None:
            if op == "created" and path.is_dir():
                self._register_new_directory(path)
            elif op in ("removed", "renamed"):
                # A later file with the same name starts from an empty cache
                self._cache.forget(str(path))
            return ChangeRecord(path=str(path), operation=op)

        if path.is_dir():
            return None
        return self._read_and_diff(path)

    def _register_new_directory(self, path: Path) -> None:
        try:
            self._add_registration(path)
        except OSError as exc:
            print(f"  Register error: {path}: {exc}", file=sys.stderr)
