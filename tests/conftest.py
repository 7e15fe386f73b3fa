"""Shared test fixtures for difftail."""

from __future__ import annotations

import queue
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from difftail.content.backend import RawEvent, WatchRegistration
from difftail.observability import Collector, EventLog

if TYPE_CHECKING:
    from collections.abc import Iterator

    from difftail._types import RawKind


class FakeBackend:
    """NotificationBackend that yields synthetic events pushed by a test.

    ``events()`` blocks on an internal queue, just like a real backend
    blocks on the OS, and ends when ``close()`` is called.
    """

    _CLOSED = object()

    def __init__(self, *, fail_on: Path | None = None) -> None:
        self.registered: list[Path] = []
        self._events: queue.Queue[object] = queue.Queue()
        self._fail_on = fail_on
        self.closed = False

    def register(self, path: Path) -> WatchRegistration:
        if self._fail_on is not None and Path(path) == self._fail_on:
            raise PermissionError(path)
        self.registered.append(Path(path))
        return WatchRegistration(path=Path(path))

    def events(self) -> Iterator[RawEvent]:
        while True:
            item = self._events.get()
            if item is self._CLOSED:
                return
            assert isinstance(item, RawEvent)
            yield item

    def emit(self, kind: RawKind, path: Path) -> None:
        """Inject a raw event."""
        self._events.put(RawEvent(kind=kind, path=Path(path)))

    def close(self) -> None:
        self.closed = True
        self._events.put(self._CLOSED)


@pytest.fixture
def backend() -> FakeBackend:
    """A fresh fake notification backend."""
    return FakeBackend()


@pytest.fixture
def collector() -> Collector:
    """A collector that records events without printing."""
    return Collector(EventLog(), quiet=True)


@pytest.fixture
def log_file(tmp_path: Path) -> Path:
    """A small text file to watch."""
    path = tmp_path / "app.log"
    path.write_text("line one\nline two\n")
    return path


@pytest.fixture
def log_dir(tmp_path: Path) -> Path:
    """A directory tree with a couple of files and a nested directory."""
    root = tmp_path / "logs"
    root.mkdir()
    (root / "a.log").write_text("alpha\n")
    nested = root / "nested"
    nested.mkdir()
    (nested / "b.log").write_text("beta\n")
    (nested / "deeper").mkdir()
    return root
