"""Difftail application — one watch session wired end to end.

WatchSession is the explicit context object for a session: it owns the
content cache, the watcher, the broadcast hub, the request handler, the
transport server and the collector. Nothing is process-global, so several
sessions can run in one process.

The public ``run`` function is the primary entry point.
"""

from __future__ import annotations

import asyncio
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any

from difftail._errors import HubError
from difftail.config import DifftailConfig
from difftail.content.backend import WatchfilesBackend
from difftail.content.cache import ContentCache
from difftail.content.watcher import DirectoryWatcher, FileWatcher
from difftail.observability import Collector, EventLog
from difftail.stream.hub import BroadcastHub
from difftail.stream.protocol import MessageHandler, encode_change
from difftail.stream.server import TransportServer

if TYPE_CHECKING:
    from collections.abc import Callable

    from difftail.content.backend import NotificationBackend
    from difftail.content.watcher import ChangeRecord, Watcher


class WatchSession:
    """Watch target, hub and server for one configuration.

    Flow:
        watcher thread -> ChangeRecord -> encode_change -> hub.publish
        hub dispatcher -> subscriber queues -> server write loops

    Args:
        config: Resolved configuration.
        backend: Notification backend (watchfiles if omitted).
        collector: Observability collector (a fresh one if omitted).

    """

    def __init__(
        self,
        config: DifftailConfig,
        *,
        backend: NotificationBackend | None = None,
        collector: Collector | None = None,
    ) -> None:
        self.config = config
        self.collector = collector if collector is not None else Collector(EventLog())
        self.cache = ContentCache()
        self.hub = BroadcastHub(queue_size=config.queue_size, collector=self.collector)

        if backend is None:
            backend = WatchfilesBackend(debounce_ms=config.debounce_ms, step_ms=config.step_ms)
        watcher_cls = FileWatcher if config.mode == "file" else DirectoryWatcher
        self.watcher: Watcher = watcher_cls(
            config.target,
            self._on_change,
            cache=self.cache,
            backend=backend,
            max_file_size=config.max_file_size,
            collector=self.collector,
        )

        self.handler = MessageHandler(
            config.target,
            config.mode,
            max_file_size=config.max_file_size,
            restrict_reads=config.restrict_reads,
            stats=self.stats,
        )
        self.server = TransportServer(
            self.hub,
            self.handler,
            host=config.host,
            port=config.port,
            path=config.ws_path,
            collector=self.collector,
        )

    def stats(self) -> dict[str, Any]:
        """Payload for ``get_stats`` requests."""
        return {
            "subscribers": self.hub.subscriber_count,
            "cached_paths": len(self.cache),
            "watch_state": self.watcher.state.value,
            "events": self.collector.log.stats(),
            "changes": self.collector.log.change_counts(),
            "recent_drops": self.collector.log.recent_drops(),
        }

    def _on_change(self, record: ChangeRecord) -> None:
        """Watcher callback (runs on the watch thread)."""
        try:
            self.hub.publish(encode_change(record))
        except HubError:
            # Session shutting down; the change has nowhere to go
            return

    async def start(self) -> None:
        """Start the hub, then the watcher, then the server.

        Raises:
            WatchError: The target could not be registered.

        """
        self.hub.start()
        try:
            self.watcher.start()
            await self.server.start()
        except BaseException:
            self.watcher.stop()
            await self.hub.stop()
            raise

    async def stop(self) -> None:
        """Stop accepting connections, stop watching, drain the hub."""
        await self.server.stop()
        await asyncio.to_thread(self.watcher.stop)
        await self.hub.stop()

    async def run(self, on_started: Callable[[], None] | None = None) -> None:
        """Start, serve until cancelled, then stop."""
        await self.start()
        if on_started is not None:
            on_started()
        try:
            await self.server.serve_forever()
        finally:
            await self.stop()


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------


def run(config: DifftailConfig) -> None:
    """Run a watch session in the foreground until interrupted.

    Args:
        config: Resolved configuration.

    Raises:
        WatchError: The watch target could not be registered.

    """
    from difftail.banner import print_banner

    t0 = time.perf_counter()
    session = WatchSession(config)

    def _banner() -> None:
        print_banner(
            config,
            registered=len(session.watcher.registrations),
            load_ms=(time.perf_counter() - t0) * 1000,
        )

    try:
        asyncio.run(session.run(on_started=_banner))
    except KeyboardInterrupt:
        pass


def watch(path: str | Path, **kwargs: object) -> None:
    """Watch a file or directory, choosing the mode from what path is.

    Args:
        path: File or directory to watch.
        **kwargs: Override DifftailConfig fields.

    """
    target = Path(path)
    key = "directory" if target.is_dir() else "file"
    run(DifftailConfig(**{key: target}, **kwargs))  # type: ignore[arg-type]
