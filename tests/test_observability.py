"""Tests for difftail.observability — event log and collector."""

import threading

from difftail.observability.collector import Collector
from difftail.observability.events import (
    ChangeDropped,
    FileChanged,
    MessageBroadcast,
    SubscriberConnected,
    SubscriberDropped,
    now_ns,
)
from difftail.observability.log import EventLog


def _changed(path: str = "/logs/a.log", operation: str = "modified") -> FileChanged:
    return FileChanged(
        path=path, operation=operation, added=1, removed=0, timestamp_ns=now_ns(),
    )


# ---------------------------------------------------------------------------
# EventLog
# ---------------------------------------------------------------------------


class TestEventLog:
    """Tests for the event log store."""

    def test_append_and_len(self) -> None:
        log = EventLog()
        assert len(log) == 0
        log.append(_changed())
        assert len(log) == 1

    def test_max_events_enforced(self) -> None:
        log = EventLog(max_events=5)
        for i in range(10):
            log.append(_changed(f"/{i}.log"))
        assert len(log) == 5
        assert log.max_events == 5
        assert [e.path for e in log.query()] == [f"/{i}.log" for i in range(9, 4, -1)]

    def test_query_by_type(self) -> None:
        log = EventLog()
        log.append(_changed())
        log.append(SubscriberConnected(client_id="client-1", remote="", timestamp_ns=now_ns()))
        log.append(_changed("/logs/b.log"))

        results = log.query(event_type=FileChanged)
        assert len(results) == 2
        assert all(isinstance(r, FileChanged) for r in results)

    def test_query_most_recent_first(self) -> None:
        log = EventLog()
        log.append(_changed("/first.log"))
        log.append(_changed("/second.log"))
        assert [e.path for e in log.query()] == ["/second.log", "/first.log"]

    def test_query_by_exact_path_skips_pathless_events(self) -> None:
        log = EventLog()
        log.append(_changed("/logs/app.log"))
        log.append(_changed("/logs/app.log.1"))
        log.append(MessageBroadcast(delivered=1, dropped=0, size=10, timestamp_ns=now_ns()))

        results = log.query(path="/logs/app.log")
        assert len(results) == 1
        assert results[0].path == "/logs/app.log"

    def test_query_limit(self) -> None:
        log = EventLog()
        for i in range(20):
            log.append(_changed(f"/{i}.log"))
        assert len(log.query(limit=5)) == 5

    def test_change_counts(self) -> None:
        log = EventLog()
        log.append(_changed("/a.log"))
        log.append(_changed("/a.log"))
        log.append(_changed("/b.log", "created"))
        log.append(ChangeDropped(path="/c.log", reason="read_error", detail="", timestamp_ns=now_ns()))
        assert log.change_counts() == {"/a.log": 2, "/b.log": 1}

    def test_recent_drops(self) -> None:
        log = EventLog()
        for i in range(3):
            log.append(ChangeDropped(
                path=f"/{i}.log", reason="too_large", detail="", timestamp_ns=now_ns(),
            ))
        log.append(_changed())
        assert log.recent_drops(limit=2) == [
            {"path": "/2.log", "reason": "too_large"},
            {"path": "/1.log", "reason": "too_large"},
        ]

    def test_stats(self) -> None:
        log = EventLog(max_events=50)
        log.append(_changed())
        log.append(SubscriberDropped(client_id="c", reason="slow", timestamp_ns=now_ns()))
        stats = log.stats()
        assert stats["total"] == 2
        assert stats["max_events"] == 50
        assert stats["by_type"] == {"FileChanged": 1, "SubscriberDropped": 1}

    def test_concurrent_appends(self) -> None:
        log = EventLog(max_events=10_000)

        def worker(n: int) -> None:
            for i in range(100):
                log.append(_changed(f"/{n}/{i}.log"))

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(log) == 800


# ---------------------------------------------------------------------------
# Collector
# ---------------------------------------------------------------------------


class TestCollector:
    """Tests for the collector front end."""

    def test_default_log(self) -> None:
        assert isinstance(Collector().log, EventLog)

    def test_record_change(self) -> None:
        collector = Collector(quiet=True)
        collector.record_change("/a.log", "modified", added=2, removed=1)
        (event,) = collector.log.query()
        assert isinstance(event, FileChanged)
        assert (event.added, event.removed) == (2, 1)

    def test_record_drop(self) -> None:
        collector = Collector(quiet=True)
        collector.record_drop("/big.log", "too_large", detail="11 MiB")
        (event,) = collector.log.query(event_type=ChangeDropped)
        assert event.reason == "too_large"
        assert event.detail == "11 MiB"

    def test_record_connect_and_disconnect(self) -> None:
        collector = Collector(quiet=True)
        collector.record_connect("client-1", remote="127.0.0.1:5000")
        collector.record_disconnect("client-1")
        collector.record_disconnect("client-2", reason="slow")

        dropped = collector.log.query(event_type=SubscriberDropped)
        assert [e.reason for e in dropped] == ["slow", "disconnected"]
        (connected,) = collector.log.query(event_type=SubscriberConnected)
        assert connected.remote == "127.0.0.1:5000"

    def test_record_broadcast(self) -> None:
        collector = Collector(quiet=True)
        collector.record_broadcast(delivered=3, dropped=1, size=42)
        (event,) = collector.log.query(event_type=MessageBroadcast)
        assert (event.delivered, event.dropped, event.size) == (3, 1, 42)

    def test_echoes_to_stderr(self, capsys) -> None:
        collector = Collector()
        collector.record_change("/a.log", "modified", added=1, removed=2)
        collector.record_change("/b.log", "created")
        collector.record_disconnect("client-9", reason="slow")
        err = capsys.readouterr().err
        assert "/a.log modified (+1 -2)" in err
        assert "/b.log created" in err
        assert "client dropped (queue full): client-9" in err

    def test_quiet_prints_nothing(self, capsys) -> None:
        collector = Collector(quiet=True)
        collector.record_change("/a.log", "modified")
        collector.record_connect("client-1")
        assert capsys.readouterr().err == ""
