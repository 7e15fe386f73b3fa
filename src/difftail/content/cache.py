"""Content cache — last observed text per watched path.

Thread Safety:
    A single ``threading.Lock`` guards the mapping. It is held only for the
    duration of one operation, never across a file read or a diff.

"""

import threading


class ContentCache:
    """Thread-safe mapping from watched path to last-seen full text.

    A path that was never set reads as ``""``, which the watcher treats as
    "file is new".

    """

    __slots__ = ("_entries", "_lock")

    def __init__(self) -> None:
        self._entries: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, path: str) -> str:
        """Return the cached text for path, or ``""`` on a miss."""
        with self._lock:
            return self._entries.get(path, "")

    def set(self, path: str, text: str) -> None:
        """Replace the cached text for path."""
        with self._lock:
            self._entries[path] = text

    def forget(self, path: str) -> bool:
        """Drop the entry for path. Returns True if one existed."""
        with self._lock:
            return self._entries.pop(path, None) is not None

    def paths(self) -> frozenset[str]:
        """Snapshot of cached paths."""
        with self._lock:
            return frozenset(self._entries)

    def __contains__(self, path: object) -> bool:
        with self._lock:
            return path in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
