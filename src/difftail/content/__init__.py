"""Content layer — watching files and diffing their lines.

Handles change notification, the per-path content cache and the LCS line
differ that turns two versions of a file into an edit script.
"""

from difftail.content.backend import NotificationBackend, RawEvent, WatchfilesBackend
from difftail.content.cache import ContentCache
from difftail.content.differ import LineChange, compare_lines
from difftail.content.watcher import (
    ChangeRecord,
    DirectoryWatcher,
    FileMetadata,
    FileWatcher,
    Watcher,
    WatchState,
)

__all__ = [
    "ChangeRecord",
    "ContentCache",
    "DirectoryWatcher",
    "FileMetadata",
    "FileWatcher",
    "LineChange",
    "NotificationBackend",
    "RawEvent",
    "WatchState",
    "WatchfilesBackend",
    "Watcher",
    "compare_lines",
]
