"""Shared type definitions for difftail."""

from collections.abc import Callable
from typing import TYPE_CHECKING, Literal, TypeAlias

if TYPE_CHECKING:
    from difftail.content.watcher import ChangeRecord

# What a watcher is pointed at
WatchMode: TypeAlias = Literal["file", "directory"]

# Operation reported in a ChangeRecord
Operation: TypeAlias = Literal["created", "modified", "removed", "renamed"]

# Raw notification kinds produced by a NotificationBackend
RawKind: TypeAlias = Literal["write", "create", "remove", "rename"]

# Kind of a single line-level change
LineKind: TypeAlias = Literal["added", "removed"]

# WebSocket subscriber identifier
ClientID: TypeAlias = str

# Callback invoked by a watcher for every emitted ChangeRecord
ChangeCallback: TypeAlias = Callable[["ChangeRecord"], None]
