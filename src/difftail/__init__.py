"""Difftail — live line diffs of watched files over WebSocket.

Watches one file or a directory tree, diffs every write against the last
content seen, and pushes each change to all connected subscribers.

Quick start::

    import difftail

    difftail.watch("app.log")       # single file
    difftail.watch("logs/")         # directory tree

Subscribers connect to ``ws://localhost:8081/ws`` and receive ``log``
messages carrying the changed lines.

"""

__version__ = "0.1.0"
__all__ = [
    "DifftailConfig",
    "WatchSession",
    "__version__",
    "compare_lines",
    "run",
    "watch",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import difftail`` fast while providing a clean top-level API.
    """
    if name == "DifftailConfig":
        from difftail.config import DifftailConfig

        return DifftailConfig

    if name == "compare_lines":
        from difftail.content.differ import compare_lines

        return compare_lines

    if name == "WatchSession":
        from difftail.app import WatchSession

        return WatchSession

    if name == "run":
        from difftail.app import run

        return run

    if name == "watch":
        from difftail.app import watch

        return watch

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
