"""Startup banner — mode-aware status output.

Prints what is being watched and where subscribers connect. Detects
``NO_COLOR`` / ``TERM`` for safe fallback.
"""

from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from difftail.config import DifftailConfig


# ---------------------------------------------------------------------------
# ANSI helpers — respect NO_COLOR (https://no-color.org)
# ---------------------------------------------------------------------------

def _supports_color() -> bool:
    """Return True if the terminal supports ANSI colors."""
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("TERM") == "dumb":
        return False
    return hasattr(sys.stderr, "isatty") and sys.stderr.isatty()


_COLOR = _supports_color()

_RESET = "\033[0m" if _COLOR else ""
_BOLD = "\033[1m" if _COLOR else ""
_DIM = "\033[2m" if _COLOR else ""
_CYAN = "\033[36m" if _COLOR else ""
_GREEN = "\033[32m" if _COLOR else ""
_YELLOW = "\033[33m" if _COLOR else ""


_MODE_STYLES: dict[str, tuple[str, str]] = {
    "file": (_GREEN, "file"),
    "directory": (_YELLOW, "dir"),
}


def _mode_badge(mode: str) -> str:
    """Return a styled [mode] badge."""
    color, label = _MODE_STYLES.get(mode, (_DIM, mode))
    return f"{color}[{label}]{_RESET}"


def format_banner(
    config: DifftailConfig,
    *,
    registered: int = 0,
    load_ms: float = 0.0,
) -> str:
    """Build the banner text.

    Args:
        config: Resolved DifftailConfig.
        registered: Number of paths registered with the backend.
        load_ms: Startup time in milliseconds.

    """
    from difftail import __version__

    header = f"  {_BOLD}difftail{_RESET} {_DIM}v{__version__}{_RESET}  {_mode_badge(config.mode)}"
    lines: list[str] = [
        "",
        header,
        f"  {_DIM}{'─' * 43}{_RESET}",
        f"  {_DIM}├─{_RESET} watching: {config.target}",
    ]

    if config.mode == "directory":
        label = "directory" if registered == 1 else "directories"
        lines.append(f"  {_DIM}├─{_RESET} {registered} {label} registered")

    timing = f" {_DIM}in {load_ms:.0f}ms{_RESET}" if load_ms > 0 else ""
    lines.append(f"  {_DIM}└─{_RESET} queue: {config.queue_size} messages/client{timing}")
    lines.append("")
    lines.append(f"  {_BOLD}{_CYAN}{config.ws_url}{_RESET}")
    lines.append("")
    lines.append(f"  {_DIM}Watching for changes...{_RESET}")
    lines.append("")
    return "\n".join(lines)


def print_banner(
    config: DifftailConfig,
    *,
    registered: int = 0,
    load_ms: float = 0.0,
) -> None:
    """Print the difftail startup banner to stderr."""
    print(format_banner(config, registered=registered, load_ms=load_ms), file=sys.stderr)
