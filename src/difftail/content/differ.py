"""Line differ — LCS-based line diff between two versions of a file.

Compares two texts line by line and produces an edit script of ``added`` and
``removed`` lines. There is no ``modified`` kind: a changed line surfaces as a
removal followed by an addition.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable

    from difftail._types import LineKind


@dataclass(frozen=True, slots=True)
class LineChange:
    """A single added or removed line.

    Attributes:
        kind: ``added`` or ``removed``.
        old_line: 1-based line number in the old text (0 for additions).
        new_line: 1-based line number in the new text (0 for removals).
        old_text: The removed line ("" for additions).
        new_text: The added line ("" for removals).

    """

    kind: LineKind
    old_line: int = 0
    new_line: int = 0
    old_text: str = ""
    new_text: str = ""

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready representation used in ``log`` messages."""
        return {
            "type": self.kind,
            "old_line": self.old_line,
            "new_line": self.new_line,
            "old_text": self.old_text,
            "new_text": self.new_text,
        }


def split_lines(text: str) -> list[str]:
    """Split text on ``\\n``, keeping a trailing empty fragment.

    The empty string is zero lines rather than one empty line.

    """
    if not text:
        return []
    return text.split("\n")


def compare_lines(old_text: str, new_text: str) -> tuple[LineChange, ...]:
    """Line-level diff of two texts.

    Returns LineChange entries ordered so that, read front to back, they form
    a valid edit script from old to new. Identical inputs return ``()``.

    Algorithm:
        1. Fill an ``(m+1) x (n+1)`` LCS length table.
        2. Walk back from ``[m][n]``. Equal lines step both indices.
        3. Otherwise record an addition when the cell to the left is ``>=``
           the cell above, else a removal.
        4. Reverse the collected changes.

    O(m·n) time and space. Callers bound input size (see the watcher's
    read cap).

    """
    if old_text == new_text:
        return ()

    old = split_lines(old_text)
    new = split_lines(new_text)
    m, n = len(old), len(new)

    table = [[0] * (n + 1) for _ in range(m + 1)]
    for i in range(1, m + 1):
        row, prev = table[i], table[i - 1]
        old_line = old[i - 1]
        for j in range(1, n + 1):
            if old_line == new[j - 1]:
                row[j] = prev[j - 1] + 1
            else:
                row[j] = max(prev[j], row[j - 1])

    changes: list[LineChange] = []
    i, j = m, n
    while i > 0 or j > 0:
        if i > 0 and j > 0 and old[i - 1] == new[j - 1]:
            i -= 1
            j -= 1
        elif j > 0 and (i == 0 or table[i][j - 1] >= table[i - 1][j]):
            changes.append(LineChange(kind="added", new_line=j, new_text=new[j - 1]))
            j -= 1
        else:
            changes.append(LineChange(kind="removed", old_line=i, old_text=old[i - 1]))
            i -= 1

    changes.reverse()
    return tuple(changes)


def apply_changes(old_text: str, changes: Iterable[LineChange]) -> str:
    """Replay an edit script produced by compare_lines onto old_text.

    Unchanged lines are copied across up to each change's position, so the
    result equals the ``new_text`` the script was computed against.

    """
    old = split_lines(old_text)
    result: list[str] = []
    consumed = 0  # old lines copied or removed so far

    for change in changes:
        if change.kind == "removed":
            # Copy unchanged lines preceding the removed one
            result.extend(old[consumed:change.old_line - 1])
            consumed = change.old_line
        else:
            # Copy unchanged lines until the addition lands at new_line
            keep = change.new_line - 1 - len(result)
            result.extend(old[consumed:consumed + keep])
            consumed += keep
            result.append(change.new_text)

    result.extend(old[consumed:])
    return "\n".join(result)


def summarize(changes: Iterable[LineChange]) -> tuple[int, int]:
    """Return ``(added, removed)`` line counts."""
    added = removed = 0
    for change in changes:
        if change.kind == "added":
            added += 1
        else:
            removed += 1
    return added, removed
