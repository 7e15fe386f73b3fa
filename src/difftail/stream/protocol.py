"""Wire protocol — JSON envelopes exchanged with subscribers.

Every frame is a single-line JSON object ``{"type": ..., "data": ...}``.

Outbound, one ``log`` message per ChangeRecord. Inbound requests are handled
by MessageHandler, which returns the reply frame or raises ProtocolError.
Errors never close the connection, let alone stop the process.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

from difftail._errors import FileReadError, ProtocolError
from difftail.config import MAX_FILE_SIZE
from difftail.content.watcher import read_file_content

if TYPE_CHECKING:
    from collections.abc import Callable

    from difftail.content.watcher import ChangeRecord


def encode(message_type: str, data: Any = None) -> str:
    """Serialize an envelope. ``data`` is omitted when None."""
    envelope: dict[str, Any] = {"type": message_type}
    if data is not None:
        envelope["data"] = data
    return json.dumps(envelope, ensure_ascii=False, separators=(",", ":"))


def encode_change(record: ChangeRecord) -> str:
    """Serialize a ChangeRecord as a ``log`` push."""
    return encode("log", record.to_wire())


def encode_error(message: str) -> str:
    """Serialize an error indication sent in reply to a bad request."""
    return encode("error", message)


def decode(raw: str | bytes) -> tuple[str, Any]:
    """Parse an inbound frame into ``(type, data)``.

    Raises:
        ProtocolError: Not JSON, not an object, or no string ``type``.

    """
    try:
        envelope = json.loads(raw)
    except (ValueError, UnicodeDecodeError) as exc:
        msg = f"invalid JSON: {exc}"
        raise ProtocolError(msg) from exc
    if not isinstance(envelope, dict):
        msg = "message must be a JSON object"
        raise ProtocolError(msg)
    message_type = envelope.get("type")
    if not isinstance(message_type, str):
        msg = "message has no string 'type'"
        raise ProtocolError(msg)
    return message_type, envelope.get("data")


class MessageHandler:
    """Answers inbound requests for one watch session.

    Args:
        target: The watched file or directory.
        mode: ``"file"`` or ``"directory"``.
        max_file_size: Read cap for ``get_file_content``.
        restrict_reads: Refuse reads outside the watch target.
        stats: Returns the payload for ``get_stats``.

    """

    def __init__(
        self,
        target: Path,
        mode: str = "file",
        *,
        max_file_size: int = MAX_FILE_SIZE,
        restrict_reads: bool = True,
        stats: Callable[[], dict[str, Any]] | None = None,
    ) -> None:
        self._target = Path(target)
        self._resolved = self._target.resolve()
        self._mode = mode
        self._max_file_size = max_file_size
        self._restrict_reads = restrict_reads
        self._stats = stats
        self._handlers: dict[str, Callable[[Any], str]] = {
            "get_info": self._get_info,
            "get_file_content": self._get_file_content,
            "ping": self._ping,
            "get_stats": self._get_stats,
        }

    def handle(self, raw: str | bytes) -> str:
        """Return the reply frame for one inbound frame.

        Raises:
            ProtocolError: Malformed frame, unknown type, or failed request.

        """
        message_type, data = decode(raw)
        handler = self._handlers.get(message_type)
        if handler is None:
            msg = f"unknown message type: {message_type}"
            raise ProtocolError(msg)
        return handler(data)

    def _get_info(self, _data: Any) -> str:
        return encode("info", {"type": "file", "path": str(self._target), "mode": self._mode})

    def _ping(self, _data: Any) -> str:
        return encode("pong")

    def _get_stats(self, _data: Any) -> str:
        return encode("stats", self._stats() if self._stats is not None else {})

    def _get_file_content(self, data: Any) -> str:
        if not isinstance(data, str) or not data:
            msg = "get_file_content expects a path string"
            raise ProtocolError(msg)
        path = self._resolve(data)
        try:
            content, _ = read_file_content(path, self._max_file_size)
        except FileReadError as exc:
            raise ProtocolError(str(exc)) from exc
        return encode("file_content", content)

    def _resolve(self, requested: str) -> Path:
        """Resolve a requested path, relative to the target's directory."""
        base = self._resolved if self._mode == "directory" else self._resolved.parent
        path = Path(requested)
        if not path.is_absolute():
            path = base / path
        path = path.resolve()
        if self._restrict_reads:
            allowed = path == self._resolved if self._mode == "file" else path.is_relative_to(base)
            if not allowed:
                msg = f"path outside watch target: {requested}"
                raise ProtocolError(msg)
        return path
