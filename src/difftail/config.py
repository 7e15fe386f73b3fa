"""Difftail configuration.

DifftailConfig is the central configuration object, frozen after creation.
"""

from dataclasses import dataclass
from pathlib import Path

from difftail._errors import ConfigError

# Files larger than this are never read or diffed.
MAX_FILE_SIZE = 10 * 1024 * 1024

# Capacity of each subscriber's outbound queue.
SUBSCRIBER_QUEUE_SIZE = 256


@dataclass(frozen=True, slots=True)
class DifftailConfig:
    """Configuration for a difftail watch session.

    Exactly one of ``file`` and ``directory`` must be set.

    Attributes:
        file: Single file to watch.
        directory: Directory tree to watch recursively.
        host: Bind address for the WebSocket server.
        port: Bind port for the WebSocket server.
        ws_path: Request path the WebSocket endpoint is served on.
        queue_size: Outbound queue capacity per subscriber.
        max_file_size: Read size cap in bytes.
        debounce_ms: Notification debounce window passed to watchfiles.
        step_ms: Notification polling step passed to watchfiles.
        restrict_reads: Reject ``get_file_content`` requests for paths
            outside the watch target.

    """

    file: Path | None = None
    directory: Path | None = None
    host: str = "localhost"
    port: int = 8081
    ws_path: str = "/ws"
    queue_size: int = SUBSCRIBER_QUEUE_SIZE
    max_file_size: int = MAX_FILE_SIZE
    debounce_ms: int = 50
    step_ms: int = 50
    restrict_reads: bool = True

    def __post_init__(self) -> None:
        if self.file is None and self.directory is None:
            msg = "one of --file or --dir is required"
            raise ConfigError(msg)
        if self.file is not None and self.directory is not None:
            msg = "--file and --dir cannot be used together"
            raise ConfigError(msg)
        if not 0 <= self.port <= 65535:
            msg = f"port out of range: {self.port}"
            raise ConfigError(msg)
        if self.queue_size < 1:
            msg = f"queue_size must be positive: {self.queue_size}"
            raise ConfigError(msg)
        if not self.ws_path.startswith("/"):
            object.__setattr__(self, "ws_path", "/" + self.ws_path)

        # Resolve to absolute so that watchfiles (which reports absolute
        # paths) and cache keys agree.
        if self.file is not None:
            object.__setattr__(self, "file", Path(self.file).resolve())
        if self.directory is not None:
            object.__setattr__(self, "directory", Path(self.directory).resolve())

    @property
    def target(self) -> Path:
        """The watch target, whichever of file/directory is set."""
        target = self.file if self.file is not None else self.directory
        assert target is not None
        return target

    @property
    def mode(self) -> str:
        """``"file"`` or ``"directory"``."""
        return "file" if self.file is not None else "directory"

    @property
    def ws_url(self) -> str:
        """WebSocket URL clients connect to."""
        return f"ws://{self.host}:{self.port}{self.ws_path}"
