"""Difftail error hierarchy.

All difftail-specific errors inherit from DifftailError for easy catching.
"""


class DifftailError(Exception):
    """Base error for all difftail operations."""


class ConfigError(DifftailError):
    """Invalid or missing configuration."""


class WatchError(DifftailError):
    """A watch target could not be registered at startup."""


class FileReadError(DifftailError):
    """A watched file could not be read or stat'ed."""


class FileTooLargeError(FileReadError):
    """A watched file exceeds the read size cap."""


class ProtocolError(DifftailError):
    """Malformed or unsupported inbound message."""


class HubError(DifftailError):
    """Error in the broadcast hub (publishing while stopped)."""
