"""
Utility functions and classes for cloudjournal.
"""
from .exceptions import (
    ConfigError,
    CursorError,
    CursorWriteError,
    JournalConnectionError,
    JournalError,
    JournalReadError,
    ShipError,
    ShipExecutionError,
    ShipperError,
    SinkConnectionError,
    SinkError,
    SinkRejectedError,
    SinkSequenceError,
)

__all__ = [
    "ShipperError",
    "ShipError",
    "ShipExecutionError",
    "JournalError",
    "JournalConnectionError",
    "JournalReadError",
    "SinkError",
    "SinkConnectionError",
    "SinkSequenceError",
    "SinkRejectedError",
    "CursorError",
    "CursorWriteError",
    "ConfigError",
]
