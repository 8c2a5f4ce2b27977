"""
A durable, at-least-once shipper from a local journal to CloudWatch Logs.
"""
from .core import (
    Coordinator,
    CursorStore,
    JournalHome,
    LogBatch,
    LogSink,
    Shipper,
    ShipperSettings,
)

# IMPORTANT: Registry Initialization
# Every journal home and sink implementation must be imported here so it
# registers itself and becomes available via JournalHome.create() and
# LogSink.create().
from .homes import NdjsonJournalHome, SystemdJournalHome  # noqa: F401
from .sinks import CloudWatchLogsSink  # noqa: F401

__all__ = [
    # Core components
    "Coordinator",
    "Shipper",
    "JournalHome",
    "LogSink",
    "CursorStore",
    # Data and config
    "LogBatch",
    "ShipperSettings",
]
