"""
Core components of cloudjournal.
"""
from .batch import LogBatch, LogRecord
from .coordinator import Coordinator
from .cursor import CursorStore
from .home import JournalHome
from .settings import ShipperSettings
from .shipper import Shipper
from .sink import LogSink, PutResult, StreamInfo, serialize_record

__all__ = [
    "Coordinator",
    "CursorStore",
    "JournalHome",
    "LogBatch",
    "LogRecord",
    "LogSink",
    "PutResult",
    "Shipper",
    "ShipperSettings",
    "StreamInfo",
    "serialize_record",
]
