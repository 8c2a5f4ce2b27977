"""
Custom exceptions for cloudjournal - clear, actionable error handling.

cloudjournal uses a hierarchical exception system so the shipping loop can
decide, per error kind, whether a failure is worth retrying or must stop
the agent. Stopping is always safe: the persisted cursor only ever points
at data the remote service has acknowledged.

Exception Hierarchy:
    ShipperError (base)
    ├── ShipError
    │   └── ShipExecutionError - The shipping loop stopped on a fatal error
    ├── JournalError
    │   ├── JournalConnectionError - Opening or seeking the journal failed
    │   └── JournalReadError - Reading records from the journal failed
    ├── SinkError
    │   ├── SinkConnectionError - Transient failure talking to the service
    │   ├── SinkSequenceError - The service rejected our sequence token
    │   └── SinkRejectedError - The service permanently refused the request
    ├── CursorError
    │   └── CursorWriteError - Persisting the journal cursor failed
    └── ConfigError - Configuration errors

Usage Guidelines:
    - Always use exception chaining (`raise SpecificError(...) from e`) when
      wrapping library exceptions so the original traceback survives.
    - SinkConnectionError and SinkSequenceError are transient and retried by
      the shipping loop. Everything else is fatal.
    - CursorWriteError is never retried: if the cursor cannot be recorded
      the agent stops rather than risk duplicate delivery after a restart.
"""


class ShipperError(Exception):
    """Base exception for all cloudjournal errors."""

    pass


class ShipError(ShipperError):
    """Base exception for shipping loop errors."""

    pass


class ShipExecutionError(ShipError):
    """The shipping loop hit a fatal error and stopped."""

    pass


class JournalError(ShipperError):
    """Base exception for journal source errors."""

    pass


class JournalConnectionError(JournalError):
    """Error opening or positioning the journal."""

    pass


class JournalReadError(JournalError):
    """Error reading records from the journal."""

    pass


class SinkError(ShipperError):
    """Base exception for remote sink errors."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message)
        self.context = kwargs


class SinkConnectionError(SinkError):
    """Transient error talking to the ingestion service."""

    pass


class SinkSequenceError(SinkError):
    """The ingestion service rejected the sequence token."""

    pass


class SinkRejectedError(SinkError):
    """The ingestion service refused the request permanently."""

    pass


class CursorError(ShipperError):
    """Base exception for cursor store errors."""

    pass


class CursorWriteError(CursorError):
    """Error persisting the journal cursor."""

    pass


class ConfigError(ShipperError):
    """Raised when there's an error in configuration."""

    pass
