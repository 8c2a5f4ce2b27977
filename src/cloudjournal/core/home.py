"""
Base JournalHome class - where the logs live.

A JournalHome wraps a local, sequential, cursor-addressable record store
(the systemd journal, an append-only NDJSON file, ...) and hands the
shipping loop ordered batches of records together with the cursor that
points just past them.

The contract every implementation keeps:
- ``open(None)`` starts at the earliest retained record, never at "now".
- ``open(cursor)`` resumes just after the record the cursor names.
- ``read_batch(n)`` consumes at most ``n`` records and returns None when
  the journal is caught up.
- A consumed record is never read again by the same instance.

Example:
    ```python
    class MyHome(JournalHome, home_type="my_type"):
        def _seek_head(self) -> None: ...
        def _seek_cursor(self, cursor: str) -> None: ...
        def _next_record(self) -> Optional[LogRecord]: ...
        def _position(self) -> str: ...
    ```
"""
import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Type

from cloudjournal.messages import get_logger
from cloudjournal.utility.exceptions import (
    ConfigError,
    JournalConnectionError,
    JournalError,
    JournalReadError,
)

from .batch import LogBatch, LogRecord


class JournalHome(ABC):
    """
    Base class for all journal sources.

    Subclasses implement the four blocking primitives (seek to head, seek to
    cursor, next record, current position). This class turns them into the
    batch-oriented, async interface the shipping loop uses, running the
    blocking work in a worker thread.
    """

    _registry: Dict[str, Type["JournalHome"]] = {}

    def __init_subclass__(cls, home_type: str = None):
        super().__init_subclass__()
        if home_type:
            cls._registry[home_type] = cls

    @classmethod
    def create(
        cls, name: str, options: Optional[Dict[str, Any]] = None
    ) -> "JournalHome":
        """
        Create a JournalHome instance using the registry pattern.

        Args:
            name: Name for the home instance (used for logging)
            options: Home options; ``type`` selects the implementation

        Returns:
            JournalHome instance of the appropriate type

        Raises:
            ConfigError: If the home type is not registered
        """
        options = dict(options or {})
        home_type = options.pop("type", "systemd")
        if home_type not in cls._registry:
            raise ConfigError(
                f"Unknown journal type: {home_type}. "
                f"Available: {sorted(cls._registry)}"
            )
        return cls._registry[home_type](name, options)

    @classmethod
    def available_types(cls) -> List[str]:
        return sorted(cls._registry)

    def __init__(self, name: str, options: Optional[Dict[str, Any]] = None):
        self.name = name
        self.options = options or {}
        self.total_records = 0
        self.is_open = False
        self.logger = get_logger(f"cloudjournal.home.{self.__class__.__name__}")

    async def open(self, resume_cursor: Optional[str] = None) -> None:
        """
        Open the journal and position it for reading.

        Args:
            resume_cursor: Persisted cursor to resume after, or None to start
                from the earliest retained record

        Raises:
            JournalConnectionError: If the journal can't be opened or positioned
        """
        try:
            await asyncio.to_thread(self._open_and_seek, resume_cursor)
        except JournalError:
            raise
        except Exception as e:
            raise JournalConnectionError(
                f"Failed to open journal {self.name}: {str(e)}"
            ) from e

        self.is_open = True
        if resume_cursor is None:
            self.logger.debug(f"Journal {self.name} positioned at head")
        else:
            self.logger.debug(f"Journal {self.name} resuming after {resume_cursor}")

    def _open_and_seek(self, resume_cursor: Optional[str]) -> None:
        self._open()
        try:
            if resume_cursor is None:
                self._seek_head()
            else:
                self._seek_cursor(resume_cursor)
        except Exception:
            self._close()
            raise

    async def read_batch(self, max_size: int) -> Optional[LogBatch]:
        """
        Consume up to ``max_size`` records from the current position.

        Returns:
            A LogBatch whose cursor points just past its last record, or None
            when no records are available (the journal is caught up)

        Raises:
            JournalReadError: If reading from the journal fails
        """
        if not self.is_open:
            raise JournalReadError(f"Journal {self.name} has not been opened")
        if max_size < 1:
            raise ValueError(f"max_size must be at least 1, got {max_size}")

        try:
            return await asyncio.to_thread(self._read_batch, max_size)
        except JournalError:
            raise
        except Exception as e:
            raise JournalReadError(
                f"Failed to read from journal {self.name}: {str(e)}"
            ) from e

    def _read_batch(self, max_size: int) -> Optional[LogBatch]:
        records: List[LogRecord] = []
        while len(records) < max_size:
            record = self._next_record()
            if record is None:
                break
            records.append(record)

        if not records:
            return None

        self.total_records += len(records)
        return LogBatch.of(records, cursor=self._position())

    async def close(self) -> None:
        """Release the journal handle."""
        if not self.is_open:
            return
        self.is_open = False
        await asyncio.to_thread(self._close)

    def _open(self) -> None:
        """Acquire the underlying handle. Optional for sources opened eagerly."""
        pass

    def _close(self) -> None:
        """Release the underlying handle."""
        pass

    @abstractmethod
    def _seek_head(self) -> None:
        """Position before the earliest retained record."""
        pass

    @abstractmethod
    def _seek_cursor(self, cursor: str) -> None:
        """Position just after the record named by ``cursor``."""
        pass

    @abstractmethod
    def _next_record(self) -> Optional[LogRecord]:
        """Consume and return the next record, or None when exhausted."""
        pass

    @abstractmethod
    def _position(self) -> str:
        """Opaque token for the position just after the last consumed record."""
        pass
