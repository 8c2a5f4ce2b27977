"""
Base LogSink class - where the logs go.

A LogSink ships batches to a remote ingestion service that orders uploads
to a stream with a sequence token. The sink owns that token: it learns the
starting value when it resolves (or creates) the destination stream, sends
it with every upload, and replaces it with the token the service returns.
One sink, one token, one upload at a time: a put abandoned by a timed-out
attempt is waited for before the next one starts.

Example:
    ```python
    class MySink(LogSink, sink_type="my_type"):
        async def _find_stream(self) -> StreamInfo: ...
        async def _create_stream(self) -> None: ...
        async def _put_events(self, events, sequence_token) -> PutResult: ...
    ```
"""
import asyncio
import json
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime, time as dt_time, timedelta
from typing import Any, Dict, List, Optional, Type
from uuid import UUID

from cloudjournal.messages import get_logger
from cloudjournal.utility.exceptions import ConfigError, SinkError

from .batch import LogBatch, LogRecord


def current_ms() -> int:
    """Wall-clock milliseconds since the Unix epoch."""
    return time.time_ns() // 1_000_000


def _json_default(value: Any) -> Any:
    """Render journal values json.dumps can't handle on its own."""
    if isinstance(value, (datetime, date, dt_time)):
        return value.isoformat()
    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="surrogateescape")
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    return str(value)


def serialize_record(record: LogRecord) -> str:
    """
    Serialize one record to the JSON message string sent on the wire.

    Bytes that were not valid UTF-8 in the journal are carried as lone
    surrogates (``surrogateescape``) and written as ``\\udcXX`` escapes, so
    the message stays valid UTF-8 and the original bytes can be recovered.
    """
    message = json.dumps(
        dict(record),
        default=_json_default,
        ensure_ascii=False,
        separators=(",", ":"),
    )
    try:
        message.encode("utf-8")
    except UnicodeEncodeError:
        return message.encode("utf-8", "backslashreplace").decode("utf-8")
    return message


@dataclass(frozen=True)
class StreamInfo:
    """What the service knows about the destination stream."""

    exists: bool
    upload_sequence_token: Optional[str] = None


@dataclass(frozen=True)
class PutResult:
    """Response to one upload."""

    next_sequence_token: Optional[str]
    rejected: Optional[Dict[str, Any]] = None


class LogSink(ABC):
    """
    Base class for all remote log sinks.

    Subclasses talk to a concrete service; this class owns the sequence
    token, the wire serialization and the resolve-before-upload ordering.
    """

    _registry: Dict[str, Type["LogSink"]] = {}

    def __init_subclass__(cls, sink_type: str = None):
        super().__init_subclass__()
        if sink_type:
            cls._registry[sink_type] = cls

    @classmethod
    def create(cls, name: str, options: Optional[Dict[str, Any]] = None) -> "LogSink":
        """
        Create a LogSink instance using the registry pattern.

        Args:
            name: Name for the sink instance (used for logging)
            options: Sink options; ``type`` selects the implementation

        Raises:
            ConfigError: If the sink type is not registered
        """
        options = dict(options or {})
        sink_type = options.pop("type", "cloudwatch")
        if sink_type not in cls._registry:
            raise ConfigError(
                f"Unknown sink type: {sink_type}. Available: {sorted(cls._registry)}"
            )
        return cls._registry[sink_type](name, options)

    def __init__(self, name: str, options: Optional[Dict[str, Any]] = None):
        self.name = name
        self.options = options or {}
        self.log_group_name = self.options.get("log_group_name")
        self.log_stream_name = self.options.get("log_stream_name")
        if not self.log_group_name or not self.log_stream_name:
            raise ConfigError(
                f"Sink {name} requires log_group_name and log_stream_name"
            )
        self._sequence_token: Optional[str] = None
        self._resolved = False
        self._in_flight: Optional[asyncio.Task] = None
        self._in_flight_batch: Optional[LogBatch] = None
        self.total_records = 0
        self.total_uploads = 0
        self.logger = get_logger(f"cloudjournal.sink.{self.__class__.__name__}")

    @property
    def sequence_token(self) -> Optional[str]:
        """Token the next upload will carry (None before the first upload)."""
        return self._sequence_token

    @property
    def is_resolved(self) -> bool:
        return self._resolved

    @property
    def destination(self) -> str:
        return f"{self.log_group_name}/{self.log_stream_name}"

    def adopt_sequence_token(self, token: Optional[str]) -> None:
        """Replace the current token with one the service told us to use."""
        self.logger.debug(f"Adopting sequence token {token} for {self.destination}")
        self._sequence_token = token

    async def resolve_or_create_stream(self) -> Optional[str]:
        """
        Find the destination stream or create it, and learn its sequence token.

        Must complete before the first upload.

        Returns:
            The upload sequence token of an existing stream, or None when the
            stream is new or has never received an upload
        """
        info = await self._find_stream()
        if info.exists:
            self._sequence_token = info.upload_sequence_token
            self.logger.debug(
                f"Found stream {self.destination} "
                f"(sequence token: {info.upload_sequence_token})"
            )
        else:
            await self._create_stream()
            self._sequence_token = None
            self.logger.info(f"Created stream {self.destination}")

        self._resolved = True
        return self._sequence_token

    async def upload(self, batch: LogBatch) -> None:
        """
        Ship one batch as a single request.

        Every record becomes one event whose message is the record's JSON
        serialization and whose timestamp is the wall clock at upload time.
        On success the sequence token advances to the one the service
        returned.

        The put runs in its own task. If the caller is cancelled (an attempt
        timed out) the put keeps going, and the next upload waits for it
        before sending anything, so two puts never overlap on the stream.

        Raises:
            SinkError: If the stream hasn't been resolved or the upload fails
        """
        if not self._resolved:
            raise SinkError(
                f"Stream {self.destination} must be resolved before uploading"
            )

        result = await self._settle_abandoned_put(batch)
        if result is None:
            timestamp = current_ms()
            events = [
                {"timestamp": timestamp, "message": serialize_record(record)}
                for record in batch.records
            ]
            self._in_flight = asyncio.ensure_future(
                self._put_events(events, self._sequence_token)
            )
            self._in_flight_batch = batch
            result = await asyncio.shield(self._in_flight)
            self._in_flight = None
            self._in_flight_batch = None

        self._sequence_token = result.next_sequence_token
        self.total_records += len(batch)
        self.total_uploads += 1

        if result.rejected:
            # The service kept the request but dropped some events; the
            # batch still counts as delivered.
            self.logger.warning(
                f"{self.destination} rejected part of a batch of {len(batch)} "
                f"events: {result.rejected}"
            )

    async def _settle_abandoned_put(self, batch: LogBatch) -> Optional[PutResult]:
        """
        Wait for a put left running by a cancelled upload.

        Returns its result when it shipped this same batch, so the batch is
        not sent twice. A failed put returns None and the batch is re-sent;
        a successful put of another batch only hands over its token.
        """
        task, sent = self._in_flight, self._in_flight_batch
        if task is None:
            return None

        if not task.done():
            self.logger.warning(
                f"Waiting for an earlier upload to {self.destination} to finish"
            )
            await asyncio.wait({task})
        self._in_flight = None
        self._in_flight_batch = None

        if task.cancelled() or task.exception() is not None:
            return None
        result = task.result()
        if sent is batch:
            self.logger.debug(f"Earlier upload to {self.destination} went through")
            return result
        self._sequence_token = result.next_sequence_token
        return None

    @abstractmethod
    async def _find_stream(self) -> StreamInfo:
        """Look up the destination stream by name."""
        pass

    @abstractmethod
    async def _create_stream(self) -> None:
        """Create the destination stream."""
        pass

    @abstractmethod
    async def _put_events(
        self, events: List[Dict[str, Any]], sequence_token: Optional[str]
    ) -> PutResult:
        """Submit events in one request and return the service's response."""
        pass
