"""
Shipper - the shipping loop that moves journal records to the remote sink.

Each iteration reads one batch from the JournalHome, uploads it through the
LogSink and only then persists the batch cursor. That ordering is the whole
durability contract: a crash can re-send the batch that was in flight (the
cursor wasn't written yet) but can never skip one (the cursor is never
written before the upload is acknowledged).

When the journal is caught up the loop idles for ``poll_interval`` seconds
and reads again. It stops when the stop event is set, which is checked only
at the top of an iteration, never in the middle of an upload.
"""
import asyncio
from typing import Any, Dict, Optional

from cloudjournal.messages import get_logger
from cloudjournal.utility.exceptions import (
    ShipExecutionError,
    SinkConnectionError,
    SinkSequenceError,
)
from cloudjournal.utility.retry import with_retry

from .cursor import CursorStore
from .home import JournalHome
from .sink import LogSink


class Shipper:
    """
    Drains a JournalHome into a LogSink, recording progress in a CursorStore.

    States:
        draining: a batch was read, uploaded and its cursor persisted
        idle: the journal had nothing new; the loop waits before reading again

    Args:
        name: Name of this shipper (for logging)
        home: Journal to read from (already opened at the resume cursor)
        sink: Destination (already resolved)
        cursor_store: Where acknowledged cursors are persisted
        options: Optional settings:
            - batch_size: Max records per cycle (default: 500)
            - poll_interval: Idle wait in seconds (default: 0.5)
            - upload_retries: Attempts per upload (default: 5)
            - upload_retry_delay: Initial backoff in seconds (default: 1)
            - upload_timeout: Timeout per attempt in seconds (default: 60)
    """

    DRAINING = "draining"
    IDLE = "idle"

    def __init__(
        self,
        name: str,
        home: JournalHome,
        sink: LogSink,
        cursor_store: CursorStore,
        options: Optional[Dict[str, Any]] = None,
    ):
        self.name = name
        self.home = home
        self.sink = sink
        self.cursor_store = cursor_store
        self.options = options or {}

        self.batch_size = self.options.get("batch_size", 500)
        self.poll_interval = self.options.get("poll_interval", 0.5)
        self.upload_retries = self.options.get("upload_retries", 5)
        self.upload_retry_delay = self.options.get("upload_retry_delay", 1)
        self.upload_timeout = self.options.get("upload_timeout", 60)

        # State tracking
        self.records_shipped = 0
        self.batches_shipped = 0
        self.idle_polls = 0
        self.last_cursor: Optional[str] = None
        self.state: Optional[str] = None

        self.logger = get_logger(f"cloudjournal.shipper.{name}")
        self.home.logger = get_logger(f"cloudjournal.shipper.{name}.home")
        self.sink.logger = get_logger(f"cloudjournal.shipper.{name}.sink")

        self._upload = with_retry(
            retries=self.upload_retries,
            delay=self.upload_retry_delay,
            timeout=self.upload_timeout,
            logger_name=f"cloudjournal.shipper.{name}",
            retry_if_func=self._should_retry_upload,
            reraise=True,
        )(self.sink.upload)

    @staticmethod
    def _should_retry_upload(exception: Exception) -> bool:
        """Transient sink failures and timeouts are retried; nothing else is."""
        return isinstance(
            exception, (SinkConnectionError, SinkSequenceError, TimeoutError)
        )

    async def step(self) -> str:
        """
        Run exactly one iteration of the loop.

        Returns:
            "draining" if a batch was shipped, "idle" if the journal was empty

        Raises:
            JournalError, SinkError, CursorError: Unwrapped, as raised
        """
        batch = await self.home.read_batch(self.batch_size)
        if batch is None:
            self.idle_polls += 1
            self.state = self.IDLE
            return self.state

        start = asyncio.get_running_loop().time()
        await self._upload(batch)
        await asyncio.to_thread(self.cursor_store.write, batch.cursor)

        self.last_cursor = batch.cursor
        self.records_shipped += len(batch)
        self.batches_shipped += 1
        self.state = self.DRAINING

        duration = asyncio.get_running_loop().time() - start
        rate = len(batch) / duration if duration > 0 else 0
        self.logger.debug(self.logger.BATCH_TEMPLATE.format(len(batch), duration, rate))
        return self.state

    async def run(
        self, stop_event: Optional[asyncio.Event] = None, drain_only: bool = False
    ) -> None:
        """
        Ship until stopped.

        Args:
            stop_event: Set to stop the loop at the next iteration boundary
            drain_only: Return at the first empty read instead of idling

        Raises:
            ShipExecutionError: On any journal, sink or cursor failure that
                retries could not absorb
        """
        stop_event = stop_event or asyncio.Event()
        self.logger.debug(
            f"Shipping to {self.sink.destination} "
            f"(batch size {self.batch_size}, poll interval {self.poll_interval}s)"
        )

        while not stop_event.is_set():
            try:
                state = await self.step()
            except Exception as e:
                self.logger.error(f"Shipping stopped: {self.name}, error: {str(e)}")
                # Cursor was not advanced for the failed batch
                raise ShipExecutionError(
                    f"Shipping failed: {self.name}, error: {str(e)}"
                ) from e

            if state == self.IDLE:
                if drain_only:
                    self.logger.debug("Journal drained")
                    break
                await self._idle(stop_event)

    async def _idle(self, stop_event: asyncio.Event) -> None:
        """Wait out the poll interval, waking early only to stop."""
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=self.poll_interval)
        except asyncio.TimeoutError:
            pass
