"""
Coordinator wires the agent together and runs it.

The coordinator's single responsibility is to:
1. Resolve settings
2. Read the persisted cursor and open the journal at it
3. Resolve (or create) the destination stream before any upload
4. Run the shipping loop until it is stopped or fails
5. Close the journal and print a summary

Any failure in steps 1-3 happens before the loop starts.
"""
import asyncio
import signal
from typing import Any, Dict, Optional

from cloudjournal.messages import Summary, get_logger

from .cursor import CursorStore
from .home import JournalHome
from .settings import ShipperSettings
from .shipper import Shipper
from .sink import LogSink


class Coordinator:
    """
    Bootstraps and runs one shipping agent.

    Components can be injected (tests, embedding); anything not injected
    is built from settings.

    Example:
        ```python
        coordinator = Coordinator(ShipperSettings.load_from_env())
        asyncio.run(coordinator.run())
        ```
    """

    def __init__(
        self,
        settings: Optional[ShipperSettings] = None,
        home: Optional[JournalHome] = None,
        sink: Optional[LogSink] = None,
        cursor_store: Optional[CursorStore] = None,
    ):
        self.settings = settings or ShipperSettings.load_from_env()
        self.home = home
        self.sink = sink
        self.cursor_store = cursor_store
        self.shipper: Optional[Shipper] = None
        self.stop_event = asyncio.Event()
        self.result: Optional[Dict[str, Any]] = None
        self.logger = get_logger("cloudjournal.coordinator")
        self.summary = Summary(logger=self.logger)

    @property
    def name(self) -> str:
        return self.settings.log_stream_name

    async def setup(self) -> Shipper:
        """
        Open the journal at the persisted cursor and resolve the stream.

        Raises:
            CursorError, JournalConnectionError, SinkError, ConfigError
        """
        if self.cursor_store is None:
            self.cursor_store = CursorStore(self.settings.cursor_file)
        resume_cursor = await asyncio.to_thread(self.cursor_store.read)

        if self.home is None:
            self.home = JournalHome.create(self.name, self.settings.get_home_options())
        await self.home.open(resume_cursor)
        if resume_cursor is None:
            self.logger.info("No persisted cursor, reading from the earliest record")
        else:
            self.logger.info(f"Resuming after cursor {resume_cursor}")

        if self.sink is None:
            self.sink = LogSink.create(self.name, self.settings.get_sink_options())
        await self.sink.resolve_or_create_stream()

        self.shipper = Shipper(
            self.name,
            self.home,
            self.sink,
            self.cursor_store,
            options={
                "batch_size": self.settings.batch_size,
                "poll_interval": self.settings.poll_interval,
                "upload_retries": self.settings.upload_retries,
                "upload_retry_delay": self.settings.upload_retry_delay,
                "upload_timeout": self.settings.upload_timeout,
            },
        )
        return self.shipper

    def stop(self) -> None:
        """Ask the loop to stop at the next iteration boundary."""
        if not self.stop_event.is_set():
            self.logger.info("Stop requested, finishing the current batch")
            self.stop_event.set()

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.stop)
            except (NotImplementedError, RuntimeError):
                # add_signal_handler is unavailable on Windows event loops
                self.logger.debug(f"Cannot install handler for {sig.name}")

    async def run(
        self, drain_only: bool = False, install_signal_handlers: bool = True
    ) -> Dict[str, Any]:
        """
        Set up and run the agent until it is stopped or fails.

        Args:
            drain_only: Stop at the first empty read instead of idling forever
            install_signal_handlers: Stop gracefully on SIGINT/SIGTERM

        Returns:
            Result dictionary (see Summary.generate_summary)

        Raises:
            ShipperError: On startup failure or a fatal shipping error
        """
        start_time = asyncio.get_running_loop().time()
        self.logger.start(
            f"shipping {self.settings.journal_type} journal to "
            f"{self.settings.log_group_name}/{self.settings.log_stream_name}"
        )

        if install_signal_handlers:
            self._install_signal_handlers()

        try:
            shipper = await self.setup()
        except Exception:
            if self.home is not None:
                await self.home.close()
            raise

        try:
            await shipper.run(self.stop_event, drain_only=drain_only)
            self.result = self._build_result("pass")
        except Exception as e:
            self.result = self._build_result("fail", error=str(e))
            raise
        finally:
            await self.home.close()
            self.summary.generate_summary(
                self.result or self._build_result("fail"), start_time
            )

        return self.result

    def _build_result(self, status: str, error: Optional[str] = None) -> Dict[str, Any]:
        shipper = self.shipper
        return {
            "stream": self.sink.destination if self.sink else self.name,
            "status": status,
            "records": shipper.records_shipped if shipper else 0,
            "batches": shipper.batches_shipped if shipper else 0,
            "idle_polls": shipper.idle_polls if shipper else 0,
            "cursor": shipper.last_cursor if shipper else None,
            "error": error,
        }
