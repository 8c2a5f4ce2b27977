"""
Common test fixtures and configuration.

Provides in-memory stand-ins for the two external collaborators (the
journal and the ingestion service) plus a cursor store that records when
it persists, so tests can assert on the exact order of reads, uploads and
cursor writes.
"""
import json
import logging
import shutil
import sys
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
from click.testing import CliRunner

# Add src directory to Python path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cloudjournal.core.cursor import CursorStore  # noqa: E402
from cloudjournal.core.home import JournalHome  # noqa: E402
from cloudjournal.core.sink import LogSink, PutResult, StreamInfo  # noqa: E402


class MemoryJournalHome(JournalHome, home_type="memory"):
    """
    A journal held in a list. Cursors look like ``mem:<n>``: the position
    after the first n entries. The list can be appended to while reading.
    """

    def __init__(self, name: str, options: Optional[Dict[str, Any]] = None):
        super().__init__(name, options)
        self.entries: List[Dict[str, Any]] = self.options.get("entries", [])
        self.call_log: List[tuple] = self.options.get("call_log", [])
        self.fail_reads = self.options.get("fail_reads", False)
        self._index = 0

    async def read_batch(self, max_size: int):
        batch = await super().read_batch(max_size)
        if batch is None:
            self.call_log.append(("read", None))
        else:
            self.call_log.append(("read", [r.get("MESSAGE") for r in batch.records]))
        return batch

    def _seek_head(self) -> None:
        self._index = 0

    def _seek_cursor(self, cursor: str) -> None:
        prefix, _, index = cursor.partition(":")
        if prefix != "mem" or not index.isdigit():
            raise ValueError(f"not a memory cursor: {cursor!r}")
        self._index = int(index)

    def _next_record(self):
        if self.fail_reads:
            raise RuntimeError("journal file is corrupt")
        if self._index >= len(self.entries):
            return None
        record = self.entries[self._index]
        self._index += 1
        return record

    def _position(self) -> str:
        return f"mem:{self._index}"


class RecordingSink(LogSink, sink_type="recording"):
    """
    A sink that keeps every upload in memory and hands out ``token-<n>``
    sequence tokens. ``failures`` is a list of exceptions raised by the
    next put attempts, in order.
    """

    def __init__(self, name: str, options: Optional[Dict[str, Any]] = None):
        options = {
            "log_group_name": "test-group",
            "log_stream_name": "test-stream",
            **(options or {}),
        }
        super().__init__(name, options)
        self.existing = self.options.get("existing", False)
        self.initial_token = self.options.get("initial_token")
        self.failures: List[Exception] = list(self.options.get("failures", []))
        self.call_log: List[tuple] = self.options.get("call_log", [])
        self.puts: List[tuple] = []
        self.created = False
        self._issued = 0

    async def _find_stream(self) -> StreamInfo:
        self.call_log.append(("describe",))
        return StreamInfo(
            exists=self.existing, upload_sequence_token=self.initial_token
        )

    async def _create_stream(self) -> None:
        self.call_log.append(("create",))
        self.created = True

    async def _put_events(self, events, sequence_token) -> PutResult:
        messages = [json.loads(e["message"]).get("MESSAGE") for e in events]
        if self.failures:
            self.call_log.append(("upload_failed", messages, sequence_token))
            raise self.failures.pop(0)
        self.call_log.append(("upload", messages, sequence_token))
        self.puts.append((events, sequence_token))
        self._issued += 1
        return PutResult(next_sequence_token=f"token-{self._issued}")


class RecordingCursorStore(CursorStore):
    """A real file-backed cursor store that also logs each persist."""

    def __init__(self, path, call_log: List[tuple], fail_writes: bool = False):
        super().__init__(path)
        self.call_log = call_log
        self.fail_writes = fail_writes

    def write(self, cursor: str) -> None:
        if self.fail_writes:
            # A regular file where the cursor directory should be
            blocker = self.path.parent.parent / "blocker"
            blocker.parent.mkdir(parents=True, exist_ok=True)
            blocker.write_text("")
            self.path = blocker / "current-cursor"
        super().write(cursor)
        self.call_log.append(("persist", cursor))


def messages(*values: str) -> List[Dict[str, Any]]:
    """Journal entries with the given MESSAGE values."""
    return [{"MESSAGE": value, "PRIORITY": "6"} for value in values]


@pytest.fixture(autouse=True)
def setup_logging():
    """Configure logging for tests."""
    logging.basicConfig(level=logging.DEBUG)
    yield


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests."""
    temp_dir = tempfile.mkdtemp()
    yield Path(temp_dir)
    shutil.rmtree(temp_dir)


@pytest.fixture
def cli_runner():
    """Click CLI runner."""
    return CliRunner()


@pytest.fixture
def call_log():
    """Shared, ordered log of journal reads, uploads and cursor writes."""
    return []


@pytest.fixture
def cursor_path(temp_dir):
    return temp_dir / "state" / "current-cursor"


@pytest.fixture
def cursor_store(cursor_path, call_log):
    return RecordingCursorStore(cursor_path, call_log)


@pytest.fixture
def make_home(call_log):
    """Factory for memory journal homes sharing the call log."""

    def _make(entries, **options):
        return MemoryJournalHome(
            "memory", {"entries": entries, "call_log": call_log, **options}
        )

    return _make


@pytest.fixture
def make_sink(call_log):
    """Factory for recording sinks sharing the call log."""

    def _make(**options):
        return RecordingSink("recording", {"call_log": call_log, **options})

    return _make
