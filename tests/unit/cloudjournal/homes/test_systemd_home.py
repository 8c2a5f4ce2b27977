"""
Tests for the systemd journal home, using a stand-in ``systemd.journal``
module so they run on hosts without libsystemd.
"""
import sys
import types

import pytest

from cloudjournal.homes import SystemdJournalHome
from cloudjournal.utility.exceptions import JournalConnectionError

ENTRIES = [
    {"MESSAGE": "boot", "__CURSOR": "s=1;i=1"},
    {"MESSAGE": "sshd started", "__CURSOR": "s=1;i=2"},
    {"MESSAGE": "login", "__CURSOR": "s=1;i=3"},
]


class FakeReader:
    instances = []

    def __init__(self, path=None, flags=0):
        self.path = path
        self.flags = flags
        self.entries = list(ENTRIES)
        self.index = 0
        self.closed = False
        FakeReader.instances.append(self)

    def seek_head(self):
        self.index = 0

    def seek_cursor(self, cursor):
        for i, entry in enumerate(self.entries):
            if entry["__CURSOR"] == cursor:
                # Lands on the named entry itself
                self.index = i
                return
        if not cursor.startswith("s="):
            raise OSError(22, "Invalid argument")
        # Vacuumed: land on the next surviving entry
        self.index = 0

    def get_next(self):
        if self.index >= len(self.entries):
            return {}
        entry = self.entries[self.index]
        self.index += 1
        return dict(entry)

    def test_cursor(self, cursor):
        return self.entries[self.index - 1]["__CURSOR"] == cursor

    def _get_cursor(self):
        return self.entries[self.index - 1]["__CURSOR"]

    def close(self):
        self.closed = True


@pytest.fixture
def fake_journal(monkeypatch):
    FakeReader.instances = []
    journal = types.ModuleType("systemd.journal")
    journal.Reader = FakeReader
    journal.LOCAL_ONLY = 1
    package = types.ModuleType("systemd")
    package.journal = journal
    monkeypatch.setitem(sys.modules, "systemd", package)
    monkeypatch.setitem(sys.modules, "systemd.journal", journal)
    return journal


def _messages_of(batch):
    return [r["MESSAGE"] for r in batch.records]


class TestSystemdJournalHome:
    @pytest.mark.asyncio
    async def test_fresh_start_reads_from_head(self, fake_journal):
        home = SystemdJournalHome("app", {})
        await home.open(None)
        batch = await home.read_batch(2)
        assert _messages_of(batch) == ["boot", "sshd started"]
        assert batch.cursor == "s=1;i=2"
        assert FakeReader.instances[0].flags == fake_journal.LOCAL_ONLY

    @pytest.mark.asyncio
    async def test_resume_skips_the_cursor_entry(self, fake_journal):
        home = SystemdJournalHome("app", {})
        await home.open("s=1;i=2")
        batch = await home.read_batch(10)
        assert _messages_of(batch) == ["login"]
        assert batch.cursor == "s=1;i=3"

    @pytest.mark.asyncio
    async def test_resume_at_last_entry_is_caught_up(self, fake_journal):
        home = SystemdJournalHome("app", {})
        await home.open("s=1;i=3")
        assert await home.read_batch(10) is None

    @pytest.mark.asyncio
    async def test_vacuumed_cursor_resumes_at_next_surviving_entry(
        self, fake_journal
    ):
        home = SystemdJournalHome("app", {})
        await home.open("s=1;i=0")
        batch = await home.read_batch(10)
        assert _messages_of(batch) == ["boot", "sshd started", "login"]

    @pytest.mark.asyncio
    async def test_rejected_cursor_fails_to_open(self, fake_journal):
        home = SystemdJournalHome("app", {})
        with pytest.raises(JournalConnectionError, match="resume cursor"):
            await home.open("garbage")
        assert FakeReader.instances[0].closed

    @pytest.mark.asyncio
    async def test_directory_path_is_passed_to_reader(self, fake_journal):
        home = SystemdJournalHome("app", {"path": "/var/log/journal/remote"})
        await home.open(None)
        assert FakeReader.instances[0].path == "/var/log/journal/remote"

    @pytest.mark.asyncio
    async def test_close_releases_reader(self, fake_journal):
        home = SystemdJournalHome("app", {})
        await home.open(None)
        await home.close()
        assert FakeReader.instances[0].closed

    @pytest.mark.asyncio
    async def test_missing_bindings_raise_connection_error(self, monkeypatch):
        monkeypatch.setitem(sys.modules, "systemd", None)
        home = SystemdJournalHome("app", {})
        with pytest.raises(JournalConnectionError, match="systemd-python"):
            await home.open(None)
