"""
systemd journal home: reads entries from the local systemd journal.
"""
from typing import Any, Dict, Optional

from cloudjournal.core.batch import LogRecord
from cloudjournal.core.home import JournalHome
from cloudjournal.utility.exceptions import JournalConnectionError, JournalReadError


class SystemdJournalHome(JournalHome, home_type="systemd"):
    """
    Reads the local systemd journal through ``systemd.journal.Reader``.

    Cursors are the journal's own ``__CURSOR`` strings. ``seek_cursor``
    lands on the entry the cursor names, which was already shipped, so the
    first entry after a resume is dropped when ``test_cursor`` confirms it
    is that entry. If the entry has since been vacuumed the reader lands on
    the next surviving one and nothing is dropped.

    Options:
        path: Optional directory of journal files (default: system journal)
        local_only: Only read journal files of the local machine (default: True)
    """

    def __init__(self, name: str, options: Optional[Dict[str, Any]] = None):
        super().__init__(name, options)
        self.path = self.options.get("path")
        self.local_only = self.options.get("local_only", True)
        self._reader = None
        self._skip_cursor: Optional[str] = None
        self._last_cursor: Optional[str] = None

    def _open(self) -> None:
        try:
            from systemd import journal
        except ImportError as e:
            raise JournalConnectionError(
                "Reading the systemd journal requires the systemd-python package. "
                "Install it with: pip install cloudjournal[systemd]"
            ) from e

        flags = journal.LOCAL_ONLY if self.local_only else 0
        if self.path:
            self._reader = journal.Reader(path=self.path)
        else:
            self._reader = journal.Reader(flags=flags)
        self.logger.debug(
            f"Opened systemd journal {self.path or '(system)'} "
            f"local_only={self.local_only}"
        )

    def _seek_head(self) -> None:
        self._reader.seek_head()
        self._skip_cursor = None

    def _seek_cursor(self, cursor: str) -> None:
        try:
            self._reader.seek_cursor(cursor)
        except (OSError, ValueError) as e:
            raise JournalConnectionError(
                f"Journal rejected resume cursor {cursor!r}: {e}"
            ) from e
        self._skip_cursor = cursor
        self._last_cursor = cursor

    def _next_record(self) -> Optional[LogRecord]:
        entry = self._reader.get_next()
        if not entry:
            return None

        if self._skip_cursor is not None:
            skip, self._skip_cursor = self._skip_cursor, None
            if self._reader.test_cursor(skip):
                return self._next_record()

        cursor = entry.get("__CURSOR")
        if cursor is None:
            cursor = self._reader._get_cursor()  # pylint: disable=protected-access
        self._last_cursor = cursor
        return entry

    def _position(self) -> str:
        if self._last_cursor is None:
            raise JournalReadError("No journal entry has been consumed yet")
        return self._last_cursor

    def _close(self) -> None:
        if self._reader is not None:
            self._reader.close()
            self._reader = None
