"""
NDJSON journal home: reads an append-only newline-delimited JSON file.
"""
import json
import os
from pathlib import Path
from typing import Any, BinaryIO, Dict, Optional

from cloudjournal.core.batch import LogRecord
from cloudjournal.core.home import JournalHome
from cloudjournal.utility.exceptions import JournalConnectionError, JournalReadError


class NdjsonJournalHome(JournalHome, home_type="ndjson"):
    """
    A journal backed by an append-only NDJSON file.

    The cursor is the byte offset just after the last consumed line, written
    as a decimal string. Only complete lines are consumed: a trailing line
    without its newline is left for the next read, so a writer caught
    mid-append is never shipped half a record.

    Lines that aren't JSON objects are shipped as ``{"MESSAGE": <line>}``.
    Blank lines are skipped. Bytes that don't decode are kept as
    ``surrogateescape`` surrogates rather than replaced.

    Options:
        path: Path to the NDJSON file (required)
        encoding: Text encoding of the file (default: utf-8)
    """

    def __init__(self, name: str, options: Optional[Dict[str, Any]] = None):
        super().__init__(name, options)
        path = self.options.get("path")
        if not path:
            raise JournalConnectionError("The ndjson journal requires a path")
        self.path = Path(path)
        self.encoding = self.options.get("encoding", "utf-8")
        self._file: Optional[BinaryIO] = None
        self._offset = 0

    def _open(self) -> None:
        try:
            self._file = open(self.path, "rb")
        except OSError as e:
            raise JournalConnectionError(
                f"Failed to open journal file {self.path}: {e}"
            ) from e

    def _seek_head(self) -> None:
        self._file.seek(0)
        self._offset = 0

    def _seek_cursor(self, cursor: str) -> None:
        try:
            offset = int(cursor)
        except ValueError as e:
            raise JournalConnectionError(
                f"Invalid cursor {cursor!r} for journal file {self.path}"
            ) from e

        size = os.fstat(self._file.fileno()).st_size
        if offset < 0 or offset > size:
            raise JournalConnectionError(
                f"Cursor {offset} is outside journal file {self.path} "
                f"({size} bytes)"
            )
        if offset > 0:
            self._file.seek(offset - 1)
            if self._file.read(1) != b"\n":
                raise JournalConnectionError(
                    f"Cursor {offset} does not point at a line boundary in {self.path}"
                )

        self._file.seek(offset)
        self._offset = offset

    def _next_record(self) -> Optional[LogRecord]:
        size = os.fstat(self._file.fileno()).st_size
        if size < self._offset:
            raise JournalReadError(
                f"Journal file {self.path} shrank below the read position "
                f"({size} < {self._offset} bytes)"
            )

        while True:
            self._file.seek(self._offset)
            line = self._file.readline()
            if not line or not line.endswith(b"\n"):
                return None

            self._offset += len(line)
            text = line.decode(self.encoding, errors="surrogateescape")
            text = text.rstrip("\r\n")
            if not text.strip():
                continue
            return self._parse_line(text)

    @staticmethod
    def _parse_line(text: str) -> LogRecord:
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError:
            return {"MESSAGE": text}
        if isinstance(parsed, dict):
            return parsed
        return {"MESSAGE": text}

    def _position(self) -> str:
        return str(self._offset)

    def _close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
