"""
Cursor store - durable memory of how far the journal has been shipped.

The cursor file holds a single opaque token: the journal position just past
the last record the ingestion service acknowledged. It has no framing, no
checksum and no version. A missing or empty file means "start from the
earliest retained record".
"""
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from cloudjournal.messages import get_logger
from cloudjournal.utility.exceptions import CursorError, CursorWriteError


class CursorStore:
    """
    Reads and atomically replaces the persisted journal cursor.

    Writes go to a temporary file in the same directory which is fsynced and
    then renamed over the target, so a crash mid-write leaves either the old
    cursor or the new one, never a torn mix of both.

    Example:
        ```python
        store = CursorStore("/var/lib/cloudjournal/current-cursor")
        cursor = store.read()  # None on first start
        store.write(batch.cursor)
        ```
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.logger = get_logger("cloudjournal.cursor")

    def read(self) -> Optional[str]:
        """
        Return the persisted cursor, or None for a fresh start.

        Non-empty content is returned verbatim; it is never parsed or
        validated here.

        Raises:
            CursorError: If the file exists but can't be read
        """
        try:
            content = self.path.read_bytes()
        except FileNotFoundError:
            self.logger.debug(f"No cursor file at {self.path}, starting from head")
            return None
        except OSError as e:
            raise CursorError(f"Failed to read cursor file {self.path}: {e}") from e

        if not content:
            self.logger.debug(f"Cursor file {self.path} is empty, starting from head")
            return None

        try:
            return content.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CursorError(f"Cursor file {self.path} is not valid UTF-8") from e

    def write(self, cursor: str) -> None:
        """
        Atomically replace the cursor file with ``cursor``.

        Raises:
            CursorWriteError: If the cursor is empty or can't be persisted
        """
        if not cursor:
            raise CursorWriteError("Refusing to persist an empty cursor")

        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            with os.fdopen(fd, "wb") as f:
                f.write(cursor.encode("utf-8"))
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
            tmp_name = None
            self._fsync_directory()
        except OSError as e:
            raise CursorWriteError(
                f"Failed to persist cursor to {self.path}: {e}"
            ) from e
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass

        self.logger.debug(f"Persisted cursor {cursor}")

    def clear(self) -> None:
        """Remove the cursor file so the next start begins at the head."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            raise CursorWriteError(
                f"Failed to remove cursor file {self.path}: {e}"
            ) from e

    def _fsync_directory(self) -> None:
        """Make the rename itself durable."""
        try:
            dir_fd = os.open(self.path.parent, os.O_RDONLY)
        except OSError:
            # Not supported on every platform
            return
        try:
            os.fsync(dir_fd)
        except OSError:
            pass
        finally:
            os.close(dir_fd)
