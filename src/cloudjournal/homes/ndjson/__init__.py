"""
NDJSON journal home: reads an append-only newline-delimited JSON file.
"""

from .home import NdjsonJournalHome

__all__ = ["NdjsonJournalHome"]
