"""
Collection of journal homes.
"""
from .ndjson import NdjsonJournalHome
from .systemd import SystemdJournalHome

__all__ = [
    "NdjsonJournalHome",
    "SystemdJournalHome",
]
