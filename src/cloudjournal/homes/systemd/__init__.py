"""
systemd journal home: reads the local systemd journal (requires systemd-python).
"""

from .home import SystemdJournalHome

__all__ = ["SystemdJournalHome"]
