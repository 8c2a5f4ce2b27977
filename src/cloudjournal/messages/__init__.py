"""
Message utilities for cloudjournal.

This submodule provides messaging utilities for cloudjournal:
- Logger: Human-readable output formatting with colors
- Summary: End-of-run shipping summary
"""
from cloudjournal.messages.logger import ShipperLogger, get_logger, set_level
from cloudjournal.messages.summary import Summary

__all__ = ["ShipperLogger", "get_logger", "set_level", "Summary"]
