"""
Collection of log sinks.
"""
from .cloudwatch import CloudWatchLogsSink

__all__ = ["CloudWatchLogsSink"]
