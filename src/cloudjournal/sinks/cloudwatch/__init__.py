"""
CloudWatch Logs sink: ships batches with PutLogEvents (boto3).
"""

from .sink import CloudWatchLogsSink

__all__ = ["CloudWatchLogsSink"]
