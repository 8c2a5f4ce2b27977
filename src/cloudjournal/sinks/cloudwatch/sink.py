"""
CloudWatch Logs sink implementation.

Ships batches with PutLogEvents using boto3. Credentials and region come
from the standard AWS chain (environment, shared config, instance role)
unless given explicitly.
"""
import asyncio
from typing import Any, Dict, List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionError as BotoConnectionError,
    HTTPClientError,
    NoCredentialsError,
)

from cloudjournal.core.sink import LogSink, PutResult, StreamInfo
from cloudjournal.utility.exceptions import (
    ConfigError,
    SinkConnectionError,
    SinkRejectedError,
    SinkSequenceError,
)


class CloudWatchLogsSink(LogSink, sink_type="cloudwatch"):
    """
    A CloudWatch Logs destination stream.

    Error classification:
    - throttling, service-side failures and network errors raise
      SinkConnectionError and are retried by the shipping loop
    - InvalidSequenceTokenException adopts the token the service expects
      and raises SinkSequenceError so the retry uses it
    - DataAlreadyAcceptedException means the batch is already stored: the
      expected token is adopted and the upload counts as a success
    - anything else (auth, validation, missing log group) raises
      SinkRejectedError, which stops the agent

    Options:
        log_group_name: Destination log group (required)
        log_stream_name: Destination log stream (required)
        region: AWS region (default: boto3's resolution chain)
        endpoint_url: Alternate service endpoint
        client: Pre-built boto3 logs client (tests)
        connect_timeout / read_timeout: Socket timeouts in seconds
    """

    RETRYABLE_ERROR_CODES = {
        "ThrottlingException",
        "Throttling",
        "ServiceUnavailableException",
        "ServiceUnavailable",
        "InternalFailure",
        "InternalServerError",
        "OperationAbortedException",
        "RequestTimeout",
        "RequestTimeoutException",
    }

    def __init__(self, name: str, options: Optional[Dict[str, Any]] = None):
        super().__init__(name, options)
        self.region = self.options.get("region")
        self.endpoint_url = self.options.get("endpoint_url")
        self.client = self.options.get("client") or self._build_client()

    def _build_client(self):
        # Retries are owned by the shipping loop, not botocore
        config = Config(
            retries={"mode": "standard", "max_attempts": 1},
            connect_timeout=self.options.get("connect_timeout", 10),
            read_timeout=self.options.get("read_timeout", 30),
        )
        try:
            return boto3.client(
                "logs",
                region_name=self.region,
                endpoint_url=self.endpoint_url,
                config=config,
            )
        except BotoCoreError as e:
            raise ConfigError(f"Failed to create CloudWatch Logs client: {e}") from e

    async def _find_stream(self) -> StreamInfo:
        try:
            return await asyncio.to_thread(self._scan_streams)
        except (ClientError, BotoCoreError) as e:
            raise self._translate(e, "describe log streams") from e

    def _scan_streams(self) -> StreamInfo:
        paginator = self.client.get_paginator("describe_log_streams")
        pages = paginator.paginate(
            logGroupName=self.log_group_name,
            logStreamNamePrefix=self.log_stream_name,
        )
        for page in pages:
            for stream in page.get("logStreams", []):
                if stream.get("logStreamName") == self.log_stream_name:
                    return StreamInfo(
                        exists=True,
                        upload_sequence_token=stream.get("uploadSequenceToken"),
                    )
        return StreamInfo(exists=False)

    async def _create_stream(self) -> None:
        try:
            await asyncio.to_thread(
                self.client.create_log_stream,
                logGroupName=self.log_group_name,
                logStreamName=self.log_stream_name,
            )
        except ClientError as e:
            if self._error_code(e) == "ResourceAlreadyExistsException":
                self.logger.debug(
                    f"Stream {self.destination} was created concurrently"
                )
                return
            raise self._translate(e, "create log stream") from e
        except BotoCoreError as e:
            raise self._translate(e, "create log stream") from e

    async def _put_events(
        self, events: List[Dict[str, Any]], sequence_token: Optional[str]
    ) -> PutResult:
        request: Dict[str, Any] = {
            "logGroupName": self.log_group_name,
            "logStreamName": self.log_stream_name,
            "logEvents": events,
        }
        if sequence_token is not None:
            request["sequenceToken"] = sequence_token

        try:
            response = await asyncio.to_thread(self.client.put_log_events, **request)
        except ClientError as e:
            code = self._error_code(e)
            expected = e.response.get("expectedSequenceToken")
            if code == "DataAlreadyAcceptedException":
                self.logger.warning(
                    f"Batch was already accepted by {self.destination}; "
                    "continuing with the expected sequence token"
                )
                return PutResult(next_sequence_token=expected)
            if code == "InvalidSequenceTokenException":
                self.adopt_sequence_token(expected)
                raise SinkSequenceError(
                    f"Sequence token rejected by {self.destination}; "
                    f"service expects {expected}",
                    expected_sequence_token=expected,
                ) from e
            raise self._translate(e, "put log events") from e
        except BotoCoreError as e:
            raise self._translate(e, "put log events") from e

        return PutResult(
            next_sequence_token=response.get("nextSequenceToken"),
            rejected=response.get("rejectedLogEventsInfo"),
        )

    @staticmethod
    def _error_code(error: ClientError) -> str:
        return error.response.get("Error", {}).get("Code", "")

    def _translate(self, error: Exception, action: str):
        """Map a boto3 error to the sink error taxonomy."""
        if isinstance(error, ClientError):
            code = self._error_code(error)
            status = error.response.get("ResponseMetadata", {}).get(
                "HTTPStatusCode", 0
            )
            message = f"Failed to {action} for {self.destination}: {code}: {error}"
            if code in self.RETRYABLE_ERROR_CODES or status >= 500:
                return SinkConnectionError(message, code=code, status=status)
            return SinkRejectedError(message, code=code, status=status)

        if isinstance(error, (BotoConnectionError, HTTPClientError)):
            return SinkConnectionError(
                f"Failed to {action} for {self.destination}: {error}"
            )
        if isinstance(error, NoCredentialsError):
            return SinkRejectedError(
                f"Failed to {action} for {self.destination}: no AWS credentials found"
            )
        return SinkRejectedError(f"Failed to {action} for {self.destination}: {error}")
