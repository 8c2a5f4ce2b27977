"""
Tests for the LogSink base class: stream resolution, sequence token
handling and wire serialization.
"""
import json
from datetime import datetime, timezone
from unittest.mock import Mock
from uuid import UUID

import pytest
from conftest import RecordingSink

from cloudjournal.core import sink as sink_module
from cloudjournal.core.batch import LogBatch
from cloudjournal.core.sink import LogSink, PutResult, serialize_record
from cloudjournal.sinks import CloudWatchLogsSink
from cloudjournal.utility.exceptions import ConfigError, SinkError


def _batch(*values, cursor="c1"):
    return LogBatch.of([{"MESSAGE": v} for v in values], cursor=cursor)


class TestLogSinkRegistry:
    def test_create_defaults_to_cloudwatch(self):
        sink = LogSink.create(
            "app",
            {
                "log_group_name": "g",
                "log_stream_name": "s",
                "client": object(),
            },
        )
        assert isinstance(sink, CloudWatchLogsSink)

    def test_unknown_type_raises_config_error(self):
        with pytest.raises(ConfigError, match="Unknown sink type"):
            LogSink.create("app", {"type": "kinesis"})

    def test_missing_names_raise_config_error(self):
        with pytest.raises(ConfigError, match="log_group_name"):
            RecordingSink("app", {"log_stream_name": ""})


class TestResolveOrCreateStream:
    @pytest.mark.asyncio
    async def test_existing_stream_adopts_its_token(self, make_sink, call_log):
        sink = make_sink(existing=True, initial_token="49590000")
        token = await sink.resolve_or_create_stream()
        assert token == "49590000"
        assert sink.sequence_token == "49590000"
        assert call_log == [("describe",)]
        assert sink.is_resolved

    @pytest.mark.asyncio
    async def test_existing_stream_without_uploads_has_no_token(self, make_sink):
        sink = make_sink(existing=True, initial_token=None)
        assert await sink.resolve_or_create_stream() is None
        assert not sink.created

    @pytest.mark.asyncio
    async def test_missing_stream_is_created(self, make_sink, call_log):
        sink = make_sink(existing=False)
        assert await sink.resolve_or_create_stream() is None
        assert sink.created
        assert call_log == [("describe",), ("create",)]


class TestUpload:
    @pytest.mark.asyncio
    async def test_upload_before_resolve_is_refused(self, make_sink):
        sink = make_sink()
        with pytest.raises(SinkError, match="must be resolved"):
            await sink.upload(_batch("a"))
        assert sink.puts == []

    @pytest.mark.asyncio
    async def test_first_upload_carries_resolved_token(self, make_sink, call_log):
        sink = make_sink(existing=True, initial_token="tok-0")
        await sink.resolve_or_create_stream()
        await sink.upload(_batch("a"))
        assert call_log[-1] == ("upload", ["a"], "tok-0")

    @pytest.mark.asyncio
    async def test_each_upload_carries_previous_response_token(
        self, make_sink, call_log
    ):
        sink = make_sink()
        await sink.resolve_or_create_stream()
        await sink.upload(_batch("a"))
        await sink.upload(_batch("b"))
        await sink.upload(_batch("c"))

        tokens = [entry[2] for entry in call_log if entry[0] == "upload"]
        assert tokens == [None, "token-1", "token-2"]
        assert sink.sequence_token == "token-3"
        assert sink.total_uploads == 3

    @pytest.mark.asyncio
    async def test_failed_upload_keeps_token(self, make_sink):
        sink = make_sink()
        await sink.resolve_or_create_stream()
        await sink.upload(_batch("a"))

        sink.failures.append(SinkError("boom"))
        with pytest.raises(SinkError, match="boom"):
            await sink.upload(_batch("b"))
        assert sink.sequence_token == "token-1"
        assert sink.total_uploads == 1

    @pytest.mark.asyncio
    async def test_batch_is_one_request_with_one_event_per_record(
        self, make_sink, monkeypatch
    ):
        monkeypatch.setattr(sink_module, "current_ms", lambda: 1700000000123)
        sink = make_sink()
        await sink.resolve_or_create_stream()
        await sink.upload(_batch("a", "b", "c"))

        assert len(sink.puts) == 1
        events, _ = sink.puts[0]
        assert [e["timestamp"] for e in events] == [1700000000123] * 3
        assert [json.loads(e["message"]) for e in events] == [
            {"MESSAGE": "a"},
            {"MESSAGE": "b"},
            {"MESSAGE": "c"},
        ]

    @pytest.mark.asyncio
    async def test_rejected_events_are_logged_and_batch_counts(self, make_sink):
        class PartialSink(RecordingSink):
            async def _put_events(self, events, sequence_token):
                return PutResult(
                    next_sequence_token="next",
                    rejected={"tooOldLogEventEndIndex": 1},
                )

        sink = PartialSink("partial", {})
        sink.logger = Mock()
        await sink.resolve_or_create_stream()
        await sink.upload(_batch("a", "b"))

        assert sink.sequence_token == "next"
        assert sink.total_records == 2
        sink.logger.warning.assert_called_once()
        assert "tooOldLogEventEndIndex" in sink.logger.warning.call_args[0][0]


class TestSerializeRecord:
    def test_plain_record(self):
        record = {"MESSAGE": "hello", "PRIORITY": "6"}
        assert serialize_record(record) == '{"MESSAGE":"hello","PRIORITY":"6"}'

    def test_non_ascii_is_kept(self):
        assert json.loads(serialize_record({"MESSAGE": "héllo ✓"})) == {
            "MESSAGE": "héllo ✓"
        }

    def test_journal_native_types_are_rendered(self):
        record = {
            "__REALTIME_TIMESTAMP": datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
            "_BOOT_ID": UUID("12345678-1234-5678-1234-567812345678"),
            "MESSAGE": b"raw bytes \xff",
            "_PID": 42,
        }
        decoded = json.loads(serialize_record(record))
        assert decoded["__REALTIME_TIMESTAMP"] == "2024-01-02T03:04:05+00:00"
        assert decoded["_BOOT_ID"] == "12345678-1234-5678-1234-567812345678"
        raw = decoded["MESSAGE"].encode("utf-8", "surrogateescape")
        assert raw == b"raw bytes \xff"
        assert decoded["_PID"] == 42

    def test_unknown_types_fall_back_to_str(self):
        class Odd:
            def __str__(self):
                return "odd"

        assert json.loads(serialize_record({"X": Odd()})) == {"X": "odd"}

    def test_undecodable_bytes_are_escaped_not_replaced(self):
        text = b"\xffok".decode("utf-8", "surrogateescape")
        message = serialize_record({"MESSAGE": text})
        assert message == '{"MESSAGE":"\\udcffok"}'
        assert "\ufffd" not in message
        message.encode("utf-8")
