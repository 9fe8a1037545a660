"""
Tests for structured logging helpers.
"""

import io
import json
import logging
import sys

import pytest

from conversation_insights.aggregation.unread import UnreadCounter
from conversation_insights.exceptions import StoreUnavailableError
from conversation_insights.logging_utils import (
    InsightsLoggerAdapter,
    StructuredJsonFormatter,
    configure_structured_logging,
    get_insights_logger,
)


def make_record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        "conversation_insights.bulk", logging.WARNING, __file__, 1, "failed %s", ("s-1",), None
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredJsonFormatter:
    def test_single_line_json(self):
        output = StructuredJsonFormatter().format(make_record())

        data = json.loads(output)
        assert "\n" not in output
        assert data["level"] == "WARNING"
        assert data["logger"] == "conversation_insights.bulk"
        assert data["message"] == "failed s-1"
        assert "timestamp" in data

    def test_extra_fields_included(self):
        data = json.loads(StructuredJsonFormatter().format(make_record(session_id="s-1", batch_size=5)))
        assert data["session_id"] == "s-1"
        assert data["batch_size"] == 5

    def test_unserializable_extra_is_stringified(self):
        data = json.loads(StructuredJsonFormatter().format(make_record(viewer={"a", "b"})))
        assert isinstance(data["viewer"], str)

    def test_insights_error_details(self):
        try:
            raise StoreUnavailableError("get_messages", "s-1", RuntimeError("locked"))
        except StoreUnavailableError:
            record = logging.LogRecord(
                "conversation_insights.bulk", logging.WARNING, __file__, 1, "failed", (), sys.exc_info()
            )

        data = json.loads(StructuredJsonFormatter().format(record))

        assert data["error"]["type"] == "StoreUnavailableError"
        assert data["error"]["retryable"] is True
        assert data["error"]["details"]["session_id"] == "s-1"
        assert "Traceback" in data["exception"]


class TestLoggerHelpers:
    def test_get_insights_logger_name(self):
        assert get_insights_logger("search").name == "conversation_insights.search"

    def test_configure_replaces_handlers(self):
        stream = io.StringIO()
        configure_structured_logging(logging.DEBUG, "conversation_insights.configure_test")
        logger = configure_structured_logging(logging.DEBUG, "conversation_insights.configure_test", stream)

        logger.debug("ready", extra={"batch_size": 3})

        assert len(logger.handlers) == 1
        assert logger.level == logging.DEBUG
        line = json.loads(stream.getvalue().strip())
        assert line["message"] == "ready"
        assert line["batch_size"] == 3

    def test_adapter_merges_context(self, caplog):
        logger = logging.getLogger("conversation_insights.adapter_test")
        adapter = InsightsLoggerAdapter(logger, {"viewer_id": "a-1"})

        with caplog.at_level(logging.INFO, logger="conversation_insights.adapter_test"):
            adapter.info("counted", extra={"session_id": "s-1"})

        record = caplog.records[-1]
        assert record.viewer_id == "a-1"
        assert record.session_id == "s-1"

    def test_call_extra_wins_over_adapter_context(self, caplog):
        logger = logging.getLogger("conversation_insights.adapter_test")
        adapter = InsightsLoggerAdapter(logger, {"session_id": "batch"})

        with caplog.at_level(logging.INFO, logger="conversation_insights.adapter_test"):
            adapter.info("item", extra={"session_id": "s-2"})

        assert caplog.records[-1].session_id == "s-2"

    def test_bind_adds_context_without_mutating(self, caplog):
        logger = logging.getLogger("conversation_insights.adapter_test")
        adapter = InsightsLoggerAdapter(logger, {"viewer_id": "a-1"})
        bound = adapter.bind(session_id="s-3")

        with caplog.at_level(logging.INFO, logger="conversation_insights.adapter_test"):
            bound.info("bound")

        assert caplog.records[-1].session_id == "s-3"
        assert caplog.records[-1].viewer_id == "a-1"
        assert adapter.extra == {"viewer_id": "a-1"}


class TestDegradationLogging:
    @pytest.mark.asyncio
    async def test_degraded_unread_count_logged_with_context(self, failing_store_factory, caplog):
        store = await failing_store_factory(failing_sessions={"s-2"})

        with caplog.at_level(logging.WARNING, logger="conversation_insights"):
            await UnreadCounter(store).count(["s-1", "s-2"], "a-1")

        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert warnings[0].session_id == "s-2"
        assert warnings[0].viewer_id == "a-1"
