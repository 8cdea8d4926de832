# tests/test_correlation_id.py
"""
Tests for correlation ID context management and logging integration.
"""

import json
import logging

import pytest

from heatmap.utils.context import (
    clear_correlation_id,
    correlation_scope,
    get_correlation_id,
    new_correlation_id,
    set_correlation_id,
)
from heatmap.utils.logging import NO_CORRELATION_ID, CorrelationIdFilter, JsonFormatter


@pytest.fixture(autouse=True)
def reset_correlation_id():
    clear_correlation_id()
    yield
    clear_correlation_id()


class TestCorrelationIdContext:
    """Tests for correlation ID context functions."""

    def test_get_returns_none_when_not_set(self):
        assert get_correlation_id() is None

    def test_set_and_get_correlation_id(self):
        set_correlation_id("test-correlation-123")
        assert get_correlation_id() == "test-correlation-123"

    def test_new_id_has_prefix(self):
        cid = new_correlation_id("backfill")
        assert cid.startswith("backfill-")
        assert len(cid) == len("backfill-") + 8


class TestCorrelationScope:

    def test_sets_and_restores(self):
        with correlation_scope("backfill") as cid:
            assert cid.startswith("backfill-")
            assert get_correlation_id() == cid
        assert get_correlation_id() is None

    def test_keeps_existing_id(self):
        set_correlation_id("job-weekly_backfill-1234abcd")
        with correlation_scope("backfill") as cid:
            assert cid == "job-weekly_backfill-1234abcd"
        assert get_correlation_id() == "job-weekly_backfill-1234abcd"

    def test_restores_after_exception(self):
        with pytest.raises(RuntimeError):
            with correlation_scope("backfill"):
                raise RuntimeError("boom")
        assert get_correlation_id() is None


class TestLoggingIntegration:

    def make_record(self) -> logging.LogRecord:
        return logging.LogRecord(
            name="heatmap.test", level=logging.INFO, pathname=__file__, lineno=1,
            msg="Backfill batch %d done", args=(3,), exc_info=None,
        )

    def test_filter_adds_placeholder(self):
        record = self.make_record()
        assert CorrelationIdFilter().filter(record) is True
        assert record.correlation_id == NO_CORRELATION_ID

    def test_filter_adds_current_id(self):
        record = self.make_record()
        with correlation_scope("backfill") as cid:
            CorrelationIdFilter().filter(record)
        assert record.correlation_id == cid

    def test_json_formatter(self):
        record = self.make_record()
        record.correlation_id = "backfill-00000000"
        record.ticker = "AAPL"

        entry = json.loads(JsonFormatter().format(record))

        assert entry["message"] == "Backfill batch 3 done"
        assert entry["correlation_id"] == "backfill-00000000"
        assert entry["extra"] == {"ticker": "AAPL"}
