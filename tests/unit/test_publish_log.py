"""Tests for publish_log.py."""

from __future__ import annotations

import pytest

from pagepress.config import PagepressConfig
from pagepress.host import InMemoryMetaStore
from pagepress.observability import correlation_scope
from pagepress.publish_log import LOG_PREFIX, LOG_SCOPE, PublishLog
from pagepress.utils import REDACTED


def _log(clock, retention: int = 500, metrics=None) -> tuple[PublishLog, InMemoryMetaStore]:
    meta = InMemoryMetaStore(clock)
    config = PagepressConfig(publish_log_retention=retention, metrics=metrics)
    return PublishLog(meta, config, clock=clock), meta


class TestRecording:
    def test_entry_fields(self, clock):
        audit, _ = _log(clock)
        with correlation_scope("req-1"):
            entry = audit.log_success(7, "pricing", "created", 120)
        assert entry.action == "publish_success"
        assert entry.status == "success"
        assert entry.correlation_id == "req-1"
        assert (entry.page_id, entry.slug, entry.response_time_ms) == (7, "pricing", 120)
        assert entry.context == {"action": "created"}
        assert entry.entry_id == int(clock.now * 1_000_000)

    def test_ids_strictly_increase_when_clock_stalls(self, clock):
        audit, _ = _log(clock)
        ids = [audit.log_start("a").entry_id for _ in range(3)]
        assert ids == sorted(ids)
        assert len(set(ids)) == 3

    def test_keys_are_zero_padded(self, clock):
        audit, meta = _log(clock)
        entry = audit.log_start("a")
        assert meta.keys(LOG_SCOPE, LOG_PREFIX) == [f"{LOG_PREFIX}{entry.entry_id:020d}"]

    def test_context_is_redacted(self, clock):
        audit, _ = _log(clock)
        audit.log_start("a", {"title": "T", "api_key": "secret"})
        stored = audit.recent()[0]
        assert stored.context == {"request": {"title": "T", "api_key": REDACTED}}

    def test_error_entry(self, clock):
        audit, _ = _log(clock)
        entry = audit.log_error("a", "host down", {"code": "HOST_WRITE_FAILED"})
        assert (entry.action, entry.status, entry.message) == ("publish_failed", "error", "host down")
        assert audit.recent(status="error") == [entry]
        assert audit.recent(status="success") == []


class TestRetention:
    def test_oldest_evicted_first(self, clock):
        audit, _ = _log(clock, retention=3)
        for i in range(5):
            clock.advance(1)
            audit.log_start(f"page-{i}")
        assert [entry.slug for entry in audit.recent()] == ["page-4", "page-3", "page-2"]

    def test_eviction_is_metered(self, clock, metrics):
        audit, _ = _log(clock, retention=2, metrics=metrics)
        for _ in range(4):
            audit.log_start("a")
        assert metrics.count("pagepress.publish_log_pruned_total") == 2

    def test_retention_validated(self):
        with pytest.raises(ValueError, match="publish_log_retention"):
            PagepressConfig(publish_log_retention=0)


class TestQueries:
    def test_logs_for_page_newest_first_with_limit(self, clock):
        audit, _ = _log(clock)
        for ms in (10, 20, 30):
            clock.advance(1)
            audit.log_success(1, "a", "updated", ms)
        audit.log_success(2, "b", "created", 99)
        assert [e.response_time_ms for e in audit.logs_for_page(1)] == [30, 20, 10]
        assert [e.response_time_ms for e in audit.logs_for_page(1, limit=2)] == [30, 20]
        assert audit.logs_for_page(3) == []

    def test_logs_by_correlation_oldest_first(self, clock):
        audit, _ = _log(clock)
        with correlation_scope("one"):
            audit.log_start("a")
            audit.log_success(1, "a", "created", 5)
        with correlation_scope("two"):
            audit.log_start("b")
        assert [e.action for e in audit.logs_by_correlation("one")] == ["publish_start", "publish_success"]
        assert audit.logs_by_correlation("missing") == []

    def test_unreadable_entry_skipped(self, clock):
        audit, meta = _log(clock)
        entry = audit.log_start("a")
        meta.set(LOG_SCOPE, f"{LOG_PREFIX}{entry.entry_id + 1:020d}", "{not json")
        assert audit.recent() == [entry]


class TestStatistics:
    def test_counts_and_rates(self, clock):
        audit, _ = _log(clock)
        audit.log_start("a")
        audit.log_success(1, "a", "created", 100)
        audit.log_success(2, "b", "updated", 300)
        audit.log_error("c", "boom")
        stats = audit.statistics()
        assert stats["total_publishes"] == 2
        assert stats["error_count"] == 1
        assert stats["success_rate"] == 66.7
        assert stats["avg_response_time_ms"] == 200
        assert (stats["pages_created"], stats["pages_updated"]) == (1, 1)
        assert [e["slug"] for e in stats["recent_errors"]] == ["c"]

    def test_period_window(self, clock):
        audit, _ = _log(clock)
        audit.log_success(1, "a", "created", 100)
        clock.advance(2 * 86_400)
        assert audit.statistics("day")["total_publishes"] == 0
        assert audit.statistics("day")["success_rate"] == 100.0
        assert audit.statistics("week")["total_publishes"] == 1

    def test_unknown_period(self, clock):
        audit, _ = _log(clock)
        with pytest.raises(ValueError, match="period"):
            audit.statistics("year")


class TestCleanup:
    def test_removes_only_old_entries(self, clock):
        audit, _ = _log(clock)
        audit.log_start("old")
        clock.advance(100)
        audit.log_start("new")
        assert audit.cleanup(older_than_seconds=50) == 1
        assert [e.slug for e in audit.recent()] == ["new"]
        assert audit.cleanup(older_than_seconds=50) == 0
