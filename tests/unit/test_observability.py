"""Tests for observability/logger.py and observability/metrics.py"""
import io
import json
import logging
import sys


class TestStructuredFormatter:
    def _get_record(
        self,
        msg,
        level=logging.INFO,
        exc_info=None,
        stack_info=None,
        extra_fields=None,
    ):
        record = logging.LogRecord(
            name="test",
            level=level,
            pathname="",
            lineno=0,
            msg=msg,
            args=(),
            exc_info=exc_info,
        )
        if extra_fields is not None:
            record.extra_fields = extra_fields
        if stack_info is not None:
            record.stack_info = stack_info
        return record

    def test_basic_format(self):
        from pagepress.observability.logger import StructuredFormatter

        fmt = StructuredFormatter()
        result = json.loads(fmt.format(self._get_record("hello world")))
        assert result["message"] == "hello world"
        assert result["level"] == "INFO"
        assert result["logger"] == "test"
        assert "ts" in result
        assert "correlation_id" not in result

    def test_extra_fields_merged(self):
        from pagepress.observability.logger import StructuredFormatter

        fmt = StructuredFormatter()
        record = self._get_record("msg", extra_fields={"page_id": 42, "slug": "home"})
        result = json.loads(fmt.format(record))
        assert result["page_id"] == 42
        assert result["slug"] == "home"

    def test_correlation_id_added_in_scope(self):
        from pagepress.observability.logger import StructuredFormatter, correlation_scope

        fmt = StructuredFormatter()
        with correlation_scope("req-1"):
            result = json.loads(fmt.format(self._get_record("msg")))
        assert result["correlation_id"] == "req-1"

    def test_exception_info_included(self):
        from pagepress.observability.logger import StructuredFormatter

        fmt = StructuredFormatter()
        try:
            raise ValueError("test error")
        except ValueError:
            exc_info = sys.exc_info()
        result = json.loads(fmt.format(self._get_record("error msg", exc_info=exc_info)))
        assert "ValueError" in result["exception"]

    def test_stack_info_included(self):
        from pagepress.observability.logger import StructuredFormatter

        fmt = StructuredFormatter()
        result = json.loads(fmt.format(self._get_record("msg", stack_info="Stack Trace Here")))
        assert result["stack_info"] == "Stack Trace Here"

    def test_non_json_values_stringified(self):
        from pagepress.observability.logger import StructuredFormatter

        fmt = StructuredFormatter()
        result = json.loads(fmt.format(self._get_record("msg", extra_fields={"obj": object()})))
        assert result["obj"].startswith("<object")


class TestCorrelationScope:
    def test_generates_id(self):
        from pagepress.observability import correlation_scope, current_correlation_id

        with correlation_scope() as cid:
            assert len(cid) == 36
            assert current_correlation_id() == cid
        assert current_correlation_id() is None

    def test_nested_scopes_restore(self):
        from pagepress.observability import correlation_scope, current_correlation_id

        with correlation_scope("outer"):
            with correlation_scope("inner"):
                assert current_correlation_id() == "inner"
            assert current_correlation_id() == "outer"

    def test_reset_on_exception(self):
        from pagepress.observability import correlation_scope, current_correlation_id

        try:
            with correlation_scope("boom"):
                raise RuntimeError
        except RuntimeError:
            pass
        assert current_correlation_id() is None


class TestGetLogger:
    def test_returns_logger_with_handler(self):
        from pagepress.observability.logger import get_logger

        logger = get_logger("test.observability.unique1")
        assert isinstance(logger, logging.Logger)
        assert len(logger.handlers) > 0
        assert logger.propagate is False

    def test_string_level(self):
        from pagepress.observability.logger import get_logger

        logger = get_logger("test.observability.unique2", level="WARNING")
        assert logger.level == logging.WARNING

    def test_idempotent_no_duplicate_handlers(self):
        from pagepress.observability.logger import get_logger

        name = "test.observability.unique3"
        handler_count = len(get_logger(name).handlers)
        assert len(get_logger(name).handlers) == handler_count

    def test_custom_stream(self):
        from pagepress.observability.logger import get_logger

        stream = io.StringIO()
        logger = get_logger("test.observability.stream_unique", stream=stream)
        logger.info("test message", extra={"extra_fields": {"key": "val"}})
        line = json.loads(stream.getvalue().strip())
        assert line["message"] == "test message"
        assert line["key"] == "val"


class TestMetrics:
    def test_noop_returns_none(self):
        from pagepress.observability.metrics import NoopMetricsHook

        hook = NoopMetricsHook()
        assert hook.increment("pagepress.publish_total", tags={"action": "created"}) is None
        assert hook.timing("pagepress.publish_duration_ms", 12.5) is None

    def test_resolve_default_is_shared_noop(self):
        from pagepress.observability import MetricsHook, NoopMetricsHook, resolve_metrics

        hook = resolve_metrics(None)
        assert isinstance(hook, NoopMetricsHook)
        assert isinstance(hook, MetricsHook)
        assert resolve_metrics(None) is hook

    def test_resolve_passes_backend_through(self, metrics):
        from pagepress.observability import resolve_metrics

        assert resolve_metrics(metrics) is metrics
