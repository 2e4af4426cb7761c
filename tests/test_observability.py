"""Tests for the observability module."""

import json
import logging

import pytest
import structlog
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from src.infrastructure.observability import (
    add_span_attributes,
    add_trace_context,
    configure_logging,
    get_tracer,
    traced,
)

# Module-level setup: configure TracerProvider once before any tests run
_exporter = InMemorySpanExporter()
_provider = TracerProvider()
_provider.add_span_processor(SimpleSpanProcessor(_exporter))
trace.set_tracer_provider(_provider)


@pytest.fixture(autouse=True)
def clear_spans():
    """Clear spans before each test."""
    _exporter.clear()
    yield
    _exporter.clear()


def get_finished_spans():
    """Get finished spans from the module-level exporter."""
    return _exporter.get_finished_spans()


class TestTracedDecorator:
    """Tests for @traced decorator."""

    def test_sync_function_creates_span(self):
        """Sync functions run inside a span named after them."""

        @traced
        def lookup_package():
            return "bali"

        assert lookup_package() == "bali"
        spans = get_finished_spans()
        assert len(spans) == 1
        assert spans[0].name.endswith("lookup_package")

    async def test_async_function_uses_custom_name(self):
        """Async functions honour span_name."""

        @traced(span_name="reference.get_document")
        async def fetch():
            return "catalog"

        assert await fetch() == "catalog"
        spans = get_finished_spans()
        assert [s.name for s in spans] == ["reference.get_document"]

    async def test_exception_is_recorded_and_reraised(self):
        """Failures mark the span as an error and propagate."""

        @traced(span_name="failing")
        async def fail():
            raise ValueError("test error")

        with pytest.raises(ValueError, match="test error"):
            await fail()

        spans = get_finished_spans()
        assert len(spans) == 1
        assert spans[0].status.status_code == trace.StatusCode.ERROR
        assert spans[0].events[0].name == "exception"


class TestAddSpanAttributes:
    """Tests for add_span_attributes function."""

    def test_adds_attributes_to_current_span(self):
        """add_span_attributes should add attributes to current span."""
        tracer = get_tracer("test")

        with tracer.start_as_current_span("test_span"):
            add_span_attributes({"chat.cache_hit": True, "chat.query_length": 42})

        attrs = dict(get_finished_spans()[0].attributes or {})
        assert attrs.get("chat.cache_hit") is True
        assert attrs.get("chat.query_length") == 42

    def test_does_nothing_without_active_span(self):
        """add_span_attributes should not fail without active span."""
        add_span_attributes({"key": "value"})


class TestStructlogProcessor:
    """Tests for structlog trace context processor."""

    def test_adds_trace_context_when_in_span(self):
        """Processor should add trace_id and span_id to event dict."""
        tracer = get_tracer("test")

        with tracer.start_as_current_span("test_span") as span:
            result = add_trace_context(None, "info", {"event": "cache_hit"})
            context = span.get_span_context()

        assert result["trace_id"] == format(context.trace_id, "032x")
        assert result["span_id"] == format(context.span_id, "016x")

    def test_leaves_event_untouched_without_span(self):
        """Events outside any span get no trace fields."""
        result = add_trace_context(None, "info", {"event": "app_started"})

        assert result == {"event": "app_started"}


class TestConfigureLogging:
    """Tests for configure_logging()."""

    @pytest.fixture(autouse=True)
    def restore_logging(self):
        """Put back the root handlers and structlog defaults."""
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers = handlers
        root.setLevel(level)
        structlog.reset_defaults()

    def test_sets_root_level(self):
        """The configured level applies to the root logger."""
        configure_logging("DEBUG")

        assert logging.getLogger().level == logging.DEBUG

    def test_unknown_level_falls_back_to_info(self):
        """Invalid level names do not break startup."""
        configure_logging("CHATTY")

        assert logging.getLogger().level == logging.INFO

    def test_json_logs_include_trace_context(self, capsys):
        """JSON output carries event, level and the active trace id."""
        configure_logging("INFO", json_logs=True)
        tracer = get_tracer("test")

        with tracer.start_as_current_span("chat.answer") as span:
            structlog.get_logger("travelbuddy").info("cache_hit", key_prefix="answer:ab")
            trace_id = format(span.get_span_context().trace_id, "032x")

        line = capsys.readouterr().err.strip().splitlines()[-1]
        payload = json.loads(line)
        assert payload["event"] == "cache_hit"
        assert payload["level"] == "info"
        assert payload["key_prefix"] == "answer:ab"
        assert payload["trace_id"] == trace_id
