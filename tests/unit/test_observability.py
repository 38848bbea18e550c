"""Unit tests for logging, tracing and metrics helpers."""

import json
import logging

import pytest

from courier_hub.context import client_context
from courier_hub.observability.logging import (
    RequestContextFilter,
    StructuredLogFormatter,
    mask_secret,
)
from courier_hub.observability.metrics import (
    MetricsRegistry,
    get_metrics_registry,
    record_bulk_order,
    record_courier_request,
    record_webhook_event,
)
from courier_hub.observability.telemetry import TelemetryConfig
from courier_hub.observability.tracing import courier_span, get_current_trace_id, traced


def _record(msg: str = "Test message") -> logging.LogRecord:
    return logging.LogRecord(
        name="test",
        level=logging.INFO,
        pathname="test.py",
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
    )


class TestTelemetryConfig:
    """Tests for telemetry configuration."""

    def test_default_config(self):
        config = TelemetryConfig()

        assert config.service_name == "courier-hub"
        assert config.enable_tracing is True
        assert config.trace_sample_rate == 1.0


class TestTracing:
    """Tests for tracing utilities."""

    @pytest.mark.asyncio
    async def test_traced_decorator_async(self):
        @traced(name="async_test")
        async def triple(x):
            return x * 3

        assert await triple(4) == 12

    def test_traced_decorator_reraises(self):
        @traced(name="error_function")
        def fail():
            raise ValueError("Test error")

        with pytest.raises(ValueError):
            fail()

    def test_courier_span_reraises(self):
        with pytest.raises(RuntimeError):
            with courier_span("yalidine", "create_shipment", order_reference=None):
                raise RuntimeError("boom")

    def test_no_trace_outside_span(self):
        assert get_current_trace_id() is None


class TestStructuredLogging:
    """Tests for structured logging."""

    def test_formatter_outputs_json(self):
        data = json.loads(StructuredLogFormatter().format(_record()))

        assert data["message"] == "Test message"
        assert data["level"] == "INFO"
        assert data["logger"] == "test"
        assert "client_id" not in data

    def test_formatter_includes_request_context(self):
        with client_context(7, request_id="req-1"):
            data = json.loads(StructuredLogFormatter().format(_record()))

        assert data["client_id"] == 7
        assert data["request_id"] == "req-1"

    def test_context_filter_defaults(self):
        record = _record()

        assert RequestContextFilter().filter(record) is True
        assert record.client_id == "-"
        assert record.request_id == "-"

    @pytest.mark.parametrize(
        "value,expected",
        [
            (None, "<empty>"),
            ("", "<empty>"),
            ("short", "***"),
            ("yal-token-0123456789", "...6789"),
        ],
    )
    def test_mask_secret(self, value, expected):
        assert mask_secret(value) == expected


class TestMetrics:
    """Tests for metrics recording without an SDK meter provider."""

    def test_global_registry_is_shared(self):
        assert get_metrics_registry() is get_metrics_registry()

    def test_recording_does_not_raise(self):
        record_courier_request("yalidine", "create_shipment", 0.25, "success")
        record_webhook_event("zrexpress", verified=False)
        record_bulk_order("Yalidine", success=True)

    def test_registry_instance(self):
        registry = MetricsRegistry("test_registry")
        registry.record_courier_request("noest", "get_status", 0.1, "error")
