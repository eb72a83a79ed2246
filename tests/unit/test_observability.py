"""Unit tests for in-process latency and counter helpers."""

from __future__ import annotations

from parlormcp.observability import counter_snapshot
from parlormcp.observability import increment_counter
from parlormcp.observability import latency_metrics_snapshot
from parlormcp.observability import record_latency
from parlormcp.observability import reset_latency_metrics


class TestObservabilityLatency:
    def setup_method(self):
        reset_latency_metrics()

    def teardown_method(self):
        reset_latency_metrics()

    def test_records_latency_aggregates(self):
        record_latency(operation="mcp.send_user_message", duration_ms=10.0, ok=True)
        record_latency(operation="mcp.send_user_message", duration_ms=30.0, ok=False)

        metrics = latency_metrics_snapshot()["mcp.send_user_message"]
        assert metrics["count"] == 2
        assert metrics["error_count"] == 1
        assert metrics["total_ms"] == 40.0
        assert metrics["avg_ms"] == 20.0
        assert metrics["min_ms"] == 10.0
        assert metrics["max_ms"] == 30.0
        assert metrics["last_ms"] == 30.0

    def test_negative_durations_are_clamped(self):
        record_latency(operation="generator.generate", duration_ms=-5.0)
        assert latency_metrics_snapshot()["generator.generate"]["min_ms"] == 0.0

    def test_reset_clears_all_metrics(self):
        record_latency(operation="orchestrator.response", duration_ms=12.0, ok=True)
        increment_counter("orchestrator.cancelled")
        reset_latency_metrics()
        assert latency_metrics_snapshot() == {}
        assert counter_snapshot() == {}


class TestObservabilityCounters:
    def test_counters_accumulate(self):
        increment_counter("generator.stage.static")
        increment_counter("generator.stage.static", 2)
        increment_counter("orchestrator.cancelled")
        assert counter_snapshot() == {
            "generator.stage.static": 3,
            "orchestrator.cancelled": 1,
        }

    def test_prefix_selects_one_family(self):
        increment_counter("generator.stage.canned")
        increment_counter("generator.stage.static")
        increment_counter("scheduler.ticks")
        assert counter_snapshot("generator.stage.") == {
            "generator.stage.canned": 1,
            "generator.stage.static": 1,
        }
        assert counter_snapshot("nothing.") == {}
