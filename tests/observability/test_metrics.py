#!filepath: tests/observability/test_metrics.py

from otcfeed.observability.metrics import MetricRecorder


def test_metric_record():
    m = MetricRecorder(enabled=True)
    m.record("tick_latency_ms", 3)

    assert "tick_latency_ms" in m.metrics
    assert m.metrics["tick_latency_ms"] == 3


def test_metric_disabled():
    m = MetricRecorder(enabled=False)
    m.record("x", 1)
    m.incr("EUR/USD-OTC", "ticks")

    # Nothing should be recorded
    assert m.metrics == {}
    assert m.count("EUR/USD-OTC", "ticks") == 0


def test_counters():
    m = MetricRecorder()
    m.incr("EUR/USD-OTC", "ticks")
    m.incr("EUR/USD-OTC", "ticks", 2)
    m.incr("GBP/USD-OTC", "failures")

    assert m.count("EUR/USD-OTC", "ticks") == 3
    assert m.snapshot() == {"EUR/USD-OTC": {"ticks": 3}, "GBP/USD-OTC": {"failures": 1}}

    m.reset("EUR/USD-OTC")
    assert m.count("EUR/USD-OTC", "ticks") == 0
    m.log_summary()
