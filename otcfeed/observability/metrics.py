#!filepath: otcfeed/observability/metrics.py
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict

from otcfeed.utils.logger import logs


@dataclass
class MetricRecorder:
    """
    Per-symbol counters (ticks, failures, skips) plus last-value gauges.
    Written from the event loop only.
    """

    enabled: bool = True
    metrics: Dict[str, Any] = field(default_factory=dict)
    counters: Dict[str, Dict[str, int]] = field(default_factory=lambda: defaultdict(dict))

    def record(self, name: str, value: Any):
        if not self.enabled:
            return
        self.metrics[name] = value
        logs.debug(f"[Metric] {name} = {value}")

    def incr(self, symbol: str, name: str, n: int = 1) -> None:
        if not self.enabled:
            return
        bucket = self.counters[symbol]
        bucket[name] = bucket.get(name, 0) + n

    def count(self, symbol: str, name: str) -> int:
        return self.counters.get(symbol, {}).get(name, 0)

    def reset(self, symbol: str) -> None:
        self.counters.pop(symbol, None)

    def snapshot(self) -> Dict[str, Dict[str, int]]:
        return {s: dict(c) for s, c in self.counters.items()}

    def log_summary(self, prefix: str = "[Diagnostics]") -> None:
        if not self.enabled:
            return
        for symbol in sorted(self.counters):
            c = self.counters[symbol]
            parts = ", ".join(f"{k}={v}" for k, v in sorted(c.items()))
            logs.info(f"{prefix} {symbol}: {parts}")
