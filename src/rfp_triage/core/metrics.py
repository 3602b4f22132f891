"""
In-memory metrics for /metrics endpoint (rough p50/p95 + fallback counts).
Why: quick visibility into how often flows degrade, without Prometheus.
"""

from collections import deque
from typing import Deque, Dict, List

_MAX_LATENCY_SAMPLES = 1000


def _percentile(values: List[int], p: float) -> int:
    if not values:
        return 0
    idx = max(0, min(len(values) - 1, int(len(values) * p)))
    return sorted(values)[idx]


class _Metrics:
    def __init__(self) -> None:
        self.total_requests = 0
        self.total_errors = 0
        self.guarded_successes = 0
        self.fallbacks_timeout = 0
        self.fallbacks_error = 0
        self._latencies: Deque[int] = deque(maxlen=_MAX_LATENCY_SAMPLES)

    def increment_requests(self) -> None:
        self.total_requests += 1

    def increment_errors(self) -> None:
        self.total_errors += 1

    def record_latency(self, ms: int) -> None:
        self._latencies.append(ms)

    def record_guarded_success(self) -> None:
        self.guarded_successes += 1

    def record_fallback(self, timed_out: bool) -> None:
        if timed_out:
            self.fallbacks_timeout += 1
        else:
            self.fallbacks_error += 1

    def snapshot(self) -> Dict[str, int]:
        lat = list(self._latencies)
        return {
            "total_requests": self.total_requests,
            "total_errors": self.total_errors,
            "p50_ms": _percentile(lat, 0.50),
            "p95_ms": _percentile(lat, 0.95),
            "guarded_successes": self.guarded_successes,
            "fallbacks_timeout": self.fallbacks_timeout,
            "fallbacks_error": self.fallbacks_error,
        }


metrics = _Metrics()
