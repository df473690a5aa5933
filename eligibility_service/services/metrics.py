"""
Metrics Collection Service.

In-process counters and timers for the eligibility read path, exported in
Prometheus text format on ``/metrics``. Updates are synchronous, so the
collector is safe to share between request tasks on one event loop.
"""

import time
from collections import deque

from pydantic import BaseModel

# Metric names
ELIGIBILITY_CHECKS = "eligibility_checks_total"
CACHE_HITS = "eligibility_cache_hits_total"
CACHE_MISSES = "eligibility_cache_misses_total"
DATABASE_QUERIES = "database_queries_total"
REQUEST_DURATION = "eligibility_request_duration_ms"
SLA_BREACHES = "eligibility_sla_breaches_total"


class TimerStats(BaseModel):
    """Timer statistics."""

    name: str
    count: int = 0
    total_ms: float = 0.0
    min_ms: float = 0.0
    max_ms: float = 0.0
    avg_ms: float = 0.0
    p50_ms: float = 0.0
    p90_ms: float = 0.0
    p95_ms: float = 0.0
    p99_ms: float = 0.0


class MetricsCollector:
    """Counter and timer registry."""

    def __init__(self, history_size: int = 10000):
        self._history_size = history_size
        self._counters: dict[str, int] = {}
        self._timers: dict[str, deque[float]] = {}
        self._start_time = time.perf_counter()

    # =========================================================================
    # Counter Operations
    # =========================================================================

    def increment(self, name: str, value: int = 1, tags: dict[str, str] | None = None) -> None:
        """Increment a counter."""
        key = self._make_key(name, tags)
        self._counters[key] = self._counters.get(key, 0) + value

    def get_counter(self, name: str, tags: dict[str, str] | None = None) -> int:
        """Get counter value."""
        return self._counters.get(self._make_key(name, tags), 0)

    def get_labelled(self, name: str, label: str) -> dict[str, int]:
        """All values of a counter keyed by one of its labels."""
        values: dict[str, int] = {}
        prefix = f"{name}|"
        for key, count in self._counters.items():
            if not key.startswith(prefix):
                continue
            for pair in key[len(prefix):].split(","):
                tag, _, tag_value = pair.partition("=")
                if tag == label:
                    values[tag_value] = values.get(tag_value, 0) + count
        return values

    # =========================================================================
    # Timer Operations
    # =========================================================================

    def record_time(self, name: str, duration_ms: float, tags: dict[str, str] | None = None) -> None:
        """Record a timing measurement."""
        key = self._make_key(name, tags)
        if key not in self._timers:
            self._timers[key] = deque(maxlen=self._history_size)
        self._timers[key].append(duration_ms)

    def get_timer_stats(self, name: str, tags: dict[str, str] | None = None) -> TimerStats:
        """Get timer statistics."""
        times = list(self._timers.get(self._make_key(name, tags), []))
        if not times:
            return TimerStats(name=name)

        sorted_times = sorted(times)
        count = len(times)
        return TimerStats(
            name=name,
            count=count,
            total_ms=sum(times),
            min_ms=sorted_times[0],
            max_ms=sorted_times[-1],
            avg_ms=sum(times) / count,
            p50_ms=self._percentile(sorted_times, 50),
            p90_ms=self._percentile(sorted_times, 90),
            p95_ms=self._percentile(sorted_times, 95),
            p99_ms=self._percentile(sorted_times, 99),
        )

    # =========================================================================
    # Derived values
    # =========================================================================

    @property
    def uptime_seconds(self) -> float:
        return time.perf_counter() - self._start_time

    def cache_hit_rate(self) -> tuple[float, float]:
        """(hit rate, miss rate) over all cache-aside lookups."""
        hits = self.get_counter(CACHE_HITS)
        misses = self.get_counter(CACHE_MISSES)
        total = hits + misses
        if total == 0:
            return 0.0, 0.0
        return hits / total, misses / total

    # =========================================================================
    # Utility Methods
    # =========================================================================

    def _make_key(self, name: str, tags: dict[str, str] | None = None) -> str:
        """Create unique key from name and tags."""
        if not tags:
            return name
        tag_str = ",".join(f"{k}={v}" for k, v in sorted(tags.items()))
        return f"{name}|{tag_str}"

    def _percentile(self, sorted_values: list[float], p: float) -> float:
        """Calculate percentile from sorted values (linear interpolation)."""
        if not sorted_values:
            return 0.0

        k = (len(sorted_values) - 1) * p / 100
        f = int(k)
        c = f + 1
        if c >= len(sorted_values):
            return sorted_values[-1]
        return sorted_values[f] + (k - f) * (sorted_values[c] - sorted_values[f])

    @staticmethod
    def _prometheus_name(key: str, extra: dict[str, str] | None = None) -> str:
        name, _, tag_str = key.partition("|")
        labels = [pair.split("=", 1) for pair in tag_str.split(",") if pair]
        labels.extend((extra or {}).items())
        if not labels:
            return name
        rendered = ",".join(f'{k}="{v}"' for k, v in labels)
        return f"{name}{{{rendered}}}"

    def export_prometheus(self) -> str:
        """Export metrics in Prometheus text format."""
        lines = []

        for key, value in sorted(self._counters.items()):
            lines.append(f"{self._prometheus_name(key)} {value}")

        for key in sorted(self._timers):
            name, _, tag_str = key.partition("|")
            tags = dict(pair.split("=", 1) for pair in tag_str.split(",") if pair)
            stats = self.get_timer_stats(name, tags or None)
            lines.append(f"{self._prometheus_name(name + '_count|' + tag_str)} {stats.count}")
            lines.append(f"{self._prometheus_name(name + '_sum|' + tag_str)} {stats.total_ms}")
            for quantile, value in (
                ("0.5", stats.p50_ms),
                ("0.9", stats.p90_ms),
                ("0.95", stats.p95_ms),
                ("0.99", stats.p99_ms),
            ):
                lines.append(f"{self._prometheus_name(key, {'quantile': quantile})} {value}")

        return "\n".join(lines) + "\n" if lines else ""
