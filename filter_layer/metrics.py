"""
Metrics and Observability

Track extraction outcomes, fallback usage and filter popularity for the
metrics endpoints.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from collections import Counter, deque
from datetime import datetime
import threading
import time


@dataclass
class ExtractionMetrics:
    """Aggregated extraction metrics."""
    total_queries: int = 0
    strategy_counts: Counter = field(default_factory=Counter)
    latency_sum_ms: float = 0.0
    fallback_count: int = 0
    error_count: int = 0
    rejected_sum: int = 0

    # Usage of catalog filters in returned criteria
    filter_usage: Counter = field(default_factory=Counter)

    @property
    def avg_latency_ms(self) -> float:
        if self.total_queries == 0:
            return 0.0
        return self.latency_sum_ms / self.total_queries

    @property
    def fallback_rate(self) -> float:
        if self.total_queries == 0:
            return 0.0
        return self.fallback_count / self.total_queries

    @property
    def error_rate(self) -> float:
        if self.total_queries == 0:
            return 0.0
        return self.error_count / self.total_queries

    @property
    def avg_rejected(self) -> float:
        if self.total_queries == 0:
            return 0.0
        return self.rejected_sum / self.total_queries


@dataclass
class QueryLogEntry:
    """Single query log entry."""
    timestamp: str
    query: str
    strategy: str
    latency_ms: float
    filter_count: int
    rejected_count: int
    error: Optional[str] = None


class MetricsCollector:
    """
    Collect and aggregate extraction metrics.

    Safe to share between the request threads of the API server.
    """

    def __init__(self, max_log_size: int = 1000):
        self.metrics = ExtractionMetrics()
        self.query_log: deque = deque(maxlen=max_log_size)
        self.start_time = time.time()
        self._lock = threading.Lock()

    def record_extraction(
        self,
        query: str,
        result: Any,  # ExtractionResult
        latency_ms: float,
    ) -> None:
        """Record an extraction event."""
        entry = QueryLogEntry(
            timestamp=datetime.now().isoformat(),
            query=query,
            strategy=result.strategy.value,
            latency_ms=latency_ms,
            filter_count=result.filter_count,
            rejected_count=result.rejected_filter_count,
            error=result.error,
        )

        with self._lock:
            self.metrics.total_queries += 1
            self.metrics.strategy_counts[entry.strategy] += 1
            self.metrics.latency_sum_ms += latency_ms
            self.metrics.rejected_sum += result.rejected_filter_count
            if result.used_fallback:
                self.metrics.fallback_count += 1
            if result.error:
                self.metrics.error_count += 1

            for instance in result.extracted_criteria:
                label = instance.get("label")
                if label:
                    self.metrics.filter_usage[label] += 1

            self.query_log.append(entry)

    def get_summary(self) -> Dict[str, Any]:
        """Get metrics summary."""
        uptime_hours = (time.time() - self.start_time) / 3600

        with self._lock:
            return {
                "uptime_hours": round(uptime_hours, 2),
                "total_queries": self.metrics.total_queries,
                "avg_latency_ms": round(self.metrics.avg_latency_ms, 1),
                "fallback_rate": round(self.metrics.fallback_rate, 3),
                "error_rate": round(self.metrics.error_rate, 3),
                "avg_rejected_filters": round(self.metrics.avg_rejected, 2),
                "strategy_distribution": dict(self.metrics.strategy_counts),
            }

    def get_filter_usage(self, limit: int = 10) -> List[Dict]:
        """Most used filter labels."""
        with self._lock:
            return [
                {"label": label, "count": count}
                for label, count in self.metrics.filter_usage.most_common(limit)
            ]

    def get_recent_queries(self, limit: int = 20) -> List[Dict]:
        with self._lock:
            recent = list(self.query_log)[-limit:]
        return [
            {
                "timestamp": q.timestamp,
                "query": q.query[:100],  # Truncate for display
                "strategy": q.strategy,
                "latency_ms": round(q.latency_ms, 1),
                "filter_count": q.filter_count,
                "rejected": q.rejected_count,
                "error": q.error,
            }
            for q in recent
        ]

    def reset(self) -> None:
        """Reset all metrics."""
        with self._lock:
            self.metrics = ExtractionMetrics()
            self.query_log.clear()
            self.start_time = time.time()


# Global metrics instance
_global_metrics: Optional[MetricsCollector] = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector."""
    global _global_metrics
    if _global_metrics is None:
        _global_metrics = MetricsCollector()
    return _global_metrics
