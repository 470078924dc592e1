"""Extraction health monitor.

Keeps a bounded ring buffer of recent :class:`ExtractionEvent` objects plus
per-bucket running aggregates, so memory stays flat regardless of traffic.
"""

from __future__ import annotations

import bisect
import threading
from collections import Counter, OrderedDict, deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional, Union

from newswire.errors import describe, error_kind
from newswire.models.domain import ExtractionEvent, HealthStatus, utcnow
from newswire.utils.logging import get_logger

# Upper edges (ms) of the latency histogram; the last bin is open ended.
LATENCY_BINS_MS = (100, 250, 500, 1_000, 2_000, 3_000, 5_000, 7_500, 10_000, 15_000, 20_000, 30_000, 60_000)
TOP_ERRORS = 5
TOP_SOURCES = 10
MAX_ERROR_LEN = 200


@dataclass
class _Bucket:
    start: int
    total: int = 0
    successes: int = 0
    cached: int = 0
    redirect_ms: float = 0.0
    extraction_ms: float = 0.0
    total_ms: float = 0.0
    max_total_ms: float = 0.0
    histogram: List[int] = field(default_factory=lambda: [0] * (len(LATENCY_BINS_MS) + 1))
    errors: Counter = field(default_factory=Counter)
    error_kinds: Counter = field(default_factory=Counter)
    sources: Counter = field(default_factory=Counter)

    def add(self, event: ExtractionEvent) -> None:
        self.total += 1
        self.cached += int(event.cached)
        self.redirect_ms += event.redirect_time_ms
        self.extraction_ms += event.extraction_time_ms
        self.total_ms += event.total_time_ms
        self.max_total_ms = max(self.max_total_ms, event.total_time_ms)
        self.histogram[bisect.bisect_left(LATENCY_BINS_MS, event.total_time_ms)] += 1
        if event.success:
            self.successes += 1
            if event.final_source_domain:
                self.sources[event.final_source_domain] += 1
        elif event.error:
            self.errors[event.error[:MAX_ERROR_LEN]] += 1
            self.error_kinds[error_kind(event.error)] += 1


def _p95(histogram: List[int], total: int, max_ms: float) -> float:
    if total == 0:
        return 0.0
    threshold = 0.95 * total
    running = 0
    for index, count in enumerate(histogram):
        running += count
        if running >= threshold:
            if index < len(LATENCY_BINS_MS):
                return float(min(LATENCY_BINS_MS[index], max_ms))
            return max_ms
    return max_ms


class ExtractionMonitor:
    def __init__(
        self,
        *,
        ring_capacity: int = 1000,
        bucket_seconds: int = 60,
        retention_hours: int = 48,
        lookback_minutes: int = 60,
        degraded_success_rate: float = 0.8,
        unhealthy_success_rate: float = 0.5,
        degraded_p95_ms: float = 10_000.0,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._events: Deque[ExtractionEvent] = deque(maxlen=ring_capacity)
        self._buckets: "OrderedDict[int, _Bucket]" = OrderedDict()
        self._bucket_seconds = bucket_seconds
        self._retention_seconds = retention_hours * 3600
        self._lookback_ms = lookback_minutes * 60 * 1000
        self._degraded_rate = degraded_success_rate
        self._unhealthy_rate = unhealthy_success_rate
        self._degraded_p95 = degraded_p95_ms
        self._clock = clock
        self._lock = threading.Lock()
        self._logger = get_logger(__name__)

    def record(self, event: ExtractionEvent) -> None:
        ts = int(event.timestamp.timestamp())
        start = ts - ts % self._bucket_seconds
        with self._lock:
            self._events.append(event)
            bucket = self._buckets.get(start)
            if bucket is None:
                bucket = self._buckets[start] = _Bucket(start=start)
                if len(self._buckets) > 1 and start < next(reversed(self._buckets)):
                    # late event for an older bucket; keep keys ordered by start
                    self._buckets = OrderedDict(sorted(self._buckets.items()))
            bucket.add(event)
            self._prune(int(self._clock().timestamp()))
        if not event.success:
            self._logger.debug("monitor.failure", extra={"url": event.url, "error": event.error})

    def record_outcome(
        self,
        url: str,
        success: bool,
        *,
        redirect_time_ms: float = 0.0,
        extraction_time_ms: float = 0.0,
        total_time_ms: Optional[float] = None,
        cached: bool = False,
        final_source_domain: Optional[str] = None,
        extracted_by: Optional[str] = None,
        confidence: Optional[float] = None,
        error: Union[BaseException, str, None] = None,
    ) -> ExtractionEvent:
        if isinstance(error, BaseException):
            error = describe(error)
        event = ExtractionEvent(
            timestamp=self._clock(),
            url=url,
            success=success,
            redirect_time_ms=redirect_time_ms,
            extraction_time_ms=extraction_time_ms,
            total_time_ms=total_time_ms if total_time_ms is not None else redirect_time_ms + extraction_time_ms,
            cached=cached,
            final_source_domain=final_source_domain,
            extracted_by=extracted_by,
            confidence=confidence,
            error=error,
        )
        self.record(event)
        return event

    def _prune(self, now_ts: int) -> None:
        cutoff = now_ts - self._retention_seconds
        while self._buckets:
            oldest = next(iter(self._buckets))
            if oldest >= cutoff - self._bucket_seconds:
                break
            self._buckets.popitem(last=False)

    def _window_buckets(self, window_ms: float) -> Iterable[_Bucket]:
        now_ts = self._clock().timestamp()
        cutoff = now_ts - window_ms / 1000.0
        first = int(cutoff) - int(cutoff) % self._bucket_seconds
        return [b for start, b in self._buckets.items() if start >= first]

    def get_metrics_for_window(self, window_ms: float) -> Dict[str, Any]:
        with self._lock:
            buckets = list(self._window_buckets(window_ms))
            total = sum(b.total for b in buckets)
            successes = sum(b.successes for b in buckets)
            cached = sum(b.cached for b in buckets)
            redirect_ms = sum(b.redirect_ms for b in buckets)
            extraction_ms = sum(b.extraction_ms for b in buckets)
            total_ms = sum(b.total_ms for b in buckets)
            max_ms = max((b.max_total_ms for b in buckets), default=0.0)
            histogram = [sum(col) for col in zip(*(b.histogram for b in buckets))] if buckets else []
            errors: Counter = Counter()
            kinds: Counter = Counter()
            sources: Counter = Counter()
            for b in buckets:
                errors.update(b.errors)
                kinds.update(b.error_kinds)
                sources.update(b.sources)

        def avg(value: float) -> float:
            return round(value / total, 2) if total else 0.0

        return {
            "window_ms": window_ms,
            "total_events": total,
            "successful": successes,
            "failed": total - successes,
            "success_rate": round(successes / total, 4) if total else 0.0,
            "cache_hit_rate": round(cached / total, 4) if total else 0.0,
            "avg_redirect_time_ms": avg(redirect_ms),
            "avg_extraction_time_ms": avg(extraction_ms),
            "avg_total_time_ms": avg(total_ms),
            "p95_total_time_ms": _p95(histogram, total, max_ms),
            "errors_by_kind": dict(kinds),
            "top_errors": [{"error": e, "count": c} for e, c in errors.most_common(TOP_ERRORS)],
            "top_sources": [{"source": s, "count": c} for s, c in sources.most_common(TOP_SOURCES)],
        }

    def get_metrics(self) -> Dict[str, Any]:
        """Aggregates over the whole retention period."""
        return self.get_metrics_for_window(self._retention_seconds * 1000.0)

    def status_for(self, metrics: Dict[str, Any]) -> HealthStatus:
        if metrics["total_events"] == 0:
            return HealthStatus.HEALTHY
        if metrics["success_rate"] < self._unhealthy_rate:
            return HealthStatus.UNHEALTHY
        if metrics["success_rate"] < self._degraded_rate or metrics["p95_total_time_ms"] > self._degraded_p95:
            return HealthStatus.DEGRADED
        return HealthStatus.HEALTHY

    def get_health_check(self, window_ms: Optional[float] = None) -> Dict[str, Any]:
        metrics = self.get_metrics_for_window(window_ms if window_ms is not None else self._lookback_ms)
        status = self.status_for(metrics)
        return {
            "status": status.value,
            "timestamp": self._clock().isoformat(),
            "metrics": metrics,
            "insights": self._insights(metrics),
        }

    def _insights(self, metrics: Dict[str, Any]) -> Dict[str, Any]:
        recommendations: List[str] = []
        performance_issues: List[str] = []
        kinds: Dict[str, int] = metrics["errors_by_kind"]
        dominant = max(kinds.items(), key=lambda kv: kv[1])[0] if kinds else None

        if metrics["total_events"]:
            if metrics["success_rate"] < self._degraded_rate:
                recommendations.append("Success rate is below 80%. Investigate the dominant failure cause.")
            if metrics["cache_hit_rate"] < 0.3:
                recommendations.append("Cache hit rate is low. Consider increasing the redirect cache TTL.")
            if metrics["avg_total_time_ms"] > 10_000:
                recommendations.append("Average extraction time is high (>10s). Consider lowering timeouts.")
            if metrics["avg_redirect_time_ms"] > 5_000:
                performance_issues.append("High redirect resolution time (>5s)")
            if metrics["avg_extraction_time_ms"] > 8_000:
                performance_issues.append("High content extraction time (>8s)")
            if metrics["p95_total_time_ms"] > self._degraded_p95:
                performance_issues.append(f"p95 total latency above {int(self._degraded_p95)}ms")

        return {
            "dominant_failure_cause": dominant,
            "cache_hit_ratio": metrics["cache_hit_rate"],
            "top_errors": metrics["top_errors"],
            "top_sources": metrics["top_sources"],
            "recommendations": recommendations,
            "performance_issues": performance_issues,
        }

    def get_recent_events(self, limit: int = 50) -> List[ExtractionEvent]:
        """Newest first."""
        with self._lock:
            events = list(reversed(self._events))
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[: max(limit, 0)]

    def reset(self) -> None:
        with self._lock:
            self._events.clear()
            self._buckets.clear()
        self._logger.info("monitor.reset")
