"""Metric streams and analytics.

Four independent append-only streams (performance, cache, cost and system
health) are kept in bounded deques. Records are immutable and pruned by age
whenever a stream is appended to or read. Analytics and recommendations are
computed on demand over a time window.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable, Iterable
import dataclasses
from datetime import date
import logging
import math
import statistics
import time
from typing import Any, Literal
import uuid

from hybrid_grammar import constants

logger = logging.getLogger(__name__)

type MetricKind = Literal["performance", "cache", "cost", "system_health"]
type MetricListener = Callable[[MetricKind, Any], None]


def _metric_id() -> str:
    return uuid.uuid4().hex[:12]


# --- Records ---


@dataclasses.dataclass(frozen=True, slots=True)
class PerformanceMetric:
    id: str
    timestamp: float
    processing_mode: str
    text_length: int
    word_count: int
    processing_time_ms: float
    suggestions_count: int
    cached: bool
    estimated_cost: float
    tier: str
    error_occurred: bool = False
    error_type: str | None = None
    queue_wait_ms: float = 0.0


@dataclasses.dataclass(frozen=True, slots=True)
class CacheMetric:
    id: str
    timestamp: float
    action: str
    cache_type: str
    key_hash: str
    data_size: int = 0
    ttl_ms: float | None = None
    hit_rate: float = 0.0
    size: int = 0
    max_size: int = 0


@dataclasses.dataclass(frozen=True, slots=True)
class CostMetric:
    id: str
    timestamp: float
    provider: Literal["remote", "client"]
    total_tokens: int
    cost: float
    tier: str
    caller_id: str
    model: str | None = None
    input_tokens: int = 0
    output_tokens: int = 0
    currency: str = "USD"
    rate_limit_hit: bool = False
    cost_threshold_exceeded: bool = False


@dataclasses.dataclass(frozen=True, slots=True)
class SystemHealthMetric:
    id: str
    timestamp: float
    active_requests: int
    queue_size: int
    error_rate: float
    avg_response_time_ms: float
    cache_hit_rate: float
    total_cost_today: float
    total_requests_today: int


# --- Analytics ---


@dataclasses.dataclass(frozen=True, slots=True)
class PerformanceSummary:
    total_requests: int
    avg_processing_time_ms: float
    median_processing_time_ms: float
    p95_processing_time_ms: float
    client_only_percentage: float
    server_percentage: float
    error_rate: float
    avg_text_length: float
    avg_suggestions: float
    avg_queue_wait_ms: float


@dataclasses.dataclass(frozen=True, slots=True)
class CacheSummary:
    hit_rate: float
    hits: int
    misses: int
    evictions: int
    total_operations: int
    avg_cache_size: float


@dataclasses.dataclass(frozen=True, slots=True)
class CostSummary:
    total_cost: float
    client_cost: float
    server_cost: float
    avg_cost_per_request: float
    cost_savings_percentage: float
    rate_limit_hit_rate: float
    total_tokens: int


@dataclasses.dataclass(frozen=True, slots=True)
class SystemHealthSummary:
    avg_active_requests: float
    avg_queue_size: float
    avg_error_rate: float
    avg_response_time_ms: float
    avg_cache_hit_rate: float


@dataclasses.dataclass(frozen=True, slots=True)
class Analytics:
    window_ms: float
    performance: PerformanceSummary | None
    cache: CacheSummary | None
    cost: CostSummary | None
    system_health: SystemHealthSummary | None
    recommendations: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


@dataclasses.dataclass(frozen=True, slots=True)
class MetricsConfig:
    """Retention limits and the thresholds recommendations are based on."""

    max_age_seconds: float = constants.METRICS_MAX_AGE_SECONDS
    max_stored: int = constants.METRICS_MAX_STORED
    daily_cost_limit_free: float = constants.DAILY_COST_LIMIT_FREE
    daily_cost_limit_premium: float = constants.DAILY_COST_LIMIT_PREMIUM
    max_cost_per_check: float = constants.MAX_COST_PER_CHECK
    max_processing_time_ms: float = constants.MAX_PROCESSING_TIME_MS
    max_queue_wait_ms: float = constants.MAX_QUEUE_WAIT_MS
    min_cache_hit_rate: float = constants.MIN_CACHE_HIT_RATE

    def daily_limit(self, tier: str) -> float:
        if tier == "premium":
            return self.daily_cost_limit_premium
        return self.daily_cost_limit_free


def percentile(values: Iterable[float], p: float) -> float:
    """Nearest-rank percentile: index ``ceil(p / 100 * n) - 1`` of the sorted values."""
    ordered = sorted(values)
    if not ordered:
        return 0.0
    index = max(0, math.ceil(p / 100 * len(ordered)) - 1)
    return ordered[min(index, len(ordered) - 1)]


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


class MetricsRecorder:
    """Owns the metric streams, daily cost accounting and analytics.

    Args:
        config: Retention limits and thresholds.
        clock: Wall-clock source in seconds; injectable for tests.
    """

    def __init__(
        self,
        config: MetricsConfig | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or MetricsConfig()
        self._clock = clock
        self._performance: deque[PerformanceMetric] = deque(maxlen=self.config.max_stored)
        self._cache: deque[CacheMetric] = deque(maxlen=self.config.max_stored)
        self._cost: deque[CostMetric] = deque(maxlen=self.config.max_stored)
        self._health: deque[SystemHealthMetric] = deque(maxlen=self.config.max_stored)
        self._listeners: list[MetricListener] = []
        self._day = date.fromtimestamp(self._clock())
        self._daily_costs: dict[str, float] = {}
        self._requests_today = 0

    # --- Recording ---

    def record_performance(
        self,
        *,
        processing_mode: str,
        text_length: int,
        word_count: int,
        processing_time_ms: float,
        suggestions_count: int,
        cached: bool = False,
        estimated_cost: float = 0.0,
        tier: str = "free",
        error_occurred: bool = False,
        error_type: str | None = None,
        queue_wait_ms: float = 0.0,
    ) -> PerformanceMetric:
        self._roll_day()
        self._requests_today += 1
        metric = PerformanceMetric(
            id=_metric_id(),
            timestamp=self._clock(),
            processing_mode=processing_mode,
            text_length=text_length,
            word_count=word_count,
            processing_time_ms=processing_time_ms,
            suggestions_count=suggestions_count,
            cached=cached,
            estimated_cost=estimated_cost,
            tier=tier,
            error_occurred=error_occurred,
            error_type=error_type,
            queue_wait_ms=queue_wait_ms,
        )
        if processing_time_ms > self.config.max_processing_time_ms:
            logger.warning(
                "Slow analysis: %.0fms (limit %.0fms)",
                processing_time_ms,
                self.config.max_processing_time_ms,
            )
        if queue_wait_ms > self.config.max_queue_wait_ms:
            logger.warning("Long queue wait: %.0fms", queue_wait_ms)
        self._append("performance", self._performance, metric)
        return metric

    def record_cache_metric(
        self,
        *,
        action: str,
        cache_type: str,
        key_hash: str,
        data_size: int = 0,
        ttl_ms: float | None = None,
        hit_rate: float = 0.0,
        size: int = 0,
        max_size: int = 0,
    ) -> CacheMetric:
        metric = CacheMetric(
            id=_metric_id(),
            timestamp=self._clock(),
            action=action,
            cache_type=cache_type,
            key_hash=key_hash,
            data_size=data_size,
            ttl_ms=ttl_ms,
            hit_rate=hit_rate,
            size=size,
            max_size=max_size,
        )
        self._append("cache", self._cache, metric)
        return metric

    def record_cost(
        self,
        *,
        provider: Literal["remote", "client"],
        total_tokens: int,
        cost: float,
        tier: str = "free",
        caller_id: str = "anonymous",
        model: str | None = None,
        input_tokens: int = 0,
        output_tokens: int = 0,
        rate_limit_hit: bool = False,
    ) -> CostMetric:
        """Record spend and add it to the caller's running daily total."""
        self._roll_day()
        spent = self._daily_costs.get(caller_id, 0.0) + cost
        self._daily_costs[caller_id] = spent
        metric = CostMetric(
            id=_metric_id(),
            timestamp=self._clock(),
            provider=provider,
            total_tokens=total_tokens,
            cost=cost,
            tier=tier,
            caller_id=caller_id,
            model=model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            rate_limit_hit=rate_limit_hit,
            cost_threshold_exceeded=(
                cost > self.config.max_cost_per_check
                or spent > self.config.daily_limit(tier)
            ),
        )
        if metric.cost_threshold_exceeded:
            logger.warning("Cost threshold exceeded for %r (%s): $%.4f", caller_id, tier, spent)
        self._append("cost", self._cost, metric)
        return metric

    def record_system_health(
        self, *, active_requests: int, queue_size: int
    ) -> SystemHealthMetric:
        """Sample health using the last minute of performance and cache records."""
        self._roll_day()
        now = self._clock()
        recent_perf = [m for m in self._performance if m.timestamp >= now - 60]
        recent_cache = [m for m in self._cache if m.timestamp >= now - 60]
        hits = sum(1 for m in recent_cache if m.action == "hit")
        lookups = hits + sum(1 for m in recent_cache if m.action == "miss")
        metric = SystemHealthMetric(
            id=_metric_id(),
            timestamp=now,
            active_requests=active_requests,
            queue_size=queue_size,
            error_rate=(
                sum(1 for m in recent_perf if m.error_occurred) / len(recent_perf) * 100
                if recent_perf
                else 0.0
            ),
            avg_response_time_ms=_mean([m.processing_time_ms for m in recent_perf]),
            cache_hit_rate=hits / lookups * 100 if lookups else 0.0,
            total_cost_today=self.total_cost_today(),
            total_requests_today=self._requests_today,
        )
        self._append("system_health", self._health, metric)
        return metric

    # --- Daily accounting ---

    def daily_cost(self, caller_id: str) -> float:
        self._roll_day()
        return self._daily_costs.get(caller_id, 0.0)

    def total_cost_today(self) -> float:
        self._roll_day()
        return sum(self._daily_costs.values())

    @property
    def requests_today(self) -> int:
        self._roll_day()
        return self._requests_today

    def _roll_day(self) -> None:
        today = date.fromtimestamp(self._clock())
        if today != self._day:
            logger.info("Resetting daily cost counters for %s", today.isoformat())
            self._day = today
            self._daily_costs.clear()
            self._requests_today = 0

    # --- Listeners ---

    def add_listener(self, listener: MetricListener) -> Callable[[], None]:
        """Subscribe to every new record; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # --- Queries ---

    def performance_metrics(self) -> tuple[PerformanceMetric, ...]:
        self._prune_all()
        return tuple(self._performance)

    def cache_metrics(self) -> tuple[CacheMetric, ...]:
        self._prune_all()
        return tuple(self._cache)

    def cost_metrics(self) -> tuple[CostMetric, ...]:
        self._prune_all()
        return tuple(self._cost)

    def system_health_metrics(self) -> tuple[SystemHealthMetric, ...]:
        self._prune_all()
        return tuple(self._health)

    def get_analytics(self, window_ms: float = 3_600_000) -> Analytics:
        """Summaries and recommendations over the trailing `window_ms`."""
        self._prune_all()
        cutoff = self._clock() - window_ms / 1000
        perf = [m for m in self._performance if m.timestamp >= cutoff]
        cache = [m for m in self._cache if m.timestamp >= cutoff]
        cost = [m for m in self._cost if m.timestamp >= cutoff]
        health = [m for m in self._health if m.timestamp >= cutoff]
        return Analytics(
            window_ms=window_ms,
            performance=self._summarize_performance(perf),
            cache=self._summarize_cache(cache),
            cost=self._summarize_cost(cost),
            system_health=self._summarize_health(health),
            recommendations=tuple(self._recommendations(perf, cache, cost, health)),
        )

    def export_metrics(self) -> dict[str, Any]:
        """All retained records and the active config as plain data."""
        self._prune_all()
        return {
            "performance": [dataclasses.asdict(m) for m in self._performance],
            "cache": [dataclasses.asdict(m) for m in self._cache],
            "cost": [dataclasses.asdict(m) for m in self._cost],
            "system_health": [dataclasses.asdict(m) for m in self._health],
            "config": dataclasses.asdict(self.config),
            "exported_at": self._clock(),
        }

    def reset(self) -> None:
        """Drop every record and daily counter; listeners are kept."""
        self._performance.clear()
        self._cache.clear()
        self._cost.clear()
        self._health.clear()
        self._daily_costs.clear()
        self._requests_today = 0

    # --- Summaries ---

    @staticmethod
    def _summarize_performance(metrics: list[PerformanceMetric]) -> PerformanceSummary | None:
        if not metrics:
            return None
        n = len(metrics)
        times = [m.processing_time_ms for m in metrics]
        return PerformanceSummary(
            total_requests=n,
            avg_processing_time_ms=_mean(times),
            median_processing_time_ms=statistics.median(times),
            p95_processing_time_ms=percentile(times, 95),
            client_only_percentage=sum(m.processing_mode == "client" for m in metrics) / n * 100,
            server_percentage=sum(m.processing_mode == "hybrid" for m in metrics) / n * 100,
            error_rate=sum(m.error_occurred for m in metrics) / n * 100,
            avg_text_length=_mean([m.text_length for m in metrics]),
            avg_suggestions=_mean([m.suggestions_count for m in metrics]),
            avg_queue_wait_ms=_mean([m.queue_wait_ms for m in metrics]),
        )

    @staticmethod
    def _summarize_cache(metrics: list[CacheMetric]) -> CacheSummary | None:
        if not metrics:
            return None
        hits = sum(m.action == "hit" for m in metrics)
        misses = sum(m.action == "miss" for m in metrics)
        return CacheSummary(
            hit_rate=hits / (hits + misses) * 100 if hits + misses else 0.0,
            hits=hits,
            misses=misses,
            evictions=sum(m.action == "evict" for m in metrics),
            total_operations=len(metrics),
            avg_cache_size=_mean([m.size for m in metrics]),
        )

    @staticmethod
    def _summarize_cost(metrics: list[CostMetric]) -> CostSummary | None:
        if not metrics:
            return None
        total = sum(m.cost for m in metrics)
        client = [m for m in metrics if m.provider == "client"]
        return CostSummary(
            total_cost=total,
            client_cost=sum(m.cost for m in client),
            server_cost=sum(m.cost for m in metrics if m.provider == "remote"),
            avg_cost_per_request=total / len(metrics),
            # Share of requests served locally at no remote cost
            cost_savings_percentage=len(client) / len(metrics) * 100,
            rate_limit_hit_rate=sum(m.rate_limit_hit for m in metrics) / len(metrics) * 100,
            total_tokens=sum(m.total_tokens for m in metrics),
        )

    @staticmethod
    def _summarize_health(metrics: list[SystemHealthMetric]) -> SystemHealthSummary | None:
        if not metrics:
            return None
        return SystemHealthSummary(
            avg_active_requests=_mean([m.active_requests for m in metrics]),
            avg_queue_size=_mean([m.queue_size for m in metrics]),
            avg_error_rate=_mean([m.error_rate for m in metrics]),
            avg_response_time_ms=_mean([m.avg_response_time_ms for m in metrics]),
            avg_cache_hit_rate=_mean([m.cache_hit_rate for m in metrics]),
        )

    def _recommendations(
        self,
        perf: list[PerformanceMetric],
        cache: list[CacheMetric],
        cost: list[CostMetric],
        health: list[SystemHealthMetric],
    ) -> list[str]:
        out: list[str] = []

        if perf:
            if _mean([m.processing_time_ms for m in perf]) > self.config.max_processing_time_ms:
                out.append("Consider increasing client-side processing to reduce latency")
            if sum(m.error_occurred for m in perf) / len(perf) * 100 > constants.MAX_ERROR_RATE:
                out.append("Error rate is high. Check remote service health and fallbacks")

        hits = sum(m.action == "hit" for m in cache)
        lookups = hits + sum(m.action == "miss" for m in cache)
        if lookups and hits / lookups * 100 < self.config.min_cache_hit_rate:
            out.append(
                "Cache hit rate below threshold. Consider adjusting cache TTL "
                "or key generation strategy"
            )

        total_cost = sum(m.cost for m in cost)
        server_cost = sum(m.cost for m in cost if m.provider == "remote")
        if total_cost > 0 and server_cost / total_cost > constants.MAX_SERVER_COST_SHARE:
            out.append(
                "Server cost share above 30%. Consider increasing client-side processing"
            )

        if health and _mean([m.queue_size for m in health]) > constants.MAX_AVG_QUEUE_SIZE:
            out.append(
                "Average queue size high. Consider increasing concurrent request limits"
            )
        return out

    # --- Internals ---

    def _append(self, kind: MetricKind, stream: deque[Any], metric: Any) -> None:
        stream.append(metric)
        self._prune(stream)
        for listener in list(self._listeners):
            try:
                listener(kind, metric)
            except Exception as e:
                logger.error("Metric listener failed: %s", e, exc_info=True)

    def _prune(self, stream: deque[Any]) -> None:
        cutoff = self._clock() - self.config.max_age_seconds
        while stream and stream[0].timestamp < cutoff:
            stream.popleft()

    def _prune_all(self) -> None:
        for stream in (self._performance, self._cache, self._cost, self._health):
            self._prune(stream)
