"""Admission control and metric streams."""

from .metrics import (
    Analytics,
    CacheMetric,
    CacheSummary,
    CostMetric,
    CostSummary,
    MetricsConfig,
    MetricsRecorder,
    PerformanceMetric,
    PerformanceSummary,
    SystemHealthMetric,
    SystemHealthSummary,
    percentile,
)
from .queue import QueuedRequest, RequestScheduler, SchedulerConfig

__all__ = [
    "Analytics",
    "CacheMetric",
    "CacheSummary",
    "CostMetric",
    "CostSummary",
    "MetricsConfig",
    "MetricsRecorder",
    "PerformanceMetric",
    "PerformanceSummary",
    "QueuedRequest",
    "RequestScheduler",
    "SchedulerConfig",
    "SystemHealthMetric",
    "SystemHealthSummary",
    "percentile",
]
