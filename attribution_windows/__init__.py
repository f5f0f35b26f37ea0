"""
Attribution Windows: stable / recent / total period metrics.

Splits per-day performance into a stable window (safe from conversion
attribution delay) and a recent window (possibly incomplete).
"""

from .periods import (
    PeriodMetrics,
    aggregate_rows,
    calculate_period_metrics,
    create_empty_period_metrics,
    merge_period_metrics,
)
from .windows import (
    DEFAULT_METRICS_BUILD_CONFIG,
    AttributionAwareMetrics,
    DailyPerformanceRow,
    EntityType,
    MetricsBuildConfig,
    build_attribution_aware_metrics,
    build_from_cluster_metrics,
    build_from_keyword_metrics,
)

__all__ = [
    'PeriodMetrics',
    'aggregate_rows',
    'calculate_period_metrics',
    'create_empty_period_metrics',
    'merge_period_metrics',
    'DEFAULT_METRICS_BUILD_CONFIG',
    'AttributionAwareMetrics',
    'DailyPerformanceRow',
    'EntityType',
    'MetricsBuildConfig',
    'build_attribution_aware_metrics',
    'build_from_cluster_metrics',
    'build_from_keyword_metrics',
]
