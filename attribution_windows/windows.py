"""
Window splitter: stable / recent / total spans relative to a reference date.

Conversions are attributed 2-3 days after the click, so the most recent days
understate performance. Daily rows are split into:

  recent: [reference - recent_days, reference)        possibly incomplete
  stable: [reference - total_days, reference - recent_days)
  total:  stable + recent (always re-derived, never read from input)

Rows dated on or after the reference date are dropped (same-day data is never
complete), as are rows older than reference - total_days.

Example (recent_days=3, total_days=30, reference 2024-01-15):
  2024-01-12 .. 2024-01-14 -> recent
  2023-12-16 .. 2024-01-11 -> stable
  2023-12-15 and older     -> excluded
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Union

from .periods import (
    COUNTER_FIELDS,
    CounterSource,
    PeriodMetrics,
    aggregate_rows,
    create_empty_period_metrics,
    merge_period_metrics,
    period_from_counters,
)


class EntityType(str, Enum):
    KEYWORD = "KEYWORD"
    SEARCH_TERM_CLUSTER = "SEARCH_TERM_CLUSTER"


@dataclass(frozen=True)
class MetricsBuildConfig:
    recent_days: int = 3
    total_days: int = 30

    def __post_init__(self) -> None:
        if self.recent_days < 0:
            raise ValueError(f"recent_days must be >= 0, got {self.recent_days}")
        if self.total_days < self.recent_days:
            raise ValueError(
                f"total_days ({self.total_days}) must be >= recent_days ({self.recent_days})"
            )

    @property
    def stable_days(self) -> int:
        return self.total_days - self.recent_days


DEFAULT_METRICS_BUILD_CONFIG = MetricsBuildConfig()


@dataclass(frozen=True)
class DailyPerformanceRow:
    date: date
    impressions: float = 0
    clicks: float = 0
    conversions: float = 0
    cost: float = 0.0
    sales: float = 0.0

    @classmethod
    def from_dict(cls, row: Mapping[str, Any]) -> "DailyPerformanceRow":
        values = {name: row.get(name) or 0 for name in COUNTER_FIELDS}
        return cls(date=to_date(row["date"]), **values)


@dataclass(frozen=True)
class AttributionAwareMetrics:
    """Stable / recent / total summaries for one keyword or search-term cluster."""
    asin: str
    entity_id: str
    entity_type: EntityType
    stable: PeriodMetrics
    recent: PeriodMetrics
    total: PeriodMetrics
    stable_days: int
    recent_days: int
    target_cpa: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "entity_type", EntityType(self.entity_type))

    def to_dict(self) -> dict:
        return {
            "asin": self.asin,
            "entity_id": self.entity_id,
            "entity_type": self.entity_type.value,
            "stable": self.stable.to_dict(),
            "recent": self.recent.to_dict(),
            "total": self.total.to_dict(),
            "stable_days": self.stable_days,
            "recent_days": self.recent_days,
            "target_cpa": self.target_cpa,
        }


def to_date(v: Any) -> date:
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    if isinstance(v, str):
        # accepts YYYY-MM-DD or timestamp-like; take first 10 chars
        return date.fromisoformat(v.strip()[:10])
    raise TypeError(f"date must be date/datetime/str, got {type(v)}")


def _as_row(row: Union[DailyPerformanceRow, Mapping[str, Any]]) -> DailyPerformanceRow:
    if isinstance(row, DailyPerformanceRow):
        return row
    return DailyPerformanceRow.from_dict(row)


def build_attribution_aware_metrics(
    asin: str,
    entity_id: str,
    entity_type: Union[EntityType, str],
    daily_rows: Iterable[Union[DailyPerformanceRow, Mapping[str, Any]]],
    target_cpa: float,
    reference_date: Optional[Union[date, datetime, str]] = None,
    config: MetricsBuildConfig = DEFAULT_METRICS_BUILD_CONFIG,
) -> AttributionAwareMetrics:
    """
    Split daily rows into stable/recent/total around reference_date.

    Input order does not matter. reference_date defaults to today; a datetime
    is truncated to its calendar date.
    """
    ref = to_date(reference_date) if reference_date is not None else date.today()
    recent_boundary = ref - timedelta(days=config.recent_days)
    total_boundary = ref - timedelta(days=config.total_days)

    stable_rows = []
    recent_rows = []
    for raw in daily_rows:
        row = _as_row(raw)
        if row.date < total_boundary or row.date >= ref:
            continue
        if row.date >= recent_boundary:
            recent_rows.append(row)
        else:
            stable_rows.append(row)

    stable = aggregate_rows(stable_rows)
    recent = aggregate_rows(recent_rows)

    return AttributionAwareMetrics(
        asin=asin,
        entity_id=entity_id,
        entity_type=EntityType(entity_type),
        stable=stable,
        recent=recent,
        total=merge_period_metrics(stable, recent),
        stable_days=config.stable_days,
        recent_days=config.recent_days,
        target_cpa=target_cpa,
    )


def build_from_keyword_metrics(
    asin: str,
    keyword_id: str,
    metrics_7d_excl_recent: CounterSource,
    metrics_last_3d: CounterSource,
    metrics_7d: CounterSource,
    target_cpa: float,
    stable_days: int = 4,
    recent_days: int = 3,
) -> AttributionAwareMetrics:
    """
    Wrap keyword rollups that are already split upstream.

    stable <- 7d excluding the last 3 days, recent <- last 3 days,
    total <- the 7d rollup as supplied. Keeping total consistent with
    stable + recent is the caller's job here.
    """
    return AttributionAwareMetrics(
        asin=asin,
        entity_id=keyword_id,
        entity_type=EntityType.KEYWORD,
        stable=period_from_counters(metrics_7d_excl_recent),
        recent=period_from_counters(metrics_last_3d),
        total=period_from_counters(metrics_7d),
        stable_days=stable_days,
        recent_days=recent_days,
        target_cpa=target_cpa,
    )


def build_from_cluster_metrics(
    asin: str,
    cluster_id: str,
    stable_metrics: CounterSource,
    recent_metrics: Optional[CounterSource],
    target_cpa: float,
    stable_days: int = 27,
    recent_days: int = 3,
) -> AttributionAwareMetrics:
    """Search-term clusters rarely have daily rows; use pre-aggregated spans."""
    stable = period_from_counters(stable_metrics)
    if recent_metrics is None:
        recent = create_empty_period_metrics()
    else:
        recent = period_from_counters(recent_metrics)

    return AttributionAwareMetrics(
        asin=asin,
        entity_id=cluster_id,
        entity_type=EntityType.SEARCH_TERM_CLUSTER,
        stable=stable,
        recent=recent,
        total=merge_period_metrics(stable, recent),
        stable_days=stable_days,
        recent_days=recent_days,
        target_cpa=target_cpa,
    )
