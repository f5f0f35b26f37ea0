"""
Period metrics: one fixed statistical summary per span of days.

Counters (impressions, clicks, conversions, cost, sales) are summed; efficiency
metrics are ratio-of-sums over the span and are derived on read:

  ctr  = clicks / impressions       (None when impressions == 0)
  cvr  = conversions / clicks       (None when clicks == 0)
  acos = cost / sales               (None when sales == 0)
  cpc  = cost / clicks              (None when clicks == 0)
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional, Union


COUNTER_FIELDS = ("impressions", "clicks", "conversions", "cost", "sales")


def _ratio(numerator: float, denominator: float) -> Optional[float]:
    if denominator > 0:
        return numerator / denominator
    return None


@dataclass(frozen=True)
class PeriodMetrics:
    """Raw counters for one span. Derived rates are properties, never stored."""
    impressions: float = 0
    clicks: float = 0
    conversions: float = 0
    cost: float = 0.0
    sales: float = 0.0

    def __post_init__(self) -> None:
        for name in COUNTER_FIELDS:
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative, got {getattr(self, name)}")

    @property
    def ctr(self) -> Optional[float]:
        return _ratio(self.clicks, self.impressions)

    @property
    def cvr(self) -> Optional[float]:
        return _ratio(self.conversions, self.clicks)

    @property
    def acos(self) -> Optional[float]:
        return _ratio(self.cost, self.sales)

    @property
    def cpc(self) -> Optional[float]:
        return _ratio(self.cost, self.clicks)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "impressions": self.impressions,
            "clicks": self.clicks,
            "conversions": self.conversions,
            "cost": self.cost,
            "sales": self.sales,
            "ctr": self.ctr,
            "cvr": self.cvr,
            "acos": self.acos,
            "cpc": self.cpc,
        }


def create_empty_period_metrics() -> PeriodMetrics:
    return PeriodMetrics()


def calculate_period_metrics(
    impressions: float,
    clicks: float,
    conversions: float,
    cost: float,
    sales: float,
) -> PeriodMetrics:
    return PeriodMetrics(
        impressions=impressions,
        clicks=clicks,
        conversions=conversions,
        cost=cost,
        sales=sales,
    )


def merge_period_metrics(a: PeriodMetrics, b: PeriodMetrics) -> PeriodMetrics:
    """Field-wise sum of two spans; rates are re-derived from the summed counters."""
    return calculate_period_metrics(
        a.impressions + b.impressions,
        a.clicks + b.clicks,
        a.conversions + b.conversions,
        a.cost + b.cost,
        a.sales + b.sales,
    )


CounterSource = Union[PeriodMetrics, Mapping[str, Any], Any]


def _counter(source: CounterSource, name: str) -> float:
    if isinstance(source, Mapping):
        value = source.get(name)
    else:
        value = getattr(source, name, None)
    return 0 if value is None else value


def period_from_counters(source: CounterSource) -> PeriodMetrics:
    """Wrap a pre-aggregated rollup (dict or object with the five counters)."""
    return calculate_period_metrics(*(_counter(source, name) for name in COUNTER_FIELDS))


def aggregate_rows(rows: Iterable[CounterSource]) -> PeriodMetrics:
    """Sum the raw counters of every row into one PeriodMetrics."""
    totals = dict.fromkeys(COUNTER_FIELDS, 0)
    for row in rows:
        for name in COUNTER_FIELDS:
            totals[name] += _counter(row, name)
    return calculate_period_metrics(*(totals[name] for name in COUNTER_FIELDS))
