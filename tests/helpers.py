"""Shared builders for the defense tests."""
from __future__ import annotations

from datetime import date, timedelta

from attribution_windows.periods import calculate_period_metrics, merge_period_metrics
from attribution_windows.windows import AttributionAwareMetrics, EntityType


REFERENCE_DATE = date(2024, 1, 15)
TARGET_ACOS = 0.15
TARGET_CPA = 2000.0


def make_metrics(
    stable_clicks: float,
    stable_conversions: float,
    stable_cost: float,
    stable_sales: float,
    recent_clicks: float = 0,
    recent_conversions: float = 0,
    recent_cost: float = 0,
    recent_sales: float = 0,
    entity_type: EntityType = EntityType.KEYWORD,
    target_cpa: float = TARGET_CPA,
) -> AttributionAwareMetrics:
    stable = calculate_period_metrics(stable_clicks * 20, stable_clicks, stable_conversions, stable_cost, stable_sales)
    recent = calculate_period_metrics(recent_clicks * 20, recent_clicks, recent_conversions, recent_cost, recent_sales)
    return AttributionAwareMetrics(
        asin="B00EXAMPLE",
        entity_id="keyword_123",
        entity_type=entity_type,
        stable=stable,
        recent=recent,
        total=merge_period_metrics(stable, recent),
        stable_days=27,
        recent_days=3,
        target_cpa=target_cpa,
    )


def daily_row(days_ago: int, impressions=100, clicks=10, conversions=1, cost=500, sales=2000, ref=REFERENCE_DATE) -> dict:
    return {
        "date": (ref - timedelta(days=days_ago)).isoformat(),
        "impressions": impressions,
        "clicks": clicks,
        "conversions": conversions,
        "cost": cost,
        "sales": sales,
    }


