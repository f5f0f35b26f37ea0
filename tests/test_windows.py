from __future__ import annotations

from datetime import date, datetime, timedelta

import pytest
from hypothesis import given
from hypothesis import strategies as st

from attribution_windows.periods import (
    PeriodMetrics,
    aggregate_rows,
    calculate_period_metrics,
    create_empty_period_metrics,
    merge_period_metrics,
)
from attribution_windows.windows import (
    DailyPerformanceRow,
    EntityType,
    MetricsBuildConfig,
    build_attribution_aware_metrics,
    build_from_cluster_metrics,
    build_from_keyword_metrics,
)

from helpers import REFERENCE_DATE, daily_row

COUNTERS = ("impressions", "clicks", "conversions", "cost", "sales")


def _build(rows, ref=REFERENCE_DATE, config=MetricsBuildConfig()):
    return build_attribution_aware_metrics("B00EXAMPLE", "keyword_123", "KEYWORD", rows, 2000, ref, config)


# ── PeriodMetrics ───────────────────────────────────────────
def test_derived_rates_from_counters():
    m = calculate_period_metrics(1000, 50, 5, 2500, 10000)
    assert m.ctr == 0.05
    assert m.cvr == 0.1
    assert m.acos == 0.25
    assert m.cpc == 50


def test_derived_rates_absent_on_zero_denominators():
    m = create_empty_period_metrics()
    assert (m.ctr, m.cvr, m.acos, m.cpc) == (None, None, None, None)

    no_sales = calculate_period_metrics(100, 10, 0, 500, 0)
    assert no_sales.acos is None
    assert no_sales.cvr == 0.0


def test_derived_rates_cannot_be_set():
    m = calculate_period_metrics(100, 10, 1, 500, 2000)
    with pytest.raises(AttributeError):
        m.acos = 0.5


def test_negative_counter_rejected():
    with pytest.raises(ValueError):
        PeriodMetrics(clicks=-1)


def test_merge_recomputes_rates():
    a = calculate_period_metrics(100, 10, 1, 500, 1000)
    b = calculate_period_metrics(100, 30, 0, 1500, 0)
    merged = merge_period_metrics(a, b)
    assert merged.clicks == 40
    assert merged.acos == 2.0
    assert merged.cvr == 0.025


def test_aggregate_rows_accepts_dicts_and_rows():
    rows = [daily_row(1), DailyPerformanceRow(date=date(2024, 1, 1), clicks=5, cost=100)]
    m = aggregate_rows(rows)
    assert m.clicks == 15
    assert m.cost == 600


# ── Window split ────────────────────────────────────────────
def test_thirty_days_split_into_stable_and_recent():
    rows = [daily_row(i) for i in range(1, 31)]
    m = _build(rows)

    assert m.recent.impressions == 300
    assert m.recent.conversions == 3
    assert m.stable.impressions == 2700
    assert m.stable.clicks == 270
    assert m.total.impressions == 3000
    assert m.stable_days == 27
    assert m.recent_days == 3
    assert m.target_cpa == 2000


def test_same_day_and_future_rows_excluded():
    rows = [
        {"date": "2024-01-14", "impressions": 100, "clicks": 10, "conversions": 1, "cost": 500, "sales": 2000},
        {"date": "2024-01-15", "impressions": 100, "clicks": 10, "conversions": 1, "cost": 500, "sales": 2000},
        {"date": "2024-01-16", "impressions": 100, "clicks": 10, "conversions": 1, "cost": 500, "sales": 2000},
    ]
    m = _build(rows)
    assert m.total.impressions == 100
    assert m.recent.impressions == 100


@pytest.mark.parametrize(
    "day, bucket",
    [
        ("2024-01-14", "recent"),
        ("2024-01-12", "recent"),   # exactly recent_days before
        ("2024-01-11", "stable"),
        ("2023-12-16", "stable"),   # exactly total_days before
        ("2023-12-15", None),       # older than total_days
    ],
)
def test_boundary_inclusivity(day, bucket):
    m = _build([{"date": day, "impressions": 7, "clicks": 1, "conversions": 0, "cost": 1, "sales": 0}])
    if bucket is None:
        assert m.total.impressions == 0
    else:
        assert getattr(m, bucket).impressions == 7
        assert m.total.impressions == 7


def test_reference_datetime_is_truncated_to_midnight():
    ref = datetime(2024, 1, 15, 18, 30)
    m = _build([daily_row(0), daily_row(1)], ref=ref)
    assert m.total.impressions == 100


def test_timestamp_row_dates_are_accepted():
    m = _build([{"date": "2024-01-14T23:59:00Z", "clicks": 3}])
    assert m.recent.clicks == 3


def test_custom_window_config():
    rows = [daily_row(i) for i in range(1, 15)]
    m = _build(rows, config=MetricsBuildConfig(recent_days=2, total_days=7))
    assert m.recent.impressions == 200
    assert m.stable.impressions == 500
    assert m.stable_days == 5


def test_invalid_window_config_rejected():
    with pytest.raises(ValueError):
        MetricsBuildConfig(recent_days=10, total_days=7)


def test_empty_input():
    m = _build([])
    assert m.stable.clicks == 0
    assert m.recent.clicks == 0
    assert m.total.clicks == 0
    assert m.entity_type is EntityType.KEYWORD


row_strategy = st.builds(
    lambda offset, counts: {
        "date": (REFERENCE_DATE + timedelta(days=offset)).isoformat(),
        **dict(zip(COUNTERS, counts)),
    },
    st.integers(min_value=-40, max_value=5),
    st.tuples(*[st.integers(min_value=0, max_value=10_000)] * 5),
)


@given(st.lists(row_strategy, max_size=60))
def test_stable_plus_recent_equals_total(rows):
    m = _build(rows)
    for name in COUNTERS:
        assert getattr(m.stable, name) + getattr(m.recent, name) == getattr(m.total, name)


@given(st.lists(row_strategy, max_size=60), st.randoms())
def test_row_order_does_not_matter(rows, rnd):
    shuffled = list(rows)
    rnd.shuffle(shuffled)
    assert _build(rows) == _build(shuffled)
    assert _build(rows) == _build(rows)


@given(st.lists(row_strategy, max_size=40))
def test_no_row_on_or_after_reference_counts(rows):
    only_past = [r for r in rows if date.fromisoformat(r["date"]) < REFERENCE_DATE]
    assert _build(rows) == _build(only_past)


# ── Alternate constructors ──────────────────────────────────
def test_build_from_keyword_metrics_wraps_rollups():
    m = build_from_keyword_metrics(
        "B00EXAMPLE",
        "kw_1",
        {"impressions": 400, "clicks": 40, "conversions": 2, "cost": 2000, "sales": 8000},
        {"impressions": 300, "clicks": 30, "conversions": 1, "cost": 1500, "sales": 4000},
        {"impressions": 700, "clicks": 70, "conversions": 3, "cost": 3500, "sales": 12000},
        2000,
    )
    assert m.entity_type is EntityType.KEYWORD
    assert m.stable.clicks == 40
    assert m.recent.clicks == 30
    assert m.total.clicks == 70
    assert (m.stable_days, m.recent_days) == (4, 3)


def test_build_from_cluster_metrics_without_recent():
    m = build_from_cluster_metrics(
        "B00EXAMPLE",
        "cluster_1",
        {"impressions": 1000, "clicks": 100, "conversions": 0, "cost": 8000, "sales": 0},
        None,
        2000,
    )
    assert m.entity_type is EntityType.SEARCH_TERM_CLUSTER
    assert m.recent == create_empty_period_metrics()
    assert m.total == m.stable
    assert (m.stable_days, m.recent_days) == (27, 3)


def test_build_from_cluster_metrics_merges_total():
    m = build_from_cluster_metrics(
        "B00EXAMPLE",
        "cluster_1",
        {"impressions": 1000, "clicks": 100, "conversions": 2, "cost": 8000, "sales": 20000},
        {"impressions": 100, "clicks": 10, "conversions": 1, "cost": 500, "sales": 5000},
        2000,
        stable_days=11,
        recent_days=3,
    )
    assert m.total.clicks == 110
    assert m.total.sales == 25000
    assert m.stable_days == 11
