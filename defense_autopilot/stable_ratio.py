"""
Stable-ratio guard for bid increases.

Up recommendations are computed mostly from the total window. If total has just
absorbed a cost spike whose conversions are not attributed yet, total ACOS
drifts above stable ACOS; an increase computed from total would then be stale.
"""
from __future__ import annotations

from .models import (
    DEFAULT_STABLE_RATIO_THRESHOLDS,
    AttributionAwareMetrics,
    StableRatioCheckResult,
    StableRatioThresholds,
)


def check_stable_ratio_for_up(
    metrics: AttributionAwareMetrics,
    thresholds: StableRatioThresholds = DEFAULT_STABLE_RATIO_THRESHOLDS,
) -> StableRatioCheckResult:
    stable_acos = metrics.stable.acos
    total_acos = metrics.total.acos

    if metrics.stable.clicks < thresholds.min_stable_clicks:
        return StableRatioCheckResult(
            allow_up=True,
            stable_acos=stable_acos,
            total_acos=total_acos,
            acos_divergence_ratio=None,
            reason=f"stable clicks ({metrics.stable.clicks:.0f}) below {thresholds.min_stable_clicks}; check skipped",
        )

    if stable_acos is None or total_acos is None:
        return StableRatioCheckResult(
            allow_up=True,
            stable_acos=stable_acos,
            total_acos=total_acos,
            acos_divergence_ratio=None,
            reason="ACOS unavailable; check skipped",
        )

    if stable_acos == 0:
        return StableRatioCheckResult(
            allow_up=True,
            stable_acos=stable_acos,
            total_acos=total_acos,
            acos_divergence_ratio=None,
            reason="stable ACOS is 0; check skipped",
        )

    divergence = (total_acos - stable_acos) / stable_acos

    if divergence > thresholds.max_acos_divergence_ratio:
        return StableRatioCheckResult(
            allow_up=False,
            stable_acos=stable_acos,
            total_acos=total_acos,
            acos_divergence_ratio=divergence,
            reason=(
                f"total ACOS {total_acos:.1%} is {divergence:.1%} worse than stable ACOS "
                f"{stable_acos:.1%} (limit {thresholds.max_acos_divergence_ratio:.0%})"
            ),
        )

    return StableRatioCheckResult(
        allow_up=True,
        stable_acos=stable_acos,
        total_acos=total_acos,
        acos_divergence_ratio=divergence,
        reason="ACOS divergence within limit",
    )
