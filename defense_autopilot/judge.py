"""
Defense Judge: attribution-aware STOP / NEG / STRONG_DOWN / DOWN decisions.

Only the stable window (old enough that attribution delay no longer moves its
conversion counts) can trigger a defensive action. Tiers, first match wins:

  1. STOP/NEG     stable conversions == 0          thresholds.stop_neg
  2. STRONG_DOWN  stable ACOS > target ACOS x 1.5  thresholds.strong_down
  3. DOWN         stable ACOS > target ACOS x 1.2  thresholds.down
  4. none         stable performance acceptable

Each tier is gated by:
  - the lifecycle policy (a gated tier is skipped; a gated STOP/NEG tier whose
    condition holds stops evaluation as DEFENSE_BLOCKED_LIFECYCLE_POLICY)
  - stable clicks >= ceil(min_stable_clicks x multiplier)
  - stable cost / target CPA >= min_stable_cost_to_target_cpa_ratio x multiplier

When the recent window is performing (>= 1 conversion, or CVR >= 1.2x stable
CVR) a firing tier is eased one step down the shared downgrade chain; DOWN has
nothing below it and is withheld.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from .lifecycle import (
    PolicyTable,
    apply_lifecycle_multiplier,
    defense_action_for,
    downgrades_below,
    first_permitted,
    resolve_policy,
)
from .logging_config import setup_logging
from .models import (
    DEFAULT_DEFENSE_THRESHOLD_CONFIG,
    AttributionAwareMetrics,
    DefenseAction,
    DefenseJudgmentResult,
    DefenseReasonCode,
    DefenseThresholdConfig,
    LifecycleDefensePolicy,
    LifecycleState,
    SingleDefenseThreshold,
)

logger = setup_logging(__name__)

ACOS_HIGH_MULTIPLIER_STRONG = 1.5  # STRONG_DOWN
ACOS_HIGH_MULTIPLIER_NORMAL = 1.2  # DOWN
RECENT_GOOD_CVR_RATIO = 1.2


# ─────────────────────────────────────────────────────────────
# Predicates
# ─────────────────────────────────────────────────────────────
def is_recent_performance_good(metrics: AttributionAwareMetrics) -> bool:
    if metrics.recent.conversions >= 1:
        return True
    recent_cvr = metrics.recent.cvr
    stable_cvr = metrics.stable.cvr
    if recent_cvr is not None and stable_cvr is not None and stable_cvr > 0:
        return recent_cvr >= stable_cvr * RECENT_GOOD_CVR_RATIO
    return False


def is_no_conversion_in_stable(metrics: AttributionAwareMetrics, target_acos: float = 0.0) -> bool:
    return metrics.stable.conversions == 0


def is_acos_high_in_stable_strong(metrics: AttributionAwareMetrics, target_acos: float) -> bool:
    acos = metrics.stable.acos
    return acos is not None and acos > target_acos * ACOS_HIGH_MULTIPLIER_STRONG


def is_acos_high_in_stable_normal(metrics: AttributionAwareMetrics, target_acos: float) -> bool:
    acos = metrics.stable.acos
    return acos is not None and acos > target_acos * ACOS_HIGH_MULTIPLIER_NORMAL


def stable_cost_to_cpa_ratio(metrics: AttributionAwareMetrics) -> float:
    # Non-positive target CPA reads as 0 so every cost gate fails closed.
    if metrics.target_cpa > 0:
        return metrics.stable.cost / metrics.target_cpa
    return 0.0


def _fmt_pct(x: Optional[float]) -> str:
    return "N/A" if x is None else f"{x * 100:.1f}%"


# ─────────────────────────────────────────────────────────────
# Tier descriptors
# ─────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class _Tier:
    label: str
    condition: Callable[[AttributionAwareMetrics, float], bool]
    base_threshold: Callable[[DefenseThresholdConfig], SingleDefenseThreshold]
    is_gated: Callable[[LifecycleDefensePolicy], bool]
    fire_action: Callable[[AttributionAwareMetrics], DefenseAction]
    describe: Callable[[AttributionAwareMetrics, float], str]
    report_policy_block: bool = False


def _describe_no_conversion(metrics: AttributionAwareMetrics, target_acos: float) -> str:
    return (
        f"CV=0 in stable window ({metrics.stable_days}d): "
        f"clicks={metrics.stable.clicks:.0f}, cost={metrics.stable.cost:,.0f}"
    )


def _describe_high_acos(multiplier: float) -> Callable[[AttributionAwareMetrics, float], str]:
    def describe(metrics: AttributionAwareMetrics, target_acos: float) -> str:
        return (
            f"stable ACOS {_fmt_pct(metrics.stable.acos)} exceeds "
            f"{multiplier}x target ACOS {_fmt_pct(target_acos)}"
        )
    return describe


TIERS = (
    _Tier(
        label="STOP/NEG",
        condition=is_no_conversion_in_stable,
        base_threshold=lambda cfg: cfg.stop_neg,
        is_gated=lambda p: p.block_stop_neg,
        fire_action=lambda m: defense_action_for(m.entity_type),
        describe=_describe_no_conversion,
        report_policy_block=True,
    ),
    _Tier(
        label="STRONG_DOWN",
        condition=is_acos_high_in_stable_strong,
        base_threshold=lambda cfg: cfg.strong_down,
        is_gated=lambda p: p.block_strong_down,
        fire_action=lambda m: DefenseAction.STRONG_DOWN,
        describe=_describe_high_acos(ACOS_HIGH_MULTIPLIER_STRONG),
    ),
    _Tier(
        label="DOWN",
        condition=is_acos_high_in_stable_normal,
        base_threshold=lambda cfg: cfg.down,
        is_gated=lambda p: p.block_down,
        fire_action=lambda m: DefenseAction.DOWN,
        describe=_describe_high_acos(ACOS_HIGH_MULTIPLIER_NORMAL),
    ),
)

_FIRE_REASONS = {
    DefenseAction.STOP: DefenseReasonCode.DEFENSE_STOP_NO_CONVERSION,
    DefenseAction.NEG: DefenseReasonCode.DEFENSE_NEG_NO_CONVERSION,
    DefenseAction.STRONG_DOWN: DefenseReasonCode.DEFENSE_STRONG_DOWN_HIGH_ACOS,
    DefenseAction.DOWN: DefenseReasonCode.DEFENSE_DOWN_HIGH_ACOS,
}


def _try_tier(
    tier: _Tier,
    metrics: AttributionAwareMetrics,
    target_acos: float,
    state: LifecycleState,
    policy: LifecycleDefensePolicy,
    thresholds: DefenseThresholdConfig,
    cost_ratio: float,
    recent_good: bool,
) -> Optional[DefenseJudgmentResult]:
    """Result if this tier decides the judgment, None to fall through."""
    threshold = apply_lifecycle_multiplier(tier.base_threshold(thresholds), policy.threshold_multiplier)
    meets_clicks = metrics.stable.clicks >= threshold.min_stable_clicks
    meets_cost = cost_ratio >= threshold.min_stable_cost_to_target_cpa_ratio

    def result(
        reason_code: DefenseReasonCode,
        detail: str,
        action: Optional[DefenseAction] = None,
        blocked: bool = False,
    ) -> DefenseJudgmentResult:
        return DefenseJudgmentResult(
            should_defend=action is not None,
            recommended_action=action,
            reason_code=reason_code,
            reason_detail=detail,
            meets_click_threshold=meets_clicks,
            meets_cost_threshold=meets_cost,
            blocked_by_lifecycle_policy=blocked,
            recent_performance_good=recent_good,
            effective_threshold=threshold,
        )

    if tier.is_gated(policy):
        if tier.report_policy_block and tier.condition(metrics, target_acos):
            return result(
                DefenseReasonCode.DEFENSE_BLOCKED_LIFECYCLE_POLICY,
                f"{tier.label} is blocked in {state.value}; {tier.describe(metrics, target_acos)}",
                blocked=True,
            )
        return None

    if not tier.condition(metrics, target_acos):
        return None

    if not meets_clicks:
        return result(
            DefenseReasonCode.DEFENSE_BLOCKED_INSUFFICIENT_CLICKS,
            f"stable clicks ({metrics.stable.clicks:.0f}) below threshold "
            f"({threshold.min_stable_clicks}); {tier.label} withheld",
        )

    if not meets_cost:
        return result(
            DefenseReasonCode.DEFENSE_BLOCKED_INSUFFICIENT_COST,
            f"stable cost/target CPA ({cost_ratio:.2f}) below threshold "
            f"({threshold.min_stable_cost_to_target_cpa_ratio:.2f}); {tier.label} withheld",
        )

    action = tier.fire_action(metrics)

    if recent_good:
        eased = first_permitted(downgrades_below(action), policy)
        outcome = f"eased {action.value} to {eased.value}" if eased else f"{action.value} withheld"
        return result(
            DefenseReasonCode.DEFENSE_BLOCKED_RECENT_GOOD_PERFORMANCE,
            f"{tier.describe(metrics, target_acos)}, but recent window is performing; {outcome}",
            action=eased,
        )

    return result(_FIRE_REASONS[action], tier.describe(metrics, target_acos), action=action)


# ─────────────────────────────────────────────────────────────
# Entry point
# ─────────────────────────────────────────────────────────────
def judge_defense(
    metrics: AttributionAwareMetrics,
    target_acos: float,
    lifecycle_state: LifecycleState | str,
    threshold_config: Optional[DefenseThresholdConfig] = None,
    lifecycle_policies: Optional[PolicyTable] = None,
) -> DefenseJudgmentResult:
    """
    Decide STOP / NEG / STRONG_DOWN / DOWN / none for one entity.

    Deterministic and free of side effects apart from DEBUG logging.
    threshold_config and lifecycle_policies default to the module defaults.
    """
    state = LifecycleState(lifecycle_state)
    thresholds = threshold_config or DEFAULT_DEFENSE_THRESHOLD_CONFIG
    policy = resolve_policy(state, lifecycle_policies)
    cost_ratio = stable_cost_to_cpa_ratio(metrics)
    recent_good = is_recent_performance_good(metrics)

    for tier in TIERS:
        decided = _try_tier(tier, metrics, target_acos, state, policy, thresholds, cost_ratio, recent_good)
        if decided is not None:
            _log_decision(metrics, state, decided)
            return decided

    down = apply_lifecycle_multiplier(thresholds.down, policy.threshold_multiplier)
    result = DefenseJudgmentResult(
        should_defend=False,
        recommended_action=None,
        reason_code=DefenseReasonCode.DEFENSE_NOT_NEEDED_GOOD_PERFORMANCE,
        reason_detail=(
            f"stable performance acceptable (ACOS={_fmt_pct(metrics.stable.acos)}, "
            f"CV={metrics.stable.conversions:g})"
        ),
        meets_click_threshold=metrics.stable.clicks >= down.min_stable_clicks,
        meets_cost_threshold=cost_ratio >= down.min_stable_cost_to_target_cpa_ratio,
        blocked_by_lifecycle_policy=False,
        recent_performance_good=recent_good,
        effective_threshold=down,
    )
    _log_decision(metrics, state, result)
    return result


def _log_decision(
    metrics: AttributionAwareMetrics,
    state: LifecycleState,
    result: DefenseJudgmentResult,
) -> None:
    action = result.recommended_action.value if result.recommended_action else "-"
    logger.debug(
        f"{metrics.entity_type.value} {metrics.entity_id} ({metrics.asin}, {state.value}): "
        f"{result.reason_code.value} action={action} | {result.reason_detail}"
    )
