"""
Defense data models: actions, lifecycle states, thresholds, judgment results.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from attribution_windows.windows import AttributionAwareMetrics, EntityType


class DefenseAction(str, Enum):
    STOP = "STOP"                  # pause keyword
    NEG = "NEG"                    # negate search term
    STRONG_DOWN = "STRONG_DOWN"
    DOWN = "DOWN"


class LifecycleState(str, Enum):
    LAUNCH_HARD = "LAUNCH_HARD"
    LAUNCH_SOFT = "LAUNCH_SOFT"
    GROWTH = "GROWTH"
    STEADY = "STEADY"
    HARVEST = "HARVEST"
    ZOMBIE = "ZOMBIE"


LAUNCH_STATES = frozenset({LifecycleState.LAUNCH_HARD, LifecycleState.LAUNCH_SOFT})


class DefenseReasonCode(str, Enum):
    # defense fires
    DEFENSE_STOP_NO_CONVERSION = "DEFENSE_STOP_NO_CONVERSION"
    DEFENSE_NEG_NO_CONVERSION = "DEFENSE_NEG_NO_CONVERSION"
    DEFENSE_STRONG_DOWN_HIGH_ACOS = "DEFENSE_STRONG_DOWN_HIGH_ACOS"
    DEFENSE_DOWN_HIGH_ACOS = "DEFENSE_DOWN_HIGH_ACOS"

    # defense withheld
    DEFENSE_BLOCKED_INSUFFICIENT_CLICKS = "DEFENSE_BLOCKED_INSUFFICIENT_CLICKS"
    DEFENSE_BLOCKED_INSUFFICIENT_COST = "DEFENSE_BLOCKED_INSUFFICIENT_COST"
    DEFENSE_BLOCKED_LIFECYCLE_POLICY = "DEFENSE_BLOCKED_LIFECYCLE_POLICY"
    DEFENSE_BLOCKED_RECENT_GOOD_PERFORMANCE = "DEFENSE_BLOCKED_RECENT_GOOD_PERFORMANCE"
    DEFENSE_NOT_NEEDED_GOOD_PERFORMANCE = "DEFENSE_NOT_NEEDED_GOOD_PERFORMANCE"

    DEFENSE_EVALUATION_ERROR = "DEFENSE_EVALUATION_ERROR"


@dataclass(frozen=True)
class SingleDefenseThreshold:
    """Statistical-significance gate for one action tier (stable window only)."""
    min_stable_clicks: int
    min_stable_cost_to_target_cpa_ratio: float  # stable cost / target CPA

    def to_dict(self) -> Dict[str, Any]:
        return {
            "min_stable_clicks": self.min_stable_clicks,
            "min_stable_cost_to_target_cpa_ratio": self.min_stable_cost_to_target_cpa_ratio,
        }


@dataclass(frozen=True)
class DefenseThresholdConfig:
    """
    Per-tier gates. Heavier actions need more evidence:
      stop_neg >= strong_down >= down   (clicks and cost ratio alike)
    """
    stop_neg: SingleDefenseThreshold
    strong_down: SingleDefenseThreshold
    down: SingleDefenseThreshold

    def __post_init__(self) -> None:
        tiers = [("stop_neg", self.stop_neg), ("strong_down", self.strong_down), ("down", self.down)]
        for (hi_name, hi), (lo_name, lo) in zip(tiers, tiers[1:]):
            if hi.min_stable_clicks < lo.min_stable_clicks:
                raise ValueError(
                    f"{hi_name}.min_stable_clicks ({hi.min_stable_clicks}) must be >= "
                    f"{lo_name}.min_stable_clicks ({lo.min_stable_clicks})"
                )
            if hi.min_stable_cost_to_target_cpa_ratio < lo.min_stable_cost_to_target_cpa_ratio:
                raise ValueError(
                    f"{hi_name}.min_stable_cost_to_target_cpa_ratio "
                    f"({hi.min_stable_cost_to_target_cpa_ratio}) must be >= "
                    f"{lo_name}.min_stable_cost_to_target_cpa_ratio "
                    f"({lo.min_stable_cost_to_target_cpa_ratio})"
                )


# Rule of three: 3 expected conversions at CVR 5% -> 60 clicks.
# Cost ratios: 3x / 2x / 1x target CPA spent in the stable window.
DEFAULT_DEFENSE_THRESHOLD_CONFIG = DefenseThresholdConfig(
    stop_neg=SingleDefenseThreshold(min_stable_clicks=60, min_stable_cost_to_target_cpa_ratio=3.0),
    strong_down=SingleDefenseThreshold(min_stable_clicks=40, min_stable_cost_to_target_cpa_ratio=2.0),
    down=SingleDefenseThreshold(min_stable_clicks=20, min_stable_cost_to_target_cpa_ratio=1.0),
)


@dataclass(frozen=True)
class LifecycleDefensePolicy:
    threshold_multiplier: float  # 1.0 = default, 2.0 = twice the evidence
    block_stop_neg: bool = False
    block_strong_down: bool = False
    block_down: bool = False


@dataclass(frozen=True)
class DefenseJudgmentResult:
    should_defend: bool
    recommended_action: Optional[DefenseAction]
    reason_code: DefenseReasonCode
    reason_detail: str
    meets_click_threshold: bool
    meets_cost_threshold: bool
    blocked_by_lifecycle_policy: bool
    recent_performance_good: bool
    effective_threshold: SingleDefenseThreshold  # after lifecycle scaling

    def to_dict(self) -> Dict[str, Any]:
        return {
            "should_defend": self.should_defend,
            "recommended_action": self.recommended_action.value if self.recommended_action else None,
            "reason_code": self.reason_code.value,
            "reason_detail": self.reason_detail,
            "meets_click_threshold": self.meets_click_threshold,
            "meets_cost_threshold": self.meets_cost_threshold,
            "blocked_by_lifecycle_policy": self.blocked_by_lifecycle_policy,
            "recent_performance_good": self.recent_performance_good,
            "effective_threshold": self.effective_threshold.to_dict(),
        }


@dataclass(frozen=True)
class StableRatioThresholds:
    max_acos_divergence_ratio: float = 0.25  # total ACOS may exceed stable ACOS by 25%
    min_stable_clicks: int = 15


DEFAULT_STABLE_RATIO_THRESHOLDS = StableRatioThresholds()


@dataclass(frozen=True)
class StableRatioCheckResult:
    allow_up: bool
    stable_acos: Optional[float]
    total_acos: Optional[float]
    acos_divergence_ratio: Optional[float]  # (total - stable) / stable
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "allow_up": self.allow_up,
            "stable_acos": self.stable_acos,
            "total_acos": self.total_acos,
            "acos_divergence_ratio": self.acos_divergence_ratio,
            "reason": self.reason,
        }


__all__ = [
    "AttributionAwareMetrics",
    "EntityType",
    "DefenseAction",
    "LifecycleState",
    "LAUNCH_STATES",
    "DefenseReasonCode",
    "SingleDefenseThreshold",
    "DefenseThresholdConfig",
    "DEFAULT_DEFENSE_THRESHOLD_CONFIG",
    "LifecycleDefensePolicy",
    "DefenseJudgmentResult",
    "StableRatioThresholds",
    "DEFAULT_STABLE_RATIO_THRESHOLDS",
    "StableRatioCheckResult",
]
