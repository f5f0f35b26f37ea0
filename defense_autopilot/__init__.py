"""
Defense Autopilot: attribution-aware STOP / NEG / STRONG_DOWN / DOWN judgment.
"""

__version__ = "1.0.0"

from .models import (
    DEFAULT_DEFENSE_THRESHOLD_CONFIG,
    DEFAULT_STABLE_RATIO_THRESHOLDS,
    DefenseAction,
    DefenseJudgmentResult,
    DefenseReasonCode,
    DefenseThresholdConfig,
    LifecycleDefensePolicy,
    LifecycleState,
    SingleDefenseThreshold,
    StableRatioCheckResult,
    StableRatioThresholds,
)
from .lifecycle import (
    DEFAULT_LIFECYCLE_DEFENSE_POLICIES,
    apply_lifecycle_multiplier,
    is_blocked,
    mitigate,
    resolve_policy,
)
from .judge import judge_defense
from .stable_ratio import check_stable_ratio_for_up

__all__ = [
    "DEFAULT_DEFENSE_THRESHOLD_CONFIG",
    "DEFAULT_STABLE_RATIO_THRESHOLDS",
    "DefenseAction",
    "DefenseJudgmentResult",
    "DefenseReasonCode",
    "DefenseThresholdConfig",
    "LifecycleDefensePolicy",
    "LifecycleState",
    "SingleDefenseThreshold",
    "StableRatioCheckResult",
    "StableRatioThresholds",
    "DEFAULT_LIFECYCLE_DEFENSE_POLICIES",
    "apply_lifecycle_multiplier",
    "is_blocked",
    "mitigate",
    "resolve_policy",
    "judge_defense",
    "check_stable_ratio_for_up",
]
