"""
Defense Engine: batch judgment over many keywords / search-term clusters.

Flow:
  1. Daily rows per entity (from the warehouse reader or any caller)
  2. Split each entity into stable / recent / total windows
  3. Judge defense + stable-ratio check per entity
  4. Summarise into a JSON-serialisable report

Entities are independent; a failure on one entity is logged and recorded as
DEFENSE_EVALUATION_ERROR without affecting the others.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from attribution_windows.windows import (
    DEFAULT_METRICS_BUILD_CONFIG,
    AttributionAwareMetrics,
    EntityType,
    MetricsBuildConfig,
    build_attribution_aware_metrics,
)

from .config_models import DefenseClientConfig
from .judge import judge_defense
from .lifecycle import PolicyTable
from .logging_config import setup_logging
from .models import (
    DEFAULT_STABLE_RATIO_THRESHOLDS,
    DefenseAction,
    DefenseJudgmentResult,
    DefenseReasonCode,
    DefenseThresholdConfig,
    LifecycleState,
    SingleDefenseThreshold,
    StableRatioCheckResult,
    StableRatioThresholds,
)
from .stable_ratio import check_stable_ratio_for_up

logger = setup_logging(__name__)


@dataclass(frozen=True)
class DefenseTarget:
    """Everything upstream supplies about one entity besides its daily rows."""
    asin: str
    entity_id: str
    entity_type: EntityType
    target_acos: float
    target_cpa: float
    lifecycle_state: LifecycleState

    def __post_init__(self) -> None:
        object.__setattr__(self, "entity_type", EntityType(self.entity_type))
        object.__setattr__(self, "lifecycle_state", LifecycleState(self.lifecycle_state))

    @property
    def key(self) -> tuple:
        return (self.asin, self.entity_id, self.entity_type.value)


@dataclass(frozen=True)
class EntityDefenseOutcome:
    target: DefenseTarget
    judgment: DefenseJudgmentResult
    metrics: Optional[AttributionAwareMetrics] = None
    stable_ratio: Optional[StableRatioCheckResult] = None
    error: Optional[str] = None


def build_targets(config: DefenseClientConfig, entity_keys: Iterable[tuple]) -> List[DefenseTarget]:
    """
    Pair warehouse entities with configured product targets.

    Entities whose ASIN has no product entry, or whose entity_type is unknown,
    are skipped with a warning.
    """
    targets: List[DefenseTarget] = []
    for asin, entity_id, entity_type in entity_keys:
        product = config.product(asin)
        if product is None:
            logger.warning(f"Entity {entity_id}: no product target for ASIN {asin}, skipped")
            continue
        try:
            etype = EntityType(entity_type)
        except ValueError:
            logger.warning(f"Entity {entity_id} ({asin}): unknown entity_type {entity_type!r}, skipped")
            continue
        targets.append(
            DefenseTarget(
                asin=asin,
                entity_id=entity_id,
                entity_type=etype,
                target_acos=product.target_acos,
                target_cpa=product.resolved_target_cpa(),
                lifecycle_state=product.lifecycle_state,
            )
        )
    return targets


def judge_entity(
    target: DefenseTarget,
    daily_rows: Iterable[Any],
    reference_date: date,
    build_config: MetricsBuildConfig = DEFAULT_METRICS_BUILD_CONFIG,
    threshold_config: Optional[DefenseThresholdConfig] = None,
    lifecycle_policies: Optional[PolicyTable] = None,
    stable_ratio_thresholds: StableRatioThresholds = DEFAULT_STABLE_RATIO_THRESHOLDS,
) -> EntityDefenseOutcome:
    metrics = build_attribution_aware_metrics(
        asin=target.asin,
        entity_id=target.entity_id,
        entity_type=target.entity_type,
        daily_rows=daily_rows,
        target_cpa=target.target_cpa,
        reference_date=reference_date,
        config=build_config,
    )
    judgment = judge_defense(
        metrics,
        target.target_acos,
        target.lifecycle_state,
        threshold_config=threshold_config,
        lifecycle_policies=lifecycle_policies,
    )
    return EntityDefenseOutcome(
        target=target,
        judgment=judgment,
        metrics=metrics,
        stable_ratio=check_stable_ratio_for_up(metrics, stable_ratio_thresholds),
    )


def _error_outcome(target: DefenseTarget, exc: Exception) -> EntityDefenseOutcome:
    judgment = DefenseJudgmentResult(
        should_defend=False,
        recommended_action=None,
        reason_code=DefenseReasonCode.DEFENSE_EVALUATION_ERROR,
        reason_detail=f"{type(exc).__name__}: {exc}",
        meets_click_threshold=False,
        meets_cost_threshold=False,
        blocked_by_lifecycle_policy=False,
        recent_performance_good=False,
        effective_threshold=SingleDefenseThreshold(0, 0.0),
    )
    return EntityDefenseOutcome(target=target, judgment=judgment, error=str(exc))


def run_defense(
    targets: Sequence[DefenseTarget],
    rows_by_entity: Mapping[tuple, Iterable[Any]],
    reference_date: date,
    build_config: MetricsBuildConfig = DEFAULT_METRICS_BUILD_CONFIG,
    threshold_config: Optional[DefenseThresholdConfig] = None,
    lifecycle_policies: Optional[PolicyTable] = None,
    stable_ratio_thresholds: StableRatioThresholds = DEFAULT_STABLE_RATIO_THRESHOLDS,
) -> List[EntityDefenseOutcome]:
    """
    Judge every target. rows_by_entity is keyed by DefenseTarget.key; a target
    with no rows is judged on empty windows.
    """
    outcomes: List[EntityDefenseOutcome] = []

    for target in targets:
        rows = rows_by_entity.get(target.key, [])
        try:
            outcome = judge_entity(
                target,
                rows,
                reference_date,
                build_config=build_config,
                threshold_config=threshold_config,
                lifecycle_policies=lifecycle_policies,
                stable_ratio_thresholds=stable_ratio_thresholds,
            )
        except (ValueError, TypeError, KeyError) as e:
            # One broken entity shouldn't kill the batch
            logger.error(f"Entity {target.entity_id} ({target.asin}): evaluation failed: {e}")
            outcome = _error_outcome(target, e)
        outcomes.append(outcome)

    defend = sum(1 for o in outcomes if o.judgment.should_defend)
    logger.info(f"Judged {len(outcomes)} entities for {reference_date.isoformat()}: {defend} defend")
    return outcomes


def _summarise(outcomes: Sequence[EntityDefenseOutcome]) -> Dict[str, Any]:
    by_action = {a.value: 0 for a in DefenseAction}
    by_reason: Dict[str, int] = {}
    for o in outcomes:
        j = o.judgment
        if j.recommended_action is not None:
            by_action[j.recommended_action.value] += 1
        by_reason[j.reason_code.value] = by_reason.get(j.reason_code.value, 0) + 1

    return {
        "total_entities": len(outcomes),
        "defend_count": sum(1 for o in outcomes if o.judgment.should_defend),
        "blocked_by_lifecycle_count": sum(1 for o in outcomes if o.judgment.blocked_by_lifecycle_policy),
        "mitigated_count": by_reason.get(DefenseReasonCode.DEFENSE_BLOCKED_RECENT_GOOD_PERFORMANCE.value, 0),
        "error_count": sum(1 for o in outcomes if o.error is not None),
        "up_suppressed_count": sum(1 for o in outcomes if o.stable_ratio is not None and not o.stable_ratio.allow_up),
        "by_action": by_action,
        "by_reason": by_reason,
    }


def generate_defense_report(
    client_id: str,
    outcomes: Sequence[EntityDefenseOutcome],
    reference_date: date,
) -> Dict[str, Any]:
    """JSON-ready report; heaviest actions first."""
    severity = {
        DefenseAction.STOP: 0,
        DefenseAction.NEG: 0,
        DefenseAction.STRONG_DOWN: 1,
        DefenseAction.DOWN: 2,
    }
    ordered = sorted(
        outcomes,
        key=lambda o: (
            severity.get(o.judgment.recommended_action, 3),
            o.target.asin,
            o.target.entity_id,
        ),
    )

    return {
        "client_id": client_id,
        "reference_date": reference_date.isoformat(),
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
        "summary": _summarise(outcomes),
        "entities": [
            {
                "asin": o.target.asin,
                "entity_id": o.target.entity_id,
                "entity_type": o.target.entity_type.value,
                "lifecycle_state": o.target.lifecycle_state.value,
                "target_acos": o.target.target_acos,
                "target_cpa": o.target.target_cpa,
                "judgment": o.judgment.to_dict(),
                "stable_ratio": o.stable_ratio.to_dict() if o.stable_ratio else None,
                "metrics": o.metrics.to_dict() if o.metrics else None,
                "error": o.error,
            }
            for o in ordered
        ],
    }
