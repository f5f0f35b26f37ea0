"""
Lifecycle policy resolver: lifecycle state -> threshold multiplier + tier gates.

  LAUNCH_HARD  x2.0  STOP/NEG, STRONG_DOWN, DOWN blocked
  LAUNCH_SOFT  x1.5  STOP/NEG, STRONG_DOWN blocked
  GROWTH       x1.2  nothing blocked
  STEADY       x1.0  nothing blocked
  HARVEST      x0.8  nothing blocked (more sensitive)
  ZOMBIE       x1.0  nothing blocked

Gates are per tier so a launch can allow gentle corrections while forbidding
irreversible ones. The downgrade chain STOP/NEG -> STRONG_DOWN -> DOWN -> none
is shared by mitigate() and the judge's recent-good path.
"""
from __future__ import annotations

import math
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Sequence

from attribution_windows.windows import EntityType

from .models import (
    LAUNCH_STATES,
    DefenseAction,
    LifecycleDefensePolicy,
    LifecycleState,
    SingleDefenseThreshold,
)


PolicyTable = Mapping[LifecycleState, LifecycleDefensePolicy]

# Scaled gates are rounded so 3.0 x 0.8 compares as 2.4, not 2.4000000000000004.
RATIO_PRECISION = 10

DEFAULT_LIFECYCLE_DEFENSE_POLICIES: PolicyTable = MappingProxyType({
    LifecycleState.LAUNCH_HARD: LifecycleDefensePolicy(
        threshold_multiplier=2.0, block_stop_neg=True, block_strong_down=True, block_down=True,
    ),
    LifecycleState.LAUNCH_SOFT: LifecycleDefensePolicy(
        threshold_multiplier=1.5, block_stop_neg=True, block_strong_down=True, block_down=False,
    ),
    LifecycleState.GROWTH: LifecycleDefensePolicy(threshold_multiplier=1.2),
    LifecycleState.STEADY: LifecycleDefensePolicy(threshold_multiplier=1.0),
    LifecycleState.HARVEST: LifecycleDefensePolicy(threshold_multiplier=0.8),
    LifecycleState.ZOMBIE: LifecycleDefensePolicy(threshold_multiplier=1.0),
})


def check_policy_table(policies: PolicyTable) -> None:
    """Every lifecycle state needs an explicit policy."""
    missing = [s.value for s in LifecycleState if s not in policies]
    if missing:
        raise KeyError(f"Lifecycle policy table missing states: {', '.join(missing)}")


check_policy_table(DEFAULT_LIFECYCLE_DEFENSE_POLICIES)


# Severity order, heaviest first. STOP and NEG share the top tier.
DOWNGRADE_CHAIN: Sequence[DefenseAction] = (
    DefenseAction.STRONG_DOWN,
    DefenseAction.DOWN,
)


def resolve_policy(
    state: LifecycleState | str,
    policies: Optional[PolicyTable] = None,
) -> LifecycleDefensePolicy:
    table = DEFAULT_LIFECYCLE_DEFENSE_POLICIES if policies is None else policies
    state = LifecycleState(state)
    if state not in table:
        raise KeyError(f"No lifecycle defense policy for {state.value}")
    return table[state]


def apply_lifecycle_multiplier(
    threshold: SingleDefenseThreshold,
    multiplier: float,
) -> SingleDefenseThreshold:
    return SingleDefenseThreshold(
        min_stable_clicks=math.ceil(round(threshold.min_stable_clicks * multiplier, RATIO_PRECISION)),
        min_stable_cost_to_target_cpa_ratio=round(
            threshold.min_stable_cost_to_target_cpa_ratio * multiplier, RATIO_PRECISION
        ),
    )


def defense_action_for(entity_type: EntityType | str) -> DefenseAction:
    """Keywords are stopped; search-term clusters are negated."""
    if EntityType(entity_type) == EntityType.KEYWORD:
        return DefenseAction.STOP
    return DefenseAction.NEG


def is_tier_blocked(action: DefenseAction, policy: LifecycleDefensePolicy) -> bool:
    if action in (DefenseAction.STOP, DefenseAction.NEG):
        return policy.block_stop_neg
    if action == DefenseAction.STRONG_DOWN:
        return policy.block_strong_down
    if action == DefenseAction.DOWN:
        return policy.block_down
    return False


def first_permitted(
    candidates: Iterable[DefenseAction],
    policy: LifecycleDefensePolicy,
) -> Optional[DefenseAction]:
    """First candidate whose tier is open under this policy, else None."""
    for action in candidates:
        if not is_tier_blocked(action, policy):
            return action
    return None


def downgrades_below(action: DefenseAction) -> Sequence[DefenseAction]:
    """Lighter actions than `action`, heaviest first."""
    if action in (DefenseAction.STOP, DefenseAction.NEG):
        return DOWNGRADE_CHAIN
    idx = DOWNGRADE_CHAIN.index(action)
    return DOWNGRADE_CHAIN[idx + 1:]


def is_blocked(
    action: DefenseAction | str,
    state: LifecycleState | str,
    policies: Optional[PolicyTable] = None,
) -> bool:
    """Quick check for launch phases only; other states never block here."""
    state = LifecycleState(state)
    if state not in LAUNCH_STATES:
        return False
    return is_tier_blocked(DefenseAction(action), resolve_policy(state, policies))


def mitigate(
    action: DefenseAction | str,
    state: LifecycleState | str,
    policies: Optional[PolicyTable] = None,
) -> Optional[DefenseAction]:
    """
    Walk an externally proposed action down the chain until a tier is open.

    STOP stays STOP and NEG stays NEG when their tier is open; returns None
    when every remaining tier is blocked.
    """
    action = DefenseAction(action)
    policy = resolve_policy(state, policies)
    return first_permitted((action, *downgrades_below(action)), policy)
