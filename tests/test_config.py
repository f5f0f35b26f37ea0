from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from defense_autopilot.config_loader import load_defense_config
from defense_autopilot.config_models import parse_defense_config
from defense_autopilot.lifecycle import DEFAULT_LIFECYCLE_DEFENSE_POLICIES
from defense_autopilot.models import DEFAULT_DEFENSE_THRESHOLD_CONFIG, LifecycleState

EXAMPLE = Path(__file__).resolve().parent.parent / "configs" / "client_example.yaml"


def _minimal(**extra):
    data = {
        "client_id": "c1",
        "products": [{"asin": "B01", "target_acos": 0.2, "target_cpa": 1500}],
    }
    data.update(extra)
    return data


def test_load_example_config():
    cfg = load_defense_config(EXAMPLE)
    assert cfg.client_id == "Example_Client_001"
    assert cfg.windows.to_build_config().stable_days == 27
    assert cfg.thresholds.to_threshold_config() == DEFAULT_DEFENSE_THRESHOLD_CONFIG
    assert cfg.product("B00EXAMPLE").resolved_target_cpa() == 2000
    assert cfg.product("B00LAUNCH1").lifecycle_state == LifecycleState.LAUNCH_SOFT
    assert cfg.product("B00MISSING") is None


def test_defaults_when_sections_omitted():
    cfg = parse_defense_config(_minimal())
    assert cfg.windows.recent_days == 3
    assert cfg.windows.total_days == 30
    assert cfg.thresholds.to_threshold_config() == DEFAULT_DEFENSE_THRESHOLD_CONFIG
    assert dict(cfg.policy_table()) == dict(DEFAULT_LIFECYCLE_DEFENSE_POLICIES)
    assert cfg.stable_ratio.to_thresholds().min_stable_clicks == 15


def test_target_cpa_from_average_order_value():
    cfg = parse_defense_config(
        _minimal(products=[{"asin": "B02", "target_acos": 0.3, "average_order_value": 4000}])
    )
    assert cfg.product("B02").resolved_target_cpa() == pytest.approx(1200)


def test_product_needs_a_cpa_source():
    with pytest.raises(ValidationError):
        parse_defense_config(_minimal(products=[{"asin": "B03", "target_acos": 0.3}]))


def test_duplicate_asins_rejected():
    p = {"asin": "B01", "target_acos": 0.2, "target_cpa": 1500}
    with pytest.raises(ValidationError):
        parse_defense_config(_minimal(products=[p, dict(p)]))


def test_threshold_ordering_violation_rejected():
    bad = {
        "stop_neg": {"min_stable_clicks": 10, "min_stable_cost_to_target_cpa_ratio": 3.0},
        "strong_down": {"min_stable_clicks": 40, "min_stable_cost_to_target_cpa_ratio": 2.0},
        "down": {"min_stable_clicks": 20, "min_stable_cost_to_target_cpa_ratio": 1.0},
    }
    with pytest.raises(ValidationError):
        parse_defense_config(_minimal(thresholds=bad))


def test_windows_validated():
    with pytest.raises(ValidationError):
        parse_defense_config(_minimal(windows={"recent_days": 10, "total_days": 7}))


def test_policy_override_merges_onto_defaults():
    cfg = parse_defense_config(
        _minimal(lifecycle_policies={"LAUNCH_SOFT": {"block_strong_down": False}, "HARVEST": {"threshold_multiplier": 0.5}})
    )
    table = cfg.policy_table()
    soft = table[LifecycleState.LAUNCH_SOFT]
    assert soft.threshold_multiplier == 1.5
    assert soft.block_stop_neg is True
    assert soft.block_strong_down is False
    assert table[LifecycleState.HARVEST].threshold_multiplier == 0.5
    assert table[LifecycleState.STEADY] == DEFAULT_LIFECYCLE_DEFENSE_POLICIES[LifecycleState.STEADY]
    # defaults untouched
    assert DEFAULT_LIFECYCLE_DEFENSE_POLICIES[LifecycleState.LAUNCH_SOFT].block_strong_down is True


def test_unknown_lifecycle_state_rejected():
    with pytest.raises(ValidationError):
        parse_defense_config(_minimal(lifecycle_policies={"RETIRED": {"threshold_multiplier": 1.0}}))


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_defense_config(tmp_path / "nope.yaml")


def test_non_mapping_yaml(tmp_path):
    p = tmp_path / "list.yaml"
    p.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ValueError, match="mapping"):
        load_defense_config(p)


def test_yaml_roundtrip_from_file(tmp_path):
    p = tmp_path / "client.yaml"
    p.write_text(
        "client_id: tmp\n"
        "products:\n"
        "  - asin: B09\n"
        "    target_acos: 0.25\n"
        "    average_order_value: 2000\n"
        "    lifecycle_state: HARVEST\n",
        encoding="utf-8",
    )
    cfg = load_defense_config(p)
    assert cfg.product("B09").lifecycle_state == LifecycleState.HARVEST
    assert cfg.product("B09").resolved_target_cpa() == pytest.approx(500)
