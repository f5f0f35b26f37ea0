from __future__ import annotations

from dataclasses import replace
from types import MappingProxyType
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from attribution_windows.windows import MetricsBuildConfig

from .lifecycle import DEFAULT_LIFECYCLE_DEFENSE_POLICIES, PolicyTable
from .models import (
    DEFAULT_DEFENSE_THRESHOLD_CONFIG,
    DefenseThresholdConfig,
    LifecycleState,
    SingleDefenseThreshold,
    StableRatioThresholds,
)


class WindowModel(BaseModel):
    recent_days: int = Field(default=3, ge=0)
    total_days: int = Field(default=30, ge=1)

    @model_validator(mode="after")
    def total_covers_recent(self) -> "WindowModel":
        if self.total_days < self.recent_days:
            raise ValueError("windows.total_days must be >= windows.recent_days")
        return self

    def to_build_config(self) -> MetricsBuildConfig:
        return MetricsBuildConfig(recent_days=self.recent_days, total_days=self.total_days)


class ThresholdModel(BaseModel):
    min_stable_clicks: int = Field(ge=0)
    min_stable_cost_to_target_cpa_ratio: float = Field(ge=0)

    def to_threshold(self) -> SingleDefenseThreshold:
        return SingleDefenseThreshold(
            min_stable_clicks=self.min_stable_clicks,
            min_stable_cost_to_target_cpa_ratio=self.min_stable_cost_to_target_cpa_ratio,
        )


def _default_threshold(t: SingleDefenseThreshold) -> ThresholdModel:
    return ThresholdModel(
        min_stable_clicks=t.min_stable_clicks,
        min_stable_cost_to_target_cpa_ratio=t.min_stable_cost_to_target_cpa_ratio,
    )


class ThresholdConfigModel(BaseModel):
    stop_neg: ThresholdModel = Field(default_factory=lambda: _default_threshold(DEFAULT_DEFENSE_THRESHOLD_CONFIG.stop_neg))
    strong_down: ThresholdModel = Field(default_factory=lambda: _default_threshold(DEFAULT_DEFENSE_THRESHOLD_CONFIG.strong_down))
    down: ThresholdModel = Field(default_factory=lambda: _default_threshold(DEFAULT_DEFENSE_THRESHOLD_CONFIG.down))

    @model_validator(mode="after")
    def severity_needs_more_evidence(self) -> "ThresholdConfigModel":
        # DefenseThresholdConfig raises ValueError on bad ordering;
        # pydantic reports it as a ValidationError.
        self.to_threshold_config()
        return self

    def to_threshold_config(self) -> DefenseThresholdConfig:
        return DefenseThresholdConfig(
            stop_neg=self.stop_neg.to_threshold(),
            strong_down=self.strong_down.to_threshold(),
            down=self.down.to_threshold(),
        )


class LifecyclePolicyModel(BaseModel):
    # Omitted fields keep the built-in policy for that state.
    threshold_multiplier: Optional[float] = Field(default=None, gt=0)
    block_stop_neg: Optional[bool] = None
    block_strong_down: Optional[bool] = None
    block_down: Optional[bool] = None


class StableRatioModel(BaseModel):
    max_acos_divergence_ratio: float = Field(default=0.25, ge=0)
    min_stable_clicks: int = Field(default=15, ge=0)

    def to_thresholds(self) -> StableRatioThresholds:
        return StableRatioThresholds(
            max_acos_divergence_ratio=self.max_acos_divergence_ratio,
            min_stable_clicks=self.min_stable_clicks,
        )


class ProductTargetModel(BaseModel):
    asin: str
    target_acos: float = Field(gt=0)
    target_cpa: Optional[float] = None
    average_order_value: Optional[float] = Field(default=None, gt=0)
    lifecycle_state: LifecycleState = LifecycleState.STEADY

    @field_validator("asin")
    @classmethod
    def asin_not_blank(cls, v: str) -> str:
        v2 = v.strip()
        if not v2:
            raise ValueError("products[].asin must not be blank")
        return v2

    @model_validator(mode="after")
    def cpa_source_present(self) -> "ProductTargetModel":
        if self.target_cpa is None and self.average_order_value is None:
            raise ValueError(f"product {self.asin}: set target_cpa or average_order_value")
        return self

    def resolved_target_cpa(self) -> float:
        """Explicit target CPA wins; otherwise average order value x target ACOS."""
        if self.target_cpa is not None:
            return self.target_cpa
        return self.average_order_value * self.target_acos


class DefenseClientConfig(BaseModel):
    client_id: str
    windows: WindowModel = WindowModel()
    thresholds: ThresholdConfigModel = ThresholdConfigModel()
    lifecycle_policies: Dict[LifecycleState, LifecyclePolicyModel] = Field(default_factory=dict)
    stable_ratio: StableRatioModel = StableRatioModel()
    products: List[ProductTargetModel] = Field(default_factory=list)

    @field_validator("products")
    @classmethod
    def unique_asins(cls, v: List[ProductTargetModel]) -> List[ProductTargetModel]:
        seen = set()
        for p in v:
            if p.asin in seen:
                raise ValueError(f"duplicate product asin: {p.asin}")
            seen.add(p.asin)
        return v

    def policy_table(self) -> PolicyTable:
        """Built-in policies with per-state overrides applied."""
        table = dict(DEFAULT_LIFECYCLE_DEFENSE_POLICIES)
        for state, override in self.lifecycle_policies.items():
            changes = override.model_dump(exclude_none=True)
            table[state] = replace(table[state], **changes)
        return MappingProxyType(table)

    def product(self, asin: str) -> Optional[ProductTargetModel]:
        for p in self.products:
            if p.asin == asin:
                return p
        return None


def parse_defense_config(data: dict) -> DefenseClientConfig:
    # Raises ValidationError if invalid
    return DefenseClientConfig.model_validate(data)
