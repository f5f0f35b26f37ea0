from __future__ import annotations

import pytest
from hypothesis import HealthCheck, settings

from helpers import make_metrics

settings.register_profile(
    "defense_stable",
    suppress_health_check=[HealthCheck.too_slow],
    deadline=None,
)
settings.load_profile("defense_stable")


@pytest.fixture
def stop_eligible():
    # 60 clicks, CV=0, cost = 3x target CPA
    return make_metrics(60, 0, 6000, 0)
