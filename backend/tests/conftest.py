import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
str_path = str(ROOT)
if str_path not in sys.path:
    sys.path.insert(0, str_path)

from glucose_engine.models import CarbEvent, DecayConfig, EngineConfig, InsulinEvent, InsulinProfile  # noqa: E402

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def config() -> EngineConfig:
    return EngineConfig(
        decay=DecayConfig(
            carb_ratio=2.0,
            insulin_sensitivity_factor=1.0,
            carb_half_life_minutes=45,
            max_cob_tracking_minutes=240,
        ),
        profile=InsulinProfile(peak_time_minutes=60, duration_minutes=300, decay_rate=0.8),
    )


@pytest.fixture
def meal():
    """Factory: meal logged `minutes_ago` before NOW."""

    def _make(id: str, minutes_ago: float, carbs: float = 0.0, insulin: float = 0.0, **kwargs) -> CarbEvent:
        return CarbEvent(
            id=id,
            timestamp=NOW - timedelta(minutes=minutes_ago),
            carbs_g=carbs,
            insulin_units=insulin,
            **kwargs,
        )

    return _make


@pytest.fixture
def dose():
    def _make(id: str, minutes_ago: float, units: float, dose_type: str = "bolus") -> InsulinEvent:
        return InsulinEvent(
            id=id,
            timestamp=NOW - timedelta(minutes=minutes_ago),
            units=units,
            dose_type=dose_type,
        )

    return _make
