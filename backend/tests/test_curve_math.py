import math

import pytest

from glucose_engine.models import EngineConfig, InsulinProfile
from glucose_engine.services.math.curves import (
    CarbCurves,
    DecayCurves,
    HalfLifeInsulinModel,
    PeakDecayInsulinModel,
    insulin_model_for,
)


def test_half_life_exact_at_one_half_life():
    # 40g, 45 min half-life -> 20g after 45 min
    assert CarbCurves.remaining(40.0, 45, 45) == pytest.approx(20.0)
    assert DecayCurves.half_life_remaining(40.0, 90, 45) == pytest.approx(10.0)


def test_half_life_monotonic():
    values = [DecayCurves.half_life_remaining(50.0, t, 45) for t in range(0, 361, 15)]
    assert values == sorted(values, reverse=True)
    assert all(v >= 0 for v in values)


def test_half_life_future_and_zero_age_return_full_amount():
    assert DecayCurves.half_life_remaining(30.0, -20, 45) == 30.0
    assert DecayCurves.half_life_remaining(30.0, 0, 45) == 30.0
    assert DecayCurves.half_life_remaining(30.0, 1e-12, 45) == 30.0


def test_half_life_time_to_threshold():
    # 25.6g -> 0.1g takes 8 half-lives
    assert DecayCurves.half_life_time_to(25.6, 0.1, 45) == pytest.approx(360.0)
    assert DecayCurves.half_life_time_to(0.05, 0.1, 45) == 0.0
    assert DecayCurves.half_life_time_to(0.0, 0.1, 45) == 0.0


def test_rise_decay_shape():
    units, peak, dia, rate = 4.0, 60, 300, 0.8

    assert DecayCurves.rise_decay_remaining(units, 0, peak, dia, rate) == 0.0
    assert DecayCurves.rise_decay_remaining(units, 30, peak, dia, rate) == pytest.approx(2.0)
    assert DecayCurves.rise_decay_remaining(units, 60, peak, dia, rate) == pytest.approx(4.0)

    at_end = DecayCurves.rise_decay_remaining(units, dia, peak, dia, rate)
    assert at_end == pytest.approx(units * math.exp(-rate))
    assert DecayCurves.rise_decay_remaining(units, dia + 1, peak, dia, rate) == 0.0
    assert DecayCurves.rise_decay_remaining(units, -5, peak, dia, rate) == 0.0


def test_rise_decay_monotonic_after_peak():
    values = [DecayCurves.rise_decay_remaining(4.0, t, 60, 300, 0.8) for t in range(60, 301, 10)]
    assert values == sorted(values, reverse=True)


def test_insulin_strategies_share_interface():
    profile = InsulinProfile(peak_time_minutes=60, duration_minutes=300, decay_rate=0.8)
    systemic = HalfLifeInsulinModel(tracking_min=240)
    active = PeakDecayInsulinModel(profile=profile)

    assert systemic.name == "half_life"
    assert active.name == "peak_decay"
    assert systemic.window_minutes == 240
    assert active.window_minutes == 300

    # Same dose, same age, different answers
    assert systemic.remaining(4.0, 210) == pytest.approx(2.0)
    assert active.remaining(4.0, 30) == pytest.approx(2.0)
    assert systemic.remaining(4.0, 30) != pytest.approx(active.remaining(4.0, 30))


def test_insulin_model_for_selects_by_name():
    cfg = EngineConfig()
    assert isinstance(insulin_model_for(cfg), PeakDecayInsulinModel)
    assert isinstance(insulin_model_for(cfg, "half_life"), HalfLifeInsulinModel)
    assert insulin_model_for(cfg, "half_life").window_minutes == cfg.decay.max_cob_tracking_minutes

    with pytest.raises(ValueError):
        insulin_model_for(cfg, "walsh")
