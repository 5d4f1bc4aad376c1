import logging
from datetime import timedelta

import pytest

from glucose_engine.core.errors import ConfigurationError, InvalidGridError
from glucose_engine.services.iob import (
    calculate_iob_at_time,
    classify_activity,
    compare_insulin_models,
    describe_activity,
    generate_projection,
    insulin_events_from_carb_events,
)


def test_iob_rise_then_decay(now, config, dose):
    profile = config.profile
    bolus = dose("b1", minutes_ago=0, units=4.0)

    assert calculate_iob_at_time([bolus], now, profile) == 0.0
    assert calculate_iob_at_time([bolus], now + timedelta(minutes=30), profile) == pytest.approx(2.0)
    assert calculate_iob_at_time([bolus], now + timedelta(minutes=60), profile) == pytest.approx(4.0)
    assert calculate_iob_at_time([bolus], now + timedelta(minutes=301), profile) == 0.0

    checkpoints = range(60, 301, 30)
    values = [calculate_iob_at_time([bolus], now + timedelta(minutes=m), profile) for m in checkpoints]
    assert values == sorted(values, reverse=True)


def test_iob_sums_events_and_skips_future(now, config, dose):
    events = [
        dose("b1", minutes_ago=30, units=2.0),
        dose("b2", minutes_ago=60, units=3.0),
        dose("later", minutes_ago=-15, units=10.0),
    ]
    assert calculate_iob_at_time(events, now, config.profile) == pytest.approx(1.0 + 3.0)


def test_iob_requires_profile(now):
    with pytest.raises(ConfigurationError):
        calculate_iob_at_time([], now, None)


def test_projection_single_point(now, config, dose):
    grid = generate_projection([dose("b1", 30, 2.0)], now, now, 15, config.profile)
    assert len(grid) == 1
    assert grid[0].time == now
    assert grid[0].iob == pytest.approx(1.0)
    assert grid[0].glucose_prediction is None
    assert grid[0].confidence is None


def test_projection_closed_interval(now, config):
    grid = generate_projection([], now, now + timedelta(minutes=60), 15, config.profile)
    assert [p.time for p in grid] == [now + timedelta(minutes=m) for m in (0, 15, 30, 45, 60)]
    assert all(p.iob == 0 for p in grid)


def test_projection_rounds_to_two_decimals(now, config, dose):
    grid = generate_projection([dose("b1", 0, 1.0)], now, now + timedelta(minutes=90), 90, config.profile)
    # 1U * exp(-0.8 * 30 / 240)
    assert grid[-1].iob == 0.9


@pytest.mark.parametrize("step", [0, -5, 1e-9, float("nan"), float("inf"), 1e20])
def test_projection_rejects_unusable_step(now, config, step):
    with pytest.raises(InvalidGridError):
        generate_projection([], now, now + timedelta(minutes=30), step, config.profile)


def test_projection_rejects_inverted_bounds(now, config):
    with pytest.raises(InvalidGridError):
        generate_projection([], now, now - timedelta(minutes=1), 5, config.profile)


@pytest.mark.parametrize(
    "minutes_ago, expected",
    [
        (10, "rising"),
        (44, "rising"),
        (45, "peak"),
        (60, "peak"),
        (75, "peak"),
        (76, "falling"),
        (400, "falling"),
    ],
)
def test_classify_activity(now, config, dose, minutes_ago, expected):
    assert classify_activity([dose("b", minutes_ago, 2.0)], now, config.profile) == expected


def test_classify_activity_uses_most_recent_dose(now, config, dose):
    events = [dose("old", 200, 4.0), dose("recent", 20, 1.0)]
    assert classify_activity(events, now, config.profile) == "rising"


def test_classify_activity_none(now, config, dose):
    assert classify_activity([], now, config.profile) == "none"
    # Most recent dose in the future -> none, even with older doses logged
    events = [dose("old", 90, 2.0), dose("planned", -30, 2.0)]
    assert classify_activity(events, now, config.profile) == "none"


def test_describe_activity(now, config, dose):
    assert describe_activity([], now, config.profile) == "No active insulin"
    assert describe_activity([dose("b", 30, 2.0)], now, config.profile) == "Insulin rising - 1.0u active"
    assert describe_activity([dose("b", 60, 2.0)], now, config.profile) == "Insulin at peak - 2.0u active"


def test_insulin_events_from_carb_events(meal):
    notes = [
        meal("n1", 30, carbs=40, insulin=4, comment="pasta"),
        meal("n2", 10, carbs=15, insulin=0),
    ]
    (derived,) = insulin_events_from_carb_events(notes)
    assert derived.id == "insulin-n1"
    assert derived.units == 4
    assert derived.dose_type == "bolus"
    assert derived.timestamp == notes[0].timestamp
    assert derived.comment == "pasta"


def test_compare_insulin_models_reports_both(now, config, meal):
    comparison = compare_insulin_models([meal("m1", 45, carbs=50, insulin=4)], now, config)
    assert comparison.systemic_iob == pytest.approx(3.45, abs=0.01)
    assert comparison.active_phase_iob == pytest.approx(3.0)
    assert comparison.difference == pytest.approx(0.45, abs=0.01)


def test_compare_insulin_models_logs_large_disagreement(now, config, meal, caplog):
    with caplog.at_level(logging.INFO, logger="glucose_engine.services.iob"):
        close = compare_insulin_models([meal("m1", 45, carbs=50, insulin=4)], now, config)
        assert not [r for r in caplog.records if r.getMessage() == "Insulin models disagree"]

        # 4U * 0.5^(10/210) vs 4U * 10/60
        apart = compare_insulin_models([meal("m2", 10, carbs=50, insulin=4)], now, config)

    assert abs(close.difference) <= 0.5
    assert apart.difference == pytest.approx(3.2, abs=0.01)
    records = [r for r in caplog.records if r.getMessage() == "Insulin models disagree"]
    assert len(records) == 1
    assert records[0].systemic_iob == pytest.approx(3.87, abs=0.01)
    assert records[0].active_phase_iob == pytest.approx(0.67, abs=0.01)
