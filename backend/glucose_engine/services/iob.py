from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from glucose_engine.core.constants import PEAK_WINDOW_MIN
from glucose_engine.core.errors import ConfigurationError, InvalidGridError
from glucose_engine.models.config import EngineConfig, InsulinProfile, require_config
from glucose_engine.models.events import CarbEvent, InsulinEvent
from glucose_engine.models.results import ActivityPhase, InsulinModelComparison, IOBProjection
from glucose_engine.services.cob import systemic_iob_at
from glucose_engine.services.math.curves import InsulinActivityModel, PeakDecayInsulinModel
from glucose_engine.utils.timezone import ensure_utc, minutes_between

logger = logging.getLogger(__name__)


def _require_profile(profile: Optional[InsulinProfile]) -> InsulinProfile:
    if profile is None:
        raise ConfigurationError("Insulin profile is required")
    if profile.peak_time_minutes <= 0 or profile.peak_time_minutes >= profile.duration_minutes:
        raise ConfigurationError("Insulin profile needs 0 < peak_time_minutes < duration_minutes")
    return profile


def iob_with_model(events: Sequence[InsulinEvent], target_time: datetime, model: InsulinActivityModel) -> float:
    total = 0.0
    for event in events:
        age = minutes_between(target_time, event.timestamp)
        # Skip doses not yet given or past the model's action window
        if age < 0 or age > model.window_minutes:
            continue
        total += model.remaining(event.units, age)
    return max(total, 0.0)


def calculate_iob_at_time(
    events: Sequence[InsulinEvent], target_time: datetime, profile: Optional[InsulinProfile]
) -> float:
    model = PeakDecayInsulinModel(profile=_require_profile(profile))
    return iob_with_model(events, ensure_utc(target_time), model)


def generate_projection(
    events: Sequence[InsulinEvent],
    start_time: datetime,
    end_time: datetime,
    step_minutes: float,
    profile: Optional[InsulinProfile],
) -> List[IOBProjection]:
    """IOB at every grid point of the closed interval [start_time, end_time]."""
    if step_minutes is None or not math.isfinite(step_minutes) or step_minutes <= 0:
        raise InvalidGridError(f"step_minutes must be a finite number > 0 (got {step_minutes})", step_minutes)
    try:
        step = timedelta(minutes=step_minutes)
    except OverflowError as exc:
        raise InvalidGridError(f"step_minutes {step_minutes} is out of range", step_minutes) from exc
    if step <= timedelta(0):
        raise InvalidGridError(f"step_minutes {step_minutes} is below timestamp resolution", step_minutes)
    start_time = ensure_utc(start_time)
    end_time = ensure_utc(end_time)
    if end_time < start_time:
        raise InvalidGridError(
            f"end_time {end_time.isoformat()} is before start_time {start_time.isoformat()}",
            step_minutes,
        )

    model = PeakDecayInsulinModel(profile=_require_profile(profile))
    events = tuple(events)

    projections: List[IOBProjection] = []
    i = 0
    current = start_time
    while current <= end_time:
        iob = iob_with_model(events, current, model)
        projections.append(IOBProjection(time=current, iob=round(iob, 2)))
        i += 1
        # Multiply rather than accumulate to avoid drift on fractional steps
        current = start_time + step * i
    return projections


def classify_activity(
    events: Sequence[InsulinEvent], now: datetime, profile: Optional[InsulinProfile]
) -> ActivityPhase:
    profile = _require_profile(profile)
    if not events:
        return "none"

    most_recent = max(events, key=lambda e: e.timestamp)
    age = minutes_between(now, most_recent.timestamp)
    peak = profile.peak_time_minutes

    if age < 0:
        return "none"
    if age < peak - PEAK_WINDOW_MIN:
        return "rising"
    if abs(age - peak) <= PEAK_WINDOW_MIN:
        return "peak"
    return "falling"


def describe_activity(
    events: Sequence[InsulinEvent], now: datetime, profile: Optional[InsulinProfile]
) -> str:
    status = classify_activity(events, now, profile)
    total_active = calculate_iob_at_time(events, now, profile)
    if status == "none" or total_active == 0:
        return "No active insulin"

    status_text = {
        "rising": "Insulin rising",
        "peak": "Insulin at peak",
        "falling": "Insulin falling",
    }[status]
    return f"{status_text} - {total_active:.1f}u active"


def insulin_events_from_carb_events(carb_events: Sequence[CarbEvent]) -> List[InsulinEvent]:
    return [
        InsulinEvent(
            id=f"insulin-{event.id}",
            timestamp=event.timestamp,
            units=event.insulin_units,
            dose_type="bolus",
            comment=event.comment,
        )
        for event in carb_events
        if event.insulin_units > 0
    ]


def compare_insulin_models(
    carb_events: Sequence[CarbEvent], now: datetime, config: Optional[EngineConfig]
) -> InsulinModelComparison:
    """
    Systemic IOB (as reported in COB status) next to active-phase IOB (as used
    for projections) for the same log. Which one is shown as "Active Insulin"
    is left to the caller.
    """
    config = require_config(config)
    now = ensure_utc(now)
    systemic = systemic_iob_at(carb_events, now, config)
    active = calculate_iob_at_time(insulin_events_from_carb_events(carb_events), now, config.profile)

    if abs(systemic - active) > 0.5:
        logger.info(
            "Insulin models disagree",
            extra={"systemic_iob": round(systemic, 2), "active_phase_iob": round(active, 2)},
        )
    return InsulinModelComparison(
        systemic_iob=round(systemic, 2),
        active_phase_iob=round(active, 2),
        difference=round(systemic - active, 2),
    )
