from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

from glucose_engine.core.constants import (
    COB_PROJECTION_INTERVAL_MIN,
    COB_PROJECTION_POINTS,
    NEGLIGIBLE_CARBS_G,
    NEGLIGIBLE_INSULIN_U,
)
from glucose_engine.models.config import EngineConfig, require_config
from glucose_engine.models.events import CarbEvent
from glucose_engine.models.results import ActiveEntry, COBProjectionPoint, COBStatus, COBSummary
from glucose_engine.services.math.curves import CarbCurves, DecayCurves, HalfLifeInsulinModel
from glucose_engine.utils.timezone import ensure_utc, minutes_between, start_of_local_day

logger = logging.getLogger(__name__)


def _tracked(
    events: Iterable[CarbEvent], target_time: datetime, max_age_min: float
) -> Iterator[Tuple[CarbEvent, float]]:
    """Events whose age at `target_time` lies in [0, max_age_min], with that age."""
    for event in events:
        age = minutes_between(target_time, event.timestamp)
        if 0 <= age <= max_age_min:
            yield event, age


def cob_at(events: Sequence[CarbEvent], target_time: datetime, config: EngineConfig) -> float:
    """Unrounded carbs on board (g) at `target_time`."""
    decay = config.decay
    total = 0.0
    for event, age in _tracked(events, target_time, decay.max_cob_tracking_minutes):
        total += CarbCurves.remaining(event.carbs_g, age, decay.carb_half_life_minutes)
    return max(total, 0.0)


def systemic_iob_at(events: Sequence[CarbEvent], target_time: datetime, config: EngineConfig) -> float:
    """Residual insulin (U) from meal notes, fixed-half-life clearance."""
    model = HalfLifeInsulinModel(tracking_min=config.decay.max_cob_tracking_minutes)
    total = 0.0
    for event, age in _tracked(events, target_time, model.window_minutes):
        remaining = model.remaining(event.insulin_units, age)
        if remaining > NEGLIGIBLE_INSULIN_U:
            total += remaining
    return max(total, 0.0)


def estimate_glucose_impact(cob_g: float, iob_u: float, config: EngineConfig) -> float:
    # Carbs raise glucose, insulin lowers it
    rise = (cob_g / 10.0) * config.decay.carb_ratio
    drop = iob_u * config.decay.insulin_sensitivity_factor
    return rise - drop


def estimate_time_to_zero(cob_g: float, config: EngineConfig) -> float:
    if cob_g <= 0:
        return 0.0
    return DecayCurves.half_life_time_to(cob_g, NEGLIGIBLE_CARBS_G, config.decay.carb_half_life_minutes)


def calculate_cob(
    events: Sequence[CarbEvent], target_time: datetime, config: Optional[EngineConfig]
) -> COBStatus:
    config = require_config(config)
    target_time = ensure_utc(target_time)
    decay = config.decay
    events = tuple(events)

    total_cob = 0.0
    active: List[ActiveEntry] = []
    for event, age in _tracked(events, target_time, decay.max_cob_tracking_minutes):
        remaining = CarbCurves.remaining(event.carbs_g, age, decay.carb_half_life_minutes)
        total_cob += remaining
        if remaining > NEGLIGIBLE_CARBS_G:
            active.append(ActiveEntry(event=event, remaining_grams=remaining, original_grams=event.carbs_g))

    total_iob = systemic_iob_at(events, target_time, config)

    # Newest first; the presentation layer relies on this order
    active.sort(key=lambda entry: entry.event.timestamp, reverse=True)

    status = COBStatus(
        current_cob=round(total_cob, 1),
        active_entries=active,
        estimated_glucose_impact=round(estimate_glucose_impact(total_cob, total_iob, config), 1),
        time_to_zero_minutes=round(estimate_time_to_zero(total_cob, config)),
        insulin_on_board=round(total_iob, 2),
    )
    logger.debug(
        "COB calculated",
        extra={
            "target_time": target_time.isoformat(),
            "events": len(events),
            "active": len(active),
            "cob_g": status.current_cob,
            "iob_u": status.insulin_on_board,
        },
    )
    return status


def cob_projection(
    events: Sequence[CarbEvent],
    now: datetime,
    config: Optional[EngineConfig],
    points: int = COB_PROJECTION_POINTS,
    interval_minutes: float = COB_PROJECTION_INTERVAL_MIN,
) -> List[COBProjectionPoint]:
    """COB/IOB sampled forward from `now`, for charts."""
    config = require_config(config)
    if points < 0:
        raise ValueError("points must be >= 0")
    if interval_minutes <= 0:
        raise ValueError("interval_minutes must be > 0")

    now = ensure_utc(now)
    events = tuple(events)
    projection: List[COBProjectionPoint] = []
    for i in range(points + 1):
        t = now + timedelta(minutes=i * interval_minutes)
        status = calculate_cob(events, t, config)
        projection.append(COBProjectionPoint(time=t, cob=status.current_cob, iob=status.insulin_on_board))
    return projection


def recommended_insulin(
    carbs_g: float,
    config: Optional[EngineConfig],
    current_glucose: Optional[float] = None,
    target_glucose: float = 7.0,
) -> float:
    """
    Meal dose from the carb ratio plus a correction when above target.
    IOB is not subtracted here; callers with an event log should do that.
    """
    config = require_config(config)
    isf = config.decay.insulin_sensitivity_factor

    glucose_rise = (carbs_g / 10.0) * config.decay.carb_ratio
    dose = glucose_rise / isf
    if current_glucose and current_glucose > target_glucose:
        dose += (current_glucose - target_glucose) / isf
    return max(0.0, round(dose, 2))


def daily_summary(
    events: Sequence[CarbEvent], now: datetime, tz: Optional[ZoneInfo] = None
) -> COBSummary:
    start = start_of_local_day(now, tz)
    today = [e for e in events if e.timestamp >= start]

    total_carbs = sum(e.carbs_g for e in today)
    total_insulin = sum(e.insulin_units for e in today)
    readings = [e.glucose_at_entry for e in today if e.glucose_at_entry]
    average = sum(readings) / len(readings) if readings else 0.0
    ratio = total_carbs / total_insulin if total_insulin > 0 else 0.0

    return COBSummary(
        total_carbs_today=round(total_carbs),
        total_insulin_today=round(total_insulin, 2),
        average_glucose=round(average, 1),
        carb_insulin_ratio=round(ratio, 1),
    )
