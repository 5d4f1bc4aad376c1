from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from glucose_engine.core.constants import (
    CONFIDENCE_ZERO_HORIZON_MIN,
    OUTLOOK_HORIZON_MIN,
    OUTLOOK_TREND_THRESHOLD,
    PLAUSIBLE_GLUCOSE_MAX,
    PLAUSIBLE_GLUCOSE_MIN,
)
from glucose_engine.models.config import EngineConfig, require_config
from glucose_engine.models.events import CarbEvent, InsulinEvent
from glucose_engine.models.results import (
    GlucosePrediction,
    IOBProjection,
    OutlookTrend,
    PredictionOutlook,
    PredictionWarning,
)
from glucose_engine.services.cob import cob_at
from glucose_engine.services.iob import generate_projection, iob_with_model
from glucose_engine.services.math.curves import insulin_model_for
from glucose_engine.utils.glucose import TrendUnit, glucose_status, mmol_to_mgdl, trend_to_mmol
from glucose_engine.utils.timezone import ensure_utc, minutes_between

logger = logging.getLogger(__name__)


def prediction_confidence(horizon_minutes: float) -> float:
    """1.0 now, falling linearly to 0.0 at six hours and beyond."""
    if horizon_minutes <= 0:
        return 1.0
    return max(0.0, 1.0 - horizon_minutes / CONFIDENCE_ZERO_HORIZON_MIN)


def _plausibility_warnings(value: float) -> List[PredictionWarning]:
    if value < PLAUSIBLE_GLUCOSE_MIN:
        return [PredictionWarning(
            code="implausible_low",
            message=f"Predicted glucose {value} mmol/L ({mmol_to_mgdl(value)} mg/dL) is below {PLAUSIBLE_GLUCOSE_MIN}",
            value=value,
        )]
    if value > PLAUSIBLE_GLUCOSE_MAX:
        return [PredictionWarning(
            code="implausible_high",
            message=f"Predicted glucose {value} mmol/L ({mmol_to_mgdl(value)} mg/dL) is above {PLAUSIBLE_GLUCOSE_MAX}",
            value=value,
        )]
    return []


def predict_glucose(
    current_glucose: float,
    trend_per_minute: float,
    horizon_minutes: float,
    carb_events: Sequence[CarbEvent],
    insulin_events: Sequence[InsulinEvent],
    config: Optional[EngineConfig],
    now: datetime,
    trend_unit: TrendUnit = "mmol",
) -> GlucosePrediction:
    """
    Projects glucose `horizon_minutes` ahead of `now`.

    COB and IOB are evaluated as if observed at the target instant: each
    event's age is measured from the target time, not from `now`. With no
    carbs and no insulin active at the target the projection is flat and the
    trend is not extrapolated.

    Values outside the plausible range are still returned, with a warning
    attached to the result.
    """
    config = require_config(config)
    if horizon_minutes < 0:
        raise ValueError(f"horizon_minutes must be >= 0 (got {horizon_minutes})")

    now = ensure_utc(now)
    target_time = now + timedelta(minutes=horizon_minutes)
    decay = config.decay

    # 1. State at target
    cob_target = cob_at(carb_events, target_time, config)
    insulin_model = insulin_model_for(config)
    iob_target = iob_with_model(insulin_events, target_time, insulin_model)

    # 2. Effects (mmol/L)
    cob_effect = (cob_target / 10.0) * decay.carb_ratio
    iob_effect = iob_target * decay.insulin_sensitivity_factor
    trend_effect = trend_to_mmol(trend_per_minute, trend_unit) * horizon_minutes

    # 3. Combine
    flat = cob_target == 0 and iob_target == 0
    if flat:
        value = current_glucose
        trend_effect = 0.0
    else:
        value = round(max(0.0, current_glucose + trend_effect + cob_effect - iob_effect), 1)

    warnings = _plausibility_warnings(value)
    if warnings:
        logger.warning(
            "Extreme glucose prediction",
            extra={
                "predicted": value,
                "current": current_glucose,
                "horizon_min": horizon_minutes,
                "cob_g": round(cob_target, 1),
                "iob_u": round(iob_target, 2),
            },
        )

    return GlucosePrediction(
        value=value,
        confidence=prediction_confidence(horizon_minutes),
        horizon_minutes=horizon_minutes,
        target_time=target_time,
        cob_at_target=round(cob_target, 1),
        iob_at_target=round(iob_target, 2),
        cob_effect=round(cob_effect, 2),
        iob_effect=round(iob_effect, 2),
        trend_effect=round(trend_effect, 2),
        flat=flat,
        warnings=warnings,
    )


def generate_combined_projection(
    insulin_events: Sequence[InsulinEvent],
    current_glucose: float,
    trend_per_minute: float,
    start_time: datetime,
    end_time: datetime,
    step_minutes: float,
    config: Optional[EngineConfig],
    now: datetime,
    carb_events: Sequence[CarbEvent] = (),
    trend_unit: TrendUnit = "mmol",
) -> List[IOBProjection]:
    """
    IOB grid over [start_time, end_time]; points strictly after `now` also
    carry a glucose prediction and its confidence.
    """
    config = require_config(config)
    now = ensure_utc(now)
    insulin_events = tuple(insulin_events)
    carb_events = tuple(carb_events)

    grid = generate_projection(insulin_events, start_time, end_time, step_minutes, config.profile)

    combined: List[IOBProjection] = []
    for point in grid:
        if point.time <= now:
            combined.append(point)
            continue
        prediction = predict_glucose(
            current_glucose,
            trend_per_minute,
            minutes_between(point.time, now),
            carb_events,
            insulin_events,
            config,
            now,
            trend_unit=trend_unit,
        )
        combined.append(point.model_copy(update={
            "glucose_prediction": prediction.value,
            "confidence": prediction.confidence,
            "warnings": prediction.warnings,
        }))

    logger.debug(
        "Combined projection generated",
        extra={"points": len(combined), "predicted": sum(1 for p in combined if p.glucose_prediction is not None)},
    )
    return combined


def two_hour_outlook(
    current_glucose: float,
    carb_events: Sequence[CarbEvent],
    insulin_events: Sequence[InsulinEvent],
    config: Optional[EngineConfig],
    now: datetime,
    trend_per_minute: float = 0.0,
    trend_unit: TrendUnit = "mmol",
) -> PredictionOutlook:
    prediction = predict_glucose(
        current_glucose,
        trend_per_minute,
        OUTLOOK_HORIZON_MIN,
        carb_events,
        insulin_events,
        config,
        now,
        trend_unit=trend_unit,
    )

    change = prediction.value - current_glucose
    trend: OutlookTrend
    if change > OUTLOOK_TREND_THRESHOLD:
        trend = "rising"
    elif change < -OUTLOOK_TREND_THRESHOLD:
        trend = "falling"
    else:
        trend = "stable"

    return PredictionOutlook(
        predicted_glucose=prediction.value,
        trend=trend,
        status=glucose_status(prediction.value),
        confidence=prediction.confidence,
        warnings=prediction.warnings,
    )
