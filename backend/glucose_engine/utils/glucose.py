from typing import Literal

from glucose_engine.core.constants import GLUCOSE_THRESHOLDS, MGDL_PER_MMOL

GlucoseStatus = Literal["low", "normal", "high", "critical"]
TrendUnit = Literal["mmol", "mgdl"]


def mmol_to_mgdl(value_mmol: float) -> int:
    return round(value_mmol * MGDL_PER_MMOL)


def trend_to_mmol(trend_per_minute: float, unit: TrendUnit = "mmol") -> float:
    """Trend in mmol/L per minute; mg/dL trends are converted without rounding."""
    if unit == "mgdl":
        return trend_per_minute / MGDL_PER_MMOL
    if unit != "mmol":
        raise ValueError(f"Unknown trend unit: {unit!r}")
    return trend_per_minute


def glucose_status(value_mmol: float) -> GlucoseStatus:
    if value_mmol < GLUCOSE_THRESHOLDS["low"]:
        return "low"
    if value_mmol < GLUCOSE_THRESHOLDS["normal"]:
        return "normal"
    if value_mmol < GLUCOSE_THRESHOLDS["high"]:
        return "high"
    return "critical"
