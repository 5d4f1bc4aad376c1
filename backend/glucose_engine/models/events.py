from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from glucose_engine.utils.timezone import ensure_utc

MealCategory = Literal["Breakfast", "Lunch", "Dinner", "Snack", "Correction", "Other"]
DoseType = Literal["bolus", "basal", "correction"]


class CarbEvent(BaseModel):
    """A logged meal or correction note. Amounts are as logged, never decayed."""

    model_config = ConfigDict(frozen=True)

    id: str
    timestamp: datetime
    carbs_g: float = Field(0.0, ge=0, description="Carbohydrates logged (g)")
    insulin_units: float = Field(0.0, ge=0, description="Insulin taken with the meal (U)")
    meal_category: MealCategory = "Other"
    comment: Optional[str] = None
    glucose_at_entry: Optional[float] = Field(None, ge=0, description="Glucose reading at entry (mmol/L)")

    @field_validator("timestamp")
    def _normalize_timestamp(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class InsulinEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    timestamp: datetime
    units: float = Field(..., ge=0)
    dose_type: DoseType = "bolus"
    duration_minutes: Optional[float] = Field(None, gt=0, description="Action duration override (min)")
    comment: Optional[str] = None

    @field_validator("timestamp")
    def _normalize_timestamp(cls, v: datetime) -> datetime:
        return ensure_utc(v)
