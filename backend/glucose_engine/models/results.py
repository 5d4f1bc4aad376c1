from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from glucose_engine.models.events import CarbEvent
from glucose_engine.utils.glucose import GlucoseStatus

ActivityPhase = Literal["rising", "peak", "falling", "none"]
OutlookTrend = Literal["rising", "stable", "falling"]
WarningCode = Literal["implausible_low", "implausible_high"]


class ActiveEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    event: CarbEvent
    remaining_grams: float
    original_grams: float


class COBStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    current_cob: float = 0.0  # g, 1 decimal
    active_entries: List[ActiveEntry] = []  # newest first
    estimated_glucose_impact: float = 0.0  # mmol/L, signed
    time_to_zero_minutes: int = 0
    insulin_on_board: float = 0.0  # U, systemic half-life model


class PredictionWarning(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: WarningCode
    message: str
    value: float


class IOBProjection(BaseModel):
    model_config = ConfigDict(frozen=True)

    time: datetime
    iob: float
    glucose_prediction: Optional[float] = None
    confidence: Optional[float] = Field(None, ge=0, le=1)
    warnings: List[PredictionWarning] = []


class GlucosePrediction(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: float
    confidence: float = Field(..., ge=0, le=1)
    horizon_minutes: float
    target_time: datetime

    cob_at_target: float = 0.0
    iob_at_target: float = 0.0
    cob_effect: float = 0.0  # Positive usually
    iob_effect: float = 0.0  # Subtracted from glucose
    trend_effect: float = 0.0  # Variable
    flat: bool = False  # No active carbs/insulin: value is current glucose

    warnings: List[PredictionWarning] = []

    @property
    def is_implausible(self) -> bool:
        return bool(self.warnings)


class COBProjectionPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    time: datetime
    cob: float
    iob: float


class COBSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_carbs_today: float = 0.0
    total_insulin_today: float = 0.0
    average_glucose: float = 0.0
    carb_insulin_ratio: float = 0.0


class PredictionOutlook(BaseModel):
    model_config = ConfigDict(frozen=True)

    predicted_glucose: float
    trend: OutlookTrend
    status: GlucoseStatus
    confidence: float
    warnings: List[PredictionWarning] = []


class InsulinModelComparison(BaseModel):
    """Both IOB figures for one event set; they are computed by different models."""

    model_config = ConfigDict(frozen=True)

    systemic_iob: float
    active_phase_iob: float
    difference: float
