from .events import CarbEvent, InsulinEvent, MealCategory, DoseType
from .config import DecayConfig, InsulinProfile, EngineConfig, require_config
from .results import (
    ActiveEntry,
    COBStatus,
    IOBProjection,
    PredictionWarning,
    GlucosePrediction,
    COBProjectionPoint,
    COBSummary,
    PredictionOutlook,
    InsulinModelComparison,
)
