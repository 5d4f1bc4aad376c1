from __future__ import annotations

import math
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from glucose_engine.core.errors import ConfigurationError

InsulinModelName = Literal["half_life", "peak_decay"]


class DecayConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    carb_ratio: float = Field(2.0, gt=0, allow_inf_nan=False, description="Glucose rise (mmol/L) per 10 g carbs")
    insulin_sensitivity_factor: float = Field(1.0, gt=0, allow_inf_nan=False, description="Glucose drop (mmol/L) per unit")
    carb_half_life_minutes: float = Field(45.0, gt=0, allow_inf_nan=False)
    max_cob_tracking_minutes: float = Field(240.0, gt=0, allow_inf_nan=False)


class InsulinProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    peak_time_minutes: float = Field(60.0, gt=0, allow_inf_nan=False)
    duration_minutes: float = Field(300.0, gt=0, allow_inf_nan=False)
    decay_rate: float = Field(0.8, gt=0, allow_inf_nan=False, description="Exponent scale after peak")

    @model_validator(mode="after")
    def _peak_before_end(self) -> "InsulinProfile":
        if self.peak_time_minutes >= self.duration_minutes:
            raise ValueError(
                f"peak_time_minutes ({self.peak_time_minutes}) must be lower than "
                f"duration_minutes ({self.duration_minutes})"
            )
        return self


class EngineConfig(BaseModel):
    """Immutable snapshot handed to every calculation."""

    model_config = ConfigDict(frozen=True)

    decay: DecayConfig = Field(default_factory=DecayConfig)
    profile: InsulinProfile = Field(default_factory=InsulinProfile)
    projection_insulin_model: InsulinModelName = "peak_decay"

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "EngineConfig":
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid engine configuration: {exc}") from exc


def require_config(config: Optional[EngineConfig]) -> EngineConfig:
    """
    Guards the calculation entry points. Rejects a missing snapshot and
    re-checks values for configs built with model_construct().
    """
    if config is None:
        raise ConfigurationError("Engine configuration is required")
    if not isinstance(config, EngineConfig):
        raise ConfigurationError(f"Expected EngineConfig, got {type(config).__name__}")

    values = {
        "carb_ratio": config.decay.carb_ratio,
        "insulin_sensitivity_factor": config.decay.insulin_sensitivity_factor,
        "carb_half_life_minutes": config.decay.carb_half_life_minutes,
        "max_cob_tracking_minutes": config.decay.max_cob_tracking_minutes,
        "peak_time_minutes": config.profile.peak_time_minutes,
        "duration_minutes": config.profile.duration_minutes,
        "decay_rate": config.profile.decay_rate,
    }
    for name, value in values.items():
        if not math.isfinite(value) or value <= 0:
            raise ConfigurationError(f"{name} must be a positive finite number (got {value})")
    if config.profile.peak_time_minutes >= config.profile.duration_minutes:
        raise ConfigurationError("peak_time_minutes must be lower than duration_minutes")
    return config


__all__ = ["DecayConfig", "InsulinProfile", "EngineConfig", "InsulinModelName", "require_config"]
