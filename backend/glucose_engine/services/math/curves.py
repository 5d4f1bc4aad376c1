import math
from dataclasses import dataclass
from typing import Protocol

from glucose_engine.core.constants import AGE_EPSILON_MIN, SYSTEMIC_INSULIN_HALF_LIFE_MIN
from glucose_engine.models.config import EngineConfig, InsulinModelName, InsulinProfile


class DecayCurves:
    """
    Remaining-amount curves. `t_min` is the age of the event in minutes
    at the instant being evaluated; all results are in the unit of `amount`.
    """

    @staticmethod
    def half_life_remaining(amount: float, t_min: float, half_life_min: float) -> float:
        if t_min < 0: return amount  # future-dated: nothing absorbed yet
        if t_min <= AGE_EPSILON_MIN: return amount
        remaining = amount * math.pow(0.5, t_min / half_life_min)
        return max(0.0, remaining)

    @staticmethod
    def half_life_time_to(amount: float, threshold: float, half_life_min: float) -> float:
        """Minutes until `amount` decays down to `threshold`."""
        if amount <= threshold or threshold <= 0: return 0.0
        return half_life_min * math.log2(amount / threshold)

    @staticmethod
    def rise_decay_remaining(
        units: float, t_min: float, peak_min: float, duration_min: float, decay_rate: float
    ) -> float:
        # Linear rise models on-board activity building up, not depletion
        if t_min < 0 or t_min > duration_min: return 0.0
        if t_min <= peak_min:
            return max(0.0, units * (t_min / peak_min))
        after_peak = (t_min - peak_min) / (duration_min - peak_min)
        return max(0.0, units * math.exp(-decay_rate * after_peak))


class InsulinActivityModel(Protocol):
    name: str

    @property
    def window_minutes(self) -> float: ...

    def remaining(self, units: float, t_min: float) -> float: ...


@dataclass(frozen=True)
class HalfLifeInsulinModel:
    """Whole-body residual insulin: plain exponential clearance."""

    half_life_min: float = SYSTEMIC_INSULIN_HALF_LIFE_MIN
    tracking_min: float = 240.0
    name: str = "half_life"

    @property
    def window_minutes(self) -> float:
        return self.tracking_min

    def remaining(self, units: float, t_min: float) -> float:
        return DecayCurves.half_life_remaining(units, t_min, self.half_life_min)


@dataclass(frozen=True)
class PeakDecayInsulinModel:
    """Active-phase insulin: linear rise to the profile peak, exponential tail."""

    profile: InsulinProfile
    name: str = "peak_decay"

    @property
    def window_minutes(self) -> float:
        return self.profile.duration_minutes

    def remaining(self, units: float, t_min: float) -> float:
        p = self.profile
        return DecayCurves.rise_decay_remaining(
            units, t_min, p.peak_time_minutes, p.duration_minutes, p.decay_rate
        )


def insulin_model_for(config: EngineConfig, name: InsulinModelName | None = None) -> InsulinActivityModel:
    m = (name or config.projection_insulin_model).lower()
    if m == "half_life":
        return HalfLifeInsulinModel(tracking_min=config.decay.max_cob_tracking_minutes)
    elif m == "peak_decay":
        return PeakDecayInsulinModel(profile=config.profile)
    raise ValueError(f"Unknown insulin model: {name!r}")


class CarbCurves:
    @staticmethod
    def remaining(grams: float, t_min: float, half_life_min: float) -> float:
        return DecayCurves.half_life_remaining(grams, t_min, half_life_min)
