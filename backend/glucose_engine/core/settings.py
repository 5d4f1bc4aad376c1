import json
import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping, Optional

from dotenv import load_dotenv

from glucose_engine.core.errors import ConfigurationError
from glucose_engine.models.config import EngineConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(os.environ.get("GLUCOSE_ENGINE_CONFIG", "config/engine.json"))

# env var -> (section, field, caster)
_ENV_FIELDS = {
    "CARB_RATIO": ("decay", "carb_ratio", float),
    "INSULIN_SENSITIVITY_FACTOR": ("decay", "insulin_sensitivity_factor", float),
    "CARB_HALF_LIFE_MINUTES": ("decay", "carb_half_life_minutes", float),
    "MAX_COB_TRACKING_MINUTES": ("decay", "max_cob_tracking_minutes", float),
    "INSULIN_PEAK_MINUTES": ("profile", "peak_time_minutes", float),
    "INSULIN_DURATION_MINUTES": ("profile", "duration_minutes", float),
    "INSULIN_DECAY_RATE": ("profile", "decay_rate", float),
}


def _load_file_config(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
    except (json.JSONDecodeError, UnicodeDecodeError, OSError) as exc:
        logger.error("Invalid engine config file", extra={"path": str(path), "error": str(exc)})
        raise ConfigurationError(f"Unreadable JSON configuration at {path}") from exc
    if not isinstance(data, dict):
        logger.error("Invalid engine config file", extra={"path": str(path), "error": "not an object"})
        raise ConfigurationError(f"Configuration at {path} must be a JSON object")
    for section in ("decay", "profile"):
        if section in data and not isinstance(data[section], dict):
            logger.error("Invalid engine config section", extra={"path": str(path), "section": section})
            raise ConfigurationError(f"Section {section!r} in {path} must be a JSON object")
    return data


def _load_env(env: Mapping[str, str]) -> dict[str, Any]:
    env_config: dict[str, Any] = {}

    for var_name, (section, field, caster) in _ENV_FIELDS.items():
        raw = env.get(var_name)
        if raw is None or not raw.strip():
            continue
        try:
            env_config.setdefault(section, {})[field] = caster(raw)
        except ValueError as exc:
            raise ConfigurationError(f"{var_name}={raw!r} is not a number") from exc

    model = env.get("PROJECTION_INSULIN_MODEL")
    if model:
        env_config["projection_insulin_model"] = model.strip().lower()

    return env_config


def merge_settings(env_config: dict[str, Any], file_config: dict[str, Any]) -> dict[str, Any]:
    merged: dict[str, Any] = {}
    merged["decay"] = {**file_config.get("decay", {}), **env_config.get("decay", {})}
    merged["profile"] = {**file_config.get("profile", {}), **env_config.get("profile", {})}
    model = env_config.get("projection_insulin_model") or file_config.get("projection_insulin_model")
    if model:
        merged["projection_insulin_model"] = model
    return merged


def load_engine_config(
    path: Optional[Path] = None, env: Optional[Mapping[str, str]] = None
) -> EngineConfig:
    """
    Builds a validated snapshot from the config file and environment.
    Environment values win over file values; anything missing uses the
    model defaults.
    """
    if env is None:
        load_dotenv(override=False)
        env = os.environ
    file_config = _load_file_config(path or DEFAULT_CONFIG_PATH)
    merged = merge_settings(env_config=_load_env(env), file_config=file_config)
    try:
        return EngineConfig.from_mapping(merged)
    except ConfigurationError:
        logger.error("Engine configuration rejected", extra={"config": merged})
        raise


@lru_cache(maxsize=1)
def get_engine_config() -> EngineConfig:
    return load_engine_config()


__all__ = ["load_engine_config", "get_engine_config", "merge_settings"]
