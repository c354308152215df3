"""Engine configuration with optional YAML overrides."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Dict, Optional, Tuple

import yaml

from keystride.core.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".keystride" / "config.yaml"


def _default_baselines() -> Dict[str, float]:
    return {"task1": 90.0, "task2": 150.0}


@dataclass(frozen=True)
class EngineConfig:
    """Tunable limits and thresholds shared by the engine components."""

    max_alignment_length: int = 2500
    time_attack_grace_seconds: float = 0.5
    time_attack_finish_progress: float = 0.9
    tick_interval_ms: int = 100
    exam_duration_seconds: float = 120.0
    practice_durations: Tuple[float, ...] = (60.0, 90.0, 180.0)
    formula_tolerance: float = 0.03
    time_attack_accuracy_floor: float = 95.0
    standard_accuracy_floor: float = 90.0
    baseline_seconds: Dict[str, float] = field(default_factory=_default_baselines)

    def baseline_for(self, task_type: str) -> float:
        """Grading baseline duration for a task type key such as ``task1``."""
        return float(self.baseline_seconds.get(task_type, max(self.baseline_seconds.values(), default=90.0)))


def load_config(path: Optional[Path] = None) -> EngineConfig:
    """Load configuration from YAML, falling back to defaults.

    A missing file yields the defaults. Keys that are not config fields are
    logged and ignored; values of the wrong type raise ``ConfigError``.
    """
    config_path = path if path is not None else DEFAULT_CONFIG_PATH
    defaults = EngineConfig()
    if not config_path.exists():
        return defaults

    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"{config_path.name}: invalid YAML: {e}") from e
    if raw is None:
        return defaults
    if not isinstance(raw, dict):
        raise ConfigError(f"{config_path.name}: expected a mapping at the top level")

    known = {f.name for f in fields(EngineConfig)}
    overrides = {}
    for key, value in raw.items():
        if key not in known:
            logger.warning("Ignoring unknown config key %r in %s", key, config_path)
            continue
        overrides[key] = _coerce(config_path.name, key, value)

    config = replace(defaults, **overrides)
    logger.info("Loaded configuration from %s", config_path)
    return config


def _coerce(source: str, key: str, value: object) -> object:
    if key in ("max_alignment_length", "tick_interval_ms"):
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ConfigError(f"{source}: '{key}' must be a positive integer")
        return value
    if key == "practice_durations":
        if not isinstance(value, list) or not value:
            raise ConfigError(f"{source}: '{key}' must be a non-empty list of seconds")
        return tuple(_positive_float(source, key, item) for item in value)
    if key == "baseline_seconds":
        if not isinstance(value, dict) or not value:
            raise ConfigError(f"{source}: '{key}' must map task types to seconds")
        return {str(k): _positive_float(source, key, v) for k, v in value.items()}
    if key == "time_attack_grace_seconds":
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
            raise ConfigError(f"{source}: '{key}' must be zero or a positive number")
        return float(value)
    if key == "time_attack_finish_progress":
        share = _positive_float(source, key, value)
        if share > 1.0:
            raise ConfigError(f"{source}: '{key}' must be a fraction between 0 and 1")
        return share
    return _positive_float(source, key, value)


def _positive_float(source: str, key: str, value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigError(f"{source}: '{key}' must be a positive number")
    return float(value)
