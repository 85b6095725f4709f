"""
EngineConfig - thresholds used by the ACH analyzers.

Loaded from defaults, then an optional YAML file, then environment variables.
"""

import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Optional

import yaml

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

ENV_PREFIX = "ACH_ENGINE_"
CONFIG_PATH_ENV = "ACH_ENGINE_CONFIG"


@dataclass(frozen=True)
class EngineConfig:
    """Thresholds and candidate values for every analyzer."""

    # Diagnostic value
    diagnostic_low: float = 0.5
    diagnostic_high: float = 1.5
    diagnostic_max: float = 2.0

    # Hypothesis similarity
    similarity_high: float = 0.8
    similarity_moderate: float = 0.5

    # Sensitivity sweeps (percent change of a hypothesis total)
    sensitivity_high: float = 20.0
    sensitivity_medium: float = 10.0
    score_candidates: tuple[int, ...] = (-2, -1, 0, 1, 2)
    weight_candidates: tuple[int, ...] = (25, 50, 75, 100)
    reliability_candidates: tuple[int, ...] = (25, 50, 75, 100)

    # Stability of the leading hypothesis (relative gap, percent)
    stability_high: float = 50.0
    stability_medium: float = 20.0
    stability_low: float = 10.0

    # Matrix completion and evidence volume
    completion_target: float = 70.0
    min_evidence: int = 3
    key_evidence_count: int = 3

    # Quality bands (overall score, percent)
    quality_bands: dict[str, float] = field(default_factory=lambda: {
        "excellent": 90.0,
        "good": 80.0,
        "medium": 70.0,
        "needs-improvement": 60.0,
    })

    def __post_init__(self):
        if not 0 <= self.diagnostic_low <= self.diagnostic_high <= self.diagnostic_max:
            raise ConfigError("diagnostic thresholds must satisfy 0 <= low <= high <= max")
        if not 0 <= self.similarity_moderate <= self.similarity_high <= 1:
            raise ConfigError("similarity thresholds must satisfy 0 <= moderate <= high <= 1")
        if self.sensitivity_medium > self.sensitivity_high:
            raise ConfigError("sensitivity_medium must not exceed sensitivity_high")
        if not self.stability_low <= self.stability_medium <= self.stability_high:
            raise ConfigError("stability thresholds must be ascending")
        for name in ("weight_candidates", "reliability_candidates"):
            if any(not 0 <= v <= 100 for v in getattr(self, name)):
                raise ConfigError(f"{name} must lie in 0..100")
        if any(v not in (-2, -1, 0, 1, 2) for v in self.score_candidates):
            raise ConfigError("score_candidates must be legal matrix scores")

    def get(self, key: str, default: Any = None) -> Any:
        """Get a config value by dot-notation key."""
        parts = key.split(".")
        value: Any = self

        for part in parts:
            if isinstance(value, dict) and part in value:
                value = value[part]
            elif hasattr(value, part) and not part.startswith("_"):
                value = getattr(value, part)
            else:
                return default

        return value

    def with_overrides(self, **overrides: Any) -> "EngineConfig":
        unknown = set(overrides) - {f.name for f in fields(self)}
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")
        return replace(self, **{k: _coerce(k, v) for k, v in overrides.items()})


DEFAULT_CONFIG = EngineConfig()


def _coerce(name: str, value: Any) -> Any:
    """Coerce a raw (YAML or environment) value to the field's type."""
    default = getattr(DEFAULT_CONFIG, name)
    try:
        if isinstance(default, tuple):
            if isinstance(value, str):
                value = [v for v in value.split(",") if v.strip()]
            return tuple(int(v) for v in value)
        if isinstance(default, dict):
            if not isinstance(value, dict):
                raise TypeError("expected a mapping")
            return {**default, **{str(k): float(v) for k, v in value.items()}}
        if isinstance(default, int):
            return int(value)
        if isinstance(default, float):
            return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value for {name}: {value!r} ({e})") from e
    return value


def _load_yaml(path: str) -> dict[str, Any]:
    """Load configuration overrides from a YAML file."""
    config_file = Path(path)
    if not config_file.exists():
        raise ConfigError(f"Config file not found: {path}")

    with open(config_file) as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    # Accept either a flat mapping or one nested under "ach_engine"
    return data.get("ach_engine", data)


def _load_env() -> dict[str, Any]:
    """Collect ACH_ENGINE_<FIELD> overrides from the environment."""
    overrides = {}
    for f in fields(EngineConfig):
        raw = os.environ.get(ENV_PREFIX + f.name.upper())
        if raw is not None and f.name != "quality_bands":
            overrides[f.name] = raw
    return overrides


def load_config(config_path: Optional[str] = None) -> EngineConfig:
    """
    Build an EngineConfig.

    Precedence: defaults < YAML file (explicit path or $ACH_ENGINE_CONFIG)
    < ACH_ENGINE_* environment variables.
    """
    overrides: dict[str, Any] = {}

    path = config_path or os.environ.get(CONFIG_PATH_ENV)
    if path:
        overrides.update(_load_yaml(path))
        logger.debug(f"Loaded ACH engine config from {path}")

    overrides.update(_load_env())

    if not overrides:
        return DEFAULT_CONFIG

    config = DEFAULT_CONFIG.with_overrides(**overrides)
    logger.info(f"ACH engine config overrides: {', '.join(sorted(overrides))}")
    return config
