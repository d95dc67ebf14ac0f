"""YAML configuration for the composition engine."""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .composition.schema import CompositionMode
from .duration import DEFAULT_FALLBACK_MINUTES
from .errors import ConfigError
from .phases.classifier import ClassifierPolicy

DEFAULT_CONFIG_NAME = "config.yaml"

DEFAULT_CONFIG_TEMPLATE: Dict[str, Any] = {
    "classifier": {
        "weekly_max_days": 7,
        "monthly_max_days": 30,
        "default_slot": "MID_SHIFT",
    },
    "duration": {
        "fallback_minutes": DEFAULT_FALLBACK_MINUTES,
    },
    "composition": {
        "default_mode": CompositionMode.FLAT.value,
    },
    "catalog": {
        "ttl_seconds": 300,
        "exclude_corrective": True,
        "exclude_failures": True,
    },
    "logging": {
        "level": "WARNING",
    },
}


class SectionModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class DurationSettings(SectionModel):
    fallback_minutes: int = Field(default=DEFAULT_FALLBACK_MINUTES, ge=0)


class CompositionSettings(SectionModel):
    default_mode: CompositionMode = CompositionMode.FLAT

    @field_validator("default_mode", mode="before")
    @classmethod
    def _upper(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value


class CatalogSettings(SectionModel):
    ttl_seconds: Optional[float] = Field(default=300, ge=0)
    exclude_corrective: bool = True
    exclude_failures: bool = True


class LoggingSettings(SectionModel):
    level: str = "WARNING"

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown logging level: {value}")
        return level


class EngineConfig(SectionModel):
    """Validated engine configuration."""

    classifier: ClassifierPolicy = ClassifierPolicy()
    duration: DurationSettings = DurationSettings()
    composition: CompositionSettings = CompositionSettings()
    catalog: CatalogSettings = CatalogSettings()
    logging: LoggingSettings = LoggingSettings()


def _copy_config_template() -> Dict[str, Any]:
    """Return a deep copy of the default configuration template."""
    return copy.deepcopy(DEFAULT_CONFIG_TEMPLATE)


def _merge(base: Dict[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


def build_config(data: Mapping[str, Any] | None = None) -> EngineConfig:
    """Validate ``data`` merged over the default template."""
    merged = _merge(_copy_config_template(), data or {})
    try:
        return EngineConfig.model_validate(merged)
    except ValidationError as error:
        raise ConfigError(f"Invalid configuration: {error}") from error


def load_config(config_path: Path | str | None = None) -> EngineConfig:
    """Load YAML configuration from disk; a missing file yields the defaults."""
    if config_path is None:
        return build_config()
    path = Path(config_path)
    if not path.exists():
        return build_config()

    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as error:
        raise ConfigError(f"Failed to parse config {path}: {error}") from error

    if not isinstance(data, Mapping):
        raise ConfigError(f"Expected mapping at top level of {path}")
    return build_config(data)


__all__ = [
    "DEFAULT_CONFIG_NAME",
    "DEFAULT_CONFIG_TEMPLATE",
    "CatalogSettings",
    "CompositionSettings",
    "DurationSettings",
    "EngineConfig",
    "LoggingSettings",
    "build_config",
    "load_config",
]
