"""Typed records describing the maintenance tasks offered to the editor."""

from __future__ import annotations

import math
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

TaskId = int


class CatalogModel(BaseModel):
    """Base model for catalog records.

    Catalog payloads come from a REST boundary that carries many fields the
    engine does not care about, so unknown keys are ignored rather than
    rejected. Both the camelCase wire names and the snake_case attribute
    names are accepted.
    """

    model_config = ConfigDict(
        extra="ignore",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class TimeUnit(str, Enum):
    """Unit attached to a task's duration value."""

    MINUTES = "MINUTES"
    HOURS = "HOURS"


class ExecutionWindow(str, Enum):
    """When in a shift a maintenance task is meant to run."""

    BEFORE_START = "BEFORE_START"
    MID_SHIFT = "MID_SHIFT"
    END_SHIFT = "END_SHIFT"
    WEEKEND = "WEEKEND"
    ANY_TIME = "ANY_TIME"
    SCHEDULED = "SCHEDULED"


class AssetClass(str, Enum):
    """Kind of asset a maintenance task is attached to."""

    MACHINE = "machine"
    MOBILE_UNIT = "mobileUnit"
    NONE = "none"


class TaskKind(str, Enum):
    """Maintenance strategy of a task."""

    PREVENTIVE = "PREVENTIVE"
    PREDICTIVE = "PREDICTIVE"
    CORRECTIVE = "CORRECTIVE"


def coerce_positive_number(value: Any) -> Optional[float]:
    """Return ``value`` as a positive finite number, or ``None``."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number <= 0:
        return None
    return number


def coerce_enum(enum_type: type[Enum], value: Any) -> Optional[Enum]:
    """Return the ``enum_type`` member matching ``value``, or ``None``."""
    if value is None:
        return None
    if isinstance(value, enum_type):
        return value
    candidate = str(value).strip()
    for member in enum_type:
        if candidate == member.value or candidate.upper() == member.name:
            return member
    return None


class TaskDefinition(CatalogModel):
    """Maintenance task definition as supplied by the catalog provider."""

    id: TaskId
    title: str
    description: str = ""
    estimated_minutes: Optional[float] = None
    time_type: Optional[TimeUnit] = Field(
        default=None,
        validation_alias=AliasChoices("timeType", "estimatedTimeType", "time_type"),
    )
    time_value: Optional[float] = None
    time_unit: Optional[TimeUnit] = None
    estimated_hours: Optional[float] = None
    frequency_days: Optional[int] = None
    execution_window: Optional[ExecutionWindow] = None
    asset_class: AssetClass = AssetClass.NONE
    kind: TaskKind = Field(
        default=TaskKind.PREVENTIVE,
        validation_alias=AliasChoices("type", "kind"),
    )
    is_failure: bool = False
    machine_id: Optional[int] = None
    mobile_unit_id: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("mobileUnitId", "unidadMovilId", "mobile_unit_id"),
    )

    @field_validator("description", mode="before")
    @classmethod
    def _blank_description(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("estimated_minutes", "time_value", "estimated_hours", mode="before")
    @classmethod
    def _lenient_number(cls, value: Any) -> Optional[float]:
        return coerce_positive_number(value)

    @field_validator("time_type", "time_unit", mode="before")
    @classmethod
    def _lenient_unit(cls, value: Any) -> Optional[Enum]:
        return coerce_enum(TimeUnit, value)

    @field_validator("execution_window", mode="before")
    @classmethod
    def _lenient_window(cls, value: Any) -> Optional[Enum]:
        return coerce_enum(ExecutionWindow, value)

    @field_validator("frequency_days", mode="before")
    @classmethod
    def _lenient_frequency(cls, value: Any) -> Optional[int]:
        number = coerce_positive_number(value)
        return None if number is None else int(number)

    @field_validator("asset_class", mode="before")
    @classmethod
    def _lenient_asset_class(cls, value: Any) -> Enum:
        return coerce_enum(AssetClass, value) or AssetClass.NONE

    @field_validator("kind", mode="before")
    @classmethod
    def _lenient_kind(cls, value: Any) -> Enum:
        return coerce_enum(TaskKind, value) or TaskKind.PREVENTIVE

    @model_validator(mode="before")
    @classmethod
    def _derive_asset_class(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        if data.get("assetClass") is not None or data.get("asset_class") is not None:
            return data
        payload = dict(data)
        payload.pop("asset_class", None)
        payload.pop("assetClass", None)
        mobile = payload.get("mobileUnitId", payload.get("unidadMovilId", payload.get("mobile_unit_id")))
        machine = payload.get("machineId", payload.get("machine_id"))
        if mobile is not None or payload.get("unidadMovil"):
            payload["assetClass"] = AssetClass.MOBILE_UNIT
        elif machine is not None or payload.get("machine"):
            payload["assetClass"] = AssetClass.MACHINE
        return payload

    @model_validator(mode="before")
    @classmethod
    def _failure_from_notes(cls, data: Any) -> Any:
        # Failure reports are stored as maintenance records flagged inside their notes.
        if not isinstance(data, dict):
            return data
        notes = data.get("notes")
        if isinstance(notes, str) and '"isFailure":true' in notes.replace(" ", ""):
            payload = dict(data)
            payload.pop("is_failure", None)
            payload["isFailure"] = True
            return payload
        return data

    @property
    def is_mobile_unit(self) -> bool:
        return self.asset_class is AssetClass.MOBILE_UNIT


__all__ = [
    "AssetClass",
    "CatalogModel",
    "ExecutionWindow",
    "TaskDefinition",
    "TaskId",
    "TaskKind",
    "TimeUnit",
    "coerce_enum",
    "coerce_positive_number",
]
