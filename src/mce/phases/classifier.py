"""Rule table assigning maintenance tasks to canonical shift phases.

Rules, in priority order:

``phasing_blocked``
    If any task of the current selection belongs to a mobile unit, phasing
    is disabled for the whole composition and ``classify`` returns
    ``NO_PHASING`` for every task.

Explicit execution window
    ``BEFORE_START``, ``MID_SHIFT``, ``END_SHIFT`` and ``WEEKEND`` map
    straight onto their phase.

Frequency fallback
    ``ANY_TIME``, ``SCHEDULED`` or no window at all derive the phase from
    ``frequency_days`` using the policy thresholds (weekly or more often,
    monthly or more often, anything rarer). Tasks with no frequency land in
    the policy's default slot.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any, Final, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from ..catalog.schema import AssetClass, ExecutionWindow, TaskDefinition, coerce_enum, coerce_positive_number
from . import PhaseSlot


class _Phasing(Enum):
    NO_PHASING = "NO_PHASING"


NO_PHASING: Final = _Phasing.NO_PHASING

Classification = Union[PhaseSlot, Literal[_Phasing.NO_PHASING]]

WINDOW_SLOTS: dict[ExecutionWindow, PhaseSlot] = {
    ExecutionWindow.BEFORE_START: PhaseSlot.BEFORE_START,
    ExecutionWindow.MID_SHIFT: PhaseSlot.MID_SHIFT,
    ExecutionWindow.END_SHIFT: PhaseSlot.END_SHIFT,
    ExecutionWindow.WEEKEND: PhaseSlot.WEEKEND,
}


class ClassifierPolicy(BaseModel):
    """Tunable thresholds used by the frequency fallback."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    weekly_max_days: int = 7
    monthly_max_days: int = 30
    default_slot: PhaseSlot = PhaseSlot.MID_SHIFT

    @field_validator("default_slot", mode="before")
    @classmethod
    def _slot_by_name(cls, value: Any) -> Any:
        if isinstance(value, str) and value.strip().upper() in PhaseSlot.__members__:
            return PhaseSlot[value.strip().upper()]
        return value

    @model_validator(mode="after")
    def _ordered_thresholds(self) -> "ClassifierPolicy":
        if self.weekly_max_days < 1:
            raise ValueError("weekly_max_days must be at least 1")
        if self.weekly_max_days > self.monthly_max_days:
            raise ValueError("weekly_max_days must not exceed monthly_max_days")
        return self


DEFAULT_POLICY = ClassifierPolicy()


TaskLike = Union[TaskDefinition, Mapping[str, Any]]


def _lookup(task: TaskLike, attribute: str, *keys: str) -> Any:
    if isinstance(task, TaskDefinition):
        return getattr(task, attribute)
    for key in (attribute, *keys):
        if key in task:
            return task[key]
    return None


def _window(task: TaskLike) -> Optional[ExecutionWindow]:
    return coerce_enum(ExecutionWindow, _lookup(task, "execution_window", "executionWindow"))


def _frequency(task: TaskLike) -> Optional[float]:
    return coerce_positive_number(_lookup(task, "frequency_days", "frequencyDays"))


def is_mobile_unit(task: TaskLike) -> bool:
    if isinstance(task, TaskDefinition):
        return task.is_mobile_unit
    asset = coerce_enum(AssetClass, _lookup(task, "asset_class", "assetClass"))
    if asset is not None:
        return asset is AssetClass.MOBILE_UNIT
    return _lookup(task, "mobile_unit_id", "mobileUnitId", "unidadMovilId") is not None


def phasing_blocked(selection: Iterable[TaskLike]) -> bool:
    """Return True when the selection rules out phase classification."""
    return any(is_mobile_unit(task) for task in selection)


def slot_for(task: TaskLike, policy: ClassifierPolicy = DEFAULT_POLICY) -> PhaseSlot:
    """Return the canonical phase of ``task`` ignoring the selection rule."""
    window = _window(task)
    if window in WINDOW_SLOTS:
        return WINDOW_SLOTS[window]

    frequency = _frequency(task)
    if frequency is None:
        return policy.default_slot
    if frequency <= policy.weekly_max_days:
        return PhaseSlot.BEFORE_START
    if frequency <= policy.monthly_max_days:
        return PhaseSlot.MID_SHIFT
    return PhaseSlot.END_SHIFT


def classify(
    task: TaskLike,
    *,
    selection: Iterable[TaskLike] = (),
    policy: ClassifierPolicy = DEFAULT_POLICY,
) -> Classification:
    """Return the phase of ``task`` or ``NO_PHASING`` for a blocked selection."""
    if phasing_blocked(selection):
        return NO_PHASING
    return slot_for(task, policy)


__all__ = [
    "Classification",
    "ClassifierPolicy",
    "DEFAULT_POLICY",
    "NO_PHASING",
    "WINDOW_SLOTS",
    "classify",
    "is_mobile_unit",
    "phasing_blocked",
    "slot_for",
]
