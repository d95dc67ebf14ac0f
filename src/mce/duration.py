"""Normalize the heterogeneous task duration encodings into canonical minutes."""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any, Optional

from .catalog.schema import TaskDefinition, TimeUnit, coerce_enum, coerce_positive_number

DEFAULT_FALLBACK_MINUTES = 30

_FIELD_KEYS: dict[str, tuple[str, ...]] = {
    "estimated_minutes": ("estimated_minutes", "estimatedMinutes"),
    "time_type": ("time_type", "timeType", "estimatedTimeType"),
    "time_value": ("time_value", "timeValue"),
    "time_unit": ("time_unit", "timeUnit"),
    "estimated_hours": ("estimated_hours", "estimatedHours"),
}


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _field(task: TaskDefinition | Mapping[str, Any], name: str) -> Any:
    if isinstance(task, TaskDefinition):
        return getattr(task, name)
    for key in _FIELD_KEYS[name]:
        if key in task:
            return task[key]
    return None


def _convert(value: Any, unit: Any) -> Optional[int]:
    # An unknown unit makes the whole encoding absent, so the next one is tried
    # before the fallback.
    amount = coerce_positive_number(value)
    resolved = coerce_enum(TimeUnit, unit)
    if amount is None or resolved is None:
        return None
    if resolved is TimeUnit.HOURS:
        return _round_half_up(amount * 60)
    return _round_half_up(amount)


def normalize(
    task: TaskDefinition | Mapping[str, Any] | None,
    *,
    fallback_minutes: int = DEFAULT_FALLBACK_MINUTES,
) -> int:
    """Return the canonical duration of ``task`` in whole minutes.

    The first encoding that is fully present wins:

    1. ``estimated_minutes`` with ``time_type`` (``HOURS`` or ``MINUTES``)
    2. ``time_value`` with ``time_unit``
    3. ``estimated_hours``, rounded half-up to minutes

    Anything else, including values that are missing, zero, negative or not
    numbers, degrades to ``fallback_minutes``. The function never raises.
    """
    if not isinstance(task, (TaskDefinition, Mapping)):
        return fallback_minutes

    minutes = _convert(_field(task, "estimated_minutes"), _field(task, "time_type"))
    if minutes is not None:
        return minutes

    minutes = _convert(_field(task, "time_value"), _field(task, "time_unit"))
    if minutes is not None:
        return minutes

    hours = coerce_positive_number(_field(task, "estimated_hours"))
    if hours is not None:
        return _round_half_up(hours * 60)

    return fallback_minutes


__all__ = ["DEFAULT_FALLBACK_MINUTES", "normalize"]
