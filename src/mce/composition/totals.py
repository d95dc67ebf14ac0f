"""Aggregate estimated time of a composition against the live catalog."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Tuple

from ..catalog.cache import TaskCatalog
from ..catalog.schema import TaskId
from ..duration import DEFAULT_FALLBACK_MINUTES, normalize
from .mode import missing_tasks_notice
from .schema import ChecklistComposition, ChecklistItem, CompositionNotice

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TimeTally:
    """Total minutes of a composition plus the per-phase breakdown."""

    total_minutes: int
    phase_minutes: Dict[str, int] = field(default_factory=dict)
    missing_task_ids: Tuple[TaskId, ...] = ()

    @property
    def notices(self) -> Tuple[CompositionNotice, ...]:
        if not self.missing_task_ids:
            return ()
        return (missing_tasks_notice(self.missing_task_ids),)


def item_minutes(
    item: ChecklistItem,
    catalog: TaskCatalog,
    *,
    fallback_minutes: int = DEFAULT_FALLBACK_MINUTES,
) -> Tuple[int, bool]:
    """Return ``(minutes, resolved)`` for one item.

    Task-derived items are re-normalized from the current catalog entry; the
    cached ``estimated_minutes`` is used for manual items and for tasks that
    are no longer in the catalog (``resolved`` is then False).
    """
    if not item.is_derived_from_task:
        return item.estimated_minutes, True
    task = catalog.get(item.source_task_id)
    if task is None:
        return item.estimated_minutes, False
    return normalize(task, fallback_minutes=fallback_minutes), True


def tally(
    composition: ChecklistComposition,
    catalog: TaskCatalog,
    *,
    fallback_minutes: int = DEFAULT_FALLBACK_MINUTES,
) -> TimeTally:
    """Sum the active container in a single pass."""
    missing: list[TaskId] = []

    def minutes_of(item: ChecklistItem) -> int:
        minutes, resolved = item_minutes(item, catalog, fallback_minutes=fallback_minutes)
        if not resolved:
            missing.append(item.source_task_id)
        return minutes

    per_phase: Dict[str, int] = {}
    total = 0
    if composition.is_phased:
        for phase in composition.phases:
            minutes = sum(minutes_of(item) for item in phase.items)
            per_phase[phase.id] = per_phase.get(phase.id, 0) + minutes
            total += minutes
    else:
        total = sum(minutes_of(item) for item in composition.flat_items)

    if missing:
        LOGGER.warning(
            "Source task(s) %s missing from catalog; using cached durations",
            ", ".join(str(task_id) for task_id in missing),
        )
    return TimeTally(total_minutes=total, phase_minutes=per_phase, missing_task_ids=tuple(missing))


def compute_total(
    composition: ChecklistComposition,
    catalog: TaskCatalog,
    *,
    fallback_minutes: int = DEFAULT_FALLBACK_MINUTES,
) -> int:
    """Return the total estimated minutes of the active container."""
    return tally(composition, catalog, fallback_minutes=fallback_minutes).total_minutes


__all__ = ["TimeTally", "compute_total", "item_minutes", "tally"]
