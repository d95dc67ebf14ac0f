"""Low-level helpers that rebuild item and phase containers."""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from typing import Optional, Tuple

from ..catalog.schema import TaskDefinition, TaskId
from ..duration import DEFAULT_FALLBACK_MINUTES, normalize
from ..errors import UnknownItemError, UnknownPhaseError
from ..phases import PhaseSlot, canonical_phase
from .schema import DEFAULT_CATEGORY, ChecklistComposition, ChecklistItem, Phase

DEFAULT_ITEM_DESCRIPTION = "Preventive maintenance"


def task_item_id(task_id: TaskId) -> str:
    return f"task_{task_id}"


def new_item_id() -> str:
    return f"item_{uuid.uuid4().hex[:8]}"


def new_phase_id() -> str:
    return f"phase_custom_{uuid.uuid4().hex[:8]}"


def item_from_task(
    task: TaskDefinition,
    *,
    fallback_minutes: int = DEFAULT_FALLBACK_MINUTES,
) -> ChecklistItem:
    """Build the checklist item standing for ``task``."""
    return ChecklistItem(
        id=task_item_id(task.id),
        title=task.title,
        description=task.description or DEFAULT_ITEM_DESCRIPTION,
        is_required=True,
        category=DEFAULT_CATEGORY,
        estimated_minutes=normalize(task, fallback_minutes=fallback_minutes),
        source_task_id=task.id,
        is_derived_from_task=True,
    )


def renumber(items: Iterable[ChecklistItem]) -> Tuple[ChecklistItem, ...]:
    """Return ``items`` with contiguous ``order`` values starting at 0."""
    return tuple(
        item if item.order == index else item.model_copy(update={"order": index})
        for index, item in enumerate(items)
    )


def with_items(phase: Phase, items: Iterable[ChecklistItem]) -> Phase:
    return phase.model_copy(update={"items": renumber(items)})


def settle_phases(phases: Iterable[Phase]) -> Tuple[Tuple[Phase, ...], Tuple[str, ...]]:
    """Drop emptied canonical phases and renumber what remains.

    User-created phases survive while empty. Returns the settled phases and
    the ids of the phases that were dropped.
    """
    kept: list[Phase] = []
    dropped: list[str] = []
    for phase in phases:
        if not phase.items and not phase.custom:
            dropped.append(phase.id)
            continue
        kept.append(phase)
    settled = tuple(
        phase if phase.order == index else phase.model_copy(update={"order": index})
        for index, phase in enumerate(kept)
    )
    return settled, tuple(dropped)


def _canonical_insert_at(phases: Tuple[Phase, ...], slot: PhaseSlot) -> int:
    for index, phase in enumerate(phases):
        if phase.slot is not None and not phase.custom and phase.slot > slot:
            return index
    return len(phases)


def append_to_slot(
    phases: Tuple[Phase, ...], slot: PhaseSlot, item: ChecklistItem
) -> Tuple[Phase, ...]:
    """Append ``item`` to the canonical bucket for ``slot``, creating it lazily."""
    for index, phase in enumerate(phases):
        if phase.slot == slot and not phase.custom:
            updated = with_items(phase, (*phase.items, item))
            return phases[:index] + (updated,) + phases[index + 1 :]

    template = canonical_phase(slot)
    bucket = Phase(
        id=template.id,
        name=template.name,
        description=template.description,
        slot=slot,
        items=renumber([item]),
    )
    position = _canonical_insert_at(phases, slot)
    rebuilt = phases[:position] + (bucket,) + phases[position:]
    settled, _ = settle_phases(rebuilt)
    return settled


def phase_index(phases: Tuple[Phase, ...], phase_id: str) -> int:
    for index, phase in enumerate(phases):
        if phase.id == phase_id:
            return index
    raise UnknownPhaseError(phase_id)


def locate_item(
    composition: ChecklistComposition, item_id: str
) -> Tuple[Optional[int], int, ChecklistItem]:
    """Return ``(phase index or None, item index, item)`` in the active container."""
    if composition.is_phased:
        for p_index, phase in enumerate(composition.phases):
            for i_index, item in enumerate(phase.items):
                if item.id == item_id:
                    return p_index, i_index, item
    else:
        for i_index, item in enumerate(composition.flat_items):
            if item.id == item_id:
                return None, i_index, item
    raise UnknownItemError(item_id)


__all__ = [
    "DEFAULT_ITEM_DESCRIPTION",
    "append_to_slot",
    "item_from_task",
    "locate_item",
    "new_item_id",
    "new_phase_id",
    "phase_index",
    "renumber",
    "settle_phases",
    "task_item_id",
    "with_items",
]
