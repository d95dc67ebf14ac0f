"""Operations that keep the task selection and the containers consistent.

Every function here is pure: it takes a ``ChecklistComposition`` and
returns a ``Transition`` holding the new composition and any notices.
After each call the selected task ids equal the source tasks found in the
active container, no task contributes more than one item, emptied
canonical phases are gone and every ``order`` is contiguous from 0.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, Literal, Optional, Tuple

from ..catalog.cache import TaskCatalog
from ..catalog.schema import TaskDefinition, TaskId
from ..duration import DEFAULT_FALLBACK_MINUTES
from ..errors import ModeError
from ..phases.classifier import DEFAULT_POLICY, NO_PHASING, ClassifierPolicy, classify
from .containers import (
    append_to_slot,
    item_from_task,
    locate_item,
    new_item_id,
    new_phase_id,
    phase_index,
    renumber,
    settle_phases,
    with_items,
)
from .mode import flatten, mobile_unit_task_ids, phasing_disabled_notice
from .schema import (
    DEFAULT_CATEGORY,
    ChecklistComposition,
    ChecklistItem,
    Phase,
    Transition,
)

LOGGER = logging.getLogger(__name__)

EDITABLE_ITEM_FIELDS = frozenset({"title", "description", "is_required", "category", "estimated_minutes"})


def _require_phased(composition: ChecklistComposition, operation: str) -> None:
    if not composition.is_phased:
        raise ModeError(f"{operation} requires a PHASED composition")


def _with_phases(
    composition: ChecklistComposition,
    phases: Iterable[Phase],
    selected: Optional[Iterable[TaskId]] = None,
) -> ChecklistComposition:
    settled, _ = settle_phases(phases)
    update: dict[str, Any] = {"phases": settled}
    if selected is not None:
        update["selected_task_ids"] = frozenset(selected)
    return composition.model_copy(update=update)


def _with_flat(
    composition: ChecklistComposition,
    items: Iterable[ChecklistItem],
    selected: Optional[Iterable[TaskId]] = None,
) -> ChecklistComposition:
    update: dict[str, Any] = {"flat_items": renumber(items)}
    if selected is not None:
        update["selected_task_ids"] = frozenset(selected)
    return composition.model_copy(update=update)


def _deselect(composition: ChecklistComposition, task_id: TaskId) -> ChecklistComposition:
    remaining = composition.selected_task_ids - {task_id}
    if composition.is_phased:
        phases = [
            with_items(phase, (item for item in phase.items if item.source_task_id != task_id))
            for phase in composition.phases
        ]
        return _with_phases(composition, phases, remaining)
    items = (item for item in composition.flat_items if item.source_task_id != task_id)
    return _with_flat(composition, items, remaining)


def _select(
    composition: ChecklistComposition,
    task: TaskDefinition,
    catalog: TaskCatalog,
    *,
    phase_id: Optional[str],
    policy: ClassifierPolicy,
    fallback_minutes: int,
) -> Transition:
    item = item_from_task(task, fallback_minutes=fallback_minutes)
    selected = composition.selected_task_ids | {task.id}

    if not composition.is_phased:
        return Transition(_with_flat(composition, (*composition.flat_items, item), selected))

    selection = catalog.resolve(selected)
    outcome = classify(task, selection=selection, policy=policy)
    if outcome is NO_PHASING:
        flat = flatten(composition)
        updated = _with_flat(flat, (*flat.flat_items, item), selected)
        blockers = mobile_unit_task_ids(updated, catalog)
        LOGGER.info("Task %s disables phasing; composition switched to FLAT", task.id)
        return Transition(updated, (phasing_disabled_notice(blockers),))

    if phase_id is not None:
        index = phase_index(composition.phases, phase_id)
        phase = composition.phases[index]
        phases = list(composition.phases)
        phases[index] = with_items(phase, (*phase.items, item))
        return Transition(_with_phases(composition, phases, selected))

    phases = append_to_slot(composition.phases, outcome, item)
    return Transition(_with_phases(composition, phases, selected))


def toggle_task(
    composition: ChecklistComposition,
    task_id: TaskId,
    catalog: TaskCatalog,
    *,
    policy: ClassifierPolicy = DEFAULT_POLICY,
    fallback_minutes: int = DEFAULT_FALLBACK_MINUTES,
) -> Transition:
    """Select ``task_id`` when it is not selected, deselect it otherwise."""
    if task_id in composition.selected_task_ids:
        LOGGER.debug("Deselecting task %s", task_id)
        return Transition(_deselect(composition, task_id))

    task = catalog.require(task_id)
    LOGGER.debug("Selecting task %s", task_id)
    return _select(
        composition,
        task,
        catalog,
        phase_id=None,
        policy=policy,
        fallback_minutes=fallback_minutes,
    )


def remove_item(composition: ChecklistComposition, item_id: str) -> Transition:
    """Delete one item; an item carrying a source task also leaves the selection."""
    p_index, _, item = locate_item(composition, item_id)
    selected = composition.selected_task_ids
    if item.source_task_id is not None:
        selected = selected - {item.source_task_id}

    if p_index is None:
        items = (entry for entry in composition.flat_items if entry.id != item_id)
        return Transition(_with_flat(composition, items, selected))

    phases = list(composition.phases)
    phase = phases[p_index]
    phases[p_index] = with_items(phase, (entry for entry in phase.items if entry.id != item_id))
    return Transition(_with_phases(composition, phases, selected))


def clear_all(composition: ChecklistComposition) -> Transition:
    """Empty the selection and both containers in one step."""
    return Transition(
        composition.model_copy(
            update={"phases": (), "flat_items": (), "selected_task_ids": frozenset()}
        )
    )


def move_item(
    composition: ChecklistComposition,
    item_id: str,
    direction: Literal["up", "down"],
) -> Transition:
    """Swap an item with its neighbour inside its container."""
    if direction not in ("up", "down"):
        raise ValueError(f"direction must be 'up' or 'down', got {direction!r}")
    p_index, i_index, _ = locate_item(composition, item_id)
    items = list(composition.flat_items if p_index is None else composition.phases[p_index].items)
    target = i_index - 1 if direction == "up" else i_index + 1
    if target < 0 or target >= len(items):
        return Transition(composition)

    items[i_index], items[target] = items[target], items[i_index]
    if p_index is None:
        return Transition(_with_flat(composition, items))
    phases = list(composition.phases)
    phases[p_index] = with_items(phases[p_index], items)
    return Transition(_with_phases(composition, phases))


def transfer_item(composition: ChecklistComposition, item_id: str, phase_id: str) -> Transition:
    """Move an item to the end of another phase."""
    _require_phased(composition, "transfer_item")
    target_index = phase_index(composition.phases, phase_id)
    source_index, _, item = locate_item(composition, item_id)
    if source_index == target_index:
        return Transition(composition)

    phases = list(composition.phases)
    source = phases[source_index]
    phases[source_index] = with_items(source, (entry for entry in source.items if entry.id != item_id))
    target = phases[target_index]
    phases[target_index] = with_items(target, (*target.items, item))
    return Transition(_with_phases(composition, phases))


def assign_task(
    composition: ChecklistComposition,
    task_id: TaskId,
    phase_id: str,
    catalog: TaskCatalog,
    *,
    policy: ClassifierPolicy = DEFAULT_POLICY,
    fallback_minutes: int = DEFAULT_FALLBACK_MINUTES,
) -> Transition:
    """Select ``task_id`` straight into ``phase_id``.

    An already selected task has its item moved to that phase instead, so
    the selection never holds a task twice.
    """
    _require_phased(composition, "assign_task")
    phase_index(composition.phases, phase_id)

    if task_id in composition.selected_task_ids:
        existing = next(item for item in composition.active_items() if item.source_task_id == task_id)
        return transfer_item(composition, existing.id, phase_id)

    task = catalog.require(task_id)
    return _select(
        composition,
        task,
        catalog,
        phase_id=phase_id,
        policy=policy,
        fallback_minutes=fallback_minutes,
    )


def add_phase(composition: ChecklistComposition, name: str, description: str = "") -> Transition:
    """Append an empty, user-created phase."""
    _require_phased(composition, "add_phase")
    phase = Phase(
        id=new_phase_id(),
        name=name.strip() or f"Phase {len(composition.phases) + 1}",
        description=description,
        order=len(composition.phases),
        custom=True,
    )
    return Transition(_with_phases(composition, (*composition.phases, phase)))


def remove_phase(composition: ChecklistComposition, phase_id: str) -> Transition:
    """Delete a phase together with its items and their task selection."""
    _require_phased(composition, "remove_phase")
    index = phase_index(composition.phases, phase_id)
    dropped = {
        item.source_task_id
        for item in composition.phases[index].items
        if item.source_task_id is not None
    }
    phases = composition.phases[:index] + composition.phases[index + 1 :]
    return Transition(_with_phases(composition, phases, composition.selected_task_ids - dropped))


def update_phase(
    composition: ChecklistComposition,
    phase_id: str,
    *,
    name: Optional[str] = None,
    description: Optional[str] = None,
) -> Transition:
    """Rename a phase or change its description."""
    _require_phased(composition, "update_phase")
    index = phase_index(composition.phases, phase_id)
    update: dict[str, Any] = {}
    if name is not None and name.strip():
        update["name"] = name.strip()
    if description is not None:
        update["description"] = description
    if not update:
        return Transition(composition)
    phases = list(composition.phases)
    phases[index] = phases[index].model_copy(update=update)
    return Transition(_with_phases(composition, phases))


def add_custom_item(
    composition: ChecklistComposition,
    title: str,
    *,
    estimated_minutes: int,
    description: str = "",
    category: str = DEFAULT_CATEGORY,
    is_required: bool = True,
    phase_id: Optional[str] = None,
    policy: ClassifierPolicy = DEFAULT_POLICY,
) -> Transition:
    """Add a manual item that does not stand for any catalog task."""
    item = ChecklistItem(
        id=new_item_id(),
        title=title,
        description=description,
        is_required=is_required,
        category=category,
        estimated_minutes=estimated_minutes,
    )
    if not composition.is_phased:
        if phase_id is not None:
            raise ModeError("phase_id can only be given for a PHASED composition")
        return Transition(_with_flat(composition, (*composition.flat_items, item)))

    if phase_id is None:
        return Transition(_with_phases(composition, append_to_slot(composition.phases, policy.default_slot, item)))

    index = phase_index(composition.phases, phase_id)
    phases = list(composition.phases)
    phases[index] = with_items(phases[index], (*phases[index].items, item))
    return Transition(_with_phases(composition, phases))


def update_item(composition: ChecklistComposition, item_id: str, **changes: Any) -> Transition:
    """Edit the descriptive fields of an item."""
    unknown = sorted(set(changes) - EDITABLE_ITEM_FIELDS)
    if unknown:
        raise ValueError("Fields cannot be edited: " + ", ".join(unknown))
    p_index, i_index, item = locate_item(composition, item_id)
    updated = ChecklistItem.model_validate({**item.model_dump(), **changes})

    items: Tuple[ChecklistItem, ...]
    if p_index is None:
        items = composition.flat_items
        return Transition(_with_flat(composition, items[:i_index] + (updated,) + items[i_index + 1 :]))
    phases = list(composition.phases)
    items = phases[p_index].items
    phases[p_index] = with_items(phases[p_index], items[:i_index] + (updated,) + items[i_index + 1 :])
    return Transition(_with_phases(composition, phases))


__all__ = [
    "EDITABLE_ITEM_FIELDS",
    "add_custom_item",
    "add_phase",
    "assign_task",
    "clear_all",
    "move_item",
    "remove_item",
    "remove_phase",
    "toggle_task",
    "transfer_item",
    "update_item",
    "update_phase",
]
