"""Two-state controller switching a composition between PHASED and FLAT."""

from __future__ import annotations

import logging
from typing import Tuple

from ..catalog.cache import TaskCatalog
from ..catalog.schema import TaskId
from ..phases import PhaseSlot
from ..phases.classifier import DEFAULT_POLICY, NO_PHASING, ClassifierPolicy, classify
from .containers import append_to_slot, renumber
from .schema import (
    ChecklistComposition,
    CompositionMode,
    CompositionNotice,
    NoticeCode,
    Phase,
    Transition,
)

LOGGER = logging.getLogger(__name__)


def mobile_unit_task_ids(composition: ChecklistComposition, catalog: TaskCatalog) -> Tuple[TaskId, ...]:
    """Return the selected tasks that belong to a mobile unit, sorted by id."""
    return tuple(
        task.id
        for task in catalog.resolve(sorted(composition.selected_task_ids))
        if task.is_mobile_unit
    )


def phasing_disabled_notice(task_ids: Tuple[TaskId, ...]) -> CompositionNotice:
    listed = ", ".join(str(task_id) for task_id in task_ids)
    return CompositionNotice(
        code=NoticeCode.PHASING_DISABLED,
        message=(
            "Mobile unit maintenance cannot be organised by shift phases; "
            f"the checklist stays a flat list (tasks: {listed})."
        ),
        task_ids=task_ids,
    )


def missing_tasks_notice(task_ids: Tuple[TaskId, ...]) -> CompositionNotice:
    listed = ", ".join(str(task_id) for task_id in task_ids)
    return CompositionNotice(
        code=NoticeCode.SOURCE_TASK_MISSING,
        message=f"Task(s) no longer in the catalog: {listed}; using the cached values.",
        task_ids=task_ids,
    )


def flatten(composition: ChecklistComposition) -> ChecklistComposition:
    """Concatenate every phase, in phase order, into one flat list."""
    items = renumber(item for phase in composition.phases for item in phase.items)
    return composition.model_copy(
        update={"mode": CompositionMode.FLAT, "phases": (), "flat_items": items}
    )


def partition(
    composition: ChecklistComposition,
    catalog: TaskCatalog,
    *,
    policy: ClassifierPolicy = DEFAULT_POLICY,
) -> Transition:
    """Distribute the flat items into canonical phase buckets.

    Relative order is preserved inside each bucket. Items without a source
    task, or whose task left the catalog, go to the policy's default slot.
    """
    phases: Tuple[Phase, ...] = ()
    missing: list[TaskId] = []
    for item in composition.flat_items:
        task = catalog.get(item.source_task_id) if item.is_derived_from_task else None
        if item.is_derived_from_task and task is None:
            missing.append(item.source_task_id)
        slot: PhaseSlot = policy.default_slot if task is None else classify(task, policy=policy)
        phases = append_to_slot(phases, slot, item)

    result = Transition(
        composition.model_copy(
            update={"mode": CompositionMode.PHASED, "phases": phases, "flat_items": ()}
        )
    )
    if missing:
        result = result.with_notices(missing_tasks_notice(tuple(missing)))
    return result


def enforce_phasing_rule(transition: Transition, catalog: TaskCatalog) -> Transition:
    """Force a PHASED composition to FLAT when its selection forbids phasing."""
    composition = transition.composition
    if not composition.is_phased:
        return transition
    selection = catalog.resolve(composition.selected_task_ids)
    if not selection or classify(selection[0], selection=selection) is not NO_PHASING:
        return transition

    blockers = mobile_unit_task_ids(composition, catalog)
    LOGGER.info("Phasing disabled by mobile unit task(s) %s; switching to FLAT", blockers)
    return Transition(flatten(composition), transition.notices).with_notices(
        phasing_disabled_notice(blockers)
    )


def set_mode(
    composition: ChecklistComposition,
    mode: CompositionMode | str,
    catalog: TaskCatalog,
    *,
    policy: ClassifierPolicy = DEFAULT_POLICY,
) -> Transition:
    """Switch ``composition`` to ``mode``, rebuilding its structure."""
    target = CompositionMode(str(mode.value if isinstance(mode, CompositionMode) else mode).upper())
    if target is composition.mode:
        return Transition(composition)

    if target is CompositionMode.FLAT:
        return Transition(flatten(composition))

    blockers = mobile_unit_task_ids(composition, catalog)
    if blockers:
        LOGGER.info("Refusing PHASED mode: mobile unit task(s) %s selected", blockers)
        return Transition(composition, (phasing_disabled_notice(blockers),))
    return partition(composition, catalog, policy=policy)


__all__ = [
    "enforce_phasing_rule",
    "flatten",
    "missing_tasks_notice",
    "mobile_unit_task_ids",
    "partition",
    "phasing_disabled_notice",
    "set_mode",
]
