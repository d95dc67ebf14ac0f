"""Restore saved compositions and finalize converged ones for persistence."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Dict, Iterable, Optional, Protocol, Tuple

from ..catalog.cache import TaskCatalog
from ..catalog.schema import TaskId
from ..duration import DEFAULT_FALLBACK_MINUTES
from ..errors import EmptyChecklistError
from ..phases import CANONICAL_PHASES
from .containers import renumber, settle_phases
from .schema import (
    ChecklistComposition,
    ChecklistItem,
    CompositionMode,
    CompositionNotice,
    NoticeCode,
    Phase,
    RecordModel,
    Transition,
)
from .totals import tally

LOGGER = logging.getLogger(__name__)

_SLOTS_BY_ID = {template.id: slot for slot, template in CANONICAL_PHASES.items()}


class ChecklistDraft(RecordModel):
    """Finished checklist handed to the persistence collaborator."""

    mode: CompositionMode
    phases: Tuple[Phase, ...] = ()
    flat_items: Tuple[ChecklistItem, ...] = ()
    selected_task_ids: Tuple[TaskId, ...] = ()
    estimated_total_minutes: int = 0
    phase_minutes: Dict[str, int] = {}
    notices: Tuple[CompositionNotice, ...] = ()


class ChecklistSink(Protocol):
    """External collaborator that stores finished checklists."""

    def save(self, draft: ChecklistDraft, *, doc_type: str, ids: Mapping[str, Any]) -> Any:
        ...


def _first(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value:
            return value
    return None


def _restore_phase(raw: Phase | Mapping[str, Any]) -> Phase:
    phase = raw if isinstance(raw, Phase) else Phase.model_validate(raw)
    phase = phase.model_copy(update={"items": tuple(_restore_item(item) for item in phase.items)})
    if phase.slot is None and not phase.custom and phase.id in _SLOTS_BY_ID:
        phase = phase.model_copy(update={"slot": _SLOTS_BY_ID[phase.id]})
    return phase


def _restore_item(raw: ChecklistItem | Mapping[str, Any]) -> ChecklistItem:
    item = raw if isinstance(raw, ChecklistItem) else ChecklistItem.model_validate(raw)
    # A stored source task makes the item count towards the selection.
    if item.source_task_id is not None and not item.is_derived_from_task:
        item = item.model_copy(update={"is_derived_from_task": True})
    return item


def _stored_mode(data: Mapping[str, Any], phases: Tuple[Phase, ...]) -> CompositionMode:
    value = data.get("mode")
    if value:
        return CompositionMode(str(getattr(value, "value", value)).upper())
    return CompositionMode.PHASED if phases else CompositionMode.FLAT


def restore_composition(saved: ChecklistComposition | Mapping[str, Any]) -> Transition:
    """Rebuild a consistent composition from a previously saved checklist.

    The stored mode wins when present; otherwise a checklist with phases is
    PHASED. Only the active container is kept, duplicate items for the same
    task are dropped, the selection is recomputed from what remains and
    every ``order`` is renumbered.
    """
    data: Mapping[str, Any]
    if isinstance(saved, ChecklistComposition):
        data = {"mode": saved.mode, "phases": saved.phases, "flat_items": saved.flat_items}
    else:
        data = saved

    phases = tuple(_restore_phase(raw) for raw in (data.get("phases") or ()))
    flat_items = tuple(_restore_item(raw) for raw in (_first(data, "flat_items", "flatItems", "items") or ()))
    mode = _stored_mode(data, phases)

    seen: set[TaskId] = set()
    duplicates: list[TaskId] = []

    def unique(items: Iterable[ChecklistItem]) -> list[ChecklistItem]:
        kept: list[ChecklistItem] = []
        for item in items:
            source = item.source_task_id
            if source is not None:
                if source in seen:
                    duplicates.append(source)
                    continue
                seen.add(source)
            kept.append(item)
        return kept

    if mode is CompositionMode.PHASED:
        if flat_items:
            LOGGER.debug("Discarding %d flat item(s) stored next to phases", len(flat_items))
        settled, _ = settle_phases(
            phase.model_copy(update={"items": renumber(unique(phase.items))}) for phase in phases
        )
        composition = ChecklistComposition(mode=mode, phases=settled, selected_task_ids=frozenset(seen))
    else:
        if phases:
            LOGGER.debug("Discarding %d phase(s) stored next to a flat checklist", len(phases))
        composition = ChecklistComposition(
            mode=mode,
            flat_items=renumber(unique(flat_items)),
            selected_task_ids=frozenset(seen),
        )

    result = Transition(composition)
    if duplicates:
        LOGGER.warning("Dropped duplicate item(s) for task(s) %s", duplicates)
        result = result.with_notices(
            CompositionNotice(
                code=NoticeCode.DUPLICATE_TASK_ITEM,
                message="Saved checklist listed some tasks more than once; extra items were dropped.",
                task_ids=tuple(duplicates),
            )
        )
    return result


def finalize(
    composition: ChecklistComposition,
    catalog: TaskCatalog,
    *,
    fallback_minutes: int = DEFAULT_FALLBACK_MINUTES,
) -> ChecklistDraft:
    """Turn a converged composition into the draft handed to persistence."""
    if next(composition.active_items(), None) is None:
        raise EmptyChecklistError("A checklist needs at least one item before it can be saved")

    notices: list[CompositionNotice] = []
    phases: Tuple[Phase, ...] = ()
    if composition.is_phased:
        visible = composition.visible_phases()
        empty = [phase.id for phase in composition.phases if not phase.items]
        if empty:
            notices.append(
                CompositionNotice(
                    code=NoticeCode.EMPTY_PHASE_DROPPED,
                    message="Empty phase(s) left out of the saved checklist: " + ", ".join(empty),
                )
            )
        phases = tuple(
            phase.model_copy(update={"order": index, "items": renumber(phase.items)})
            for index, phase in enumerate(visible)
        )

    summary = tally(composition, catalog, fallback_minutes=fallback_minutes)
    notices.extend(summary.notices)
    return ChecklistDraft(
        mode=composition.mode,
        phases=phases,
        flat_items=() if composition.is_phased else renumber(composition.flat_items),
        selected_task_ids=tuple(sorted(composition.selected_task_ids)),
        estimated_total_minutes=summary.total_minutes,
        phase_minutes={phase.id: summary.phase_minutes.get(phase.id, 0) for phase in phases},
        notices=tuple(notices),
    )


__all__ = ["ChecklistDraft", "ChecklistSink", "finalize", "restore_composition"]
