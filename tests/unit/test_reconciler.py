from __future__ import annotations

import random

import pytest

from mce.catalog.cache import TaskCatalog
from mce.composition import mode as mode_controller
from mce.composition import reconciler
from mce.composition.payload import restore_composition
from mce.composition.schema import ChecklistComposition, ChecklistItem, CompositionMode, NoticeCode
from mce.errors import ModeError, UnknownItemError, UnknownPhaseError, UnknownTaskError
from mce.phases import PhaseSlot


def _phased() -> ChecklistComposition:
    return ChecklistComposition(mode=CompositionMode.PHASED)


def _apply(composition, catalog, *task_ids):
    for task_id in task_ids:
        composition = reconciler.toggle_task(composition, task_id, catalog).composition
    return composition


def _phase_sources(composition: ChecklistComposition) -> dict[str, list[int]]:
    return {
        phase.id: [item.source_task_id for item in phase.items]
        for phase in composition.phases
    }


def test_toggle_selects_into_classified_phase(catalog, check_invariants) -> None:
    composition = _apply(_phased(), catalog, 2, 1)

    assert [phase.id for phase in composition.phases] == ["phase_1", "phase_2"]
    assert composition.phases[0].slot is PhaseSlot.BEFORE_START
    assert composition.phases[0].items[0].id == "task_1"
    assert composition.phases[0].items[0].estimated_minutes == 120
    assert composition.selected_task_ids == {1, 2}
    check_invariants(composition)


def test_toggle_twice_restores_selection(catalog, check_invariants) -> None:
    composition = _apply(_phased(), catalog, 1, 2)
    toggled = _apply(composition, catalog, 1)

    assert toggled.selected_task_ids == {2}
    assert _phase_sources(toggled) == {"phase_2": [2]}
    assert toggled.phases[0].order == 0
    check_invariants(toggled)


def test_toggle_in_flat_mode_appends(catalog, check_invariants) -> None:
    composition = _apply(ChecklistComposition(), catalog, 3, 1, 8)

    assert [item.source_task_id for item in composition.flat_items] == [3, 1, 8]
    assert composition.phases == ()
    check_invariants(composition)


def test_toggle_unknown_task_raises(catalog) -> None:
    with pytest.raises(UnknownTaskError):
        reconciler.toggle_task(_phased(), 999, catalog)


def test_selected_task_missing_from_catalog_can_still_be_deselected(catalog, check_invariants) -> None:
    composition = _apply(ChecklistComposition(), catalog, 1)
    shrunk = TaskCatalog(task for task in catalog if task.id != 1)
    result = reconciler.toggle_task(composition, 1, shrunk)

    assert result.composition.flat_items == ()
    check_invariants(result.composition)


def test_mobile_unit_selection_forces_flat(mobile_catalog, check_invariants) -> None:
    composition = _apply(_phased(), mobile_catalog, 1, 4)
    result = reconciler.toggle_task(composition, 20, mobile_catalog)

    assert result.composition.mode is CompositionMode.FLAT
    assert [item.source_task_id for item in result.composition.flat_items] == [1, 4, 20]
    assert [notice.code for notice in result.notices] == [NoticeCode.PHASING_DISABLED]
    assert result.notices[0].task_ids == (20,)
    check_invariants(result.composition)


def test_remove_item_deselects_task(catalog, check_invariants) -> None:
    composition = _apply(_phased(), catalog, 1, 2)
    updated = reconciler.remove_item(composition, "task_2").composition

    assert updated.selected_task_ids == {1}
    assert [phase.id for phase in updated.phases] == ["phase_1"]
    check_invariants(updated)


def test_remove_unknown_item_raises(catalog) -> None:
    with pytest.raises(UnknownItemError):
        reconciler.remove_item(_apply(_phased(), catalog, 1), "task_2")


def test_clear_all_empties_everything(catalog) -> None:
    composition = _apply(_phased(), catalog, 1, 2, 3)
    cleared = reconciler.clear_all(composition).composition

    assert cleared.phases == ()
    assert cleared.flat_items == ()
    assert cleared.selected_task_ids == frozenset()
    assert cleared.mode is CompositionMode.PHASED


def test_move_item_swaps_and_renumbers(catalog, check_invariants) -> None:
    composition = _apply(ChecklistComposition(), catalog, 1, 2, 3)

    moved = reconciler.move_item(composition, "task_3", "up").composition
    assert [item.id for item in moved.flat_items] == ["task_1", "task_3", "task_2"]
    check_invariants(moved)

    unchanged = reconciler.move_item(moved, "task_1", "up").composition
    assert unchanged == moved
    assert reconciler.move_item(moved, "task_2", "down").composition == moved


def test_move_item_rejects_bad_direction(catalog) -> None:
    composition = _apply(ChecklistComposition(), catalog, 1)
    with pytest.raises(ValueError):
        reconciler.move_item(composition, "task_1", "sideways")  # type: ignore[arg-type]


def test_move_item_inside_phase(catalog, check_invariants) -> None:
    composition = _apply(_phased(), catalog, 1, 5)
    moved = reconciler.move_item(composition, "task_5", "up").composition

    assert _phase_sources(moved) == {"phase_1": [5, 1]}
    check_invariants(moved)


def test_transfer_item_between_phases(catalog, check_invariants) -> None:
    composition = _apply(_phased(), catalog, 1, 2)
    moved = reconciler.transfer_item(composition, "task_2", "phase_1").composition

    assert _phase_sources(moved) == {"phase_1": [1, 2]}
    check_invariants(moved)


def test_transfer_item_requires_phased(catalog) -> None:
    composition = _apply(ChecklistComposition(), catalog, 1)
    with pytest.raises(ModeError):
        reconciler.transfer_item(composition, "task_1", "phase_1")


def test_assign_task_into_custom_phase(catalog, check_invariants) -> None:
    composition = reconciler.add_phase(_phased(), "Lockout").composition
    custom_id = composition.phases[0].id

    assigned = reconciler.assign_task(composition, 2, custom_id, catalog).composition
    assert _phase_sources(assigned) == {custom_id: [2]}

    reassigned = reconciler.assign_task(_apply(assigned, catalog, 1), 2, "phase_1", catalog).composition
    assert _phase_sources(reassigned)["phase_1"] == [1, 2]
    assert _phase_sources(reassigned)[custom_id] == []
    check_invariants(reassigned)


def test_assign_task_to_unknown_phase_raises(catalog) -> None:
    with pytest.raises(UnknownPhaseError):
        reconciler.assign_task(_phased(), 1, "phase_9", catalog)


def test_custom_phase_survives_empty_and_keeps_position(catalog, check_invariants) -> None:
    composition = _apply(_phased(), catalog, 2)
    composition = reconciler.add_phase(composition, "  ").composition
    custom = composition.phases[-1]
    assert custom.custom
    assert custom.name == "Phase 2"

    composition = _apply(composition, catalog, 1, 4)
    assert [phase.id for phase in composition.phases] == ["phase_1", "phase_2", custom.id, "phase_4"]
    check_invariants(composition)


def test_remove_phase_deselects_its_tasks(catalog, check_invariants) -> None:
    composition = _apply(_phased(), catalog, 1, 5, 2)
    updated = reconciler.remove_phase(composition, "phase_1").composition

    assert updated.selected_task_ids == {2}
    assert [phase.order for phase in updated.phases] == [0]
    check_invariants(updated)


def test_update_phase_renames(catalog) -> None:
    composition = _apply(_phased(), catalog, 1)
    renamed = reconciler.update_phase(composition, "phase_1", name=" Warm-up ", description="Before the line starts").composition

    assert renamed.phases[0].name == "Warm-up"
    assert renamed.phases[0].description == "Before the line starts"
    assert reconciler.update_phase(renamed, "phase_1", name="").composition == renamed


def test_phase_operations_require_phased_mode() -> None:
    with pytest.raises(ModeError):
        reconciler.add_phase(ChecklistComposition(), "Extra")
    with pytest.raises(ModeError):
        reconciler.remove_phase(ChecklistComposition(), "phase_1")


def test_custom_items_do_not_touch_selection(catalog, check_invariants) -> None:
    flat = reconciler.add_custom_item(ChecklistComposition(), "Sweep floor", estimated_minutes=5).composition
    assert flat.flat_items[0].source_task_id is None
    assert flat.selected_task_ids == frozenset()

    phased = reconciler.add_custom_item(_phased(), "Sweep floor", estimated_minutes=5).composition
    assert [phase.id for phase in phased.phases] == ["phase_2"]
    check_invariants(phased)

    with pytest.raises(ModeError):
        reconciler.add_custom_item(ChecklistComposition(), "Sweep", estimated_minutes=5, phase_id="phase_1")


def test_update_item_edits_allowed_fields(catalog) -> None:
    composition = _apply(ChecklistComposition(), catalog, 1)
    updated = reconciler.update_item(composition, "task_1", title="Grease chain", is_required=False).composition

    item = updated.flat_items[0]
    assert item.title == "Grease chain"
    assert item.is_required is False
    assert item.source_task_id == 1

    with pytest.raises(ValueError):
        reconciler.update_item(composition, "task_1", source_task_id=3)


def test_random_operation_sequences_keep_selection_consistent(mobile_catalog, check_invariants) -> None:
    rng = random.Random(1729)
    task_ids = [task.id for task in mobile_catalog]

    for _ in range(25):
        composition = ChecklistComposition(mode=rng.choice(list(CompositionMode)))
        for _ in range(40):
            roll = rng.random()
            if roll < 0.55:
                result = reconciler.toggle_task(composition, rng.choice(task_ids), mobile_catalog)
            elif roll < 0.75 and composition.selected_task_ids:
                item = rng.choice(list(composition.active_items()))
                result = reconciler.remove_item(composition, item.id)
            elif roll < 0.85 and composition.selected_task_ids:
                item = rng.choice(list(composition.active_items()))
                result = reconciler.move_item(composition, item.id, rng.choice(["up", "down"]))
            else:
                target = rng.choice(list(CompositionMode))
                result = mode_controller.set_mode(composition, target, mobile_catalog)
            composition = result.composition
            check_invariants(composition)


def test_removing_restored_item_with_source_task_deselects_it(check_invariants) -> None:
    saved = {
        "mode": "FLAT",
        "flat_items": [
            {"id": "x", "title": "Check pressure", "source_task_id": 2, "is_derived_from_task": False},
        ],
    }
    composition = restore_composition(saved).composition
    assert composition.selected_task_ids == {2}

    removed = reconciler.remove_item(composition, "x").composition

    assert removed.flat_items == ()
    assert removed.selected_task_ids == frozenset()
    check_invariants(removed)


def test_remove_item_drops_source_task_even_when_not_marked_derived(check_invariants) -> None:
    item = ChecklistItem(id="x", title="Check pressure", source_task_id=2)
    composition = ChecklistComposition(flat_items=(item,), selected_task_ids=frozenset({2}))

    removed = reconciler.remove_item(composition, "x").composition

    assert removed.selected_task_ids == frozenset()
    check_invariants(removed)
