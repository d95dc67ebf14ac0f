from __future__ import annotations

import random

import pytest

from mce.catalog.cache import TaskCatalog
from mce.catalog.schema import AssetClass
from mce.composition import reconciler
from mce.composition.mode import enforce_phasing_rule, flatten, partition, set_mode
from mce.composition.schema import ChecklistComposition, CompositionMode, NoticeCode, Transition
from mce.phases.classifier import ClassifierPolicy


def _select(composition: ChecklistComposition, catalog: TaskCatalog, *task_ids: int) -> ChecklistComposition:
    for task_id in task_ids:
        composition = reconciler.toggle_task(composition, task_id, catalog).composition
    return composition


def _sources_by_phase(composition: ChecklistComposition) -> dict[str, set[int]]:
    return {
        phase.id: {item.source_task_id for item in phase.items}
        for phase in composition.phases
    }


def test_flatten_concatenates_in_phase_order(catalog, check_invariants) -> None:
    phased = _select(ChecklistComposition(mode=CompositionMode.PHASED), catalog, 4, 2, 1, 3)
    flat = set_mode(phased, "flat", catalog).composition

    assert flat.mode is CompositionMode.FLAT
    assert flat.phases == ()
    assert [item.source_task_id for item in flat.flat_items] == [1, 2, 3, 4]
    assert flat.selected_task_ids == phased.selected_task_ids
    check_invariants(flat)


def test_partition_preserves_relative_order(catalog, check_invariants) -> None:
    flat = _select(ChecklistComposition(), catalog, 5, 2, 1, 8)
    phased = set_mode(flat, CompositionMode.PHASED, catalog).composition

    assert [phase.id for phase in phased.phases] == ["phase_1", "phase_2"]
    assert [item.source_task_id for item in phased.phases[0].items] == [5, 1]
    assert [item.source_task_id for item in phased.phases[1].items] == [2, 8]
    check_invariants(phased)


def test_set_mode_to_current_mode_is_a_no_op(catalog) -> None:
    flat = _select(ChecklistComposition(), catalog, 1)
    assert set_mode(flat, "FLAT", catalog).composition is flat


def test_set_mode_rejects_unknown_modes(catalog) -> None:
    with pytest.raises(ValueError):
        set_mode(ChecklistComposition(), "diagonal", catalog)


def test_round_trip_keeps_phase_membership(catalog) -> None:
    rng = random.Random(7)
    task_ids = [task.id for task in catalog]

    for _ in range(20):
        chosen = rng.sample(task_ids, rng.randint(1, len(task_ids)))
        phased = _select(ChecklistComposition(mode=CompositionMode.PHASED), catalog, *chosen)
        flat = set_mode(phased, CompositionMode.FLAT, catalog).composition
        again = set_mode(flat, CompositionMode.PHASED, catalog).composition

        assert _sources_by_phase(again) == _sources_by_phase(phased)
        assert again.selected_task_ids == phased.selected_task_ids


def test_phased_request_refused_for_mobile_unit_selection(mobile_catalog) -> None:
    flat = _select(ChecklistComposition(), mobile_catalog, 1, 20)
    result = set_mode(flat, CompositionMode.PHASED, mobile_catalog)

    assert result.composition is flat
    assert [notice.code for notice in result.notices] == [NoticeCode.PHASING_DISABLED]
    assert result.notices[0].task_ids == (20,)


def test_manual_items_and_missing_tasks_go_to_default_slot(catalog, check_invariants) -> None:
    flat = _select(ChecklistComposition(), catalog, 1, 3)
    flat = reconciler.add_custom_item(flat, "Wipe panel", estimated_minutes=5).composition
    shrunk = TaskCatalog(task for task in catalog if task.id != 3)
    policy = ClassifierPolicy(default_slot="WEEKEND")

    result = partition(flat, shrunk, policy=policy)

    assert [phase.id for phase in result.composition.phases] == ["phase_1", "phase_4"]
    assert [item.title for item in result.composition.phases[1].items] == ["Clean filters", "Wipe panel"]
    assert [notice.code for notice in result.notices] == [NoticeCode.SOURCE_TASK_MISSING]
    check_invariants(result.composition)


def test_enforce_phasing_rule_flattens_blocked_selection(mobile_catalog) -> None:
    plain = TaskCatalog(task for task in mobile_catalog if task.id != 20)
    phased = _select(ChecklistComposition(mode=CompositionMode.PHASED), plain, 1, 2)
    result = enforce_phasing_rule(Transition(phased), mobile_catalog)
    assert result.composition is phased

    # Task 2 was reassigned to a mobile unit after the checklist was built.
    moved = TaskCatalog(
        [task.model_copy(update={"asset_class": AssetClass.MOBILE_UNIT}) if task.id == 2 else task for task in plain]
    )
    forced = enforce_phasing_rule(Transition(phased), moved)

    assert forced.composition.mode is CompositionMode.FLAT
    assert forced.composition == flatten(phased)
    assert [notice.code for notice in forced.notices] == [NoticeCode.PHASING_DISABLED]
