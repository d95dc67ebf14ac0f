from __future__ import annotations

import sys
import textwrap
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from mce.catalog.cache import TaskCatalog  # noqa: E402
from mce.catalog.schema import TaskDefinition  # noqa: E402
from mce.composition.schema import ChecklistComposition  # noqa: E402


def make_task(task_id: int, **fields: Any) -> TaskDefinition:
    """Build a task definition from camelCase fields, as the REST catalog sends them."""

    payload = {"id": task_id, "title": fields.pop("title", f"Task {task_id}"), **fields}
    return TaskDefinition.model_validate(payload)


def assert_consistent(composition: ChecklistComposition) -> None:
    """Check the structural invariants every operation must preserve."""

    sources = [item.source_task_id for item in composition.active_items() if item.source_task_id is not None]
    assert composition.selected_task_ids == frozenset(sources)
    assert len(sources) == len(set(sources))

    if composition.is_phased:
        assert composition.flat_items == ()
        assert [phase.order for phase in composition.phases] == list(range(len(composition.phases)))
        for phase in composition.phases:
            assert phase.items or phase.custom
            assert [item.order for item in phase.items] == list(range(len(phase.items)))
    else:
        assert composition.phases == ()
        assert [item.order for item in composition.flat_items] == list(range(len(composition.flat_items)))


@pytest.fixture()
def check_invariants() -> Callable[[ChecklistComposition], None]:
    return assert_consistent


@pytest.fixture()
def task_factory() -> Callable[..., TaskDefinition]:
    return make_task


@pytest.fixture()
def catalog() -> TaskCatalog:
    """Mixed catalog covering every execution window and duration encoding."""

    return TaskCatalog(
        [
            make_task(1, title="Lubricate chain", executionWindow="BEFORE_START", estimatedMinutes=2, timeType="HOURS"),
            make_task(2, title="Check pressure", executionWindow="MID_SHIFT", timeValue=30, timeUnit="MINUTES"),
            make_task(3, title="Clean filters", executionWindow="END_SHIFT", estimatedHours=0.75),
            make_task(4, title="Full inspection", executionWindow="WEEKEND", estimatedMinutes=60, timeType="MINUTES"),
            make_task(5, title="Weekly greasing", executionWindow="ANY_TIME", frequencyDays=7, estimatedMinutes=15, timeType="MINUTES"),
            make_task(6, title="Monthly belts", executionWindow="SCHEDULED", frequencyDays=30),
            make_task(7, title="Quarterly calibration", frequencyDays=90, estimatedHours=1.5),
            make_task(8, title="Loose bolts", estimatedMinutes=10, timeType="MINUTES"),
        ]
    )


@pytest.fixture()
def mobile_catalog(catalog: TaskCatalog) -> TaskCatalog:
    """Catalog extended with a task attached to a mobile unit."""

    return TaskCatalog(
        [
            *catalog,
            make_task(20, title="Truck tyres", mobileUnitId=4, executionWindow="BEFORE_START", timeValue=20, timeUnit="MINUTES"),
        ]
    )


@dataclass(slots=True)
class CatalogFiles:
    """Catalog and config files written for CLI tests."""

    catalog_path: Path
    config_path: Path


@pytest.fixture()
def catalog_files(tmp_path: Path) -> CatalogFiles:
    catalog_path = tmp_path / "tasks.yaml"
    catalog_path.write_text(
        textwrap.dedent(
            """
            tasks:
              - id: 1
                title: Lubricate chain
                executionWindow: BEFORE_START
                estimatedMinutes: 2
                timeType: HOURS
              - id: 2
                title: Check pressure
                executionWindow: MID_SHIFT
                timeValue: 30
                timeUnit: MINUTES
              - id: 3
                title: Truck tyres
                unidadMovilId: 4
                estimatedHours: 0.5
            """
        ).lstrip(),
        encoding="utf-8",
    )
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        textwrap.dedent(
            """
            composition:
              default_mode: PHASED
            logging:
              level: WARNING
            """
        ).lstrip(),
        encoding="utf-8",
    )
    return CatalogFiles(catalog_path=catalog_path, config_path=config_path)
