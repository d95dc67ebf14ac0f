"""Typed records for checklist compositions and the results of editing them."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterator, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..catalog.schema import TaskId
from ..phases import PhaseSlot

DEFAULT_CATEGORY = "MAINTENANCE"


class RecordModel(BaseModel):
    """Immutable Pydantic base; every edit produces a new record."""

    model_config = ConfigDict(extra="forbid", frozen=True)


class CompositionMode(str, Enum):
    """Structure of a checklist."""

    PHASED = "PHASED"
    FLAT = "FLAT"


class ChecklistItem(RecordModel):
    """Single line of a checklist, optionally derived from a catalog task."""

    id: str
    title: str
    description: str = ""
    is_required: bool = True
    order: int = 0
    category: str = DEFAULT_CATEGORY
    estimated_minutes: int = Field(default=0, ge=0)
    source_task_id: Optional[TaskId] = None
    is_derived_from_task: bool = False

    @model_validator(mode="after")
    def _derived_items_need_source(self) -> "ChecklistItem":
        if self.is_derived_from_task and self.source_task_id is None:
            raise ValueError("items derived from a task must carry source_task_id")
        return self


class Phase(RecordModel):
    """Named, ordered bucket of checklist items."""

    id: str
    name: str
    description: str = ""
    order: int = 0
    items: Tuple[ChecklistItem, ...] = ()
    slot: Optional[PhaseSlot] = None
    custom: bool = False


class ChecklistComposition(RecordModel):
    """Aggregate root of an editing session."""

    mode: CompositionMode = CompositionMode.FLAT
    phases: Tuple[Phase, ...] = ()
    flat_items: Tuple[ChecklistItem, ...] = ()
    selected_task_ids: FrozenSet[TaskId] = frozenset()

    @property
    def is_phased(self) -> bool:
        return self.mode is CompositionMode.PHASED

    def active_items(self) -> Iterator[ChecklistItem]:
        """Yield the items of the active container in display order."""

        if self.is_phased:
            for phase in self.phases:
                yield from phase.items
        else:
            yield from self.flat_items

    def source_task_ids(self) -> FrozenSet[TaskId]:
        return frozenset(
            item.source_task_id
            for item in self.active_items()
            if item.source_task_id is not None
        )

    def visible_phases(self) -> Tuple[Phase, ...]:
        """Return the phases that hold at least one item."""

        return tuple(phase for phase in self.phases if phase.items)


class NoticeCode(str, Enum):
    """Kinds of non-fatal conditions reported alongside a transition."""

    PHASING_DISABLED = "PHASING_DISABLED"
    SOURCE_TASK_MISSING = "SOURCE_TASK_MISSING"
    DUPLICATE_TASK_ITEM = "DUPLICATE_TASK_ITEM"
    EMPTY_PHASE_DROPPED = "EMPTY_PHASE_DROPPED"


@dataclass(frozen=True, slots=True)
class CompositionNotice:
    """Explanatory condition the caller should surface to the user."""

    code: NoticeCode
    message: str
    task_ids: Tuple[TaskId, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        """Return a serialisable view of the notice."""

        return {
            "code": self.code.value,
            "message": self.message,
            "task_ids": list(self.task_ids),
        }


@dataclass(frozen=True, slots=True)
class Transition:
    """Composition produced by an operation plus the notices it raised."""

    composition: ChecklistComposition
    notices: Tuple[CompositionNotice, ...] = field(default_factory=tuple)

    def with_notices(self, *notices: CompositionNotice) -> "Transition":
        return Transition(self.composition, self.notices + tuple(notices))


__all__ = [
    "ChecklistComposition",
    "ChecklistItem",
    "CompositionMode",
    "CompositionNotice",
    "DEFAULT_CATEGORY",
    "NoticeCode",
    "Phase",
    "RecordModel",
    "Transition",
]
