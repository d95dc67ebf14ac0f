"""Maintenance checklist composition engine."""

from .catalog import CatalogCache, TaskCatalog, TaskDefinition
from .composition import (
    ChecklistComposition,
    ChecklistDraft,
    ChecklistItem,
    CompositionMode,
    CompositionNotice,
    NoticeCode,
    Phase,
    Transition,
    compute_total,
    set_mode,
    toggle_task,
)
from .duration import normalize
from .editor import ChecklistEditor
from .errors import CompositionError
from .phases import PhaseSlot
from .phases.classifier import NO_PHASING, ClassifierPolicy, classify

__all__ = [
    "CatalogCache",
    "ChecklistComposition",
    "ChecklistDraft",
    "ChecklistEditor",
    "ChecklistItem",
    "ClassifierPolicy",
    "CompositionError",
    "CompositionMode",
    "CompositionNotice",
    "NO_PHASING",
    "NoticeCode",
    "Phase",
    "PhaseSlot",
    "TaskCatalog",
    "TaskDefinition",
    "Transition",
    "classify",
    "compute_total",
    "normalize",
    "set_mode",
    "toggle_task",
]
