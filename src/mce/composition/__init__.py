"""Checklist compositions and the pure operations that edit them."""

from .mode import flatten, partition, set_mode
from .payload import ChecklistDraft, ChecklistSink, finalize, restore_composition
from .reconciler import (
    add_custom_item,
    add_phase,
    assign_task,
    clear_all,
    move_item,
    remove_item,
    remove_phase,
    toggle_task,
    transfer_item,
    update_item,
    update_phase,
)
from .schema import (
    ChecklistComposition,
    ChecklistItem,
    CompositionMode,
    CompositionNotice,
    NoticeCode,
    Phase,
    Transition,
)
from .totals import TimeTally, compute_total, tally

__all__ = [
    "ChecklistComposition",
    "ChecklistDraft",
    "ChecklistItem",
    "ChecklistSink",
    "CompositionMode",
    "CompositionNotice",
    "NoticeCode",
    "Phase",
    "TimeTally",
    "Transition",
    "add_custom_item",
    "add_phase",
    "assign_task",
    "clear_all",
    "compute_total",
    "finalize",
    "flatten",
    "move_item",
    "partition",
    "remove_item",
    "remove_phase",
    "restore_composition",
    "set_mode",
    "tally",
    "toggle_task",
    "transfer_item",
    "update_item",
    "update_phase",
]
