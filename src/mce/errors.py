"""Exceptions raised by the checklist composition engine."""

from __future__ import annotations

from typing import Any

__all__ = [
    "CompositionError",
    "ConfigError",
    "EmptyChecklistError",
    "ModeError",
    "UnknownItemError",
    "UnknownPhaseError",
    "UnknownTaskError",
]


class CompositionError(RuntimeError):
    """Base class for caller errors detected while editing a composition."""


class UnknownTaskError(CompositionError):
    """Raised when a task id is neither selected nor present in the catalog."""

    def __init__(self, task_id: Any) -> None:
        super().__init__(f"Task {task_id!r} is not in the task catalog")
        self.task_id = task_id


class UnknownItemError(CompositionError):
    """Raised when an item id is not present in the active container."""

    def __init__(self, item_id: str) -> None:
        super().__init__(f"Checklist item {item_id!r} not found")
        self.item_id = item_id


class UnknownPhaseError(CompositionError):
    """Raised when a phase id does not match any phase of the composition."""

    def __init__(self, phase_id: str) -> None:
        super().__init__(f"Phase {phase_id!r} not found")
        self.phase_id = phase_id


class ModeError(CompositionError):
    """Raised when an operation is not available in the current mode."""


class EmptyChecklistError(CompositionError):
    """Raised when finalizing a composition whose active container is empty."""


class ConfigError(RuntimeError):
    """Raised when the engine configuration cannot be loaded or validated."""
