"""Canonical shift phases and their standard bucket metadata."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class PhaseSlot(IntEnum):
    """Index of a canonical time-of-shift phase."""

    BEFORE_START = 0
    MID_SHIFT = 1
    END_SHIFT = 2
    WEEKEND = 3


@dataclass(frozen=True, slots=True)
class PhaseTemplate:
    """Standard identity of the bucket created for a canonical phase."""

    slot: PhaseSlot
    id: str
    name: str
    description: str


PHASE_SEQUENCE = [
    PhaseSlot.BEFORE_START,
    PhaseSlot.MID_SHIFT,
    PhaseSlot.END_SHIFT,
    PhaseSlot.WEEKEND,
]

CANONICAL_PHASES: dict[PhaseSlot, PhaseTemplate] = {
    PhaseSlot.BEFORE_START: PhaseTemplate(
        slot=PhaseSlot.BEFORE_START,
        id="phase_1",
        name="Phase 1 - Before Start",
        description="Maintenance to complete before production starts",
    ),
    PhaseSlot.MID_SHIFT: PhaseTemplate(
        slot=PhaseSlot.MID_SHIFT,
        id="phase_2",
        name="Phase 2 - Mid Shift",
        description="Maintenance to run halfway through the shift",
    ),
    PhaseSlot.END_SHIFT: PhaseTemplate(
        slot=PhaseSlot.END_SHIFT,
        id="phase_3",
        name="Phase 3 - End of Shift",
        description="Maintenance to run when the shift ends",
    ),
    PhaseSlot.WEEKEND: PhaseTemplate(
        slot=PhaseSlot.WEEKEND,
        id="phase_4",
        name="Phase 4 - Weekend",
        description="Maintenance reserved for the weekend",
    ),
}


def canonical_phase(slot: PhaseSlot | int) -> PhaseTemplate:
    """Return the standard template for ``slot``."""
    return CANONICAL_PHASES[PhaseSlot(slot)]


__all__ = ["CANONICAL_PHASES", "PHASE_SEQUENCE", "PhaseSlot", "PhaseTemplate", "canonical_phase"]
