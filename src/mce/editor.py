"""Stateful editing session around one checklist composition."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Callable, Literal, Optional, Tuple

from .catalog.cache import CatalogCache, TaskCatalog
from .catalog.schema import TaskId
from .composition import mode as mode_controller
from .composition import reconciler
from .composition.payload import ChecklistDraft, ChecklistSink, finalize, restore_composition
from .composition.schema import (
    ChecklistComposition,
    CompositionMode,
    CompositionNotice,
    NoticeCode,
    Transition,
)
from .composition.totals import TimeTally, tally
from .config import EngineConfig, build_config
from .phases.classifier import ClassifierPolicy

LOGGER = logging.getLogger(__name__)

_WARNING_CODES = {NoticeCode.SOURCE_TASK_MISSING, NoticeCode.DUPLICATE_TASK_ITEM}


class ChecklistEditor:
    """Own a composition and apply the pure operations to it.

    Each call replaces the composition with the one the operation returned
    and keeps that operation's notices in ``notices`` so the caller can
    explain, for example, why phasing was switched off.
    """

    def __init__(
        self,
        catalog: TaskCatalog,
        composition: ChecklistComposition | Mapping[str, Any] | None = None,
        *,
        mode: CompositionMode | str | None = None,
        config: EngineConfig | None = None,
    ) -> None:
        self.config = config or build_config()
        self._catalog = catalog
        self._notices: Tuple[CompositionNotice, ...] = ()

        if composition is None:
            transition = Transition(ChecklistComposition(mode=self.config.composition.default_mode))
        else:
            transition = restore_composition(composition)
        if mode is not None:
            switched = mode_controller.set_mode(transition.composition, mode, catalog, policy=self.policy)
            transition = Transition(switched.composition, transition.notices + switched.notices)
        transition = mode_controller.enforce_phasing_rule(transition, catalog)

        self._composition = transition.composition
        self._record(transition)

    @classmethod
    def open(
        cls,
        cache: CatalogCache,
        company_id: int,
        sector_id: int | None = None,
        *,
        saved: ChecklistComposition | Mapping[str, Any] | None = None,
        mode: CompositionMode | str | None = None,
        config: EngineConfig | None = None,
    ) -> "ChecklistEditor":
        """Start a session on the cached, filtered catalog of a sector."""
        config = config or build_config()
        catalog = cache.get(company_id, sector_id).selectable(
            exclude_corrective=config.catalog.exclude_corrective,
            exclude_failures=config.catalog.exclude_failures,
        )
        return cls(catalog, saved, mode=mode, config=config)

    @property
    def composition(self) -> ChecklistComposition:
        return self._composition

    @property
    def catalog(self) -> TaskCatalog:
        return self._catalog

    @property
    def notices(self) -> Tuple[CompositionNotice, ...]:
        """Notices raised by the most recent operation."""
        return self._notices

    @property
    def policy(self) -> ClassifierPolicy:
        return self.config.classifier

    @property
    def fallback_minutes(self) -> int:
        return self.config.duration.fallback_minutes

    @property
    def tally(self) -> TimeTally:
        return tally(self._composition, self._catalog, fallback_minutes=self.fallback_minutes)

    @property
    def total_minutes(self) -> int:
        return self.tally.total_minutes

    def replace_catalog(self, catalog: TaskCatalog) -> None:
        """Swap in a refreshed catalog snapshot for totals and new selections."""
        self._catalog = catalog
        self._notices = ()
        self._apply(lambda current: mode_controller.enforce_phasing_rule(Transition(current), catalog))

    def toggle_task(self, task_id: TaskId) -> ChecklistComposition:
        return self._apply(
            lambda current: reconciler.toggle_task(
                current,
                task_id,
                self._catalog,
                policy=self.policy,
                fallback_minutes=self.fallback_minutes,
            )
        )

    def remove_item(self, item_id: str) -> ChecklistComposition:
        return self._apply(lambda current: reconciler.remove_item(current, item_id))

    def clear_all(self) -> ChecklistComposition:
        return self._apply(reconciler.clear_all)

    def set_mode(self, mode: CompositionMode | str) -> ChecklistComposition:
        return self._apply(
            lambda current: mode_controller.set_mode(current, mode, self._catalog, policy=self.policy)
        )

    def move_item(self, item_id: str, direction: Literal["up", "down"]) -> ChecklistComposition:
        return self._apply(lambda current: reconciler.move_item(current, item_id, direction))

    def transfer_item(self, item_id: str, phase_id: str) -> ChecklistComposition:
        return self._apply(lambda current: reconciler.transfer_item(current, item_id, phase_id))

    def assign_task(self, task_id: TaskId, phase_id: str) -> ChecklistComposition:
        return self._apply(
            lambda current: reconciler.assign_task(
                current,
                task_id,
                phase_id,
                self._catalog,
                policy=self.policy,
                fallback_minutes=self.fallback_minutes,
            )
        )

    def add_phase(self, name: str, description: str = "") -> ChecklistComposition:
        return self._apply(lambda current: reconciler.add_phase(current, name, description))

    def remove_phase(self, phase_id: str) -> ChecklistComposition:
        return self._apply(lambda current: reconciler.remove_phase(current, phase_id))

    def update_phase(
        self,
        phase_id: str,
        *,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> ChecklistComposition:
        return self._apply(
            lambda current: reconciler.update_phase(current, phase_id, name=name, description=description)
        )

    def add_custom_item(self, title: str, *, estimated_minutes: int, **fields: Any) -> ChecklistComposition:
        return self._apply(
            lambda current: reconciler.add_custom_item(
                current,
                title,
                estimated_minutes=estimated_minutes,
                policy=self.policy,
                **fields,
            )
        )

    def update_item(self, item_id: str, **changes: Any) -> ChecklistComposition:
        return self._apply(lambda current: reconciler.update_item(current, item_id, **changes))

    def finalize(self) -> ChecklistDraft:
        draft = finalize(self._composition, self._catalog, fallback_minutes=self.fallback_minutes)
        self._notices = draft.notices
        self._log(draft.notices)
        return draft

    def save(self, sink: ChecklistSink, *, doc_type: str, ids: Mapping[str, Any]) -> Any:
        """Finalize the composition and hand the draft to ``sink``."""
        draft = self.finalize()
        LOGGER.debug(
            "Saving %s checklist with %d task(s), %d minute(s)",
            draft.mode.value,
            len(draft.selected_task_ids),
            draft.estimated_total_minutes,
        )
        return sink.save(draft, doc_type=doc_type, ids=ids)

    def _apply(self, operation: Callable[[ChecklistComposition], Transition]) -> ChecklistComposition:
        transition = operation(self._composition)
        self._composition = transition.composition
        self._record(transition)
        return self._composition

    def _record(self, transition: Transition) -> None:
        if transition.notices:
            self._notices = transition.notices
            self._log(transition.notices)
        else:
            self._notices = ()

    @staticmethod
    def _log(notices: Tuple[CompositionNotice, ...]) -> None:
        for notice in notices:
            level = logging.WARNING if notice.code in _WARNING_CODES else logging.INFO
            LOGGER.log(level, "%s: %s", notice.code.value, notice.message)


__all__ = ["ChecklistEditor"]
