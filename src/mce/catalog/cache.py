"""Task catalog snapshots and the read-through cache that supplies them.

The editor never talks to the catalog provider directly. A
``CatalogCache`` sits between the two, keyed by ``(company_id, sector_id)``:

``get``
    Return the cached snapshot, loading it from the provider on a miss or
    once the configured time-to-live has elapsed.

``refresh``
    Force a reload from the provider and replace the cached snapshot.

``invalidate``
    Drop one key, or every key, so the next ``get`` reloads.

Snapshots are immutable ``TaskCatalog`` objects; a refresh produces a new
snapshot and never mutates one already handed out to an editor.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional, Protocol, Sequence, Tuple

from ..errors import UnknownTaskError
from .schema import AssetClass, TaskDefinition, TaskId, TaskKind

if TYPE_CHECKING:
    from ..config import CatalogSettings

LOGGER = logging.getLogger(__name__)

CacheKey = Tuple[int, Optional[int]]


class TaskCatalogProvider(Protocol):
    """External collaborator that lists the maintenance tasks of a sector."""

    def fetch_tasks(
        self, company_id: int, sector_id: Optional[int] = None
    ) -> Iterable[TaskDefinition | Mapping[str, Any]]:
        ...


class TaskCatalog:
    """Read-only snapshot of task definitions keyed by id."""

    __slots__ = ("_tasks",)

    def __init__(self, tasks: Iterable[TaskDefinition | Mapping[str, Any]] = ()) -> None:
        indexed: Dict[TaskId, TaskDefinition] = {}
        for entry in tasks:
            task = entry if isinstance(entry, TaskDefinition) else TaskDefinition.model_validate(entry)
            if task.id in indexed:
                LOGGER.warning("Duplicate task id %s in catalog; keeping the first definition", task.id)
                continue
            indexed[task.id] = task
        self._tasks = indexed

    def __len__(self) -> int:
        return len(self._tasks)

    def __iter__(self) -> Iterator[TaskDefinition]:
        return iter(self._tasks.values())

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def get(self, task_id: TaskId | None) -> TaskDefinition | None:
        if task_id is None:
            return None
        return self._tasks.get(task_id)

    def require(self, task_id: TaskId) -> TaskDefinition:
        task = self.get(task_id)
        if task is None:
            raise UnknownTaskError(task_id)
        return task

    def resolve(self, task_ids: Iterable[TaskId]) -> list[TaskDefinition]:
        """Return the definitions for ``task_ids`` that are still in the catalog."""

        resolved: list[TaskDefinition] = []
        for task_id in task_ids:
            task = self._tasks.get(task_id)
            if task is not None:
                resolved.append(task)
        return resolved

    def selectable(
        self,
        *,
        asset_class: AssetClass | None = None,
        asset_id: int | None = None,
        exclude_corrective: bool = True,
        exclude_failures: bool = True,
    ) -> "TaskCatalog":
        """Return the subset of tasks that may be offered in a checklist.

        Corrective work and failure reports are not checklist material. When
        an asset is given, only tasks attached to that asset are kept.
        """

        def keep(task: TaskDefinition) -> bool:
            if exclude_corrective and task.kind is TaskKind.CORRECTIVE:
                return False
            if exclude_failures and task.is_failure:
                return False
            if asset_class is AssetClass.MACHINE and asset_id is not None:
                return task.machine_id == asset_id
            if asset_class is AssetClass.MOBILE_UNIT and asset_id is not None:
                return task.mobile_unit_id == asset_id
            if asset_class is not None:
                return task.asset_class is asset_class
            return True

        return TaskCatalog(task for task in self._tasks.values() if keep(task))


@dataclass(slots=True)
class _CacheEntry:
    catalog: TaskCatalog
    loaded_at: float


class CatalogCache:
    """Read-through cache of catalog snapshots with explicit refresh/invalidate."""

    def __init__(
        self,
        provider: TaskCatalogProvider,
        *,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds is not None and ttl_seconds < 0:
            raise ValueError("ttl_seconds must be non-negative")
        self._provider = provider
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: Dict[CacheKey, _CacheEntry] = {}

    @classmethod
    def from_config(
        cls,
        provider: TaskCatalogProvider,
        settings: CatalogSettings,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> "CatalogCache":
        """Build a cache whose expiry follows the ``catalog`` config section."""

        return cls(provider, ttl_seconds=settings.ttl_seconds, clock=clock)

    def get(self, company_id: int, sector_id: int | None = None) -> TaskCatalog:
        """Return the snapshot for the key, loading it on a miss or expiry."""

        key: CacheKey = (company_id, sector_id)
        entry = self._entries.get(key)
        if entry is not None and not self._expired(entry):
            return entry.catalog
        return self._load(key)

    def refresh(self, company_id: int, sector_id: int | None = None) -> TaskCatalog:
        """Reload the snapshot from the provider regardless of its age."""

        return self._load((company_id, sector_id))

    def invalidate(self, company_id: int | None = None, sector_id: int | None = None) -> None:
        """Forget one cached key, or every key when ``company_id`` is omitted."""

        if company_id is None:
            self._entries.clear()
            return
        self._entries.pop((company_id, sector_id), None)

    def cached_keys(self) -> Sequence[CacheKey]:
        return tuple(self._entries)

    def _expired(self, entry: _CacheEntry) -> bool:
        if self._ttl is None:
            return False
        return self._clock() - entry.loaded_at >= self._ttl

    def _load(self, key: CacheKey) -> TaskCatalog:
        company_id, sector_id = key
        catalog = TaskCatalog(self._provider.fetch_tasks(company_id, sector_id))
        self._entries[key] = _CacheEntry(catalog=catalog, loaded_at=self._clock())
        LOGGER.debug(
            "Loaded %d task(s) for company %s sector %s",
            len(catalog),
            company_id,
            sector_id,
        )
        return catalog


__all__ = ["CacheKey", "CatalogCache", "TaskCatalog", "TaskCatalogProvider"]
