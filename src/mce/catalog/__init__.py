"""Maintenance task catalog records and the cache that serves them."""

from .cache import CatalogCache, TaskCatalog, TaskCatalogProvider
from .schema import AssetClass, ExecutionWindow, TaskDefinition, TaskId, TaskKind, TimeUnit

__all__ = [
    "AssetClass",
    "CatalogCache",
    "ExecutionWindow",
    "TaskCatalog",
    "TaskCatalogProvider",
    "TaskDefinition",
    "TaskId",
    "TaskKind",
    "TimeUnit",
]
