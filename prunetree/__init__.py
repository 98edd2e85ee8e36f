"""prunetree public API.

Project arbitrary record graphs (objects, mappings, ORM instances, lazy
queries) to plain data according to a declarative prune definition.

Exposes:
- Pruner, PruneSettings, LazyQuery, MemoryCache
- prune_data, prune_object, prune_query, normalize_definition
- get_default_pruner, set_default_pruner
"""
from __future__ import annotations

from typing import Any, List, Optional

from .adapters import ObjectAdapter, RecordAdapter
from .config import PruneSettings
from .core import (
    CacheBackend,
    CacheUnavailable,
    FieldAccessError,
    MemoryCache,
    PruneError,
    Pruner,
    extract_specials,
    is_error,
    normalize_definition,
)
from .query import LazyQuery

_DEFAULT_PRUNER: Optional[Pruner] = None


def set_default_pruner(pruner: Optional[Pruner]) -> None:
    global _DEFAULT_PRUNER
    _DEFAULT_PRUNER = pruner


def get_default_pruner() -> Pruner:
    global _DEFAULT_PRUNER
    if _DEFAULT_PRUNER is None:
        _DEFAULT_PRUNER = Pruner()
    return _DEFAULT_PRUNER


def prune_data(data: Any, definition: Any) -> List[Any]:
    return get_default_pruner().prune_data(data, definition)


def prune_object(value: Any, definition: Any) -> Any:
    return get_default_pruner().prune_object(value, definition)


def prune_query(query: Any, definition: Any) -> List[Any]:
    return get_default_pruner().prune_query(query, definition)


__all__ = [
    'Pruner', 'PruneSettings', 'LazyQuery',
    'RecordAdapter', 'ObjectAdapter',
    'CacheBackend', 'MemoryCache',
    'PruneError', 'FieldAccessError', 'CacheUnavailable', 'is_error',
    'normalize_definition', 'extract_specials',
    'prune_data', 'prune_object', 'prune_query',
    'get_default_pruner', 'set_default_pruner',
]
