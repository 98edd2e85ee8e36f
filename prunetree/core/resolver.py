from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping

from .errors import FieldAccessError

logger = logging.getLogger(__name__)

__all__ = ['ValueKind', 'ResolvedValue', 'ValueResolver']


class ValueKind(Enum):
    SCALAR = 'scalar'
    PLAIN_LIST = 'plain_list'
    RECORD_LIST = 'record_list'
    SINGLE_RECORD = 'single_record'
    LAZY_QUERY = 'lazy_query'
    RICH = 'rich'
    OPAQUE = 'opaque'


@dataclass(frozen=True)
class ResolvedValue:
    kind: ValueKind
    value: Any


class ValueResolver:
    """Fetch a field from a record and classify the value for dispatch."""

    def __init__(self, adapter: Any):
        self.adapter = adapter

    def fetch(self, record: Any, field: str) -> Any:
        try:
            return self.adapter.get_field(record, field)
        except FieldAccessError as e:
            logger.debug(f"Field '{field}' treated as absent on {type(record).__name__}: {e}")
            return None

    def apply_directives(self, query: Any, directives: Mapping[str, Any]) -> Any:
        for name, arg in (directives or {}).items():
            try:
                query = self.adapter.apply_modifier(query, name, arg)
            except Exception as e:
                logger.warning(f"Skipping modifier '{name}'={arg!r}: {e}")
        return query

    def classify(self, value: Any, directives: Mapping[str, Any] | None = None) -> ResolvedValue:
        adapter = self.adapter
        if adapter.is_lazy_query(value):
            return ResolvedValue(ValueKind.LAZY_QUERY, self.apply_directives(value, directives or {}))
        if directives:
            logger.debug(f"Dropping directives {sorted(directives)} for non-query value {type(value).__name__}")
        if adapter.is_collection_wrapper(value):
            value = adapter.unwrap(value)
        if adapter.is_scalar(value):
            return ResolvedValue(ValueKind.SCALAR, value)
        if isinstance(value, list):
            if value and all(adapter.is_entity(v) for v in value):
                return ResolvedValue(ValueKind.RECORD_LIST, value)
            return ResolvedValue(ValueKind.PLAIN_LIST, value)
        if adapter.is_entity(value):
            return ResolvedValue(ValueKind.SINGLE_RECORD, value)
        if adapter.is_rich(value):
            return ResolvedValue(ValueKind.RICH, value)
        return ResolvedValue(ValueKind.OPAQUE, value)

    def resolve(self, record: Any, field: str, directives: Dict[str, Any] | None = None) -> ResolvedValue:
        return self.classify(self.fetch(record, field), directives)
