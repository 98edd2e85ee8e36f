from __future__ import annotations

import collections
import inspect
import logging
import types
import uuid
from collections.abc import KeysView, Mapping, ValuesView
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Hashable, List, Optional, Tuple

from ..core.errors import FieldAccessError
from ..core.serialize import public_attributes, serialize_object
from ..query import LazyQuery

logger = logging.getLogger(__name__)

_MISSING = object()

SCALAR_TYPES: Tuple[type, ...] = (
    str, bytes, bool, int, float, Decimal,
    date, datetime, time, timedelta, uuid.UUID, Enum,
)
WRAPPER_TYPES: Tuple[type, ...] = (
    tuple, set, frozenset, collections.deque, KeysView, ValuesView, types.GeneratorType,
)


class RecordAdapter:
    """Host object-model capabilities consumed by the pruner.

    Subclasses describe what a record is, how its fields are read, what its
    identity and type discriminator are, and how lazy collections are
    modified and materialized.
    """

    # --- records ---
    def is_record(self, value: Any) -> bool:
        raise NotImplementedError

    def is_entity(self, value: Any) -> bool:
        """Records eligible for list pruning and type dispatch."""
        return self.is_record(value)

    def has_field(self, record: Any, name: str) -> bool:
        raise NotImplementedError

    def get_field(self, record: Any, name: str) -> Any:
        raise NotImplementedError

    def identity_of(self, record: Any) -> Optional[Hashable]:
        return None

    def type_of(self, record: Any) -> Optional[str]:
        return None

    def type_key(self, record: Any) -> str:
        return type(record).__name__

    # --- lazy collections ---
    def is_lazy_query(self, value: Any) -> bool:
        return False

    def apply_modifier(self, query: Any, name: str, arg: Any) -> Any:
        return query

    def materialize(self, query: Any) -> List[Any]:
        raise NotImplementedError

    def query_identity(self, query: Any) -> Optional[str]:
        return None

    # --- plain values ---
    def is_scalar(self, value: Any) -> bool:
        return value is None or isinstance(value, SCALAR_TYPES)

    def is_collection_wrapper(self, value: Any) -> bool:
        return False

    def unwrap(self, value: Any) -> List[Any]:
        return list(value)

    def is_rich(self, value: Any) -> bool:
        return False

    def serialize(self, value: Any) -> Any:
        return serialize_object(value)


class ObjectAdapter(RecordAdapter):
    """Adapter for plain Python data: mappings, objects, dataclasses and LazyQuery.

    Mappings are read by key, objects by attribute with an indexed fallback.
    Objects exposing an ``id`` attribute carry identity; mappings do not.
    The type discriminator is the ``type`` field (its ``handle`` or ``value``
    when it is an object or an Enum).
    """

    def __init__(self, *, rich_types: Tuple[type, ...] = (), wrapper_types: Tuple[type, ...] = ()):
        self.rich_types = tuple(rich_types)
        self.wrapper_types = WRAPPER_TYPES + tuple(wrapper_types)

    def is_record(self, value: Any) -> bool:
        if self.is_scalar(value) or isinstance(value, (list,) + self.wrapper_types):
            return False
        if self.is_lazy_query(value) or self.is_rich(value):
            return False
        if isinstance(value, Mapping):
            return True
        if inspect.isroutine(value) or inspect.isclass(value) or inspect.ismodule(value):
            return False
        return True

    def has_field(self, record: Any, name: str) -> bool:
        if isinstance(record, Mapping):
            return name in record
        try:
            getattr(record, name)
            return True
        except Exception:
            pass
        try:
            record[name]
            return True
        except Exception:
            return False

    def get_field(self, record: Any, name: str) -> Any:
        if isinstance(record, Mapping):
            try:
                return record[name]
            except Exception as e:
                raise FieldAccessError(name, e) from e
        try:
            value = getattr(record, name)
        except AttributeError:
            value = _MISSING
        except Exception as e:
            raise FieldAccessError(name, e) from e
        # methods are not fields
        if value is _MISSING or inspect.ismethod(value):
            try:
                return record[name]
            except Exception as e:
                raise FieldAccessError(name, e) from e
        return value

    def identity_of(self, record: Any) -> Optional[Hashable]:
        if isinstance(record, Mapping):
            return None
        ident = getattr(record, 'id', None)
        if ident is None or not isinstance(ident, Hashable) or callable(ident):
            return None
        return ident

    def type_of(self, record: Any) -> Optional[str]:
        try:
            t = self.get_field(record, 'type')
        except FieldAccessError:
            return None
        if t is None:
            return None
        if isinstance(t, Enum):
            return str(t.value)
        handle = getattr(t, 'handle', None)
        if handle is not None:
            return str(handle)
        return str(t)

    def is_lazy_query(self, value: Any) -> bool:
        return isinstance(value, LazyQuery)

    def apply_modifier(self, query: Any, name: str, arg: Any) -> Any:
        if isinstance(query, LazyQuery) and name in LazyQuery.MODIFIERS:
            if name == 'filter_by':
                return query.filter_by(arg if isinstance(arg, Mapping) else {})
            return getattr(query, name)(arg)
        logger.debug(f"Ignoring unknown modifier '{name}' for {type(query).__name__}")
        return query

    def materialize(self, query: Any) -> List[Any]:
        return list(query.all())

    def query_identity(self, query: Any) -> Optional[str]:
        if isinstance(query, LazyQuery):
            return query.cache_key()
        return None

    def is_collection_wrapper(self, value: Any) -> bool:
        return isinstance(value, self.wrapper_types)

    def is_rich(self, value: Any) -> bool:
        return bool(self.rich_types) and isinstance(value, self.rich_types)

    def serialize(self, value: Any) -> Any:
        return serialize_object(value, properties=self.properties)

    def properties(self, value: Any) -> Dict[str, Any]:
        return public_attributes(value)
