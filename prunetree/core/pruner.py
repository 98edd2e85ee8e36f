from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Dict, Hashable, Iterable, List, Optional, Set

from ..config import PruneSettings
from .cache import CacheBackend, Memoizer, MemoryCache
from .definition import extract_specials, normalize_definition, type_selectors
from .errors import not_a_record
from .resolver import ResolvedValue, ValueKind, ValueResolver

if TYPE_CHECKING:
    from ..adapters.base import RecordAdapter

logger = logging.getLogger(__name__)

__all__ = ['Pruner']

_PASS_THROUGH = (ValueKind.SCALAR, ValueKind.PLAIN_LIST, ValueKind.RICH)


class Pruner:
    """Recursive projection of record graphs according to a prune definition.

    Definition shorthand accepted by every public entry point:
      - ``["title", "author"]``
      - ``{"title": True, "author": {"name": True}}``
      - ``{"comments": {"$limit": 5, "body": True}}``  (directives on lazy collections)
      - ``{"blocks": {"_text": {"body": True}, "_image": ["src"]}}``  (dispatch by record type)
      - JSON text of any of the above

    Args:
        adapter: record capabilities (defaults to :class:`ObjectAdapter`)
        cache: a :class:`CacheBackend`, or ``True`` for an in-process
            :class:`MemoryCache`; ``None`` disables memoization
        settings: prefixes, tag naming and cache switches
        codec: cache payload codec passed to :class:`Memoizer` (``pickle`` by default)
    """

    def __init__(
        self,
        adapter: RecordAdapter | None = None,
        cache: CacheBackend | bool | None = None,
        settings: PruneSettings | None = None,
        codec: Any = None,
    ):
        self.settings = settings or PruneSettings()
        if adapter is None:
            # adapters.base imports prunetree.core at module level
            from ..adapters.base import ObjectAdapter
            adapter = ObjectAdapter()
        self.adapter = adapter
        self.resolver = ValueResolver(self.adapter)
        if cache is True:
            cache = MemoryCache(default_ttl=self.settings.cache_ttl)
        elif cache is False:
            cache = None
        self.cache = cache
        self.memo: Optional[Memoizer] = None
        if cache is not None and self.settings.cache_enabled:
            # keys differ per prefix pair: prefixes change how a definition is read
            scope = f"{self.settings.directive_prefix}\x1f{self.settings.type_prefix}"
            self.memo = Memoizer(cache, namespace=self.settings.cache_namespace, scope=scope, codec=codec)

    # ----- public API -----
    def normalize(self, definition: Any) -> Dict[str, Any]:
        return normalize_definition(definition)

    def prune_data(self, data: Any, definition: Any) -> List[Any]:
        """Prune one value or a list of values; always returns a list."""
        if not isinstance(data, (list, tuple)) or not data:
            data = [data]
        definition = normalize_definition(definition)
        return [self._prune_object(item, definition, set()) for item in data]

    def prune_object(self, value: Any, definition: Any) -> Any:
        """Prune a single record (dict result) or lazy query (list result).

        Non-records yield ``{"error": ...}`` instead of raising.
        """
        return self._prune_object(value, normalize_definition(definition), set())

    def prune_query(self, query: Any, definition: Any) -> List[Any]:
        return self._prune_query_root(query, normalize_definition(definition), set())

    def tag_for(self, record: Any) -> Optional[str]:
        identity = self.adapter.identity_of(record)
        if identity is None:
            return None
        return self._tag(record, identity)

    def invalidate(self, *records: Any) -> int:
        """Evict every cached result that touched any of ``records``."""
        if self.memo is None:
            return 0
        tags = [t for t in (self.tag_for(r) for r in records) if t]
        return self.memo.invalidate(tags) if tags else 0

    def invalidate_all(self) -> int:
        """Evict every cached result that involved a lazy query."""
        if self.memo is None:
            return 0
        return self.memo.invalidate([self.settings.query_tag])

    # ----- internals -----
    def _tag(self, record: Any, identity: Hashable) -> str:
        return f"{self.settings.tag_prefix}{self.adapter.type_key(record)}:{identity}"

    def _child_spec(self, child: Any) -> Any:
        """Interpret a child node: None (omit), True (keep whole) or a field mapping."""
        if child is None or child is False:
            return None
        if child is True:
            return True
        if isinstance(child, (int, float)):
            return True if child else None
        if isinstance(child, str):
            return {child: True} if child else True
        if isinstance(child, Mapping):
            return dict(child) if child else True
        return True

    def _prune_object(self, value: Any, definition: Dict[str, Any], relations: Set[str]) -> Any:
        if self.adapter.is_lazy_query(value):
            return self._prune_query_root(value, definition, relations)
        if not self.adapter.is_record(value):
            return not_a_record(value)
        return self._prune_record(value, definition, relations)

    def _prune_record(self, record: Any, definition: Any, relations: Set[str]) -> Any:
        adapter = self.adapter
        if not adapter.is_record(record):
            return not_a_record(record)
        fields, _ = extract_specials(definition, self.settings.directive_prefix)
        identity = adapter.identity_of(record)
        touched: Set[str] = set()
        key = None
        if identity is not None:
            touched.add(self._tag(record, identity))
            if self.memo is not None:
                key = self.memo.record_key(adapter.type_key(record), identity, fields)
                entry = self.memo.get(key)
                if entry is not None:
                    relations.update(touched)
                    relations.update(entry.tags)
                    return entry.result
        result: Dict[str, Any] = {}
        for field, child in fields.items():
            child_fields, directives = extract_specials(child, self.settings.directive_prefix)
            spec = self._child_spec(child_fields)
            if spec is None:
                continue
            resolved = self.resolver.resolve(record, field, directives)
            result[field] = self._prune_value(resolved, spec, touched)
        relations.update(touched)
        if key is not None:
            self.memo.put(key, result, touched)
        return result

    def _prune_value(self, resolved: ResolvedValue, spec: Any, relations: Set[str]) -> Any:
        kind, value = resolved.kind, resolved.value
        if kind in _PASS_THROUGH:
            return value
        if kind is ValueKind.RECORD_LIST:
            return self._prune_list(value, spec, relations)
        if kind is ValueKind.LAZY_QUERY:
            return self._prune_query(value, spec, relations)
        if kind is ValueKind.SINGLE_RECORD:
            if spec is True:
                return self._serialize_record(value, relations)
            return self._prune_record(value, spec, relations)
        # opaque object
        if spec is True:
            return self.adapter.serialize(value)
        return self._prune_object(value, spec, relations)

    def _serialize_record(self, record: Any, relations: Set[str]) -> Any:
        identity = self.adapter.identity_of(record)
        if identity is not None:
            relations.add(self._tag(record, identity))
        return self.adapter.serialize(record)

    def _prune_list(self, records: Iterable[Any], spec: Any, relations: Set[str]) -> List[Any]:
        if spec is True:
            return [self._serialize_record(r, relations) for r in records]
        selectors = type_selectors(spec, self.settings.type_prefix)
        if selectors is None:
            return [self._prune_record(r, spec, relations) for r in records]
        out: List[Any] = []
        for record in records:
            rtype = self.adapter.type_of(record)
            for handle, sub in selectors:
                if handle != rtype:
                    continue
                sub_fields, _ = extract_specials(sub, self.settings.directive_prefix)
                sub_spec = self._child_spec(sub_fields)
                if sub_spec is True:
                    out.append(self._serialize_record(record, relations))
                elif sub_spec is not None:
                    out.append(self._prune_record(record, sub_spec, relations))
                break
            else:
                logger.debug(f"Dropping {type(record).__name__} of type {rtype!r}: no matching type selector")
        return out

    def _prune_query_root(self, query: Any, definition: Dict[str, Any], relations: Set[str]) -> List[Any]:
        fields, directives = extract_specials(definition, self.settings.directive_prefix)
        query = self.resolver.apply_directives(query, directives)
        return self._prune_query(query, self._child_spec(fields) or True, relations)

    def _query_identity(self, query: Any) -> Optional[str]:
        try:
            return self.adapter.query_identity(query)
        except Exception as e:
            logger.debug(f"No cache identity for {type(query).__name__}: {e}")
            return None

    def _prune_query(self, query: Any, spec: Any, relations: Set[str]) -> List[Any]:
        key = None
        if self.memo is not None:
            qid = self._query_identity(query)
            if qid is not None:
                key = self.memo.query_key(qid, spec)
                entry = self.memo.get(key)
                if entry is not None:
                    relations.update(entry.tags)
                    return entry.result
        try:
            items = self.adapter.materialize(query)
        except Exception as e:
            logger.warning(f"Failed to materialize {type(query).__name__}: {e}")
            return []
        touched: Set[str] = {self.settings.query_tag}
        resolved = self.resolver.classify(items)
        if resolved.kind is ValueKind.RECORD_LIST:
            result = self._prune_list(resolved.value, spec, touched)
        else:
            result = list(resolved.value) if isinstance(resolved.value, list) else []
        relations.update(touched)
        if key is not None:
            self.memo.put(key, result, touched)
        return result
