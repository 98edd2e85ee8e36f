"""In-memory lazy collection with chainable modifiers.

``LazyQuery`` is the plain-Python counterpart of an ORM query: it defers
loading its source until ``all()`` and supports the modifiers prune directives
map to (``$limit``, ``$offset``, ``$order_by``, ``$filter_by``).
"""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Callable, Iterable, List, Optional, Tuple, Union

__all__ = ['LazyQuery', 'parse_order']

Source = Union[Iterable[Any], Callable[[], Iterable[Any]]]


def _get(item: Any, name: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def parse_order(spec: Any) -> List[Tuple[str, bool]]:
    """Parse ``"title"``, ``"-title"``, ``"title desc"`` or a list of those.

    Returns ``[(field, descending), ...]``.
    """
    if spec is None:
        return []
    if isinstance(spec, str):
        parts = spec.split(',')
    elif isinstance(spec, (list, tuple)):
        parts = list(spec)
    elif isinstance(spec, Mapping):
        # a normalized list definition: keys in order, disabled ones skipped
        parts = [k for k, v in spec.items() if v]
    else:
        parts = [str(spec)]
    out: List[Tuple[str, bool]] = []
    for part in parts:
        s = str(part).strip()
        if not s:
            continue
        desc = False
        if s.startswith('-'):
            desc = True
            s = s[1:].strip()
        else:
            bits = s.split()
            if len(bits) == 2 and bits[1].lower() in ('asc', 'desc'):
                s = bits[0]
                desc = bits[1].lower() == 'desc'
        if s:
            out.append((s, desc))
    return out


class LazyQuery:
    MODIFIERS = frozenset({'limit', 'offset', 'order_by', 'filter_by'})

    def __init__(self, source: Source, *, key: Optional[str] = None, _ops: Tuple[Tuple[str, Any], ...] = ()):
        self._source = source
        self.key = key
        self._ops = _ops

    def _chain(self, op: str, arg: Any) -> 'LazyQuery':
        return LazyQuery(self._source, key=self.key, _ops=self._ops + ((op, arg),))

    def limit(self, n: Any) -> 'LazyQuery':
        return self._chain('limit', None if n is None else int(n))

    def offset(self, n: Any) -> 'LazyQuery':
        return self._chain('offset', None if n is None else int(n))

    def order_by(self, spec: Any) -> 'LazyQuery':
        return self._chain('order_by', tuple(parse_order(spec)))

    def filter_by(self, criteria: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> 'LazyQuery':
        merged = dict(criteria or {})
        merged.update(kwargs)
        return self._chain('filter_by', tuple(sorted(merged.items(), key=lambda kv: kv[0])))

    def all(self) -> List[Any]:
        src = self._source() if callable(self._source) else self._source
        items = list(src)
        limit = offset = None
        order: Tuple[Tuple[str, bool], ...] = ()
        for op, arg in self._ops:
            if op == 'filter_by':
                items = [it for it in items if all(_get(it, k) == v for k, v in arg)]
            elif op == 'order_by':
                order = arg
            elif op == 'limit':
                limit = arg
            elif op == 'offset':
                offset = arg
        # stable sort, least significant key first
        for name, desc in reversed(order):
            present = [it for it in items if _get(it, name) is not None]
            missing = [it for it in items if _get(it, name) is None]
            present.sort(key=lambda it: _get(it, name), reverse=desc)
            items = present + missing
        if offset:
            items = items[max(offset, 0):]
        if limit is not None:
            items = items[:max(limit, 0)]
        return items

    def cache_key(self) -> Optional[str]:
        if self.key is None:
            return None
        return f"{self.key}|{self._ops!r}"

    def __repr__(self) -> str:
        return f"LazyQuery(key={self.key!r}, ops={list(self._ops)!r})"
