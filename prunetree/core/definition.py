from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

__all__ = [
    'normalize_definition',
    'extract_specials',
    'type_selectors',
    'canonical_json',
]

_LEAF_TYPES = (bool, int, float, str, type(None))
_SEQUENCE_TYPES = (list, tuple, set, frozenset)


def normalize_definition(raw: Any) -> Dict[str, Any]:
    """Convert any accepted prune definition shorthand to the canonical mapping.

    Accepted input:
      - JSON string ('["title", "body"]', '{"author": ["name"]}')
      - any other string: a single field name
      - list/tuple/set of field names, optionally mixed with mappings
      - mapping of field name to sub-definition
      - any other scalar: wrapped as ``{str(raw): True}``; ``None`` gives ``{}``

    Never raises; malformed input degrades to a best-effort definition.
    """
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode('utf-8', errors='replace')
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except ValueError:
            parsed = None
        if isinstance(parsed, (dict, list)):
            raw = parsed
        elif isinstance(parsed, str):
            return {parsed: True}
        else:
            return {raw: True}
    if raw is None:
        return {}
    if isinstance(raw, (Mapping,) + _SEQUENCE_TYPES):
        return _normalize_node(raw, frozenset())
    return {str(raw): True}


def _normalize_node(node: Any, seen: FrozenSet[int]) -> Dict[str, Any]:
    seen = seen | {id(node)}
    if isinstance(node, Mapping):
        out: Dict[str, Any] = {}
        for key, value in node.items():
            out[str(key)] = _normalize_value(value, seen)
        return out
    out = {}
    for item in node:
        if isinstance(item, Mapping) or isinstance(item, _SEQUENCE_TYPES):
            if id(item) in seen:
                continue
            out.update(_normalize_node(item, seen))
        elif item is None:
            continue
        else:
            out[str(item)] = True
    return out


def _normalize_value(value: Any, seen: FrozenSet[int]) -> Any:
    if isinstance(value, _LEAF_TYPES):
        return value
    if isinstance(value, Mapping) or isinstance(value, _SEQUENCE_TYPES):
        # self-referencing definitions stop at the repeated container
        if id(value) in seen:
            return True
        return _normalize_node(value, seen)
    return True


def extract_specials(node: Any, prefix: str = '$') -> Tuple[Any, Dict[str, Any]]:
    """Split a definition node into (fields, directives).

    Directive keys carry ``prefix``; they are returned with the prefix stripped.
    Non-mapping nodes are returned unchanged with no directives.
    """
    if not isinstance(node, Mapping):
        return node, {}
    fields: Dict[str, Any] = {}
    directives: Dict[str, Any] = {}
    for key, value in node.items():
        if isinstance(key, str) and key.startswith(prefix):
            directives[key[len(prefix):]] = value
        else:
            fields[key] = value
    return fields, directives


def type_selectors(node: Any, prefix: str = '_') -> Optional[List[Tuple[str, Any]]]:
    """Return ``[(type, sub_definition), ...]`` when every key of ``node`` is a type selector."""
    if not isinstance(node, Mapping) or not node:
        return None
    pairs: List[Tuple[str, Any]] = []
    for key, value in node.items():
        if not isinstance(key, str) or not key.startswith(prefix):
            return None
        pairs.append((key[len(prefix):], value))
    return pairs


def canonical_json(definition: Any) -> str:
    """Deterministic text form of a normalized definition, used for cache keys."""
    return json.dumps(definition, sort_keys=True, separators=(',', ':'), default=repr)
