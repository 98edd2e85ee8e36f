from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Callable, Dict, Optional, Protocol, runtime_checkable

__all__ = [
    'Serializable',
    'DictConvertible',
    'is_stringable',
    'public_attributes',
    'serialize_object',
]


@runtime_checkable
class Serializable(Protocol):
    def serialize(self) -> Any: ...


@runtime_checkable
class DictConvertible(Protocol):
    def to_dict(self) -> Dict[str, Any]: ...


def is_stringable(obj: Any) -> bool:
    """True when the object's class overrides ``__str__``."""
    return type(obj).__str__ is not object.__str__


def public_attributes(obj: Any) -> Dict[str, Any]:
    if isinstance(obj, Mapping):
        return dict(obj)
    out: Dict[str, Any] = {}
    try:
        for k, v in vars(obj).items():
            if not str(k).startswith('_'):
                out[k] = v
    except TypeError:
        pass
    for cls in type(obj).__mro__:
        for k in getattr(cls, '__slots__', ()) or ():
            if str(k).startswith('_') or k in out:
                continue
            try:
                out[k] = getattr(obj, k)
            except AttributeError:
                continue
    return out


def serialize_object(obj: Any, properties: Optional[Callable[[Any], Dict[str, Any]]] = None) -> Any:
    """Best-effort plain form of an object pruned with a ``True`` leaf.

    Order: ``serialize()``, ``to_dict()``, an overridden ``__str__``, then the
    object's public attributes (``properties`` replaces that last step).
    """
    if isinstance(obj, Serializable) and callable(getattr(obj, 'serialize', None)):
        return obj.serialize()
    if isinstance(obj, DictConvertible) and callable(getattr(obj, 'to_dict', None)):
        return obj.to_dict()
    if not isinstance(obj, Mapping) and is_stringable(obj):
        return str(obj)
    if properties is not None:
        return properties(obj)
    return public_attributes(obj)
