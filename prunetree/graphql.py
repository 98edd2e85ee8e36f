"""Strawberry helper exposing pruned data as a ``JSON`` field.

Example::

    @strawberry.type
    class Query:
        entries = pruned_field(
            lambda info: info.context["db_session"].query(Entry),
            definition={"title": True, "author": ["name"]},
        )

    # { entries(prune: ["title"]) }
"""
from typing import Any, Callable, Optional

import strawberry
from strawberry.scalars import JSON

from .core.pruner import Pruner

__all__ = ['pruned_field']


def pruned_field(
    source: Callable[[Any], Any],
    *,
    definition: Any = None,
    pruner: Optional[Pruner] = None,
    name: Optional[str] = None,
    description: Optional[str] = None,
    allow_override: bool = True,
) -> Any:
    """Build a Strawberry field resolving ``source(info)`` and pruning the result.

    Lazy queries resolve to a list of pruned rows; any other value goes through
    ``Pruner.prune_data`` and so always yields a list. The optional ``prune`` argument replaces ``definition`` for a single query
    when ``allow_override`` is set.
    """

    def _active() -> Pruner:
        if pruner is not None:
            return pruner
        from . import get_default_pruner
        return get_default_pruner()

    def _run(info: Any, prune: Any) -> Any:
        data = source(info)
        chosen = prune if (allow_override and prune is not None) else definition
        active = _active()
        # a lazy query resolves to its pruned rows, not a one-item wrapper
        if active.adapter.is_lazy_query(data):
            return active.prune_query(data, chosen)
        return active.prune_data(data, chosen)

    if allow_override:
        def resolver(info: strawberry.Info, prune: Optional[JSON] = None) -> JSON:
            return _run(info, prune)
    else:
        def resolver(info: strawberry.Info) -> JSON:
            return _run(info, None)

    return strawberry.field(resolver=resolver, name=name, description=description)
