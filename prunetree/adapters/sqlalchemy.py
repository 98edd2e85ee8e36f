from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Dict, Hashable, List, Optional

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.engine import Result, ScalarResult
from sqlalchemy.orm import Query, Session
from sqlalchemy.orm.state import InstanceState
from sqlalchemy.sql import Select

from ..query import parse_order
from .base import ObjectAdapter

logger = logging.getLogger(__name__)

__all__ = ['SQLAlchemyAdapter']


def _state(value: Any) -> Optional[InstanceState]:
    if value is None or isinstance(value, type):
        return None
    try:
        st = sa_inspect(value, raiseerr=False)
    except Exception:
        return None
    return st if isinstance(st, InstanceState) else None


class SQLAlchemyAdapter(ObjectAdapter):
    """Record adapter for SQLAlchemy ORM instances.

    - identity: the instance's primary key identity (None while transient/pending)
    - type discriminator: the mapper's polymorphic identity, else the ``type`` field
    - lazy collections: ``Query`` (including ``lazy="dynamic"`` relationships) and,
      when a ``session`` is bound, ``Select`` statements
    - ``Result``/``ScalarResult`` values are unwrapped to lists

    Plain mappings and objects nested in JSON columns are handled as in
    :class:`ObjectAdapter`.
    """

    MODIFIERS = frozenset({'limit', 'offset', 'order_by', 'filter_by', 'distinct'})

    def __init__(self, session: Session | None = None, **kwargs: Any):
        super().__init__(**kwargs)
        self.session = session

    # --- records ---
    def is_entity(self, value: Any) -> bool:
        return _state(value) is not None

    def is_record(self, value: Any) -> bool:
        if _state(value) is not None:
            return True
        return super().is_record(value)

    def identity_of(self, record: Any) -> Optional[Hashable]:
        st = _state(record)
        if st is None:
            return super().identity_of(record)
        ident = st.identity
        if not ident:
            return None
        return ident[0] if len(ident) == 1 else tuple(ident)

    def type_of(self, record: Any) -> Optional[str]:
        st = _state(record)
        if st is not None:
            pid = st.mapper.polymorphic_identity
            if pid is not None:
                return str(pid)
        return super().type_of(record)

    def type_key(self, record: Any) -> str:
        st = _state(record)
        if st is not None:
            # identities are unique per base mapper, not per subclass
            return st.mapper.base_mapper.class_.__name__
        return super().type_key(record)

    def properties(self, value: Any) -> Dict[str, Any]:
        st = _state(value)
        if st is None:
            return super().properties(value)
        return {attr.key: getattr(value, attr.key) for attr in st.mapper.column_attrs}

    # --- lazy collections ---
    def is_lazy_query(self, value: Any) -> bool:
        if isinstance(value, Query):
            return True
        if isinstance(value, Select):
            return self.session is not None
        return super().is_lazy_query(value)

    def _entity(self, query: Any) -> Any:
        try:
            desc = query.column_descriptions
            return desc[0].get('entity') if desc else None
        except Exception:
            return None

    def apply_modifier(self, query: Any, name: str, arg: Any) -> Any:
        if not isinstance(query, (Query, Select)):
            return super().apply_modifier(query, name, arg)
        if name not in self.MODIFIERS:
            logger.debug(f"Ignoring unknown modifier '{name}' for {type(query).__name__}")
            return query
        if name == 'limit':
            return query.limit(None if arg is None else int(arg))
        if name == 'offset':
            # negative offsets mean no offset, as in LazyQuery
            return query.offset(None if arg is None else max(int(arg), 0))
        if name == 'distinct':
            return query.distinct() if arg else query
        if name == 'filter_by':
            if not isinstance(arg, Mapping):
                return query
            return query.filter_by(**{str(k): v for k, v in arg.items()})
        # order_by
        entity = self._entity(query)
        clauses = []
        for col_name, desc in parse_order(arg):
            col = getattr(entity, col_name, None) if entity is not None else None
            if col is None:
                logger.debug(f"Ignoring unknown order_by column '{col_name}'")
                continue
            clauses.append(col.desc() if desc else col.asc())
        if not clauses:
            return query
        return query.order_by(None).order_by(*clauses)

    def materialize(self, query: Any) -> List[Any]:
        if isinstance(query, Query):
            return list(query.all())
        if isinstance(query, Select):
            return list(self.session.scalars(query).all())
        return super().materialize(query)

    def query_identity(self, query: Any) -> Optional[str]:
        if isinstance(query, Query):
            stmt = query.statement
        elif isinstance(query, Select):
            stmt = query
        else:
            return super().query_identity(query)
        try:
            return str(stmt.compile(compile_kwargs={'literal_binds': True}))
        except Exception:
            compiled = stmt.compile()
            return f"{compiled}|{sorted(compiled.params.items(), key=lambda kv: kv[0])!r}"

    # --- plain values ---
    def is_collection_wrapper(self, value: Any) -> bool:
        if isinstance(value, (Result, ScalarResult)):
            return True
        return super().is_collection_wrapper(value)

    def unwrap(self, value: Any) -> List[Any]:
        if isinstance(value, (Result, ScalarResult)):
            return list(value.all())
        return super().unwrap(value)
