from __future__ import annotations

from .base import ObjectAdapter, RecordAdapter


def __getattr__(name: str):  # PEP 562: keep SQLAlchemy optional at import time
    if name == 'SQLAlchemyAdapter':
        from .sqlalchemy import SQLAlchemyAdapter as _SQLAlchemyAdapter
        return _SQLAlchemyAdapter
    raise AttributeError(name)


__all__ = ['RecordAdapter', 'ObjectAdapter', 'SQLAlchemyAdapter']
