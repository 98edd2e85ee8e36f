"""Runtime settings for prunetree.

Settings are plain dataclass values passed to :class:`prunetree.Pruner`.
``PruneSettings.from_env()`` reads ``PRUNETREE_*`` environment variables,
loading a ``.env`` file first when one is present.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Any, Mapping, Optional

from dotenv import load_dotenv

_TRUE = {'1', 'true', 't', 'yes', 'y', 'on'}
_FALSE = {'0', 'false', 'f', 'no', 'n', 'off'}


def _env_bool(raw: Optional[str], default: bool) -> bool:
    if raw is None:
        return default
    lv = raw.strip().lower()
    if lv in _TRUE:
        return True
    if lv in _FALSE:
        return False
    return default


def _env_float(raw: Optional[str], default: Optional[float]) -> Optional[float]:
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class PruneSettings:
    directive_prefix: str = '$'
    type_prefix: str = '_'
    tag_prefix: str = 'record::'
    query_tag: str = 'prune'
    cache_namespace: str = 'prune'
    cache_enabled: bool = True
    cache_ttl: Optional[float] = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, *, dotenv: bool = True) -> 'PruneSettings':
        if environ is None:
            if dotenv:
                load_dotenv()
            environ = os.environ
        base = cls()
        return cls(
            directive_prefix=environ.get('PRUNETREE_DIRECTIVE_PREFIX') or base.directive_prefix,
            type_prefix=environ.get('PRUNETREE_TYPE_PREFIX') or base.type_prefix,
            tag_prefix=environ.get('PRUNETREE_TAG_PREFIX') or base.tag_prefix,
            query_tag=environ.get('PRUNETREE_QUERY_TAG') or base.query_tag,
            cache_namespace=environ.get('PRUNETREE_CACHE_NAMESPACE') or base.cache_namespace,
            cache_enabled=_env_bool(environ.get('PRUNETREE_CACHE_ENABLED'), base.cache_enabled),
            cache_ttl=_env_float(environ.get('PRUNETREE_CACHE_TTL'), base.cache_ttl),
        )

    def with_overrides(self, **changes: Any) -> 'PruneSettings':
        return replace(self, **changes)
