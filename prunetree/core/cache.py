from __future__ import annotations

import hashlib
import logging
import pickle
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, Optional, Protocol, Set, Tuple, runtime_checkable

from .definition import canonical_json

logger = logging.getLogger(__name__)

__all__ = ['CacheBackend', 'MemoryCache', 'CacheEntry', 'Memoizer']


@runtime_checkable
class CacheBackend(Protocol):
    """Byte store with tag invalidation. Implementations may raise on outage.

    Payloads are decoded by the :class:`Memoizer` codec, ``pickle`` by default.
    Unpickling runs arbitrary code, so a store shared with other processes
    (Redis, memcached) must only be writable by trusted producers, or the
    memoizer must be given a data-only codec.
    """

    def get(self, key: str) -> Optional[bytes]: ...

    def set(self, key: str, value: bytes, tags: Iterable[str] = ()) -> None: ...

    def invalidate(self, tags: Iterable[str]) -> int: ...


class MemoryCache:
    """Thread-safe in-process cache backend.

    Writes are last-writer-wins; values are immutable bytes so a reader always
    sees exactly one writer's payload.
    """

    def __init__(self, default_ttl: Optional[float] = None):
        self.default_ttl = default_ttl
        self._lock = threading.Lock()
        self._data: Dict[str, Tuple[bytes, Optional[float], FrozenSet[str]]] = {}
        self._tags: Dict[str, Set[str]] = {}

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            item = self._data.get(key)
            if item is None:
                return None
            value, expires, _ = item
            if expires is not None and expires <= time.monotonic():
                self._drop(key)
                return None
            return value

    def set(self, key: str, value: bytes, tags: Iterable[str] = (), ttl: Optional[float] = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        expires = time.monotonic() + ttl if ttl is not None else None
        tagset = frozenset(tags or ())
        with self._lock:
            self._drop(key)
            self._data[key] = (bytes(value), expires, tagset)
            for t in tagset:
                self._tags.setdefault(t, set()).add(key)

    def invalidate(self, tags: Iterable[str]) -> int:
        removed = 0
        with self._lock:
            for t in list(tags or ()):
                for key in list(self._tags.pop(t, ())):
                    if key in self._data:
                        self._drop(key)
                        removed += 1
        return removed

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
            self._tags.clear()

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def _drop(self, key: str) -> None:
        item = self._data.pop(key, None)
        if item is None:
            return
        for t in item[2]:
            keys = self._tags.get(t)
            if keys is not None:
                keys.discard(key)
                if not keys:
                    self._tags.pop(t, None)


@dataclass(frozen=True)
class CacheEntry:
    key: str
    result: Any
    tags: FrozenSet[str]


class Memoizer:
    """Key derivation and best-effort read/write around a cache backend.

    Backend errors never propagate: a failed read is a miss and a failed write
    leaves the computed result untouched.

    Args:
        namespace: key prefix shared by every entry of this memoizer
        scope: extra key material for settings that change how a definition
            is read (the pruner passes its directive and type prefixes)
        codec: object with ``dumps(obj) -> bytes`` and ``loads(bytes)``;
            defaults to ``pickle``
    """

    def __init__(self, backend: CacheBackend, *, namespace: str = 'prune', scope: str = '', codec: Any = None):
        self.backend = backend
        self.namespace = namespace
        self.scope = scope
        self.codec = codec if codec is not None else pickle

    def _digest(self, *parts: Any) -> str:
        raw = '\x1f'.join(str(p) for p in (self.namespace, self.scope) + parts)
        return f"{self.namespace}:{hashlib.sha256(raw.encode('utf-8')).hexdigest()}"

    def record_key(self, type_key: str, identity: Any, definition: Any) -> str:
        return self._digest('record', type_key, repr(identity), canonical_json(definition))

    def query_key(self, query_identity: str, definition: Any) -> str:
        return self._digest('query', query_identity, canonical_json(definition))

    def get(self, key: str) -> Optional[CacheEntry]:
        try:
            payload = self.backend.get(key)
        except Exception as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return None
        if payload is None:
            return None
        try:
            result, tags = self.codec.loads(payload)
        except Exception as e:
            logger.warning(f"Discarding undecodable cache entry {key}: {e}")
            return None
        return CacheEntry(key=key, result=result, tags=frozenset(tags))

    def put(self, key: str, result: Any, tags: Iterable[str]) -> bool:
        tagset = sorted(set(tags or ()))
        try:
            payload = self.codec.dumps((result, tagset))
        except Exception as e:
            logger.warning(f"Result for {key} is not cacheable: {e}")
            return False
        try:
            self.backend.set(key, payload, tagset)
        except Exception as e:
            logger.warning(f"Cache write failed for {key}: {e}")
            return False
        return True

    def invalidate(self, tags: Iterable[str]) -> int:
        try:
            return int(self.backend.invalidate(list(tags)) or 0)
        except Exception as e:
            logger.warning(f"Cache invalidation failed: {e}")
            return 0
