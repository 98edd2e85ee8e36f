import json
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, List, Optional

import pytest

from prunetree import LazyQuery, MemoryCache, Pruner
from prunetree.config import PruneSettings
from prunetree.core.cache import Memoizer
from prunetree.core.errors import CacheUnavailable


@dataclass
class Author:
    id: int
    username: str
    email: str


@dataclass
class Entry:
    id: int
    title: str
    author: Optional[Author] = None
    related: List[Any] = field(default_factory=list)


class CountingEntry:
    """Entry whose field reads are counted, to detect recomputation."""

    def __init__(self, id, title):
        self.id = id
        self._title = title
        self.reads = 0

    @property
    def title(self):
        self.reads += 1
        return self._title


class BrokenCache:
    def get(self, key):
        raise CacheUnavailable("down")

    def set(self, key, value, tags=()):
        raise CacheUnavailable("down")

    def invalidate(self, tags):
        raise CacheUnavailable("down")


@pytest.fixture
def cache():
    return MemoryCache()


@pytest.fixture
def pruner(cache):
    return Pruner(cache=cache)


def test_cache_hit_equals_miss(pruner, cache):
    entry = Entry(id=1, title="T", author=Author(id=2, username="u", email="e"))
    first = pruner.prune_object(entry, {"title": True, "author": ["username"]})
    assert len(cache) == 2  # entry and author
    second = pruner.prune_object(entry, {"title": True, "author": ["username"]})
    assert first == second == {"title": "T", "author": {"username": "u"}}


def test_hit_skips_recomputation(pruner):
    entry = CountingEntry(1, "T")
    pruner.prune_object(entry, ["title"])
    pruner.prune_object(entry, ["title"])
    assert entry.reads == 1


def test_equivalent_shorthand_shares_entry(pruner):
    entry = CountingEntry(1, "T")
    pruner.prune_object(entry, ["title"])
    pruner.prune_object(entry, {"title": True})
    pruner.prune_object(entry, '["title"]')
    assert entry.reads == 1


def test_different_definitions_use_different_entries(pruner):
    entry = CountingEntry(1, "T")
    pruner.prune_object(entry, ["title"])
    pruner.prune_object(entry, ["title", "id"])
    assert entry.reads == 2


def test_records_without_identity_are_not_cached(pruner, cache):
    pruner.prune_object({"title": "T"}, ["title"])
    assert len(cache) == 0


def test_tags_include_nested_records(pruner, cache):
    author = Author(id=2, username="u", email="e")
    entry = Entry(id=1, title="T", author=author)
    definition = {"title": True, "author": ["username"]}
    memo = pruner.memo
    key = memo.record_key("Entry", 1, pruner.normalize(definition))
    pruner.prune_object(entry, definition)
    hit = memo.get(key)
    assert hit is not None
    assert hit.tags == {"record::Entry:1", "record::Author:2"}


def test_invalidating_related_record_evicts_parent(pruner):
    author = Author(id=2, username="u", email="e")
    entry = Entry(id=1, title="T", author=author)
    definition = {"author": ["username"]}
    assert pruner.prune_object(entry, definition) == {"author": {"username": "u"}}
    author.username = "renamed"
    # stale until invalidated
    assert pruner.prune_object(entry, definition) == {"author": {"username": "u"}}
    assert pruner.invalidate(author) >= 1
    assert pruner.prune_object(entry, definition) == {"author": {"username": "renamed"}}


def test_nested_hit_propagates_tags(pruner):
    author = Author(id=2, username="u", email="e")
    # warm the author entry first
    pruner.prune_object(author, ["username"])
    entry = Entry(id=1, title="T", author=author)
    pruner.prune_object(entry, {"author": ["username"]})
    key = pruner.memo.record_key("Entry", 1, pruner.normalize({"author": ["username"]}))
    assert "record::Author:2" in pruner.memo.get(key).tags


def test_query_results_are_memoized(pruner):
    loads = []

    def load():
        loads.append(1)
        return [{"n": 1}, {"n": 2}, {"n": 3}]

    q = LazyQuery(load, key="numbers")
    first = pruner.prune_query(q, {"$limit": 2, "n": True})
    second = pruner.prune_query(q, {"$limit": 2, "n": True})
    assert first == second == [{"n": 1}, {"n": 2}]
    assert len(loads) == 1
    pruner.prune_query(q, {"$limit": 1, "n": True})
    assert len(loads) == 2
    assert pruner.invalidate_all() >= 2
    pruner.prune_query(q, {"$limit": 2, "n": True})
    assert len(loads) == 3


def test_query_without_identity_is_not_memoized(pruner, cache):
    pruner.prune_query(LazyQuery([{"n": 1}]), ["n"])
    assert len(cache) == 0


def test_broken_backend_does_not_fail_pruning():
    pruner = Pruner(cache=BrokenCache())
    entry = Entry(id=1, title="T", author=Author(id=2, username="u", email="e"))
    assert pruner.prune_object(entry, {"title": True, "author": ["email"]}) == {"title": "T", "author": {"email": "e"}}
    assert pruner.invalidate(entry) == 0


def test_unpicklable_result_is_returned_uncached(pruner, cache):
    lock = threading.Lock()
    entry = Entry(id=1, title="T", related=[1, lock])
    got = pruner.prune_object(entry, ["related"])
    assert got["related"][1] is lock
    assert len(cache) == 0


def test_undecodable_payload_is_a_miss(cache):
    memo = Memoizer(cache)
    cache.set("k", b"not a pickle")
    assert memo.get("k") is None


def test_cache_disabled_by_settings(cache):
    pruner = Pruner(cache=cache, settings=PruneSettings(cache_enabled=False))
    pruner.prune_object(CountingEntry(1, "T"), ["title"])
    assert pruner.memo is None
    assert len(cache) == 0


def test_cache_true_builds_memory_cache():
    pruner = Pruner(cache=True, settings=PruneSettings(cache_ttl=60))
    assert isinstance(pruner.cache, MemoryCache)
    assert pruner.cache.default_ttl == 60


def test_memory_cache_ttl_expiry(monkeypatch):
    import prunetree.core.cache as cache_mod

    now = [1000.0]
    monkeypatch.setattr(cache_mod.time, "monotonic", lambda: now[0])
    c = MemoryCache(default_ttl=10)
    c.set("k", b"v", ["t"])
    assert c.get("k") == b"v"
    now[0] += 11
    assert c.get("k") is None
    assert len(c) == 0


def test_memory_cache_tag_invalidation():
    c = MemoryCache()
    c.set("a", b"1", ["x", "y"])
    c.set("b", b"2", ["y"])
    c.set("c", b"3", ["z"])
    assert c.invalidate(["y"]) == 2
    assert "a" not in c and "b" not in c
    assert c.get("c") == b"3"
    # overwriting re-tags the key
    c.set("c", b"4", ["w"])
    assert c.invalidate(["z"]) == 0
    assert c.get("c") == b"4"


def test_concurrent_writers_last_writer_wins():
    c = MemoryCache()
    memo = Memoizer(c)
    payloads = [{"writer": i, "data": list(range(i, i + 50))} for i in range(32)]

    def write(p):
        memo.put("shared", p, [f"t{p['writer']}"])
        return memo.get("shared").result

    with ThreadPoolExecutor(max_workers=8) as pool:
        seen = list(pool.map(write, payloads))

    final = memo.get("shared").result
    assert final in payloads
    for got in seen:
        assert got in payloads


def test_concurrent_pruning_shares_cache(cache):
    pruner = Pruner(cache=cache)
    entries = [Entry(id=i % 4, title=f"T{i % 4}") for i in range(40)]

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda e: pruner.prune_object(e, ["id", "title"]), entries))

    for e, r in zip(entries, results):
        assert r == {"id": e.id, "title": e.title}


@dataclass
class Page:
    id: int
    blocks: List[Any] = field(default_factory=list)


def test_pruners_with_different_prefixes_do_not_share_entries(cache):
    page = Page(id=1, blocks=[{"type": "body", "t": 1}, {"type": "image", "s": 2}])
    definition = {"blocks": {"_body": ["t"]}}
    underscore = Pruner(cache=cache)
    tilde = Pruner(cache=cache, settings=PruneSettings(type_prefix="~"))
    assert underscore.prune_object(page, definition) == {"blocks": [{"t": 1}]}
    # "_body" is a plain field name for the "~" pruner
    assert tilde.prune_object(page, definition) == {"blocks": [{"_body": None}, {"_body": None}]}
    assert underscore.prune_object(page, definition) == {"blocks": [{"t": 1}]}


def test_directive_prefix_is_part_of_key(cache):
    dollar = Pruner(cache=cache)
    at = Pruner(cache=cache, settings=PruneSettings(directive_prefix="@"))
    key = dollar.memo.record_key("Page", 1, {"t": True})
    assert at.memo.record_key("Page", 1, {"t": True}) != key
    assert key.startswith("prune:")


class JsonCodec:
    @staticmethod
    def dumps(obj):
        return json.dumps(obj).encode("utf-8")

    @staticmethod
    def loads(payload):
        return json.loads(payload.decode("utf-8"))


def test_custom_codec_replaces_pickle(cache):
    pruner = Pruner(cache=cache, codec=JsonCodec())
    entry = Entry(id=1, title="T", author=Author(id=2, username="u", email="e"))
    definition = {"title": True, "author": ["username"]}
    first = pruner.prune_object(entry, definition)
    key = pruner.memo.record_key("Entry", 1, pruner.normalize(definition))
    assert json.loads(cache.get(key).decode("utf-8"))[0] == first
    hit = pruner.memo.get(key)
    assert hit.result == first
    assert hit.tags == {"record::Entry:1", "record::Author:2"}


def test_codec_failure_leaves_result_uncached(cache):
    pruner = Pruner(cache=cache, codec=JsonCodec())
    entry = Entry(id=1, title="T", related=[1, threading.Lock()])
    got = pruner.prune_object(entry, ["related"])
    assert got["related"][0] == 1
    assert len(cache) == 0
