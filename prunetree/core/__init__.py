from .cache import CacheBackend, CacheEntry, Memoizer, MemoryCache
from .definition import canonical_json, extract_specials, normalize_definition, type_selectors
from .errors import CacheUnavailable, FieldAccessError, PruneError, is_error, not_a_record
from .pruner import Pruner
from .resolver import ResolvedValue, ValueKind, ValueResolver
from .serialize import DictConvertible, Serializable, serialize_object

__all__ = [
    'CacheBackend', 'CacheEntry', 'Memoizer', 'MemoryCache',
    'canonical_json', 'extract_specials', 'normalize_definition', 'type_selectors',
    'CacheUnavailable', 'FieldAccessError', 'PruneError', 'is_error', 'not_a_record',
    'Pruner',
    'ResolvedValue', 'ValueKind', 'ValueResolver',
    'DictConvertible', 'Serializable', 'serialize_object',
]
