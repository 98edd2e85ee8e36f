from __future__ import annotations

from typing import Any, Dict

__all__ = [
    'PruneError',
    'FieldAccessError',
    'CacheUnavailable',
    'not_a_record',
    'is_error',
]


class PruneError(Exception):
    """Base class for errors raised by prunetree collaborators."""


class FieldAccessError(PruneError):
    """A record adapter could not read a field.

    The resolver swallows it and treats the field as absent.
    """

    def __init__(self, field: str, cause: BaseException | None = None):
        self.field = field
        self.cause = cause
        msg = f"Cannot access field '{field}'"
        if cause is not None:
            msg += f": {cause}"
        super().__init__(msg)


class CacheUnavailable(PruneError):
    """Raised by cache backends when the store cannot be reached."""


def not_a_record(value: Any) -> Dict[str, str]:
    """Structured error value returned when pruning a non-record."""
    return {'error': f"{type(value).__name__} is not a record"}


def is_error(result: Any) -> bool:
    return isinstance(result, dict) and len(result) == 1 and isinstance(result.get('error'), str)
