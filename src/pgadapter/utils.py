"""
Small helpers shared by the SQL builders and models.
"""
import copy
import re
from collections.abc import Mapping
from typing import Any

__all__ = [
    'underscore',
    'camelize',
    'is_empty',
    'has_value',
    'deep_merge',
]

_CAMEL_BOUNDARY = re.compile(r'(?<=[a-z0-9])([A-Z])|(?<=[A-Z])([A-Z][a-z])')


def underscore(name: str) -> str:
    """Convert a camelCase name to its column form.

    >>> underscore('createdAt')
    'created_at'
    >>> underscore('already_snake')
    'already_snake'
    """
    return _CAMEL_BOUNDARY.sub(lambda m: '_' + (m.group(1) or m.group(2)), name).lower()


def camelize(name: str) -> str:
    """Convert a column name to camelCase.

    >>> camelize('created_at')
    'createdAt'
    """
    head, *rest = name.split('_')
    return head + ''.join(part[:1].upper() + part[1:] for part in rest)


def is_empty(value: Any) -> bool:
    """Check for a missing input: None, blank string or empty container.

    Zero and False are values, not emptiness.
    """
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (Mapping, list, tuple, set, frozenset)):
        return len(value) == 0
    return False


def has_value(value: Any) -> bool:
    """Insertable value test: truthy, or literally 0 or False."""
    if value is None:
        return False
    if isinstance(value, str):
        return value != ''
    return bool(value) or value == 0 or value is False


def deep_merge(target: Mapping, source: Mapping) -> dict:
    """Overlay `source` onto a copy of `target`.

    Nested mappings are merged key by key, lists and scalars are replaced,
    and None in `source` never overrides an existing value.
    """
    merged = copy.deepcopy(dict(target))
    for key, value in source.items():
        if value is None and key in merged:
            continue
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged
