"""
Partial-update merge.

An incoming entity only overwrites the stored one on fields it actually
provides. "Not provided" is decided by is_default_value(); the set of
mergeable columns of each mapped class is computed once.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from functools import lru_cache
from typing import Any

from sqlalchemy import inspect

# Columns the merge never touches
PROTECTED_FIELDS: frozenset[str] = frozenset({"id", "created_at", "updated_at"})

_EMPTY_COLLECTIONS = (list, tuple, set, frozenset, dict)


def is_default_value(value: Any) -> bool:
    """
    True when ``value`` means "field not provided".

    None, the nil UUID, datetime.min / date.min (any timezone) and empty
    collections are defaults. 0, False and "" are real values.
    """
    if value is None:
        return True
    if isinstance(value, uuid.UUID):
        return value.int == 0
    if isinstance(value, datetime):
        return value.replace(tzinfo=None) == datetime.min
    if isinstance(value, date):
        return value == date.min
    if isinstance(value, _EMPTY_COLLECTIONS):
        return len(value) == 0
    return False


@lru_cache(maxsize=None)
def patch_fields(model: type) -> tuple[str, ...]:
    """Column attribute names of ``model`` a merge may overwrite, in mapper order."""
    mapper = inspect(model)
    return tuple(
        attr.key for attr in mapper.column_attrs if attr.key not in PROTECTED_FIELDS
    )


def merge_into(stored: Any, incoming: Any) -> list[str]:
    """
    Copy every provided field of ``incoming`` onto ``stored``.

    Returns the names of the fields that were copied.
    """
    changed = []
    for key in patch_fields(type(stored)):
        value = getattr(incoming, key, None)
        if is_default_value(value):
            continue
        setattr(stored, key, value)
        changed.append(key)
    return changed
