"""
Audit snapshot service.
Serializes entities and builds the ObjectVersion records every mutation appends.
"""

import json
import uuid
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from sqlalchemy import inspect

from recordkeeper.models import ObjectVersion


def _json_value(value: Any) -> Any:
    """Convert a column value into something json.dumps accepts."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, bytes):
        return value.hex()
    return value


def committed_value(obj: Any, key: str) -> Any:
    """Last loaded or committed value of attribute ``key``, ignoring pending changes."""
    history = inspect(obj).attrs[key].history
    if history.has_changes():
        # Nothing in deleted means the attribute was None before
        return history.deleted[0] if history.deleted else None
    return getattr(obj, key)


def serialize_model(obj: Any, exclude: list[str] | None = None, committed: bool = False) -> dict:
    """
    Serialize a SQLAlchemy model to a dictionary for audit snapshots.

    Args:
        obj: SQLAlchemy model instance
        exclude: Columns to leave out
        committed: Serialize the loaded state instead of pending changes

    Returns:
        Dictionary keyed by column attribute name
    """
    if exclude is None:
        exclude = []

    result = {}
    for attr in obj.__mapper__.column_attrs:
        if attr.key in exclude:
            continue
        value = committed_value(obj, attr.key) if committed else getattr(obj, attr.key)
        result[attr.key] = _json_value(value)

    return result


def snapshot(obj: Any, committed: bool = False) -> str:
    """Serialized JSON state of ``obj``, as stored in before/after values."""
    return json.dumps(serialize_model(obj, committed=committed), sort_keys=True)


def object_type_of(obj: Any) -> str:
    """Type name recorded in ObjectVersion.object_type."""
    return type(obj).__name__


def object_tenant_of(obj: Any) -> uuid.UUID:
    """Tenant id when the entity has one set, else the entity's own id."""
    tenant_id = getattr(obj, "tenant_id", None)
    return tenant_id if tenant_id is not None else obj.id


def build_version(
    obj: Any,
    *,
    updated_by: str,
    before_value: Optional[str] = None,
    after_value: Optional[str] = None,
) -> ObjectVersion:
    """
    Build the audit record for one mutation of ``obj``.

    ``after_value`` defaults to the current snapshot of ``obj``.
    id and updated_on are assigned by the versioning repository.
    """
    return ObjectVersion(
        object_type=object_type_of(obj),
        object_id=obj.id,
        object_tenant=object_tenant_of(obj),
        before_value=before_value,
        after_value=after_value if after_value is not None else snapshot(obj),
        updated_by=updated_by,
    )
