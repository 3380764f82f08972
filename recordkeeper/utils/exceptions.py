"""
Error taxonomy of the data-access layer.

Every error logs itself with its context when constructed, so callers
only decide whether to propagate or handle it.

Usage:
    from recordkeeper.utils.exceptions import NotFoundError, InvalidFilterValueError

    raise NotFoundError("Customer", customer_id)
    raise InvalidFilterValueError("amount", "abc", "GreaterThan")
"""

from typing import Any

from recordkeeper.config.logging import get_logger

logger = get_logger(__name__)


class RecordkeeperError(Exception):
    """
    Base exception with automatic logging.

    All custom exceptions inherit from this class to get
    consistent logging and a ``detail`` message.
    """

    def __init__(self, detail: str, log_level: str = "warning", **log_context: Any):
        log_fn = getattr(logger, log_level, logger.warning)
        log_fn(detail, error=type(self).__name__, **log_context)

        self.detail = detail
        self.context = log_context
        super().__init__(detail)


# =============================================================================
# Input Errors
# =============================================================================


class InvalidArgumentError(RecordkeeperError, ValueError):
    """
    Missing or invalid required input.

    Usage:
        raise InvalidArgumentError("entity must not be None")
        raise InvalidArgumentError("page must be >= 1", page=page)
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(detail, log_level="warning", **log_context)


class InvalidStatusTransitionError(InvalidArgumentError):
    """A soft-deleted entity was asked to move back to a live status."""

    def __init__(self, entity: str, from_status: Any, to_status: Any, **log_context: Any):
        detail = f"Invalid status transition from '{_status_name(from_status)}' to '{_status_name(to_status)}' for {entity}"
        super().__init__(
            detail,
            entity=entity,
            from_status=_status_name(from_status),
            to_status=_status_name(to_status),
            **log_context,
        )


class InvalidFilterValueError(RecordkeeperError, ValueError):
    """
    A search value cannot be parsed as the comparable type of its field.
    Aborts the whole search call.
    """

    def __init__(self, field: str, value: str | None, operator: Any, reason: str | None = None, **log_context: Any):
        detail = f"Invalid filter value {value!r} for field '{field}' with operator {_status_name(operator)}"
        if reason:
            detail = f"{detail}: {reason}"
        super().__init__(
            detail,
            log_level="warning",
            field=field,
            value=value,
            operator=_status_name(operator),
            **log_context,
        )
        self.field = field
        self.value = value


# =============================================================================
# Lookup Errors
# =============================================================================


class NotFoundError(RecordkeeperError, LookupError):
    """
    Entity not found.

    Usage:
        raise NotFoundError("Customer", customer_id)
    """

    def __init__(self, entity: str, entity_id: Any = None, **log_context: Any):
        if entity_id is not None:
            detail = f"{entity} with ID {entity_id} not found"
        else:
            detail = f"{entity} not found"

        super().__init__(
            detail,
            log_level="warning",
            entity=entity,
            entity_id=str(entity_id) if entity_id is not None else None,
            **log_context,
        )
        self.entity = entity
        self.entity_id = entity_id


# =============================================================================
# Store Errors
# =============================================================================


class StoreError(RecordkeeperError):
    """The underlying store rejected a write. Not retried by this layer."""

    def __init__(self, operation: str, **log_context: Any):
        detail = f"Store rejected the write during {operation}"
        super().__init__(detail, log_level="error", operation=operation, **log_context)
        self.operation = operation


class AuditWriteError(RecordkeeperError):
    """
    The audit append failed after the primary mutation succeeded.

    The primary mutation is not rolled back; its outcome travels in
    ``result`` so callers can still use it.
    """

    def __init__(self, operation: str, object_type: str, object_id: Any, result: Any = None, **log_context: Any):
        detail = f"Audit append failed after {operation} of {object_type} {object_id}; primary change was kept"
        super().__init__(
            detail,
            log_level="error",
            operation=operation,
            object_type=object_type,
            object_id=str(object_id),
            **log_context,
        )
        self.operation = operation
        self.object_type = object_type
        self.object_id = object_id
        self.result = result


class AuditWriteWarning(UserWarning):
    """Warning category emitted when an audit append fails in non-raising mode."""


class NotSupportedError(RecordkeeperError, NotImplementedError):
    """Operation not supported by this store (e.g. rewriting the audit log)."""

    def __init__(self, operation: str, store: str, **log_context: Any):
        detail = f"{operation} is not supported by {store}"
        super().__init__(detail, log_level="warning", operation=operation, store=store, **log_context)


def _status_name(value: Any) -> str:
    """Render enums by value, everything else with str()."""
    return str(getattr(value, "value", value))
