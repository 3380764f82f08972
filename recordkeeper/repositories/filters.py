"""
Dynamic filter builder.

Turns SearchParameters into a small predicate AST over resolved fields and
typed literals, then compiles it into SQLAlchemy clauses.

Usage:
    predicates = build_predicates(Customer, request.search_parameters)
    query = select(Customer).where(*compile_predicates(predicates))
    query = query.order_by(*build_ordering(Customer, request.search_parameters))

Rules:
    - Fields resolve by name ignoring case and underscores
      ("SomeProperty" -> some_property). Unknown fields are skipped.
    - Contains applies to text fields only; elsewhere it is skipped.
    - Equals parses the value as the field's type.
    - Ordering operators parse the value as an integer, then as an ISO
      date/time. On text fields the stored text is parsed the same way;
      rows whose text does not parse never match.
    - Unparsable values raise InvalidFilterValueError.
"""

from __future__ import annotations

import operator as op
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, time, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from functools import lru_cache
from typing import Any, Callable, Iterable

from sqlalchemy import Boolean, Date, DateTime, Integer, Numeric, String, Time, Uuid, case, cast, func, inspect, literal
from sqlalchemy import Enum as SAEnum
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.orm import InstrumentedAttribute
from sqlalchemy.sql.elements import ColumnElement
from sqlalchemy.sql.functions import FunctionElement

from recordkeeper.config.constants import ORDERING_OPERATORS, SearchOperator, SearchOrder
from recordkeeper.config.logging import repository_logger as logger
from recordkeeper.schemas import SearchParameter
from recordkeeper.utils.exceptions import InvalidArgumentError, InvalidFilterValueError


class FieldKind(str, Enum):
    """Comparable kind of a mapped column."""

    TEXT = "text"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    UUID = "uuid"
    ENUM = "enum"
    OTHER = "other"


def _kind_of(column_type: Any) -> FieldKind:
    # Enum and Boolean before their base types: SAEnum is a String
    if isinstance(column_type, SAEnum):
        return FieldKind.ENUM
    if isinstance(column_type, Boolean):
        return FieldKind.BOOLEAN
    if isinstance(column_type, Integer):
        return FieldKind.INTEGER
    if isinstance(column_type, Numeric):
        return FieldKind.NUMBER
    if isinstance(column_type, (DateTime, Date, Time)):
        return FieldKind.DATE
    if isinstance(column_type, Uuid):
        return FieldKind.UUID
    if isinstance(column_type, String):
        return FieldKind.TEXT
    return FieldKind.OTHER


# =============================================================================
# AST
# =============================================================================


@dataclass(frozen=True, eq=False)
class FieldRef:
    """A resolved mapped column and its comparable kind."""

    name: str
    column: InstrumentedAttribute
    kind: FieldKind

    @property
    def column_type(self) -> Any:
        return self.column.property.columns[0].type


@dataclass(frozen=True)
class Literal:
    """A parsed filter value tagged with the kind it was parsed as."""

    kind: FieldKind
    value: Any


@dataclass(frozen=True)
class Predicate(ABC):
    field: FieldRef
    literal: Literal

    @abstractmethod
    def compile(self) -> ColumnElement[bool]:
        """SQLAlchemy clause for this predicate."""


class Equals(Predicate):
    def compile(self) -> ColumnElement[bool]:
        if self.literal.value is None:
            return self.field.column.is_(None)
        return self.field.column == self.literal.value


class Contains(Predicate):
    def compile(self) -> ColumnElement[bool]:
        return self.field.column.contains(self.literal.value, autoescape=True)


class _Ordering(Predicate):
    comparator: Callable[[Any, Any], ColumnElement[bool]]

    def compile(self) -> ColumnElement[bool]:
        compare = type(self).comparator
        if self.field.kind == FieldKind.TEXT:
            if self.literal.kind == FieldKind.INTEGER:
                return compare(text_as_integer(self.field.column), self.literal.value)
            # Same SQL parser on both sides
            value = literal(_naive_utc(self.literal.value).isoformat(sep=" "), String)
            return compare(text_as_datetime(self.field.column), text_as_datetime(value))
        return compare(self.field.column, _coerce_temporal(self.field, self.literal.value))


class LessThan(_Ordering):
    comparator = staticmethod(op.lt)


class GreaterThan(_Ordering):
    comparator = staticmethod(op.gt)


class LessOrEqual(_Ordering):
    comparator = staticmethod(op.le)


class GreaterOrEqual(_Ordering):
    comparator = staticmethod(op.ge)


_ORDERING_NODES: dict[SearchOperator, type[_Ordering]] = {
    SearchOperator.LESS_THAN: LessThan,
    SearchOperator.GREATER_THAN: GreaterThan,
    SearchOperator.LESS_OR_EQUAL_THAN: LessOrEqual,
    SearchOperator.GREATER_OR_EQUAL_THAN: GreaterOrEqual,
}


# =============================================================================
# Text parsing in SQL
# =============================================================================

_INTEGER_TEXT = r"^\s*[-+]?[0-9]+\s*$"
_DATETIME_TEXT = r"^\s*[0-9]{4}-[0-9]{2}-[0-9]{2}([T ][0-9]{2}:[0-9]{2}(:[0-9]{2}(\.[0-9]+)?)?)?\s*$"
_DATE_GLOB = "[0-9][0-9][0-9][0-9]-[0-9][0-9]-[0-9][0-9]*"


def text_as_integer(column: Any) -> ColumnElement:
    """Stored text as a number, NULL where it is not a whole integer."""
    return case((column.regexp_match(_INTEGER_TEXT), cast(column, Numeric)))


class text_as_datetime(FunctionElement):
    """
    Text parsed as a timestamp, NULL where it is not an ISO date/time.

    Both "T" and space separated forms parse. Offsets are not accepted.
    """

    type = DateTime()
    name = "text_as_datetime"
    inherit_cache = True


@compiles(text_as_datetime)
def _compile_text_as_datetime(element, compiler, **kw):
    (arg,) = element.clauses.clauses
    guarded = case((arg.regexp_match(_DATETIME_TEXT), cast(arg, DateTime)))
    return compiler.process(guarded, **kw)


@compiles(text_as_datetime, "sqlite")
def _compile_text_as_datetime_sqlite(element, compiler, **kw):
    # datetime() reads bare numbers as julian days, hence the GLOB
    (arg,) = element.clauses.clauses
    guarded = case((arg.op("GLOB")(_DATE_GLOB), func.datetime(arg)))
    return compiler.process(guarded, **kw)


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _coerce_temporal(field: FieldRef, value: Any) -> Any:
    """Narrow a parsed datetime to the column's date or time type."""
    if not isinstance(value, datetime):
        return value
    column_type = field.column_type
    if isinstance(column_type, DateTime):
        return value
    if isinstance(column_type, Date):
        return value.date()
    if isinstance(column_type, Time):
        return value.time()
    return value


# =============================================================================
# Field resolution
# =============================================================================


def _normalize(name: str) -> str:
    return name.replace("_", "").lower()


@lru_cache(maxsize=None)
def _field_index(model: type) -> dict[str, FieldRef]:
    mapper = inspect(model)
    index: dict[str, FieldRef] = {}
    for attr in mapper.column_attrs:
        column = getattr(model, attr.key)
        index[_normalize(attr.key)] = FieldRef(
            name=attr.key,
            column=column,
            kind=_kind_of(attr.columns[0].type),
        )
    return index


def resolve_field(model: type, name: str | None) -> FieldRef | None:
    """Mapped column of ``model`` matching ``name``, or None when unknown."""
    if not name:
        return None
    return _field_index(model).get(_normalize(name))


# =============================================================================
# Value parsing
# =============================================================================


def _parse_bool(raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    raise ValueError("expected 'true' or 'false'")


def _parse_enum(field: FieldRef, raw: str) -> Any:
    enum_class = getattr(field.column_type, "enum_class", None)
    if enum_class is None:
        allowed = field.column_type.enums
        if raw in allowed:
            return raw
        raise ValueError(f"expected one of {', '.join(allowed)}")

    for member in enum_class:
        if raw == member.name or raw == str(member.value):
            return member
    lowered = raw.lower()
    for member in enum_class:
        if lowered == member.name.lower() or lowered == str(member.value).lower():
            return member
    raise ValueError(f"expected one of {', '.join(str(m.value) for m in enum_class)}")


def _parse_temporal(field: FieldRef, raw: str) -> Any:
    column_type = field.column_type
    if isinstance(column_type, Time):
        return time.fromisoformat(raw)
    parsed = datetime.fromisoformat(raw)
    if isinstance(column_type, Date):
        return parsed.date()
    return parsed


def _parse_equals(field: FieldRef, raw: str) -> Any:
    if field.kind == FieldKind.BOOLEAN:
        return _parse_bool(raw)
    if field.kind == FieldKind.INTEGER:
        return int(raw)
    if field.kind == FieldKind.NUMBER:
        try:
            value = Decimal(raw)
        except InvalidOperation as e:
            raise ValueError("not a number") from e
        if not value.is_finite():
            raise ValueError("not a finite number")
        return value
    if field.kind == FieldKind.DATE:
        return _parse_temporal(field, raw)
    if field.kind == FieldKind.UUID:
        return uuid.UUID(raw)
    if field.kind == FieldKind.ENUM:
        return _parse_enum(field, raw)
    return raw


def _parse_ordering(raw: str | None) -> Literal | None:
    """Integer first, then ISO date/time. None when neither parses."""
    if raw is None:
        return None
    text = raw.strip()
    try:
        return Literal(FieldKind.INTEGER, int(text))
    except ValueError:
        pass
    try:
        return Literal(FieldKind.DATE, datetime.fromisoformat(text))
    except ValueError:
        return None


# Literal kind -> field kinds it can be compared against
_ORDERING_COMPATIBILITY: dict[FieldKind, frozenset[FieldKind]] = {
    FieldKind.INTEGER: frozenset({FieldKind.INTEGER, FieldKind.NUMBER, FieldKind.TEXT}),
    FieldKind.DATE: frozenset({FieldKind.DATE, FieldKind.TEXT}),
}


# =============================================================================
# Build
# =============================================================================


def build_predicate(model: type, parameter: SearchParameter) -> Predicate | None:
    """
    Predicate for one search parameter, or None when it is skipped.

    Raises:
        InvalidFilterValueError: value cannot be parsed for the field
        InvalidArgumentError: operator has no predicate
    """
    field = resolve_field(model, parameter.key)
    if field is None:
        logger.debug("Skipping unknown search field", model=model.__name__, key=parameter.key)
        return None

    operator = parameter.operator
    raw = parameter.value

    if operator == SearchOperator.CONTAINS:
        if field.kind != FieldKind.TEXT:
            logger.debug(
                "Skipping Contains on non-text field",
                model=model.__name__,
                field=field.name,
                kind=field.kind.value,
            )
            return None
        if raw is None:
            logger.debug("Skipping Contains without value", model=model.__name__, field=field.name)
            return None
        return Contains(field, Literal(FieldKind.TEXT, raw))

    if operator == SearchOperator.EQUALS:
        if raw is None:
            return Equals(field, Literal(field.kind, None))
        try:
            value = _parse_equals(field, raw)
        except ValueError as e:
            raise InvalidFilterValueError(field.name, raw, operator, reason=str(e)) from e
        return Equals(field, Literal(field.kind, value))

    if operator in ORDERING_OPERATORS:
        literal = _parse_ordering(raw)
        if literal is None:
            raise InvalidFilterValueError(
                field.name, raw, operator, reason="not an integer or ISO date/time"
            )
        if field.kind not in _ORDERING_COMPATIBILITY[literal.kind]:
            raise InvalidFilterValueError(
                field.name,
                raw,
                operator,
                reason=f"{literal.kind.value} value cannot be compared with a {field.kind.value} field",
            )
        return _ORDERING_NODES[operator](field, literal)

    raise InvalidArgumentError(f"unsupported search operator: {operator}", field=field.name, operator=str(operator))


def build_predicates(model: type, parameters: Iterable[SearchParameter]) -> list[Predicate]:
    """Predicates for ``parameters`` in the given order, skipped ones left out."""
    predicates = []
    for parameter in parameters:
        predicate = build_predicate(model, parameter)
        if predicate is not None:
            predicates.append(predicate)
    return predicates


def compile_predicates(predicates: Iterable[Predicate]) -> list[ColumnElement[bool]]:
    """SQLAlchemy clauses, to be AND-ed with where(*clauses)."""
    return [predicate.compile() for predicate in predicates]


def build_ordering(model: type, parameters: Iterable[SearchParameter]) -> list[ColumnElement]:
    """
    ORDER BY clauses: each known field in its parameter's direction,
    then created_at ascending when the model has it.
    """
    clauses = []
    seen = set()
    for parameter in parameters:
        field = resolve_field(model, parameter.key)
        if field is None or field.name in seen:
            continue
        seen.add(field.name)
        if parameter.order == SearchOrder.ASCENDING:
            clauses.append(field.column.asc())
        else:
            clauses.append(field.column.desc())

    created_at = resolve_field(model, "created_at")
    if created_at is not None and created_at.name not in seen:
        clauses.append(created_at.column.asc())
    return clauses
