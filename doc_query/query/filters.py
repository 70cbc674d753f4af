"""Query filters.

A Filter is a frozen value (operator, field path, value). Queries stamp
each filter with their entity type and validation flag when it is added;
compilation translates the path through the entity model, encodes the
value with the codec of the targeted property and writes the result into
a shared DocumentWriter.

Example::

    query.filter(eq("name", "Ann"), gt("age", 30), or_(exists("email"), eq("vip", True)))
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from bson.regex import Regex

from doc_query.core.exceptions import MalformedFilterError, UnsupportedShapeError
from doc_query.mapping.types import ShapeKind
from doc_query.query.paths import PathTarget, encode_path_value, resolve_path
from doc_query.query.writer import DocumentWriter

if TYPE_CHECKING:
    from doc_query.mapping.mapper import Mapper


@dataclasses.dataclass(frozen=True)
class Filter:
    """``{field: {operator: value}}``, optionally negated with ``$not``."""

    operator: str
    field: str | None = None
    value: Any = None
    negated: bool = False
    entity_type: type | None = dataclasses.field(default=None, compare=False)
    validating: bool = dataclasses.field(default=True, compare=False)

    def not_(self) -> Filter:
        """Negate this filter."""
        return dataclasses.replace(self, negated=not self.negated)

    def bind(self, entity_type: type | None, validating: bool) -> Filter:
        """Copy stamped with the owning query's entity type and validation flag."""
        return dataclasses.replace(self, entity_type=entity_type, validating=validating)

    def target(self, mapper: Mapper) -> PathTarget:
        if self.field is None:
            return PathTarget("")
        return resolve_path(mapper, self.entity_type, self.field, self.validating)

    def encode_value(self, mapper: Mapper, target: PathTarget) -> Any:
        return encode_path_value(mapper, target, self.value)

    def encode(self, mapper: Mapper, writer: DocumentWriter) -> None:
        target = self.target(mapper)
        operand: Any = {self.operator: self.encode_value(mapper, target)}
        if self.negated:
            operand = {"$not": operand}
        if self.field is None:
            writer.merge(operand)
        else:
            writer.write(target.path, operand)

    def __str__(self) -> str:
        prefix = "not " if self.negated else ""
        return f"{prefix}{self.field} {self.operator} {self.value!r}"


class EqualityFilter(Filter):
    """``{field: value}``; negation becomes ``{field: {"$ne": value}}``."""

    def encode(self, mapper: Mapper, writer: DocumentWriter) -> None:
        target = self.target(mapper)
        value = self.encode_value(mapper, target)
        writer.write(target.path, {"$ne": value} if self.negated else value)


class ListFilter(Filter):
    """Operators taking an array of values matched element-wise (``$in``, ``$nin``, ``$all``)."""

    def encode_value(self, mapper: Mapper, target: PathTarget) -> Any:
        return [encode_path_value(mapper, target, v) for v in self.value]


class RawFilter(Filter):
    """Operators whose operand is not a field value (``$exists``, ``$size``, ``$mod``...)."""

    def encode_value(self, mapper: Mapper, target: PathTarget) -> Any:
        return self.value


class RegexFilter(Filter):
    """``$regex`` with options; negated form uses a BSON regular expression."""

    def encode(self, mapper: Mapper, writer: DocumentWriter) -> None:
        target = self.target(mapper)
        pattern, options = self.value
        if self.negated:
            writer.write(target.path, {"$not": Regex(pattern, options)})
            return
        operand = {"$regex": pattern}
        if options:
            operand["$options"] = options
        writer.write(target.path, operand)


class ElemMatchFilter(Filter):
    """``$elemMatch`` over nested filters.

    Nested filters resolve against the element model of an array of
    embedded values; for arrays of scalars pass filters without a field
    (``gt(None, 80)``) to constrain the elements themselves.
    """

    def encode_value(self, mapper: Mapper, target: PathTarget) -> Any:
        element_type = None
        element = PathTarget(target.path)
        info = target.info
        if info is not None and info.kind is ShapeKind.SEQUENCE:
            if info.element.kind is ShapeKind.ENTITY:
                element_type = info.element.type
            element = PathTarget(target.path, None, info.element)

        writer = DocumentWriter()
        for nested in self.value:
            if nested.field is None:
                operand = {nested.operator: nested.encode_value(mapper, element)}
                writer.merge({"$not": operand} if nested.negated else operand)
            else:
                nested.bind(element_type, self.validating).encode(mapper, writer)
        return writer.document


class LogicalFilter(Filter):
    """``$and``, ``$or`` and ``$nor`` over nested filters."""

    def encode(self, mapper: Mapper, writer: DocumentWriter) -> None:
        if self.negated:
            raise UnsupportedShapeError(f"{self.operator} cannot be negated")
        clauses = []
        for nested in self.value:
            nested_writer = DocumentWriter()
            nested.bind(self.entity_type, self.validating).encode(mapper, nested_writer)
            clauses.append(nested_writer.document)
        writer.write(self.operator, clauses)

    def __str__(self) -> str:
        return f"{self.operator}({', '.join(str(f) for f in self.value)})"


class TextFilter(Filter):
    """``$text`` search over the collection's text index."""

    def language(self, language: str) -> TextFilter:
        return dataclasses.replace(self, value={**self.value, "$language": language})

    def case_sensitive(self, enabled: bool = True) -> TextFilter:
        return dataclasses.replace(self, value={**self.value, "$caseSensitive": enabled})

    def diacritic_sensitive(self, enabled: bool = True) -> TextFilter:
        return dataclasses.replace(self, value={**self.value, "$diacriticSensitive": enabled})

    def encode(self, mapper: Mapper, writer: DocumentWriter) -> None:
        if self.negated:
            raise UnsupportedShapeError("$text cannot be negated")
        writer.write("$text", dict(self.value))


class RootFilter(Filter):
    """Root-level operators taking a raw operand (``$where``, ``$expr``)."""

    def encode(self, mapper: Mapper, writer: DocumentWriter) -> None:
        if self.negated:
            raise UnsupportedShapeError(f"{self.operator} cannot be negated")
        writer.write(self.operator, self.value)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def eq(field: str | None, value: Any) -> Filter:
    """Matches documents whose field equals *value*."""
    return EqualityFilter("$eq", field, value)


def ne(field: str | None, value: Any) -> Filter:
    return Filter("$ne", field, value)


def gt(field: str | None, value: Any) -> Filter:
    return Filter("$gt", field, value)


def gte(field: str | None, value: Any) -> Filter:
    return Filter("$gte", field, value)


def lt(field: str | None, value: Any) -> Filter:
    return Filter("$lt", field, value)


def lte(field: str | None, value: Any) -> Filter:
    return Filter("$lte", field, value)


def in_(field: str | None, values: Iterable[Any]) -> Filter:
    return ListFilter("$in", field, list(values))


def nin(field: str | None, values: Iterable[Any]) -> Filter:
    return ListFilter("$nin", field, list(values))


def all_(field: str | None, values: Iterable[Any]) -> Filter:
    """Matches arrays containing every one of *values*."""
    return ListFilter("$all", field, list(values))


def exists(field: str, present: bool = True) -> Filter:
    return RawFilter("$exists", field, present)


def size(field: str, length: int) -> Filter:
    """Matches arrays with exactly *length* elements."""
    return RawFilter("$size", field, length)


def type_(field: str, bson_type: str | int) -> Filter:
    return RawFilter("$type", field, bson_type)


def mod(field: str, divisor: int, remainder: int) -> Filter:
    return RawFilter("$mod", field, [divisor, remainder])


def regex(field: str, pattern: str, options: str = "") -> Filter:
    return RegexFilter("$regex", field, (pattern, options))


def elem_match(field: str, *filters: Filter) -> Filter:
    """Matches arrays with at least one element satisfying every filter."""
    return ElemMatchFilter("$elemMatch", field, tuple(filters))


def text(search: str, language: str | None = None) -> TextFilter:
    """Full-text search; requires a text index on the collection."""
    value: dict[str, Any] = {"$search": search}
    if language is not None:
        value["$language"] = language
    return TextFilter("$text", None, value)


def where(javascript: str) -> Filter:
    return RootFilter("$where", None, javascript)


def expr(expression: dict[str, Any]) -> Filter:
    """Aggregation expression evaluated against each document."""
    return RootFilter("$expr", None, expression)


def and_(*filters: Filter) -> Filter:
    return LogicalFilter("$and", None, tuple(filters))


def or_(*filters: Filter) -> Filter:
    return LogicalFilter("$or", None, tuple(filters))


def nor(*filters: Filter) -> Filter:
    return LogicalFilter("$nor", None, tuple(filters))


# ---------------------------------------------------------------------------
# Textual conditions
# ---------------------------------------------------------------------------


def _mod_condition(field: str, value: Any) -> Filter:
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise ValueError(f"mod expects a [divisor, remainder] pair, got {value!r}")
    return mod(field, *value)


_CONDITION_OPERATORS: dict[str, Any] = {
    "=": eq,
    "==": eq,
    "$eq": eq,
    "!=": ne,
    "<>": ne,
    "$ne": ne,
    ">": gt,
    "$gt": gt,
    ">=": gte,
    "$gte": gte,
    "<": lt,
    "$lt": lt,
    "<=": lte,
    "$lte": lte,
    "in": in_,
    "$in": in_,
    "nin": nin,
    "$nin": nin,
    "all": all_,
    "$all": all_,
    "exists": exists,
    "$exists": exists,
    "size": size,
    "$size": size,
    "type": type_,
    "$type": type_,
    "mod": _mod_condition,
    "$mod": _mod_condition,
    "elem": lambda field, value: RawFilter("$elemMatch", field, value),
    "$elemMatch": lambda field, value: RawFilter("$elemMatch", field, value),
}


def parse_condition(condition: str, value: Any) -> Filter:
    """Build a filter from ``"field"`` or ``"field <operator>"``.

    >>> parse_condition("age >", 30) == gt("age", 30)
    True

    Raises:
        MalformedFilterError: If the condition has no field, more than two
            tokens, an unknown operator, or a mod operand that is not a pair.
    """
    parts = condition.split()
    if len(parts) == 1:
        return eq(parts[0], value)
    if len(parts) != 2:
        raise MalformedFilterError(condition)
    factory = _CONDITION_OPERATORS.get(parts[1])
    if factory is None:
        raise MalformedFilterError(condition, f"unknown operator '{parts[1]}'")
    try:
        return factory(parts[0], value)  # type: ignore[no-any-return]
    except ValueError as exc:
        raise MalformedFilterError(condition, str(exc)) from exc
