"""Update operators and the Update/Modify executors.

Operators targeting the same update operator merge into one sub-document;
the same path under one operator is last-write-wins.

Example::

    query.update(set_("name", "Ann"), inc("logins"), push("tags", ["a", "b"])).execute()
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from doc_query.core.enums import ReturnDocument
from doc_query.mapping.model import ID_KEY
from doc_query.mapping.types import ShapeKind
from doc_query.query.filters import Filter
from doc_query.query.options import ModifyOptions, UpdateOptions
from doc_query.query.paths import PathTarget, encode_path_value, resolve_path
from doc_query.query.writer import DocumentWriter

if TYPE_CHECKING:
    from doc_query.mapping.mapper import Mapper
    from doc_query.query.query import Query

_UNSET = object()


@dataclasses.dataclass(frozen=True)
class UpdateOperator:
    """``{operator: {field: value}}``."""

    operator: str
    field: str
    value: Any = None

    def target(self, mapper: Mapper, entity_type: type | None, validating: bool) -> PathTarget:
        return resolve_path(mapper, entity_type, self.field, validating)

    def encode_value(self, mapper: Mapper, target: PathTarget) -> Any:
        return encode_path_value(mapper, target, self.value)

    def encode(
        self, mapper: Mapper, entity_type: type | None, validating: bool
    ) -> list[tuple[str, str, Any]]:
        """Return ``(operator, stored path, wire value)`` entries."""
        target = self.target(mapper, entity_type, validating)
        return [(self.operator, target.path, self.encode_value(mapper, target))]


class RawUpdateOperator(UpdateOperator):
    """Operators whose operand is not a field value (``$unset``, ``$pop``, ``$currentDate``)."""

    def encode_value(self, mapper: Mapper, target: PathTarget) -> Any:
        return self.value


class NegatedUpdateOperator(UpdateOperator):
    """``$inc`` by the negated amount."""

    def encode_value(self, mapper: Mapper, target: PathTarget) -> Any:
        return encode_path_value(mapper, target, -self.value)


class EntityUpdateOperator(UpdateOperator):
    """``$set`` of every stored field of an entity except its id."""

    def encode(
        self, mapper: Mapper, entity_type: type | None, validating: bool
    ) -> list[tuple[str, str, Any]]:
        document = mapper.codec.encode_entity(self.value, top_level=True)
        document.pop(ID_KEY, None)
        return [(self.operator, path, value) for path, value in document.items()]


class RenameOperator(UpdateOperator):
    """``$rename``; the new name is translated when it names a mapped field."""

    def encode(
        self, mapper: Mapper, entity_type: type | None, validating: bool
    ) -> list[tuple[str, str, Any]]:
        old = self.target(mapper, entity_type, validating).path
        new = resolve_path(mapper, entity_type, self.value, False).path
        return [(self.operator, old, new)]


@dataclasses.dataclass(frozen=True)
class ArrayUpdateOperator(UpdateOperator):
    """``$push`` / ``$addToSet`` with the ``$each`` modifier family."""

    each: bool = False
    modifiers: tuple[tuple[str, Any], ...] = ()

    def _with(self, key: str, value: Any) -> ArrayUpdateOperator:
        modifiers = tuple((k, v) for k, v in self.modifiers if k != key) + ((key, value),)
        return dataclasses.replace(self, each=True, modifiers=modifiers)

    def position(self, index: int) -> ArrayUpdateOperator:
        """Insert at *index* instead of appending."""
        return self._with("$position", index)

    def slice(self, limit: int) -> ArrayUpdateOperator:
        """Trim the array to *limit* elements after pushing."""
        return self._with("$slice", limit)

    def sort(self, direction: int | dict[str, int]) -> ArrayUpdateOperator:
        """Sort the array after pushing (1, -1 or ``{field: 1|-1}``)."""
        return self._with("$sort", direction)

    def encode_value(self, mapper: Mapper, target: PathTarget) -> Any:
        element = target
        if target.info is not None and target.info.kind is ShapeKind.SEQUENCE:
            element = PathTarget(target.path, target.property, target.info.element)
        if not self.each:
            return encode_path_value(mapper, element, self.value)
        values = self.value if isinstance(self.value, (list, tuple)) else [self.value]
        operand: dict[str, Any] = {"$each": [encode_path_value(mapper, element, v) for v in values]}
        for key, value in self.modifiers:
            operand[key] = value
        return operand


class PopOperator(RawUpdateOperator):
    """``$pop``; removes the last element unless ``remove_first()`` is called."""

    def remove_first(self) -> PopOperator:
        return PopOperator(self.operator, self.field, -1)


class PullOperator(UpdateOperator):
    """``$pull`` by value or by a filter over the array elements."""

    def encode_value(self, mapper: Mapper, target: PathTarget) -> Any:
        info = target.info
        element = PathTarget(target.path)
        element_type = None
        if info is not None and info.kind is ShapeKind.SEQUENCE:
            element = PathTarget(target.path, target.property, info.element)
            if info.element.kind is ShapeKind.ENTITY:
                element_type = info.element.type
        if isinstance(self.value, Filter):
            writer = DocumentWriter()
            nested = self.value
            if nested.field is None:
                writer.merge({nested.operator: nested.encode_value(mapper, element)})
            else:
                nested.bind(element_type, nested.validating).encode(mapper, writer)
            return writer.document
        return encode_path_value(mapper, element, self.value)


class PullAllOperator(UpdateOperator):
    def encode_value(self, mapper: Mapper, target: PathTarget) -> Any:
        return [encode_path_value(mapper, target, v) for v in self.value]


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def set_(field: Any, value: Any = _UNSET) -> UpdateOperator:
    """``$set`` a field, or every field of an entity when given one argument."""
    if value is _UNSET:
        return EntityUpdateOperator("$set", "", field)
    return UpdateOperator("$set", field, value)


def set_on_insert(values: dict[str, Any]) -> list[UpdateOperator]:
    """``$setOnInsert`` for each entry; applied only when an upsert inserts."""
    return [UpdateOperator("$setOnInsert", k, v) for k, v in values.items()]


def unset(*fields: str) -> list[UpdateOperator]:
    return [RawUpdateOperator("$unset", f, "") for f in fields]


def inc(field: str, value: int | float = 1) -> UpdateOperator:
    return UpdateOperator("$inc", field, value)


def dec(field: str, value: int | float = 1) -> UpdateOperator:
    return NegatedUpdateOperator("$inc", field, value)


def mul(field: str, value: int | float) -> UpdateOperator:
    return UpdateOperator("$mul", field, value)


def max_(field: str, value: Any) -> UpdateOperator:
    return UpdateOperator("$max", field, value)


def min_(field: str, value: Any) -> UpdateOperator:
    return UpdateOperator("$min", field, value)


def rename(field: str, new_name: str) -> UpdateOperator:
    return RenameOperator("$rename", field, new_name)


def push(field: str, value: Any) -> ArrayUpdateOperator:
    """Append *value*; a list appends each of its elements."""
    return ArrayUpdateOperator("$push", field, value, each=isinstance(value, (list, tuple)))


def add_to_set(field: str, value: Any) -> ArrayUpdateOperator:
    """Add *value* unless present; a list adds each of its elements."""
    return ArrayUpdateOperator("$addToSet", field, value, each=isinstance(value, (list, tuple)))


def pop(field: str) -> PopOperator:
    return PopOperator("$pop", field, 1)


def pull(field: str, value: Any) -> UpdateOperator:
    return PullOperator("$pull", field, value)


def pull_all(field: str, values: Iterable[Any]) -> UpdateOperator:
    return PullAllOperator("$pullAll", field, list(values))


def current_date(field: str, timestamp: bool = False) -> UpdateOperator:
    return RawUpdateOperator(
        "$currentDate", field, {"$type": "timestamp" if timestamp else "date"}
    )


def _flatten(operators: Iterable[UpdateOperator | list[UpdateOperator]]) -> list[UpdateOperator]:
    flat: list[UpdateOperator] = []
    for item in operators:
        if isinstance(item, list):
            flat.extend(item)
        else:
            flat.append(item)
    return flat


def compile_updates(
    mapper: Mapper,
    entity_type: type | None,
    operators: Iterable[UpdateOperator | list[UpdateOperator]],
    validating: bool = True,
) -> dict[str, Any]:
    """Merge update operators into one update document."""
    document: dict[str, dict[str, Any]] = {}
    for operator in _flatten(operators):
        for name, path, value in operator.encode(mapper, entity_type, validating):
            document.setdefault(name, {})[path] = value
    return document


# ---------------------------------------------------------------------------
# Executors
# ---------------------------------------------------------------------------


class Update:
    """Applies update operators to the documents a query matches."""

    def __init__(self, query: Query[Any], operators: Iterable[Any]) -> None:
        self._query = query
        self._operators = _flatten(operators)

    def to_document(self) -> dict[str, Any]:
        return compile_updates(
            self._query.mapper, self._query.entity_type, self._operators, self._query.validating
        )

    def execute(self, options: UpdateOptions | None = None) -> Any:
        """Run the update; returns the driver's UpdateResult."""
        options = options or UpdateOptions()
        collection = options.prepare(self._query.collection)
        query = self._query.to_document()
        update = self.to_document()
        kwargs = options.update_kwargs()
        if options.multi:
            return collection.update_many(query, update, **kwargs)
        return collection.update_one(query, update, **kwargs)


class Modify:
    """Atomically updates one document and returns it decoded."""

    def __init__(self, query: Query[Any], operators: Iterable[Any]) -> None:
        self._query = query
        self._operators = _flatten(operators)

    def to_document(self) -> dict[str, Any]:
        return compile_updates(
            self._query.mapper, self._query.entity_type, self._operators, self._query.validating
        )

    def execute(self, options: ModifyOptions | None = None) -> Any:
        """Run find-and-modify; returns the entity or None."""
        options = options or ModifyOptions()
        collection = options.prepare(self._query.collection)
        document = collection.find_one_and_update(
            self._query.to_document(),
            self.to_document(),
            projection=self._query.translate_projection(options.includes, options.excludes),
            sort=self._query.translate_sort(options.sort),
            return_document=options.return_document is ReturnDocument.AFTER,
            **options.modify_kwargs(),
        )
        if document is None:
            return None
        return self._query.decode(document)
