"""Reference encoding and resolution.

A reference property stores a pointer to another entity instead of
embedding it: a ``DBRef`` (collection + id) or, with ``id_only``, the bare
id. On decode a pointer becomes either a LazyReference or, under the eager
policy, the fetched entity. Documents joined by an aggregation ``$lookup``
land in a temporary field and are paired back with their pointers before
decoding.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from bson import DBRef

from doc_query.core.enums import DecodePolicy
from doc_query.core.exceptions import DecodeError, InvalidReferenceError, MappingError
from doc_query.mapping.codecs import empty, encode_key, rebuild
from doc_query.mapping.model import ID_KEY, EntityModel, PropertyModel
from doc_query.mapping.types import ShapeKind

if TYPE_CHECKING:
    from doc_query.mapping.mapper import Mapper

logger = logging.getLogger(__name__)

DocumentLoader = Callable[[str, Any], "Mapping[str, Any] | None"]

JOINED_PREFIX = "__joined_"


def joined_field(prop: PropertyModel) -> str:
    """Temporary field a ``$lookup`` writes the documents joined for *prop* into."""
    return f"{JOINED_PREFIX}{prop.mapped_name}"


class LazyReference:
    """Placeholder for an entity that has not been loaded yet.

    ``fetch()`` loads the target through the datastore that produced the
    reference and caches the result. Two placeholders are equal when they
    point at the same entity.
    """

    __slots__ = ("entity_type", "id", "collection", "_loader", "_value", "_fetched")

    def __init__(
        self,
        entity_type: type,
        id: Any,  # noqa: A002
        collection: str | None,
        loader: Callable[[], Any] | None = None,
    ) -> None:
        self.entity_type = entity_type
        self.id = id
        self.collection = collection
        self._loader = loader
        self._value: Any = None
        self._fetched = False

    @property
    def fetched(self) -> bool:
        return self._fetched

    def fetch(self) -> Any:
        """Load and return the referenced entity.

        Raises:
            MappingError: If the reference was decoded without a datastore.
        """
        if not self._fetched:
            if self._loader is None:
                raise MappingError(
                    f"{self!r} cannot be fetched: it was decoded without a datastore"
                )
            self._value = self._loader()
            self._fetched = True
        return self._value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LazyReference):
            return NotImplemented
        return (self.entity_type, self.id, self.collection) == (
            other.entity_type,
            other.id,
            other.collection,
        )

    def __hash__(self) -> int:
        return hash((self.entity_type, self.collection, repr(self.id)))

    def __repr__(self) -> str:
        return (
            f"LazyReference({self.entity_type.__qualname__}, "
            f"id={self.id!r}, collection={self.collection!r})"
        )


@dataclass
class DecodeContext:
    """Per-result-set decoding state.

    Attributes:
        policy: Whether pointers are fetched while decoding or left lazy.
        loader: Fetches a raw document by collection and wire id.
        in_progress: Entities currently being decoded, for the cycle guard.
    """

    policy: DecodePolicy = DecodePolicy.LAZY
    loader: DocumentLoader | None = None
    in_progress: set[tuple[str | None, str]] = field(default_factory=set)

    @contextmanager
    def visiting(self, collection: str | None, wire_id: Any) -> Iterator[None]:
        key = (collection, repr(wire_id))
        added = key not in self.in_progress
        self.in_progress.add(key)
        try:
            yield
        finally:
            if added:
                self.in_progress.discard(key)

    def is_visiting(self, collection: str | None, wire_id: Any) -> bool:
        return (collection, repr(wire_id)) in self.in_progress


class ReferenceResolver:
    """Encodes and decodes reference properties."""

    def __init__(self, mapper: Mapper) -> None:
        self._mapper = mapper

    # --- encode ---

    def encode(self, prop: PropertyModel, value: Any) -> Any:
        if value is None:
            return None
        info = prop.type_info
        if info.kind is ShapeKind.SEQUENCE:
            return [self.encode_pointer(prop, v) for v in value]
        if info.kind is ShapeKind.MAP:
            return {encode_key(k): self.encode_pointer(prop, v) for k, v in value.items()}
        return self.encode_pointer(prop, value)

    def encode_pointer(self, prop: PropertyModel, value: Any) -> Any:
        """Pointer to a single entity (or LazyReference)."""
        if value is None:
            return None
        if isinstance(value, LazyReference):
            entity_id, collection = value.id, value.collection
        else:
            model = self._mapper.get_entity_model(type(value))
            entity_id = model.get_id(value)
            collection = model.collection_name
            if entity_id is None:
                raise InvalidReferenceError(
                    type(value), prop.name, "has no id; save the referenced entity first"
                )
        wire_id = self._mapper.codec.encode_dynamic(entity_id)
        if prop.reference is not None and prop.reference.id_only:
            return wire_id
        return DBRef(collection, wire_id)

    # --- decode ---

    def decode(self, prop: PropertyModel, raw: Any, context: DecodeContext | None = None) -> Any:
        info = prop.type_info
        if raw is None:
            if info.kind in (ShapeKind.SEQUENCE, ShapeKind.MAP) and not info.nullable:
                return empty(info)
            return None

        if info.kind is ShapeKind.SEQUENCE:
            if not isinstance(raw, list):
                raise DecodeError(info.type, raw, "expected an array of references")
            items = [self.decode_pointer(prop, v, context) for v in raw]
            return rebuild(info, [item for item in items if item is not None])

        if info.kind is ShapeKind.MAP:
            if not isinstance(raw, Mapping):
                raise DecodeError(info.type, raw, "expected a document of references")
            codec = self._mapper.codec
            result = info.type()
            for key, value in raw.items():
                result[codec.decode_key(key, info.key)] = self.decode_pointer(prop, value, context)
            return result

        return self.decode_pointer(prop, raw, context)

    def merge_joined(self, model: EntityModel, document: Mapping[str, Any]) -> dict[str, Any]:
        """Replace stored pointers with the documents a ``$lookup`` joined for them.

        ``$lookup`` returns the matches for an array of pointers in
        collection order and once per distinct id, so each pointer is paired
        with its joined document by id. A pointer with no joined document
        is missing: it raises, or is dropped with ``ignore_missing``.
        """
        merged = dict(document)
        for prop in model.references():
            joined = merged.pop(joined_field(prop), None)
            if joined is None:
                continue
            raw = merged.get(prop.mapped_name)
            if raw is None:
                continue
            by_id = [(item.get(ID_KEY), item) for item in joined if isinstance(item, Mapping)]
            if prop.type_info.kind is ShapeKind.SEQUENCE and isinstance(raw, list):
                merged[prop.mapped_name] = [self._pair(prop, pointer, by_id) for pointer in raw]
            else:
                merged[prop.mapped_name] = self._pair(prop, raw, by_id)
        return merged

    def _pair(self, prop: PropertyModel, pointer: Any, by_id: list[tuple[Any, Any]]) -> Any:
        if pointer is None or isinstance(pointer, Mapping):
            return pointer
        if isinstance(pointer, DBRef):
            wire_id, collection = pointer.id, pointer.collection
        else:
            wire_id = pointer
            collection = self._mapper.get_entity_model(prop.type_info.entity_type()).collection_name
        for joined_id, item in by_id:
            if joined_id == wire_id:
                return item
        return self._missing(prop, wire_id, collection)

    def decode_pointer(
        self, prop: PropertyModel, raw: Any, context: DecodeContext | None = None
    ) -> Any:
        """Decode one pointer or joined document."""
        target = prop.type_info.entity_type()
        if isinstance(raw, Mapping):
            return self._mapper.codec.decode_entity(raw, target, context)

        model = self._mapper.get_entity_model(target)
        if isinstance(raw, DBRef):
            wire_id, collection = raw.id, raw.collection
        else:
            wire_id, collection = raw, model.collection_name
        entity_id = (
            self._mapper.codec.decode_value(wire_id, model.id_property.type_info)
            if model.id_property is not None
            else wire_id
        )

        lazy = (
            context is None
            or context.loader is None
            or context.policy is DecodePolicy.LAZY
            or (prop.reference is not None and prop.reference.lazy)
        )
        if lazy or context.is_visiting(collection, wire_id):
            return self.lazy(target, entity_id, wire_id, collection, context, prop)

        with context.visiting(collection, wire_id):
            logger.debug("Fetching reference %s(%r) from %s", target.__qualname__, wire_id, collection)
            document = context.loader(collection, wire_id)
            if document is None:
                return self._missing(prop, wire_id, collection)
            return self._mapper.codec.decode_entity(document, target, context)

    def lazy(
        self,
        target: type,
        entity_id: Any,
        wire_id: Any,
        collection: str | None,
        context: DecodeContext | None,
        prop: PropertyModel | None = None,
    ) -> LazyReference:
        """Build a LazyReference that loads through the context's loader."""
        loader = context.loader if context is not None else None
        if loader is None:
            return LazyReference(target, entity_id, collection)

        def load() -> Any:
            document = loader(collection, wire_id)
            if document is None:
                if prop is not None:
                    return self._missing(prop, wire_id, collection)
                return None
            return self._mapper.codec.decode_entity(
                document, target, DecodeContext(DecodePolicy.LAZY, loader)
            )

        return LazyReference(target, entity_id, collection, load)

    def _missing(self, prop: PropertyModel, wire_id: Any, collection: str | None) -> None:
        if prop.reference is not None and prop.reference.ignore_missing:
            return None
        raise InvalidReferenceError(
            prop.type_info.entity_type(),
            prop.name,
            f"points at a missing document ({collection}, {wire_id!r})",
        )
