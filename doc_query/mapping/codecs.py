"""Property codec engine.

Encoding and decoding dispatch on the declared TypeInfo of a property. The
runtime value only decides the codec for dynamically typed (``Any``)
values and for polymorphic entities, which carry a discriminator.
"""

from __future__ import annotations

import collections
from collections.abc import Callable, Mapping
from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID

from bson import Binary, DBRef, Decimal128, ObjectId
from bson.errors import InvalidId

from doc_query.core.exceptions import DecodeError, DiscriminatorError, UnmappedTypeError
from doc_query.mapping.model import ID_KEY, EntityModel, PropertyModel
from doc_query.mapping.types import SCALAR_TYPES, ShapeKind, TypeInfo, instantiate

if TYPE_CHECKING:
    from doc_query.mapping.mapper import Mapper
    from doc_query.mapping.references import DecodeContext

_EPOCH = datetime(1970, 1, 1)
_UUID_SUBTYPES = (3, 4)


# ---------------------------------------------------------------------------
# Scalar decoders
# ---------------------------------------------------------------------------


def _to_bool(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str) and raw.lower() in ("true", "false"):
        return raw.lower() == "true"
    if isinstance(raw, int):
        return bool(raw)
    raise TypeError("not a boolean")


def _to_int(raw: Any) -> int:
    if isinstance(raw, int):
        return int(raw)
    if isinstance(raw, float) and raw.is_integer():
        return int(raw)
    if isinstance(raw, Decimal128):
        return int(raw.to_decimal())
    if isinstance(raw, str):
        return int(raw.strip())
    raise TypeError("not an integer")


def _to_float(raw: Any) -> float:
    if isinstance(raw, bool):
        raise TypeError("not a number")
    if isinstance(raw, (int, float, str)):
        return float(raw)
    if isinstance(raw, Decimal128):
        return float(raw.to_decimal())
    raise TypeError("not a number")


def _to_str(raw: Any) -> str:
    if isinstance(raw, (str, ObjectId, int, float)):
        return str(raw)
    raise TypeError("not a string")


def _to_bytes(raw: Any) -> bytes:
    if isinstance(raw, (bytes, bytearray)):
        return bytes(raw)
    raise TypeError("not binary data")


def _to_binary(raw: Any) -> Binary:
    if isinstance(raw, Binary):
        return raw
    return Binary(_to_bytes(raw))


def _to_decimal(raw: Any) -> Decimal:
    if isinstance(raw, Decimal):
        return raw
    if isinstance(raw, Decimal128):
        return raw.to_decimal()
    if isinstance(raw, (int, float, str)) and not isinstance(raw, bool):
        return Decimal(str(raw))
    raise TypeError("not a decimal")


def _to_decimal128(raw: Any) -> Decimal128:
    if isinstance(raw, Decimal128):
        return raw
    return Decimal128(_to_decimal(raw))


def _to_uuid(raw: Any) -> UUID:
    if isinstance(raw, UUID):
        return raw
    if isinstance(raw, Binary) and raw.subtype in _UUID_SUBTYPES:
        return raw.as_uuid(raw.subtype)
    if isinstance(raw, str):
        return UUID(raw)
    raise TypeError("not a UUID")


def _to_object_id(raw: Any) -> ObjectId:
    if isinstance(raw, ObjectId):
        return raw
    if isinstance(raw, str):
        return ObjectId(raw)
    raise TypeError("not an ObjectId")


def _to_datetime(raw: Any) -> datetime:
    if isinstance(raw, datetime):
        return raw
    if isinstance(raw, date):
        return datetime(raw.year, raw.month, raw.day)
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return _EPOCH + timedelta(milliseconds=raw)
    if isinstance(raw, str):
        return datetime.fromisoformat(raw)
    raise TypeError("not a datetime")


def _to_date(raw: Any) -> date:
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    return _to_datetime(raw).date()


def _to_dbref(raw: Any) -> DBRef:
    if isinstance(raw, DBRef):
        return raw
    raise TypeError("not a DBRef")


_SCALAR_DECODERS: dict[type, Callable[[Any], Any]] = {
    bool: _to_bool,
    int: _to_int,
    float: _to_float,
    str: _to_str,
    bytes: _to_bytes,
    Binary: _to_binary,
    Decimal: _to_decimal,
    Decimal128: _to_decimal128,
    UUID: _to_uuid,
    ObjectId: _to_object_id,
    datetime: _to_datetime,
    date: _to_date,
    DBRef: _to_dbref,
}


def decode_scalar(raw: Any, target: type) -> Any:
    """Convert a wire value to the scalar *target* type.

    Accepts the native wire value plus the legacy textual forms older
    documents may hold (numeric strings, hex ObjectIds, ISO-8601 dates,
    epoch milliseconds for datetimes).

    Raises:
        DecodeError: If the value has no sensible conversion.
    """
    decoder = _SCALAR_DECODERS.get(target)
    if decoder is None:
        if isinstance(raw, target):
            return raw
        decoder = next((_SCALAR_DECODERS[b] for b in target.__mro__ if b in _SCALAR_DECODERS), None)
        if decoder is None:
            raise DecodeError(target, raw)
        try:
            return target(decoder(raw))
        except (TypeError, ValueError, InvalidId, ArithmeticError) as exc:
            raise DecodeError(target, raw, str(exc)) from exc
    try:
        return decoder(raw)
    except (TypeError, ValueError, InvalidId, ArithmeticError) as exc:
        raise DecodeError(target, raw, str(exc)) from exc


def decode_enum(raw: Any, enum_type: type[Enum]) -> Enum:
    """Enum constants are stored by name; the value is accepted as a fallback."""
    if isinstance(raw, enum_type):
        return raw
    if isinstance(raw, str) and raw in enum_type.__members__:
        return enum_type[raw]
    try:
        return enum_type(raw)
    except ValueError as exc:
        raise DecodeError(enum_type, raw, "no such constant") from exc


def encode_key(key: Any) -> str:
    """Wire form of a map key. Documents only allow string keys."""
    if isinstance(key, str):
        return key
    if isinstance(key, Enum):
        return key.name
    if isinstance(key, (datetime, date)):
        return key.isoformat()
    return str(key)


def rebuild(info: TypeInfo, items: list[Any]) -> Any:
    """Decoded items as the declared container kind."""
    container = info.type
    if container is tuple:
        return tuple(items)
    if container is set:
        return set(items)
    if container is frozenset:
        return frozenset(items)
    if container is collections.deque:
        return collections.deque(items)
    return items


def empty(info: TypeInfo) -> Any:
    """Empty value of a container TypeInfo."""
    if info.kind is ShapeKind.MAP:
        return info.type()
    return rebuild(info, [])


# ---------------------------------------------------------------------------
# Entity codec
# ---------------------------------------------------------------------------


class EntityCodec:
    """Encodes entities to documents and back, driven by their EntityModel."""

    def __init__(self, mapper: Mapper) -> None:
        self._mapper = mapper

    # --- encode ---

    def encode_entity(
        self,
        value: Any,
        declared: type | None = None,
        top_level: bool = False,
    ) -> dict[str, Any]:
        """Encode a mapped instance.

        Args:
            value: The instance.
            declared: Static type of the slot holding *value*, used to
                decide whether a discriminator is needed.
            top_level: True for root documents, which carry a
                discriminator whenever the model uses one.
        """
        model = self._mapper.get_entity_model(type(value))
        options = self._mapper.options
        document: dict[str, Any] = {}

        if model.id_property is not None:
            id_value = getattr(value, model.id_property.name, None)
            if id_value is not None:
                document[ID_KEY] = self.encode_value(id_value, model.id_property.type_info)

        if self._needs_discriminator(model, declared, top_level):
            document[model.discriminator_key] = model.discriminator

        for prop in model.properties:
            if prop is model.id_property:
                continue
            raw = getattr(value, prop.name, None)
            if prop.is_reference:
                encoded = self._mapper.references.encode(prop, raw)
            else:
                encoded = self.encode_value(raw, prop.type_info)
            if encoded is None and not options.store_nulls:
                continue
            if (
                prop.type_info.kind in (ShapeKind.SEQUENCE, ShapeKind.MAP)
                and encoded is not None
                and not encoded
                and not options.store_empties
            ):
                continue
            document[prop.mapped_name] = encoded
        return document

    def _needs_discriminator(
        self, model: EntityModel, declared: type | None, top_level: bool
    ) -> bool:
        if top_level:
            return model.use_discriminator
        if declared is None or declared is not model.type:
            return True
        return self._mapper.discriminators.is_polymorphic(declared)

    def encode_value(self, value: Any, info: TypeInfo) -> Any:
        """Encode *value* as declared by *info*."""
        if value is None:
            return None
        kind = info.kind
        if kind is ShapeKind.SCALAR:
            return self.encode_scalar(value)
        if kind is ShapeKind.ENUM:
            return value.name
        if kind is ShapeKind.SEQUENCE:
            if info.fixed:
                return [self.encode_value(v, info.element_at(i)) for i, v in enumerate(value)]
            return [self.encode_value(v, info.element) for v in value]
        if kind is ShapeKind.MAP:
            return {encode_key(k): self.encode_value(v, info.value) for k, v in value.items()}
        if kind is ShapeKind.ENTITY:
            return self.encode_entity(value, declared=info.type)
        return self.encode_dynamic(value)

    def encode_scalar(self, value: Any) -> Any:
        if isinstance(value, Enum):
            return value.name
        if isinstance(value, UUID):
            return Binary.from_uuid(value, self._mapper.options.uuid_representation.value)
        if isinstance(value, Decimal):
            return Decimal128(value)
        if isinstance(value, datetime):
            return value
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day)
        return value

    def encode_dynamic(self, value: Any) -> Any:
        """Encode a value whose declared type gives no guidance."""
        if value is None:
            return None
        if isinstance(value, Enum) or isinstance(value, SCALAR_TYPES):
            return self.encode_scalar(value)
        if isinstance(value, Mapping):
            return {encode_key(k): self.encode_dynamic(v) for k, v in value.items()}
        if isinstance(value, (list, tuple, set, frozenset, collections.deque)):
            return [self.encode_dynamic(v) for v in value]
        if self._mapper.is_mappable(type(value)):
            return self.encode_entity(value)
        raise UnmappedTypeError(type(value))

    # --- decode ---

    def decode_entity(
        self,
        document: Any,
        declared: Any,
        context: DecodeContext | None = None,
    ) -> Any:
        """Decode a document into an instance of *declared* or a subtype."""
        if document is None:
            return None
        if not isinstance(document, Mapping):
            raise DecodeError(declared, document, "expected a document")

        cls = self._concrete_type(document, declared)
        model = self._mapper.get_entity_model(cls)

        values: dict[str, Any] = {}
        for prop in model.properties:
            present, raw = _read(document, prop)
            if not present and prop.has_default:
                continue
            if prop.is_reference:
                values[prop.name] = self._mapper.references.decode(prop, raw, context)
            else:
                values[prop.name] = self.decode_value(raw, prop.type_info, context)
        return instantiate(cls, model.construction, values)

    def _concrete_type(self, document: Mapping[str, Any], declared: Any) -> type:
        mappable = isinstance(declared, type) and self._mapper.is_mappable(declared)
        if mappable:
            key = self._mapper.get_entity_model(declared).discriminator_key
        else:
            key = self._mapper.options.discriminator_key

        value = document.get(key)
        if value is None:
            if not mappable or self._mapper.get_entity_model(declared).abstract:
                raise DiscriminatorError(declared, None)
            return declared
        return self._mapper.discriminators.resolve(declared, value)

    def decode_value(
        self,
        raw: Any,
        info: TypeInfo,
        context: DecodeContext | None = None,
    ) -> Any:
        """Decode *raw* as declared by *info*."""
        kind = info.kind
        if raw is None:
            if kind in (ShapeKind.SEQUENCE, ShapeKind.MAP) and not info.nullable:
                return empty(info)
            return None
        if kind is ShapeKind.SCALAR:
            return decode_scalar(raw, info.type)
        if kind is ShapeKind.ENUM:
            return decode_enum(raw, info.type)
        if kind is ShapeKind.SEQUENCE:
            if not isinstance(raw, (list, tuple)):
                raise DecodeError(info.type, raw, "expected an array")
            if info.fixed:
                items = [self.decode_value(v, info.element_at(i), context) for i, v in enumerate(raw)]
            else:
                items = [self.decode_value(v, info.element, context) for v in raw]
            return rebuild(info, items)
        if kind is ShapeKind.MAP:
            if not isinstance(raw, Mapping):
                raise DecodeError(info.type, raw, "expected a document")
            result = info.type()
            for key, value in raw.items():
                result[self.decode_key(key, info.key)] = self.decode_value(value, info.value, context)
            return result
        if kind is ShapeKind.ENTITY:
            return self.decode_entity(raw, info.type, context)
        return self.decode_dynamic(raw, context)

    def decode_key(self, key: str, info: TypeInfo) -> Any:
        if info.kind is ShapeKind.ENUM:
            return decode_enum(key, info.type)
        if info.kind is ShapeKind.SCALAR:
            return decode_scalar(key, info.type)
        return key

    def decode_dynamic(self, raw: Any, context: DecodeContext | None = None) -> Any:
        """Decode a value with no declared type, resolving discriminators."""
        if isinstance(raw, Mapping):
            key = self._mapper.options.discriminator_key
            if key in raw:
                cls = self._mapper.discriminators.resolve(object, raw[key])
                return self.decode_entity(raw, cls, context)
            found = self._mapper.discriminators.resolve_document(raw)
            if found is not None:
                return self.decode_entity(raw, found, context)
            return {k: self.decode_dynamic(v, context) for k, v in raw.items()}
        if isinstance(raw, list):
            return [self.decode_dynamic(v, context) for v in raw]
        if isinstance(raw, Decimal128):
            return raw.to_decimal()
        if isinstance(raw, Binary) and raw.subtype in _UUID_SUBTYPES:
            return raw.as_uuid(raw.subtype)
        return raw


def _read(document: Mapping[str, Any], prop: PropertyModel) -> tuple[bool, Any]:
    for name in prop.wire_names:
        if name in document:
            return True, document[name]
    return False, None
