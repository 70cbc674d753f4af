"""Field path translation.

Query paths are written with attribute names (``address.city``) and
translated to stored names (``addr.c``) by walking the entity models.
``id`` resolves to ``_id``; map keys and positional segments (``0``,
``$``, ``$[]``, ``$[elem]``) pass through unchanged.
"""

from __future__ import annotations

import collections
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from doc_query.core.exceptions import PathValidationError
from doc_query.mapping.model import ID_KEY, EntityModel, PropertyModel
from doc_query.mapping.references import LazyReference
from doc_query.mapping.types import ShapeKind, TypeInfo

if TYPE_CHECKING:
    from doc_query.mapping.mapper import Mapper

_ID_ALIASES = ("id", ID_KEY)
_COLLECTIONS = (list, tuple, set, frozenset, collections.deque)


@dataclass(frozen=True)
class PathTarget:
    """A translated path.

    Attributes:
        path: The stored path.
        property: The last property named by the path, when it resolved.
        info: Declared type of the value at the end of the path, when known.
    """

    path: str
    property: PropertyModel | None = None
    info: TypeInfo | None = None


def _is_positional(segment: str) -> bool:
    return segment.isdigit() or segment.startswith("$")


def _model_for(mapper: Mapper, info: TypeInfo) -> EntityModel | None:
    target = None
    if info.kind is ShapeKind.ENTITY:
        target = info.type
    elif info.kind is ShapeKind.SEQUENCE and info.element.kind is ShapeKind.ENTITY:
        target = info.element.type
    if target is None or not mapper.is_mappable(target):
        return None
    return mapper.get_entity_model(target)


def resolve_path(
    mapper: Mapper,
    entity_type: type | None,
    path: str,
    validating: bool = True,
) -> PathTarget:
    """Translate *path* against the model of *entity_type*.

    Raises:
        PathValidationError: If *validating* and a segment names no
            property of the model it is resolved against.
    """
    if entity_type is None or not mapper.is_mappable(entity_type):
        return PathTarget(path)

    current: EntityModel | None = mapper.get_entity_model(entity_type)
    info: TypeInfo | None = None
    last: PropertyModel | None = None
    opaque = False
    out: list[str] = []

    for segment in path.split("."):
        if opaque:
            out.append(segment)
            info = None
            last = None
            continue
        if info is not None and info.kind is ShapeKind.SEQUENCE and _is_positional(segment):
            out.append(segment)
            info = info.element
            current = _model_for(mapper, info)
            continue
        if info is not None and info.kind is ShapeKind.MAP:
            out.append(segment)
            info = info.value
            current = _model_for(mapper, info)
            continue
        if current is None:
            # Below a scalar, dynamic or reference value there is no model.
            if validating and info is not None and info.kind in (ShapeKind.SCALAR, ShapeKind.ENUM):
                raise PathValidationError(path, entity_type)
            out.append(segment)
            opaque = True
            info = None
            continue

        prop = current.get_property(segment)
        if prop is None and segment in _ID_ALIASES:
            prop = current.id_property
        if prop is None:
            if validating:
                raise PathValidationError(path, entity_type)
            out.append(segment)
            opaque = True
            info = None
            last = None
            continue

        out.append(prop.mapped_name)
        last = prop
        info = prop.type_info
        current = None if prop.is_reference else _model_for(mapper, info)
        if prop.is_reference and info.kind is ShapeKind.ENTITY:
            opaque = True

    return PathTarget(".".join(out), last if info is not None else None, info)


def encode_path_value(mapper: Mapper, target: PathTarget, value: Any) -> Any:
    """Encode a filter or update value with the codec of the path it targets."""
    if value is None:
        return None
    prop = target.property
    if prop is not None and prop.is_reference:
        if isinstance(value, LazyReference) or mapper.is_mappable(type(value)):
            return mapper.references.encode_pointer(prop, value)
    if isinstance(value, LazyReference):
        return mapper.codec.encode_dynamic(value.id)
    if target.info is None:
        return mapper.codec.encode_dynamic(value)
    return _encode_as(mapper, target.info, value)


def _encode_as(mapper: Mapper, info: TypeInfo, value: Any) -> Any:
    kind = info.kind
    if kind is ShapeKind.SEQUENCE and not isinstance(value, _COLLECTIONS):
        # Matching a single element of an array field
        return _encode_as(mapper, info.element, value)
    if kind is ShapeKind.SEQUENCE and info.fixed:
        return mapper.codec.encode_dynamic(value)
    if kind is ShapeKind.ENTITY and not isinstance(value, info.type):
        return mapper.codec.encode_dynamic(value)
    if kind is ShapeKind.MAP and not isinstance(value, Mapping):
        return mapper.codec.encode_dynamic(value)
    if kind is ShapeKind.ENUM and not isinstance(value, Enum):
        return mapper.codec.encode_dynamic(value)
    if kind is ShapeKind.SEQUENCE:
        return [_encode_as(mapper, info.element, v) for v in value]
    return mapper.codec.encode_value(value, info)
