"""Static type analysis for mapped classes.

Turns type hints into TypeInfo trees that the codec engine dispatches on,
and discovers the persistent fields and constructor of a class
(dataclass, Pydantic model, or plain class).
"""

from __future__ import annotations

import collections
import collections.abc
import dataclasses
import inspect
import types
import typing
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, Final, TypeVar
from uuid import UUID

from bson import Binary, DBRef, Decimal128, ObjectId
from pydantic import BaseModel


class ShapeKind(Enum):
    """Value shapes the codec engine knows how to encode and decode."""

    SCALAR = "scalar"
    ENUM = "enum"
    SEQUENCE = "sequence"
    MAP = "map"
    ENTITY = "entity"
    DYNAMIC = "dynamic"


SCALAR_TYPES: tuple[type, ...] = (
    str,
    int,
    float,
    bool,
    bytes,
    datetime,
    date,
    Decimal,
    UUID,
    ObjectId,
    DBRef,
    Binary,
    Decimal128,
)

_SEQUENCE_ORIGINS: dict[Any, type] = {
    list: list,
    tuple: tuple,
    set: set,
    frozenset: frozenset,
    collections.deque: collections.deque,
    collections.abc.Sequence: list,
    collections.abc.MutableSequence: list,
    collections.abc.Collection: list,
    collections.abc.Iterable: list,
    collections.abc.Set: set,
    collections.abc.MutableSet: set,
}

_MAP_ORIGINS: dict[Any, type] = {
    dict: dict,
    collections.OrderedDict: collections.OrderedDict,
    collections.abc.Mapping: dict,
    collections.abc.MutableMapping: dict,
}


@dataclass(frozen=True)
class TypeInfo:
    """Normalized description of a declared type."""

    kind: ShapeKind
    type: Any = None
    args: tuple[TypeInfo, ...] = ()
    nullable: bool = False
    fixed: bool = False

    @property
    def element(self) -> TypeInfo:
        return self.args[0] if self.args else DYNAMIC

    @property
    def key(self) -> TypeInfo:
        return self.args[0] if self.args else DYNAMIC

    @property
    def value(self) -> TypeInfo:
        return self.args[1] if len(self.args) > 1 else DYNAMIC

    def element_at(self, index: int) -> TypeInfo:
        """Element type for a position of a fixed-length tuple."""
        if self.fixed:
            return self.args[index] if index < len(self.args) else DYNAMIC
        return self.element

    def entity_type(self) -> type | None:
        """Innermost entity type (the element of containers), if any."""
        if self.kind is ShapeKind.ENTITY:
            return self.type
        if self.kind is ShapeKind.SEQUENCE:
            return self.element.entity_type()
        if self.kind is ShapeKind.MAP:
            return self.value.entity_type()
        return None

    def as_nullable(self) -> TypeInfo:
        return dataclasses.replace(self, nullable=True)


DYNAMIC = TypeInfo(ShapeKind.DYNAMIC, nullable=True)


def analyze(hint: Any) -> TypeInfo:
    """Build a TypeInfo from a type hint."""
    origin = typing.get_origin(hint)

    if origin is typing.Annotated or origin is Final:
        return analyze(typing.get_args(hint)[0])

    if origin is typing.Union or origin is types.UnionType:
        members = [a for a in typing.get_args(hint) if a is not type(None)]
        if len(members) == 1:
            return analyze(members[0]).as_nullable()
        return DYNAMIC

    if origin is typing.Literal:
        values = typing.get_args(hint)
        return TypeInfo(ShapeKind.SCALAR, type(values[0])) if values else DYNAMIC

    if hint is Any or hint is object or hint is None or isinstance(hint, TypeVar):
        return DYNAMIC

    if hasattr(hint, "__supertype__"):
        return analyze(hint.__supertype__)

    container = origin if origin is not None else hint

    if container in _SEQUENCE_ORIGINS:
        args = typing.get_args(hint)
        kind = _SEQUENCE_ORIGINS[container]
        if kind is tuple and args and not (len(args) == 2 and args[1] is Ellipsis):
            return TypeInfo(
                ShapeKind.SEQUENCE, tuple, tuple(analyze(a) for a in args), fixed=True
            )
        element = analyze(args[0]) if args else DYNAMIC
        return TypeInfo(ShapeKind.SEQUENCE, kind, (element,))

    if container in _MAP_ORIGINS:
        args = typing.get_args(hint)
        if len(args) == 2:
            key, value = analyze(args[0]), analyze(args[1])
        else:
            key, value = TypeInfo(ShapeKind.SCALAR, str), DYNAMIC
        return TypeInfo(ShapeKind.MAP, _MAP_ORIGINS[container], (key, value))

    if origin is not None:
        # Parametrized user generics (Box[int]) map as their origin class.
        hint = origin

    if isinstance(hint, type):
        if issubclass(hint, Enum):
            return TypeInfo(ShapeKind.ENUM, hint)
        if issubclass(hint, SCALAR_TYPES):
            return TypeInfo(ShapeKind.SCALAR, hint)
        return TypeInfo(ShapeKind.ENTITY, hint)

    return DYNAMIC


# ---------------------------------------------------------------------------
# Field discovery
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FieldSpec:
    """A persistent field discovered on a class."""

    name: str
    hint: Any
    final: bool = False
    has_default: bool = False


def is_pydantic_model(cls: Any) -> bool:
    return isinstance(cls, type) and issubclass(cls, BaseModel)


def is_local_class(cls: type) -> bool:
    return "<locals>" in cls.__qualname__


def _type_hints(cls: type) -> dict[str, Any]:
    try:
        return typing.get_type_hints(cls, include_extras=True)
    except (NameError, TypeError):
        hints: dict[str, Any] = {}
        for klass in reversed(cls.__mro__):
            hints.update(getattr(klass, "__annotations__", {}))
        return hints


def _init_hints(cls: type) -> dict[str, Any]:
    try:
        return typing.get_type_hints(cls.__init__, include_extras=True)  # type: ignore[misc]
    except (NameError, TypeError):
        return {}


def _unwrap_final(hint: Any) -> tuple[Any, bool]:
    if hint is Final:
        return Any, True
    if typing.get_origin(hint) is Final:
        return typing.get_args(hint)[0], True
    if typing.get_origin(hint) is typing.Annotated:
        inner, final = _unwrap_final(typing.get_args(hint)[0])
        return inner, final
    return hint, False


def _is_class_var(hint: Any) -> bool:
    return hint is ClassVar or typing.get_origin(hint) is ClassVar


def discover_fields(cls: type) -> list[FieldSpec]:
    """List the persistent fields of *cls* in declaration order."""
    if is_pydantic_model(cls):
        frozen_model = bool(cls.model_config.get("frozen", False))
        specs = []
        for name, info in cls.model_fields.items():
            hint, final = _unwrap_final(info.annotation)
            specs.append(
                FieldSpec(
                    name=name,
                    hint=hint,
                    final=final or frozen_model or bool(info.frozen),
                    has_default=not info.is_required(),
                )
            )
        return specs

    hints = _type_hints(cls)

    if dataclasses.is_dataclass(cls):
        frozen = cls.__dataclass_params__.frozen  # type: ignore[attr-defined]
        specs = []
        for f in dataclasses.fields(cls):
            # init=False fields are derived in __post_init__ and not persisted
            if not f.init:
                continue
            hint, final = _unwrap_final(hints.get(f.name, f.type))
            specs.append(
                FieldSpec(
                    name=f.name,
                    hint=hint,
                    final=final or frozen,
                    has_default=(
                        f.default is not dataclasses.MISSING
                        or f.default_factory is not dataclasses.MISSING
                    ),
                )
            )
        return specs

    # Plain class - annotated attributes, then constructor parameters
    specs = []
    seen: set[str] = set()
    parameters = _signature_parameters(cls)
    init_hints = _init_hints(cls)
    for name, raw_hint in hints.items():
        if name.startswith("_") or _is_class_var(raw_hint):
            continue
        hint, final = _unwrap_final(raw_hint)
        param = parameters.get(name)
        has_default = (param is not None and param.default is not inspect.Parameter.empty) or (
            name in vars(cls)
        )
        specs.append(FieldSpec(name=name, hint=hint, final=final, has_default=has_default))
        seen.add(name)
    for name, param in parameters.items():
        if name in seen or name.startswith("_"):
            continue
        hint = init_hints.get(name, Any)
        specs.append(
            FieldSpec(
                name=name,
                hint=hint,
                has_default=param.default is not inspect.Parameter.empty,
            )
        )
    return specs


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class ConstructionKind(Enum):
    PYDANTIC = "pydantic"
    DATACLASS = "dataclass"
    PLAIN = "plain"


@dataclass(frozen=True)
class Construction:
    """How instances of a mapped class are created on decode."""

    kind: ConstructionKind
    parameters: frozenset[str]
    required: frozenset[str]
    accepts_any: bool = False

    def accepts(self, name: str) -> bool:
        return self.accepts_any or name in self.parameters


def _signature_parameters(cls: type) -> dict[str, inspect.Parameter]:
    try:
        signature = inspect.signature(cls)
    except (ValueError, TypeError):
        return {}
    return {
        name: param
        for name, param in signature.parameters.items()
        if param.kind in (inspect.Parameter.POSITIONAL_OR_KEYWORD, inspect.Parameter.KEYWORD_ONLY)
    }


def construction_for(cls: type) -> Construction:
    """Describe the construction path of *cls*."""
    if is_pydantic_model(cls):
        names = frozenset(cls.model_fields)
        required = frozenset(n for n, f in cls.model_fields.items() if f.is_required())
        return Construction(ConstructionKind.PYDANTIC, names, required, accepts_any=True)

    if dataclasses.is_dataclass(cls):
        init_fields = [f for f in dataclasses.fields(cls) if f.init]
        required = frozenset(
            f.name
            for f in init_fields
            if f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING
        )
        return Construction(
            ConstructionKind.DATACLASS, frozenset(f.name for f in init_fields), required
        )

    try:
        signature = inspect.signature(cls)
    except (ValueError, TypeError):
        return Construction(ConstructionKind.PLAIN, frozenset(), frozenset())
    parameters = _signature_parameters(cls)
    accepts_any = any(
        p.kind is inspect.Parameter.VAR_KEYWORD for p in signature.parameters.values()
    )
    required = frozenset(
        name for name, p in parameters.items() if p.default is inspect.Parameter.empty
    )
    return Construction(
        ConstructionKind.PLAIN, frozenset(parameters), required, accepts_any=accepts_any
    )


def instantiate(cls: type, construction: Construction, values: dict[str, Any]) -> Any:
    """Create an instance of *cls* from decoded attribute values.

    Values the constructor accepts are passed by name; the rest are
    assigned afterwards. Required constructor parameters with no decoded
    value receive None.
    """
    if construction.kind is ConstructionKind.PYDANTIC:
        kwargs = dict(values)
        for name in construction.required:
            kwargs.setdefault(name, None)
        return cls.model_construct(**kwargs)  # type: ignore[attr-defined]

    kwargs = {name: value for name, value in values.items() if construction.accepts(name)}
    for name in construction.required:
        kwargs.setdefault(name, None)
    instance = cls(**kwargs)
    for name, value in values.items():
        if name not in kwargs:
            object.__setattr__(instance, name, value)
    return instance
