"""Entity and property models.

Frozen dataclasses describing a mapped type, produced once by the
EntityModelBuilder and cached by the ModelRegistry. Nested models are
reached through ModelHandle (a registry slot index), never by direct
reference, so mutually referencing types do not form object cycles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import cached_property
from typing import TYPE_CHECKING, Any

from doc_query.mapping.types import Construction, TypeInfo

if TYPE_CHECKING:
    from doc_query.mapping.registry import ModelRegistry

ID_KEY = "_id"


@dataclass(frozen=True)
class ReferenceSpec:
    """How an entity-valued property is stored and loaded."""

    lazy: bool = False
    id_only: bool = False
    ignore_missing: bool = False


@dataclass(frozen=True)
class ModelHandle:
    """Stable handle to a registry slot."""

    registry: ModelRegistry = field(repr=False, compare=False)
    index: int
    type: type

    @property
    def model(self) -> EntityModel:
        return self.registry.slot(self.index)

    @property
    def ready(self) -> bool:
        """False while the slot is a forward placeholder."""
        return self.registry.is_ready(self.index)


@dataclass(frozen=True)
class PropertyModel:
    """Mapping of a single attribute."""

    name: str
    mapped_name: str
    type_info: TypeInfo
    also_load: tuple[str, ...] = ()
    reference: ReferenceSpec | None = None
    final: bool = False
    has_default: bool = False
    target: ModelHandle | None = None

    @property
    def nullable(self) -> bool:
        return self.type_info.nullable

    @property
    def is_reference(self) -> bool:
        return self.reference is not None

    @property
    def wire_names(self) -> tuple[str, ...]:
        """Names accepted on decode, the mapped name first."""
        return (self.mapped_name, *self.also_load)


@dataclass(frozen=True)
class EntityModel:
    """Immutable description of a mapped type."""

    type: type
    properties: tuple[PropertyModel, ...]
    construction: Construction
    id_property: PropertyModel | None = None
    collection_name: str | None = None
    discriminator_key: str = "_t"
    discriminator: str = ""
    use_discriminator: bool = True
    embedded: bool = False
    abstract: bool = False

    @cached_property
    def _by_name(self) -> dict[str, PropertyModel]:
        index: dict[str, PropertyModel] = {}
        for prop in self.properties:
            index.setdefault(prop.mapped_name, prop)
        for prop in self.properties:
            index[prop.name] = prop
        return index

    @property
    def is_entity(self) -> bool:
        """True for top-level, independently addressable types."""
        return not self.embedded

    def get_property(self, name: str) -> PropertyModel | None:
        """Look up a property by attribute name or mapped name."""
        return self._by_name.get(name)

    def references(self) -> list[PropertyModel]:
        return [p for p in self.properties if p.reference is not None]

    def has_references(self) -> bool:
        return any(p.reference is not None for p in self.properties)

    def has_eager_references(self) -> bool:
        return any(p.reference is not None and not p.reference.lazy for p in self.properties)

    def get_id(self, instance: Any) -> Any:
        if self.id_property is None:
            return None
        return getattr(instance, self.id_property.name, None)
