"""Entity mapping DSL and model builder.

``entity()`` and ``embedded()`` start a fluent description of how a class
is stored. Descriptions are registered with a Mapper; the first time a type
is needed its description is turned into an EntityModel by running the
conventions pipeline over an EntityModelBuilder and validating the result.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from doc_query.core.exceptions import ModelValidationError
from doc_query.mapping.model import ID_KEY, EntityModel, ModelHandle, PropertyModel, ReferenceSpec
from doc_query.mapping.types import ShapeKind, TypeInfo, construction_for, is_local_class


@dataclass(frozen=True)
class FieldDescription:
    """Explicit naming for one attribute."""

    name: str | None = None
    also_load: tuple[str, ...] = ()


@dataclass(frozen=True)
class EntityDescription:
    """Declarative mapping of a class, as written by the user.

    ``None`` means "not configured": the conventions pipeline supplies the
    default.
    """

    type: type
    embedded: bool = False
    id_field: str | None = None
    collection: str | None = None
    discriminator: str | None = None
    discriminator_key: str | None = None
    use_discriminator: bool | None = None
    fields: dict[str, FieldDescription] = field(default_factory=dict)
    references: dict[str, tuple[str | None, ReferenceSpec]] = field(default_factory=dict)
    transient: frozenset[str] = frozenset()


def entity(entity_class: type, collection: str | None = None) -> EntityMappingBuilder:
    """Entry point for describing a top-level, persisted type.

    Args:
        entity_class: The class to map.
        collection: Collection name. Defaults to the class name passed
            through the configured collection naming strategy.

    Returns:
        A builder for chaining mapping declarations.
    """
    return EntityMappingBuilder(entity_class, embedded=False, collection=collection)


def embedded(embedded_class: type) -> EntityMappingBuilder:
    """Entry point for describing a value type stored inside other documents."""
    return EntityMappingBuilder(embedded_class, embedded=True)


class EntityMappingBuilder:
    """Fluent builder for entity descriptions."""

    def __init__(self, target: type, embedded: bool, collection: str | None = None) -> None:
        self._type = target
        self._embedded = embedded
        self._collection = collection
        self._id_field: str | None = None
        self._discriminator: str | None = None
        self._discriminator_key: str | None = None
        self._use_discriminator: bool | None = None
        self._fields: dict[str, FieldDescription] = {}
        self._references: dict[str, tuple[str | None, ReferenceSpec]] = {}
        self._transient: set[str] = set()

    def id(self, field_name: str) -> EntityMappingBuilder:
        """Set the identity attribute. It is always stored as ``_id``."""
        self._id_field = field_name
        return self

    def collection(self, name: str) -> EntityMappingBuilder:
        """Set the collection name."""
        self._collection = name
        return self

    def discriminator(self, value: str) -> EntityMappingBuilder:
        """Set an explicit discriminator value for this type."""
        self._discriminator = value
        return self

    def discriminator_key(self, key: str) -> EntityMappingBuilder:
        """Set the document key that carries the discriminator."""
        self._discriminator_key = key
        return self

    def use_discriminator(self, enabled: bool = True) -> EntityMappingBuilder:
        self._use_discriminator = enabled
        return self

    def field(
        self,
        attr_name: str,
        name: str | None = None,
        *,
        also_load: Iterable[str] = (),
    ) -> EntityMappingBuilder:
        """Rename an attribute and/or accept legacy names when loading."""
        self._fields[attr_name] = FieldDescription(name=name, also_load=tuple(also_load))
        return self

    def reference(
        self,
        attr_name: str,
        *,
        lazy: bool = False,
        id_only: bool = False,
        ignore_missing: bool = False,
        name: str | None = None,
    ) -> EntityMappingBuilder:
        """Store an entity-valued attribute as a pointer instead of embedding it."""
        spec = ReferenceSpec(lazy=lazy, id_only=id_only, ignore_missing=ignore_missing)
        self._references[attr_name] = (name, spec)
        return self

    def transient(self, *attr_names: str) -> EntityMappingBuilder:
        """Exclude attributes from persistence."""
        self._transient.update(attr_names)
        return self

    def build(self) -> EntityDescription:
        """Freeze the declarations into an EntityDescription."""
        return EntityDescription(
            type=self._type,
            embedded=self._embedded,
            id_field=self._id_field,
            collection=self._collection,
            discriminator=self._discriminator,
            discriminator_key=self._discriminator_key,
            use_discriminator=self._use_discriminator,
            fields=dict(self._fields),
            references=dict(self._references),
            transient=frozenset(self._transient),
        )


# ---------------------------------------------------------------------------
# Model builder
# ---------------------------------------------------------------------------


@dataclass
class PropertyBuilder:
    """Mutable property state while conventions run."""

    name: str
    type_info: TypeInfo
    mapped_name: str | None = None
    also_load: tuple[str, ...] = ()
    reference: ReferenceSpec | None = None
    final: bool = False
    has_default: bool = False


class EntityModelBuilder:
    """Mutable model under construction.

    Conventions read the description and fill in defaults; ``build()``
    validates the result and freezes it into an EntityModel.
    """

    def __init__(
        self,
        target: type,
        description: EntityDescription,
        inherited: Callable[[type], list[EntityDescription]] | None = None,
    ) -> None:
        self.type = target
        self.description = description
        self.properties: dict[str, PropertyBuilder] = {}
        self.skipped: set[str] = set()
        self.id_property: str | None = description.id_field
        self.collection_name: str | None = description.collection
        self.discriminator: str | None = description.discriminator
        self.discriminator_key: str | None = description.discriminator_key
        self.use_discriminator: bool | None = description.use_discriminator
        self._inherited = inherited

    @property
    def embedded(self) -> bool:
        return self.description.embedded

    def add_property(self, prop: PropertyBuilder) -> None:
        self.properties[prop.name] = prop

    def inherited(self, attribute: str) -> Any:
        """Value configured on the nearest described base class, or None."""
        if self._inherited is None:
            return None
        for description in self._inherited(self.type):
            value = getattr(description, attribute)
            if value is not None:
                return value
        return None

    def build(self, resolve: Callable[[type], ModelHandle | None]) -> EntityModel:
        """Validate and freeze the model.

        Args:
            resolve: Returns a handle for a nested entity type, mapping it
                if needed, or None when the type is not mappable.
        """
        self._validate()

        properties: list[PropertyModel] = []
        id_property: PropertyModel | None = None
        for builder in self.properties.values():
            target_type = builder.type_info.entity_type()
            target = resolve(target_type) if target_type is not None else None
            if builder.reference is not None:
                self._validate_reference(builder, target)
            prop = PropertyModel(
                name=builder.name,
                mapped_name=builder.mapped_name or builder.name,
                type_info=builder.type_info,
                also_load=builder.also_load,
                reference=builder.reference,
                final=builder.final,
                has_default=builder.has_default,
                target=target,
            )
            if builder.name == self.id_property:
                id_property = prop
            properties.append(prop)

        return EntityModel(
            type=self.type,
            properties=tuple(properties),
            construction=construction_for(self.type),
            id_property=id_property,
            collection_name=None if self.embedded else self.collection_name,
            discriminator_key=self.discriminator_key or "_t",
            discriminator=self.discriminator or self.type.__qualname__,
            use_discriminator=bool(self.use_discriminator),
            embedded=self.embedded,
            abstract=inspect.isabstract(self.type),
        )

    def _validate(self) -> None:
        description = self.description

        if is_local_class(self.type):
            raise ModelValidationError(
                self.type,
                "local classes (defined inside a function body) cannot be mapped",
            )
        if self.embedded and description.collection is not None:
            raise ModelValidationError(
                self.type,
                "a collection name cannot be set on an embedded type; "
                "rename the fields that hold it instead",
            )
        if self.embedded and description.id_field is not None:
            raise ModelValidationError(self.type, "embedded types cannot declare an id property")
        if not self.embedded and self.id_property is None:
            raise ModelValidationError(self.type, "no id property is mapped")
        if self.id_property is not None and self.id_property not in self.properties:
            raise ModelValidationError(
                self.type, f"id property '{self.id_property}' is not a persistent field"
            )

        declared = set(description.fields) | set(description.references)
        unknown = sorted(declared - set(self.properties) - self.skipped)
        if unknown:
            raise ModelValidationError(self.type, f"unknown fields {unknown}")

        seen: dict[str, str] = {}
        for prop in self.properties.values():
            mapped = prop.mapped_name or prop.name
            if mapped == ID_KEY and prop.name != self.id_property:
                raise ModelValidationError(
                    self.type, f"'{prop.name}' cannot be stored as '{ID_KEY}'"
                )
            if mapped in seen:
                raise ModelValidationError(
                    self.type,
                    f"'{prop.name}' and '{seen[mapped]}' are both stored as '{mapped}'",
                )
            seen[mapped] = prop.name

        construction = construction_for(self.type)
        for prop in self.properties.values():
            if prop.final and not construction.accepts(prop.name):
                raise ModelValidationError(
                    self.type,
                    f"final field '{prop.name}' is not a constructor parameter",
                )

    def _validate_reference(self, prop: PropertyBuilder, target: ModelHandle | None) -> None:
        if target is None or not _reference_shape_ok(prop.type_info):
            raise ModelValidationError(
                self.type, f"reference '{prop.name}' does not point at a mapped type"
            )
        if target.type is self.type:
            if self.embedded:
                raise ModelValidationError(
                    self.type, f"reference '{prop.name}' points at an embedded type"
                )
            return
        if not target.ready:
            # Still under construction further up the stack; it validates itself.
            return
        model = target.model
        if model.embedded or model.id_property is None:
            raise ModelValidationError(
                self.type,
                f"reference '{prop.name}' points at {target.type.__qualname__}, "
                "which is not an entity",
            )


def _reference_shape_ok(info: TypeInfo) -> bool:
    """References may be single values, sequences or maps of entities."""
    if info.kind is ShapeKind.ENTITY:
        return True
    if info.kind is ShapeKind.SEQUENCE:
        return info.element.kind is ShapeKind.ENTITY
    if info.kind is ShapeKind.MAP:
        return info.value.kind is ShapeKind.ENTITY
    return False


def describe(target: type, embedded: bool = False) -> EntityDescription:
    """Implied description for a type with no explicit mapping."""
    return EntityDescription(type=target, embedded=embedded)
