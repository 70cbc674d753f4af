"""Mapping conventions.

A convention reads the description of a type under construction and fills
in defaults on its EntityModelBuilder. Conventions run in registration
order; an explicitly configured value always wins over one supplied here.
Precedence for defaults: the type's own description, then the nearest
described base class, then MapperOptions.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any, Protocol

from doc_query.mapping.builder import EntityModelBuilder, PropertyBuilder
from doc_query.mapping.discriminator import discriminator_value
from doc_query.mapping.model import ID_KEY
from doc_query.mapping.types import analyze, discover_fields

if TYPE_CHECKING:
    from doc_query.mapping.mapper import Mapper

_DEFAULT_ID_FIELDS = ("id", "_id")


def apply_defaults(*candidates: Any) -> Any:
    """First candidate that is configured (not None)."""
    for candidate in candidates:
        if candidate is not None:
            return candidate
    return None


class Convention(Protocol):
    """A rule applied to every model under construction."""

    def apply(self, mapper: Mapper, builder: EntityModelBuilder) -> None:
        """Mutate *builder* in place."""
        ...


class PropertyDiscovery:
    """Creates a property for each persistent field of the type."""

    def apply(self, mapper: Mapper, builder: EntityModelBuilder) -> None:
        description = builder.description
        for spec in discover_fields(builder.type):
            if spec.name in description.transient:
                builder.skipped.add(spec.name)
                continue
            if spec.final and mapper.options.ignore_finals:
                builder.skipped.add(spec.name)
                continue

            prop = PropertyBuilder(
                name=spec.name,
                type_info=analyze(spec.hint),
                final=spec.final,
                has_default=spec.has_default,
            )
            declared = description.fields.get(spec.name)
            if declared is not None:
                prop.mapped_name = declared.name
                prop.also_load = declared.also_load
            if spec.name in description.references:
                name, reference = description.references[spec.name]
                prop.reference = reference
                prop.mapped_name = apply_defaults(name, prop.mapped_name)
            builder.add_property(prop)

        if builder.id_property is None and not builder.embedded:
            builder.id_property = builder.inherited("id_field")
            if builder.id_property is None:
                builder.id_property = next(
                    (n for n in _DEFAULT_ID_FIELDS if n in builder.properties), None
                )


class NamingDefaults:
    """Derives collection and stored field names."""

    def apply(self, mapper: Mapper, builder: EntityModelBuilder) -> None:
        options = mapper.options
        if not builder.embedded:
            builder.collection_name = apply_defaults(
                builder.collection_name,
                builder.inherited("collection"),
                options.collection_naming.apply(builder.type.__name__),
            )
        for prop in builder.properties.values():
            if prop.name == builder.id_property:
                prop.mapped_name = ID_KEY
            elif prop.mapped_name is None:
                prop.mapped_name = options.field_naming.apply(prop.name)


class DiscriminatorDefaults:
    """Sets the discriminator key, value and whether it is written."""

    def apply(self, mapper: Mapper, builder: EntityModelBuilder) -> None:
        options = mapper.options
        builder.use_discriminator = apply_defaults(
            builder.use_discriminator, builder.inherited("use_discriminator"), True
        )
        builder.discriminator_key = apply_defaults(
            builder.discriminator_key,
            builder.inherited("discriminator_key"),
            options.discriminator_key,
        )
        if builder.discriminator is None:
            builder.discriminator = discriminator_value(options.discriminator, builder.type)


class ConventionPipeline:
    """Ordered set of conventions applied to each model builder."""

    def __init__(self, conventions: Iterable[Convention]) -> None:
        self._conventions = list(conventions)

    @property
    def conventions(self) -> list[Convention]:
        return list(self._conventions)

    def apply(self, mapper: Mapper, builder: EntityModelBuilder) -> None:
        for convention in self._conventions:
            convention.apply(mapper, builder)


def default_conventions() -> list[Convention]:
    return [PropertyDiscovery(), NamingDefaults(), DiscriminatorDefaults()]
