"""Mapper - entry point of the mapping layer.

Owns the model registry, the conventions pipeline and the codecs, and
converts entities to documents and back.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, TypeVar

from doc_query.core.exceptions import MappingError
from doc_query.core.options import MapperOptions
from doc_query.mapping.builder import EntityDescription, EntityMappingBuilder
from doc_query.mapping.codecs import EntityCodec
from doc_query.mapping.conventions import Convention, ConventionPipeline, default_conventions
from doc_query.mapping.discriminator import DiscriminatorResolver
from doc_query.mapping.model import ID_KEY, EntityModel
from doc_query.mapping.references import DecodeContext, ReferenceResolver
from doc_query.mapping.registry import ModelRegistry

T = TypeVar("T")


class Mapper:
    """Maps Python objects to documents.

    Args:
        options: Global mapping defaults.
        conventions: Conventions applied to every model, in order.
            Defaults to property discovery, naming and discriminator
            defaults.

    Example::

        mapper = Mapper()
        mapper.map(
            entity(User, collection="users").id("user_id").field("name", "n").build(),
            embedded(Address).build(),
        )
        doc = mapper.to_document(user)
    """

    def __init__(
        self,
        options: MapperOptions | None = None,
        conventions: Iterable[Convention] | None = None,
    ) -> None:
        self.options = options or MapperOptions()
        self.conventions = ConventionPipeline(
            conventions if conventions is not None else default_conventions()
        )
        self.registry = ModelRegistry(self)
        self.discriminators = DiscriminatorResolver(self.registry)
        self.codec = EntityCodec(self)
        self.references = ReferenceResolver(self)

    def map(self, *entities: EntityDescription | EntityMappingBuilder | type) -> list[EntityModel]:
        """Register and build models.

        Accepts descriptions, unfinished description builders, or bare
        classes (mapped as entities with default conventions). All
        descriptions are registered before any model is built, so the
        order of arguments does not matter.
        """
        descriptions: list[EntityDescription] = []
        for item in entities:
            if isinstance(item, EntityMappingBuilder):
                item = item.build()
            if isinstance(item, type):
                item = self.registry.description_for(item) or self.registry.implied_description(
                    item, embedded=False
                )
            descriptions.append(item)
        for description in descriptions:
            self.registry.register(description)
        return [self.registry.get(d.type) for d in descriptions]

    def is_mappable(self, cls: Any) -> bool:
        return self.registry.is_mappable(cls)

    def get_entity_model(self, cls: type) -> EntityModel:
        """Model for *cls*, built on first use.

        Raises:
            UnmappedTypeError: If *cls* cannot be mapped.
            ModelValidationError: If the mapping of *cls* is invalid.
        """
        return self.registry.get(cls)

    def get_collection_name(self, cls: type) -> str:
        model = self.get_entity_model(cls)
        if model.collection_name is None:
            raise MappingError(f"{cls.__qualname__} is embedded and has no collection")
        return model.collection_name

    def get_id(self, entity: Any) -> Any:
        return self.get_entity_model(type(entity)).get_id(entity)

    def to_document(self, entity: Any) -> dict[str, Any]:
        """Encode a root entity."""
        return self.codec.encode_entity(entity, top_level=True)

    def from_document(
        self,
        cls: type[T],
        document: Mapping[str, Any],
        *,
        context: DecodeContext | None = None,
    ) -> T:
        """Decode a root document as *cls* or the subtype its discriminator names."""
        if context is None:
            return self.codec.decode_entity(document, cls)  # type: ignore[no-any-return]
        model = self.get_entity_model(cls)
        with context.visiting(model.collection_name, document.get(ID_KEY)):
            return self.codec.decode_entity(document, cls, context)  # type: ignore[no-any-return]

    def update_query_with_discriminators(
        self, model: EntityModel, query: dict[str, Any]
    ) -> dict[str, Any]:
        """Restrict *query* to the discriminators of *model* and its subtypes.

        Nothing is added for embedded types, for models that do not write a
        discriminator, or when the query already names ``_id`` or the
        discriminator key.
        """
        if (
            model.is_entity
            and model.use_discriminator
            and ID_KEY not in query
            and model.discriminator_key not in query
        ):
            query[model.discriminator_key] = {"$in": self.discriminators.values_for(model)}
        return query
