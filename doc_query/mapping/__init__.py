"""Mapping layer - entity models, conventions and codecs."""

from __future__ import annotations

from doc_query.mapping.builder import (
    EntityDescription,
    EntityMappingBuilder,
    EntityModelBuilder,
    embedded,
    entity,
)
from doc_query.mapping.conventions import (
    Convention,
    ConventionPipeline,
    DiscriminatorDefaults,
    NamingDefaults,
    PropertyDiscovery,
    default_conventions,
)
from doc_query.mapping.discriminator import DiscriminatorResolver
from doc_query.mapping.mapper import Mapper
from doc_query.mapping.model import EntityModel, ModelHandle, PropertyModel, ReferenceSpec
from doc_query.mapping.references import DecodeContext, LazyReference
from doc_query.mapping.registry import ModelRegistry

__all__ = [
    "Mapper",
    "entity",
    "embedded",
    "EntityDescription",
    "EntityMappingBuilder",
    "EntityModelBuilder",
    "EntityModel",
    "PropertyModel",
    "ReferenceSpec",
    "ModelHandle",
    "ModelRegistry",
    "Convention",
    "ConventionPipeline",
    "PropertyDiscovery",
    "NamingDefaults",
    "DiscriminatorDefaults",
    "default_conventions",
    "DiscriminatorResolver",
    "LazyReference",
    "DecodeContext",
]
