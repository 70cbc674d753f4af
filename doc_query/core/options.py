"""Mapper configuration.

MapperOptions is a frozen Pydantic model; build a new instance (or use
``model_copy(update=...)``) to change settings.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from doc_query.core.enums import DiscriminatorStyle, NamingStrategy, UuidRepresentation


class MapperOptions(BaseModel):
    """Global defaults applied by the conventions pipeline and codecs."""

    model_config = ConfigDict(frozen=True)

    discriminator_key: str = "_t"
    discriminator: DiscriminatorStyle = DiscriminatorStyle.CLASS_NAME
    collection_naming: NamingStrategy = NamingStrategy.IDENTITY
    field_naming: NamingStrategy = NamingStrategy.IDENTITY
    ignore_finals: bool = False
    store_nulls: bool = False
    store_empties: bool = False
    fetch_references_via_aggregation: bool = True
    auto_embed: bool = True
    uuid_representation: UuidRepresentation = UuidRepresentation.STANDARD
