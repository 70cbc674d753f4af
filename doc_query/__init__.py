"""DocQuery - object-document mapping and typed queries for MongoDB."""

from __future__ import annotations

from doc_query.core.enums import (
    CursorType,
    DecodePolicy,
    DiscriminatorStyle,
    NamingStrategy,
    ReturnDocument,
    UuidRepresentation,
)
from doc_query.core.exceptions import (
    AdapterError,
    ConnectionError,  # noqa: A004
    DecodeError,
    DiscriminatorError,
    DocQueryError,
    InvalidReferenceError,
    LegacyOperationError,
    MalformedFilterError,
    MappingError,
    ModelValidationError,
    PathValidationError,
    QueryError,
    UnmappedTypeError,
    UnsupportedShapeError,
)
from doc_query.core.options import MapperOptions
from doc_query.mapping import (
    EntityModel,
    LazyReference,
    Mapper,
    PropertyModel,
    embedded,
    entity,
)
from doc_query.query import (
    FindOptions,
    Query,
    Sort,
    Update,
)
from doc_query.core.connection import ConnectionManager, StoreConfig
from doc_query.core.datastore import Datastore
from doc_query.repository import Repository

__all__ = [
    # Connection
    "StoreConfig",
    "ConnectionManager",
    # Datastore
    "Datastore",
    "Repository",
    # Mapping
    "Mapper",
    "MapperOptions",
    "entity",
    "embedded",
    "EntityModel",
    "PropertyModel",
    "LazyReference",
    # Query
    "Query",
    "Update",
    "Sort",
    "FindOptions",
    # Enums
    "NamingStrategy",
    "DiscriminatorStyle",
    "UuidRepresentation",
    "DecodePolicy",
    "CursorType",
    "ReturnDocument",
    # Exceptions
    "DocQueryError",
    "MappingError",
    "ModelValidationError",
    "UnmappedTypeError",
    "DiscriminatorError",
    "DecodeError",
    "InvalidReferenceError",
    "QueryError",
    "MalformedFilterError",
    "PathValidationError",
    "UnsupportedShapeError",
    "LegacyOperationError",
    "AdapterError",
    "ConnectionError",
]
