"""Datastore - entry point for reading and writing mapped entities.

Binds a Mapper to a DocumentStore (a pymongo ``Database`` or anything with
the same surface).

Example::

    datastore = Datastore.from_config(StoreConfig(database="app"))
    datastore.mapper.map(entity(User).build())
    datastore.save(User(name="Ann"))
    ann = datastore.find(User).filter(eq("name", "Ann")).first()
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, TypeVar

from bson import ObjectId

from doc_query.core.connection import ConnectionManager, StoreConfig
from doc_query.core.enums import DecodePolicy
from doc_query.core.exceptions import MappingError
from doc_query.mapping.mapper import Mapper
from doc_query.mapping.model import ID_KEY
from doc_query.mapping.references import DecodeContext, LazyReference
from doc_query.mapping.types import ShapeKind
from doc_query.query.options import DeleteOptions, InsertOptions
from doc_query.query.query import Query

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Datastore:
    """Reads and writes entities through a document store.

    Args:
        database: Object satisfying the DocumentStore protocol.
        mapper: Mapper holding the entity models. A default one is
            created when omitted.
    """

    def __init__(self, database: Any, mapper: Mapper | None = None) -> None:
        self._database = database
        self._mapper = mapper or Mapper()
        self._manager: ConnectionManager | None = None

    @classmethod
    def from_config(cls, config: StoreConfig, mapper: Mapper | None = None) -> Datastore:
        """Connect through the adapter registered for ``config.driver``."""
        manager = ConnectionManager(config)
        datastore = cls(manager.get_database(), mapper)
        datastore._manager = manager
        return datastore

    @property
    def mapper(self) -> Mapper:
        return self._mapper

    @property
    def database(self) -> Any:
        return self._database

    def close(self) -> None:
        if self._manager is not None:
            self._manager.close()

    # --- collections and commands ---

    def get_collection(self, target: type | str) -> Any:
        """Collection by name, or the mapped collection of an entity type."""
        name = target if isinstance(target, str) else self._mapper.get_collection_name(target)
        return self._database.get_collection(name)

    def run_command(self, command: Mapping[str, Any], session: Any = None) -> dict[str, Any]:
        return dict(self._database.command(command, session=session))

    # --- queries ---

    def find(self, entity_type: type[T], collection: str | None = None) -> Query[T]:
        """Start a query over *entity_type*."""
        return Query(self, entity_type, collection_name=collection)

    def query(self, entity_type: type[T], seed: Mapping[str, Any]) -> Query[T]:
        """Start a query from a raw seed document."""
        return Query(self, entity_type, seed=seed)

    def get(self, entity_type: type[T], entity_id: Any) -> T | None:
        """Load one entity by id."""
        model = self._mapper.get_entity_model(entity_type)
        wire_id = entity_id
        if model.id_property is not None:
            wire_id = self._mapper.codec.encode_value(entity_id, model.id_property.type_info)
        document = self.get_collection(entity_type).find_one({ID_KEY: wire_id})
        if document is None:
            return None
        return self._decode(entity_type, document)

    # --- writes ---

    def insert(self, entity: T, options: InsertOptions | None = None) -> T:
        """Insert a new entity, assigning an ObjectId id when it has none."""
        options = options or InsertOptions()
        self._ensure_id(entity)
        document = self._mapper.to_document(entity)
        collection = options.prepare(self.get_collection(type(entity)))
        collection.insert_one(document, **options.insert_kwargs())
        return entity

    def save(self, entity: T, options: InsertOptions | None = None) -> T:
        """Insert or replace an entity by id."""
        options = options or InsertOptions()
        self._ensure_id(entity)
        document = self._mapper.to_document(entity)
        collection = options.prepare(self.get_collection(type(entity)))
        kwargs = options.insert_kwargs()
        collection.replace_one({ID_KEY: document[ID_KEY]}, document, upsert=True, **kwargs)
        return entity

    def delete(self, entity: Any, options: DeleteOptions | None = None) -> Any:
        """Delete one entity by id."""
        options = options or DeleteOptions()
        model = self._mapper.get_entity_model(type(entity))
        entity_id = model.get_id(entity)
        if entity_id is None:
            raise MappingError(f"Cannot delete {type(entity).__qualname__} without an id")
        wire_id = self._mapper.codec.encode_value(entity_id, model.id_property.type_info)  # type: ignore[union-attr]
        collection = options.prepare(self.get_collection(type(entity)))
        return collection.delete_one({ID_KEY: wire_id}, **options.delete_kwargs())

    # --- references ---

    def load_document(self, collection: str, wire_id: Any) -> Mapping[str, Any] | None:
        """Raw document by collection and wire id, for reference resolution."""
        logger.debug("Loading %s(%r)", collection, wire_id)
        document: Mapping[str, Any] | None = self._database.get_collection(collection).find_one(
            {ID_KEY: wire_id}
        )
        return document

    def load_reference(self, reference: LazyReference) -> Any:
        """Fetch the entity a LazyReference points at, or None when it is gone."""
        collection = reference.collection or self._mapper.get_collection_name(
            reference.entity_type
        )
        wire_id = self._mapper.codec.encode_dynamic(reference.id)
        document = self.load_document(collection, wire_id)
        if document is None:
            return None
        return self._decode(reference.entity_type, document)

    def _decode(self, entity_type: type[T], document: Mapping[str, Any]) -> T:
        context = DecodeContext(DecodePolicy.EAGER, self.load_document)
        return self._mapper.from_document(entity_type, document, context=context)

    def _ensure_id(self, entity: Any) -> None:
        model = self._mapper.get_entity_model(type(entity))
        id_property = model.id_property
        if id_property is None or model.get_id(entity) is not None:
            return
        info = id_property.type_info
        if info.kind is ShapeKind.SCALAR and info.type is ObjectId:
            object.__setattr__(entity, id_property.name, ObjectId())
            return
        raise MappingError(
            f"{type(entity).__qualname__} has no id and its id type cannot be generated"
        )
