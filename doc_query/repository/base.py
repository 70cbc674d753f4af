"""Repository base class.

Thin wrapper over Datastore for DDD-oriented usage.
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from doc_query.query.filters import Filter
from doc_query.query.options import CountOptions, DeleteOptions, FindOptions
from doc_query.query.query import Query

T = TypeVar("T")


class Repository(Generic[T]):
    """Base repository class for DDD-oriented usage.

    Subclasses set ``entity_type`` (or pass it in) and add concrete data
    access methods on top of the generic ones.

    Example::

        class UserRepository(Repository[User]):
            entity_type = User

            def by_email(self, email: str) -> User | None:
                return self.find(eq("email", email)).first()
    """

    entity_type: type[T] | None = None

    def __init__(self, datastore: Any, entity_type: type[T] | None = None) -> None:
        self.datastore = datastore
        if entity_type is not None:
            self.entity_type = entity_type
        if self.entity_type is None:
            raise TypeError(f"{type(self).__qualname__} needs an entity_type")
        datastore.mapper.map(self.entity_type)

    def query(self) -> Query[T]:
        return self.datastore.find(self.entity_type)

    def find(self, *filters: Filter) -> Query[T]:
        """Query narrowed by *filters*."""
        return self.query().filter(*filters)

    def get(self, entity_id: Any) -> T | None:
        return self.datastore.get(self.entity_type, entity_id)

    def find_all(self, *filters: Filter, options: FindOptions | None = None) -> list[T]:
        """Every entity matching *filters*."""
        return self.find(*filters).iterator(options).to_list()

    def count(self, *filters: Filter, options: CountOptions | None = None) -> int:
        return self.find(*filters).count(options)

    def insert(self, entity: T) -> T:
        return self.datastore.insert(entity)

    def save(self, entity: T) -> T:
        return self.datastore.save(entity)

    def delete(self, entity: T) -> Any:
        return self.datastore.delete(entity)

    def delete_where(self, *filters: Filter) -> Any:
        """Delete every entity matching *filters*."""
        return self.find(*filters).delete(DeleteOptions(multi=True))
