"""Document store protocols.

The mapping and query layers talk to the store only through these
protocols. A pymongo ``Database`` and ``Collection`` satisfy them as they
are; every method accepts ``session=`` and passes it through untouched.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from doc_query.core.connection import StoreConfig


@runtime_checkable
class DocumentCollection(Protocol):
    """A collection of documents."""

    def insert_one(self, document: Mapping[str, Any], **kwargs: Any) -> Any: ...

    def replace_one(
        self, filter: Mapping[str, Any], replacement: Mapping[str, Any], **kwargs: Any
    ) -> Any: ...

    def find(self, filter: Mapping[str, Any] | None = None, **kwargs: Any) -> Any:
        """Return an iterable cursor over matching documents."""
        ...

    def find_one(self, filter: Mapping[str, Any] | None = None, **kwargs: Any) -> Any: ...

    def count_documents(self, filter: Mapping[str, Any], **kwargs: Any) -> int: ...

    def delete_one(self, filter: Mapping[str, Any], **kwargs: Any) -> Any: ...

    def delete_many(self, filter: Mapping[str, Any], **kwargs: Any) -> Any: ...

    def find_one_and_delete(self, filter: Mapping[str, Any], **kwargs: Any) -> Any: ...

    def update_one(
        self, filter: Mapping[str, Any], update: Mapping[str, Any], **kwargs: Any
    ) -> Any: ...

    def update_many(
        self, filter: Mapping[str, Any], update: Mapping[str, Any], **kwargs: Any
    ) -> Any: ...

    def find_one_and_update(
        self, filter: Mapping[str, Any], update: Mapping[str, Any], **kwargs: Any
    ) -> Any: ...

    def aggregate(self, pipeline: list[Mapping[str, Any]], **kwargs: Any) -> Any:
        """Run an aggregation pipeline and return a cursor."""
        ...

    def with_options(self, **kwargs: Any) -> Any:
        """Return a copy bound to other read/write concerns."""
        ...


@runtime_checkable
class DocumentStore(Protocol):
    """A database: named collections plus commands."""

    def get_collection(self, name: str, **kwargs: Any) -> Any: ...

    def command(self, command: Mapping[str, Any], **kwargs: Any) -> Any:
        """Run a database command and return its reply document."""
        ...


@runtime_checkable
class StoreAdapter(Protocol):
    """Creates store clients from a StoreConfig."""

    def create_client(self, config: StoreConfig) -> Any:
        """Create a client (connection pool) for the store."""
        ...

    def get_database(self, client: Any, name: str) -> DocumentStore:
        """Return the named database of *client*."""
        ...

    def close_client(self, client: Any) -> None:
        """Close the client and release its connections."""
        ...
