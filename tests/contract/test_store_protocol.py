"""Contract tests for document store protocol compliance."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from pymongo import MongoClient

from doc_query.adapters.protocol import DocumentCollection, DocumentStore, StoreAdapter
from doc_query.adapters.pymongo import PymongoAdapter
from doc_query.core.connection import StoreConfig


@pytest.fixture
def client() -> Iterator[MongoClient]:
    """Client that never connects; only the object surface is inspected."""
    client: MongoClient = PymongoAdapter().create_client(StoreConfig(database="contract"))
    yield client
    client.close()


class TestPymongoAdapterProtocol:
    def test_implements_adapter_protocol(self) -> None:
        assert isinstance(PymongoAdapter(), StoreAdapter)

    def test_client_is_lazy(self, client: MongoClient) -> None:
        assert isinstance(client, MongoClient)


class TestPymongoObjectsSatisfyProtocols:
    def test_database(self, client: MongoClient) -> None:
        database = PymongoAdapter().get_database(client, "contract")
        assert isinstance(database, DocumentStore)

    def test_collection(self, client: MongoClient) -> None:
        collection = client.get_database("contract").get_collection("items")
        assert isinstance(collection, DocumentCollection)
