"""Unit tests for StoreConfig, adapter loading and ConnectionManager."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError

from doc_query.adapters.pymongo import PymongoAdapter
from doc_query.core import connection
from doc_query.core.connection import ConnectionManager, StoreConfig, _load_adapter
from doc_query.core.exceptions import AdapterError


class TestStoreConfig:
    def test_defaults(self) -> None:
        config = StoreConfig(database="app")
        assert config.driver == "mongodb"
        assert config.pool_size == 100
        assert config.connect_timeout == 20
        assert config.extra == {}

    def test_database_required(self) -> None:
        with pytest.raises(ValidationError):
            StoreConfig()  # type: ignore[call-arg]


class TestLoadAdapter:
    def test_mongodb(self) -> None:
        assert isinstance(_load_adapter("MongoDB"), PymongoAdapter)

    def test_unsupported_driver(self) -> None:
        with pytest.raises(AdapterError, match="Unsupported document store driver: couch"):
            _load_adapter("couch")

    def test_import_failure(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setitem(
            connection._ADAPTER_MAP, "broken", ("doc_query.adapters.missing", "Adapter")
        )
        with pytest.raises(AdapterError, match="Failed to load adapter for 'broken'"):
            _load_adapter("broken")


@pytest.fixture
def adapter(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    """Mock adapter returned for every driver."""
    mock = MagicMock()
    monkeypatch.setattr("doc_query.core.connection._load_adapter", lambda driver: mock)
    return mock


class TestConnectionManager:
    def test_client_created_once(self, adapter: MagicMock) -> None:
        config = StoreConfig(database="app")
        manager = ConnectionManager(config)
        assert manager.adapter is adapter
        assert manager.connect() is manager.connect()
        adapter.create_client.assert_called_once_with(config)

    def test_get_database(self, adapter: MagicMock) -> None:
        manager = ConnectionManager(StoreConfig(database="app"))
        assert manager.get_database() is adapter.get_database.return_value
        adapter.get_database.assert_called_once_with(adapter.create_client.return_value, "app")

    def test_close(self, adapter: MagicMock) -> None:
        manager = ConnectionManager(StoreConfig(database="app"))
        manager.close()
        adapter.close_client.assert_not_called()
        manager.connect()
        manager.close()
        manager.close()
        adapter.close_client.assert_called_once_with(adapter.create_client.return_value)


class TestPymongoAdapter:
    def test_client_options(self) -> None:
        config = StoreConfig(
            database="app",
            host="db.local",
            port=27018,
            user="ann",
            password="secret",
            pool_size=5,
            connect_timeout=2,
            extra={"appname": "shop"},
        )
        client = PymongoAdapter().create_client(config)
        try:
            assert client.options.pool_options.max_pool_size == 5
            assert client.options.pool_options.connect_timeout == 2
            assert PymongoAdapter().get_database(client, "app").name == "app"
        finally:
            PymongoAdapter().close_client(client)
