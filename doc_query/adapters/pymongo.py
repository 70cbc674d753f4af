"""MongoDB adapter (pymongo)."""

from __future__ import annotations

from typing import Any

from doc_query.core.connection import StoreConfig
from doc_query.core.exceptions import ConnectionError  # noqa: A004


class PymongoAdapter:
    """Creates pymongo clients; databases and collections are used as-is."""

    def create_client(self, config: StoreConfig) -> Any:
        """Create a MongoClient. The client connects lazily on first use."""
        from pymongo import MongoClient
        from pymongo.errors import PyMongoError

        options: dict[str, Any] = {
            "maxPoolSize": config.pool_size,
            "connectTimeoutMS": config.connect_timeout * 1000,
            "uuidRepresentation": "standard",
            "connect": False,
        }
        if config.user is not None:
            options["username"] = config.user
        if config.password is not None:
            options["password"] = config.password
        options.update(config.extra)

        try:
            if config.uri is not None:
                return MongoClient(config.uri, **options)
            return MongoClient(config.host or "localhost", config.port or 27017, **options)
        except PyMongoError as e:
            raise ConnectionError(f"Cannot create MongoDB client: {e}") from e

    def get_database(self, client: Any, name: str) -> Any:
        return client.get_database(name)

    def close_client(self, client: Any) -> None:
        client.close()
