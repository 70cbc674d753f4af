"""Connection configuration and management.

StoreConfig is a Pydantic model for type-safe connection config.
ConnectionManager loads the store adapter for the configured driver and
hands out the database the Datastore works against.
"""

from __future__ import annotations

import importlib
from typing import Any

from pydantic import BaseModel

from doc_query.core.exceptions import AdapterError


class StoreConfig(BaseModel):
    """Configuration for document store connections."""

    driver: str = "mongodb"
    uri: str | None = None
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str
    pool_size: int = 100
    connect_timeout: int = 20
    extra: dict[str, Any] = {}


# Adapter module mapping: driver name → (module_path, class_name)
_ADAPTER_MAP: dict[str, tuple[str, str]] = {
    "mongodb": ("doc_query.adapters.pymongo", "PymongoAdapter"),
}


def _load_adapter(driver: str) -> Any:
    """Load a store adapter by driver name."""
    driver_lower = driver.lower()
    if driver_lower not in _ADAPTER_MAP:
        raise AdapterError(f"Unsupported document store driver: {driver}")

    module_path, cls_name = _ADAPTER_MAP[driver_lower]
    try:
        module = importlib.import_module(module_path)
        return getattr(module, cls_name)()
    except (ImportError, AttributeError) as e:
        raise AdapterError(f"Failed to load adapter for '{driver}': {e}") from e


class ConnectionManager:
    """Owns the client of one store and the database it exposes."""

    def __init__(self, config: StoreConfig) -> None:
        self.config = config
        self._adapter = _load_adapter(config.driver)
        self._client: Any = None

    @property
    def adapter(self) -> Any:
        return self._adapter

    def connect(self) -> Any:
        """Create the client if needed."""
        if self._client is None:
            self._client = self._adapter.create_client(self.config)
        return self._client

    def get_database(self) -> Any:
        """The configured database, satisfying the DocumentStore protocol."""
        return self._adapter.get_database(self.connect(), self.config.database)

    def close(self) -> None:
        """Close the client."""
        if self._client is not None:
            self._adapter.close_client(self._client)
            self._client = None
