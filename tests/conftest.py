"""Shared test fixtures."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from doc_query.core.datastore import Datastore
from doc_query.core.enums import DiscriminatorStyle
from doc_query.core.options import MapperOptions
from doc_query.mapping.mapper import Mapper


@pytest.fixture
def mapper() -> Mapper:
    """Mapper with default options."""
    return Mapper()


@pytest.fixture
def simple_mapper() -> Mapper:
    """Mapper writing bare class names as discriminators."""
    return Mapper(MapperOptions(discriminator=DiscriminatorStyle.SIMPLE_NAME))


@pytest.fixture
def database() -> MagicMock:
    """Mock database handing out one mock collection per name."""
    collections: dict[str, MagicMock] = {}

    def get_collection(name: str, **kwargs: object) -> MagicMock:
        if name not in collections:
            collection = MagicMock(name=name)
            collection.with_options.return_value = collection
            collections[name] = collection
        return collections[name]

    db = MagicMock()
    db.get_collection.side_effect = get_collection
    db.command.return_value = {"ok": 1}
    return db


@pytest.fixture
def datastore(database: MagicMock, simple_mapper: Mapper) -> Datastore:
    """Datastore over the mock database."""
    return Datastore(database, simple_mapper)
