"""Unit tests for the Repository base class."""

from __future__ import annotations

from dataclasses import dataclass
from unittest.mock import MagicMock

import pytest

from doc_query.core.datastore import Datastore
from doc_query.query.filters import eq
from doc_query.query.query import Query
from doc_query.repository.base import Repository


@dataclass
class User:
    id: str | None = None
    email: str = ""


class UserRepository(Repository[User]):
    entity_type = User

    def by_email(self, email: str) -> User | None:
        return self.find(eq("email", email)).first()


@pytest.fixture
def users(database: MagicMock) -> MagicMock:
    """The mock collection behind User."""
    return database.get_collection("User")


class TestRepository:
    def test_maps_entity_type(self, datastore: Datastore) -> None:
        UserRepository(datastore)
        assert datastore.mapper.get_collection_name(User) == "User"

    def test_entity_type_argument(self, datastore: Datastore) -> None:
        repo: Repository[User] = Repository(datastore, User)
        assert repo.entity_type is User
        assert isinstance(repo.query(), Query)

    def test_requires_entity_type(self, datastore: Datastore) -> None:
        with pytest.raises(TypeError, match="needs an entity_type"):
            Repository(datastore)

    def test_subclass_query_method(self, datastore: Datastore, users: MagicMock) -> None:
        users.find.return_value = iter([{"_id": "u1", "email": "a@x"}])
        assert UserRepository(datastore).by_email("a@x") == User("u1", "a@x")
        assert users.find.call_args.args[0] == {"email": "a@x", "_t": {"$in": ["User"]}}

    def test_find_all(self, datastore: Datastore, users: MagicMock) -> None:
        users.find.return_value = iter([{"_id": "u1"}, {"_id": "u2"}])
        assert [u.id for u in UserRepository(datastore).find_all()] == ["u1", "u2"]

    def test_count(self, datastore: Datastore, users: MagicMock) -> None:
        users.count_documents.return_value = 4
        assert UserRepository(datastore).count(eq("email", "a@x")) == 4

    def test_get(self, datastore: Datastore, users: MagicMock) -> None:
        users.find_one.return_value = None
        assert UserRepository(datastore).get("u1") is None
        users.find_one.assert_called_once_with({"_id": "u1"})

    def test_writes_delegate_to_datastore(self, datastore: Datastore, users: MagicMock) -> None:
        repo = UserRepository(datastore)
        user = User("u1", "a@x")
        assert repo.save(user) is user
        users.replace_one.assert_called_once()
        repo.insert(User("u2"))
        users.insert_one.assert_called_once()
        repo.delete(user)
        users.delete_one.assert_called_once_with({"_id": "u1"})

    def test_delete_where(self, datastore: Datastore, users: MagicMock) -> None:
        UserRepository(datastore).delete_where(eq("email", "a@x"))
        users.delete_many.assert_called_once_with({"email": "a@x", "_t": {"$in": ["User"]}})
