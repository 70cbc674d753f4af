"""Unit tests for update operator compilation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

import pytest
from bson import DBRef

from doc_query.core.exceptions import PathValidationError
from doc_query.mapping.builder import entity
from doc_query.mapping.mapper import Mapper
from doc_query.query.filters import eq, in_
from doc_query.query.updates import (
    add_to_set,
    compile_updates,
    current_date,
    dec,
    inc,
    max_,
    min_,
    mul,
    pop,
    pull,
    pull_all,
    push,
    rename,
    set_,
    set_on_insert,
    unset,
)

# --- Test models ---


class Status(Enum):
    DRAFT = "d"
    LIVE = "l"


@dataclass
class Comment:
    author: str = ""
    votes: int = 0


@dataclass
class User:
    id: str = ""


@dataclass
class Post:
    id: str = ""
    title: str = ""
    views: int = 0
    status: Status = Status.DRAFT
    published: datetime | None = None
    tags: list[str] = field(default_factory=list)
    comments: list[Comment] = field(default_factory=list)
    owner: User | None = None


@pytest.fixture
def posts(simple_mapper: Mapper) -> Mapper:
    simple_mapper.map(
        entity(User, collection="users").build(),
        entity(Post, collection="posts").field("title", "t").reference("owner").build(),
    )
    return simple_mapper


def compile_post(mapper: Mapper, *operators: object, validating: bool = True) -> dict:
    return compile_updates(mapper, Post, operators, validating)  # type: ignore[arg-type]


class TestFieldOperators:
    def test_set_uses_stored_names(self, posts: Mapper) -> None:
        document = compile_post(posts, set_("title", "Hello"), set_("status", Status.LIVE))
        assert document == {"$set": {"t": "Hello", "status": "LIVE"}}

    def test_same_path_last_write_wins(self, posts: Mapper) -> None:
        assert compile_post(posts, set_("views", 1), set_("views", 2)) == {"$set": {"views": 2}}

    def test_operators_grouped(self, posts: Mapper) -> None:
        document = compile_post(posts, inc("views"), set_("title", "x"), inc("views", 5))
        assert document == {"$inc": {"views": 5}, "$set": {"t": "x"}}

    def test_set_entity(self, posts: Mapper) -> None:
        document = compile_post(posts, set_(Post(id="p1", title="T", views=3)))
        assert document == {"$set": {"_t": "Post", "t": "T", "views": 3, "status": "DRAFT"}}

    def test_set_on_insert_and_unset(self, posts: Mapper) -> None:
        document = compile_post(
            posts, set_on_insert({"title": "new", "views": 0}), unset("tags", "status")
        )
        assert document == {
            "$setOnInsert": {"t": "new", "views": 0},
            "$unset": {"tags": "", "status": ""},
        }

    def test_arithmetic(self, posts: Mapper) -> None:
        assert compile_post(posts, dec("views")) == {"$inc": {"views": -1}}
        assert compile_post(posts, dec("views", 3)) == {"$inc": {"views": -3}}
        assert compile_post(posts, mul("views", 2)) == {"$mul": {"views": 2}}

    def test_min_max(self, posts: Mapper) -> None:
        when = datetime(2024, 1, 1)
        document = compile_post(posts, max_("views", 10), min_("published", when))
        assert document == {"$max": {"views": 10}, "$min": {"published": when}}

    def test_rename(self, posts: Mapper) -> None:
        assert compile_post(posts, rename("views", "title")) == {"$rename": {"views": "t"}}
        assert compile_post(posts, rename("title", "headline")) == {"$rename": {"t": "headline"}}

    def test_current_date(self, posts: Mapper) -> None:
        assert compile_post(posts, current_date("published")) == {
            "$currentDate": {"published": {"$type": "date"}}
        }
        assert compile_post(posts, current_date("published", timestamp=True)) == {
            "$currentDate": {"published": {"$type": "timestamp"}}
        }

    def test_reference_value(self, posts: Mapper) -> None:
        document = compile_post(posts, set_("owner", User(id="u1")))
        assert document == {"$set": {"owner": DBRef("users", "u1")}}

    def test_unknown_path(self, posts: Mapper) -> None:
        with pytest.raises(PathValidationError):
            compile_post(posts, set_("subtitle", "x"))
        assert compile_post(posts, set_("subtitle", "x"), validating=False) == {
            "$set": {"subtitle": "x"}
        }


class TestArrayOperators:
    def test_push_single_and_many(self, posts: Mapper) -> None:
        assert compile_post(posts, push("tags", "a")) == {"$push": {"tags": "a"}}
        assert compile_post(posts, push("tags", ["a", "b"])) == {
            "$push": {"tags": {"$each": ["a", "b"]}}
        }

    def test_push_modifiers(self, posts: Mapper) -> None:
        operator = push("tags", "a").position(0).slice(5).sort(1)
        assert compile_post(posts, operator) == {
            "$push": {"tags": {"$each": ["a"], "$position": 0, "$slice": 5, "$sort": 1}}
        }

    def test_push_embedded_value(self, posts: Mapper) -> None:
        document = compile_post(posts, push("comments", Comment("ann", 2)))
        assert document == {"$push": {"comments": {"author": "ann", "votes": 2}}}

    def test_add_to_set(self, posts: Mapper) -> None:
        assert compile_post(posts, add_to_set("tags", "a")) == {"$addToSet": {"tags": "a"}}
        assert compile_post(posts, add_to_set("tags", ["a", "b"])) == {
            "$addToSet": {"tags": {"$each": ["a", "b"]}}
        }

    def test_pop(self, posts: Mapper) -> None:
        assert compile_post(posts, pop("tags")) == {"$pop": {"tags": 1}}
        assert compile_post(posts, pop("tags").remove_first()) == {"$pop": {"tags": -1}}

    def test_pull(self, posts: Mapper) -> None:
        assert compile_post(posts, pull("tags", "a")) == {"$pull": {"tags": "a"}}
        assert compile_post(posts, pull("comments", eq("author", "bob"))) == {
            "$pull": {"comments": {"author": "bob"}}
        }
        assert compile_post(posts, pull("tags", in_(None, ["a", "b"]))) == {
            "$pull": {"tags": {"$in": ["a", "b"]}}
        }

    def test_pull_all(self, posts: Mapper) -> None:
        assert compile_post(posts, pull_all("tags", ["a", "b"])) == {
            "$pullAll": {"tags": ["a", "b"]}
        }
