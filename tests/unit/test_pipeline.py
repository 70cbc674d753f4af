"""Unit tests for sort specifications and the aggregation pipeline builder."""

from __future__ import annotations

import pytest

from doc_query.core.exceptions import UnsupportedShapeError
from doc_query.query.pipeline import Pipeline, translate_sort
from doc_query.query.sort import (
    Sort,
    ascending,
    descending,
    natural_ascending,
    natural_descending,
    text_score,
)


class TestSort:
    def test_factories(self) -> None:
        assert ascending("a") == Sort("a", 1)
        assert descending("a") == Sort("a", -1)
        assert natural_ascending() == Sort("$natural", 1)
        assert natural_descending() == Sort("$natural", -1)

    def test_text_score(self) -> None:
        sort = text_score()
        assert sort.field == "score"
        assert sort.is_meta
        assert not ascending("a").is_meta

    def test_translate(self) -> None:
        document = translate_sort([ascending("a"), descending("b"), text_score("s")])
        assert document == {"a": 1, "b": -1, "s": {"$meta": "textScore"}}

    @pytest.mark.parametrize("order", [2, 0, True, "asc", {"$natural": 1}])
    def test_unsupported_order(self, order: object) -> None:
        with pytest.raises(UnsupportedShapeError, match="unmapped sort option"):
            translate_sort([Sort("a", order)])


class TestPipeline:
    def test_stage_order_follows_calls(self) -> None:
        pipeline = (
            Pipeline()
            .match({"a": 1})
            .lookup("users", "owner.$id", "_id", "owner")
            .project(["a"], ["b"])
            .sort([descending("a")])
            .skip(5)
            .limit(10)
        )
        assert pipeline.stages == [
            {"$match": {"a": 1}},
            {
                "$lookup": {
                    "from": "users",
                    "localField": "owner.$id",
                    "foreignField": "_id",
                    "as": "owner",
                }
            },
            {"$project": {"a": 1, "b": 0}},
            {"$sort": {"a": -1}},
            {"$skip": 5},
            {"$limit": 10},
        ]

    def test_empty_stages_are_skipped(self) -> None:
        pipeline = Pipeline().match({}).project().sort([]).skip(None).limit(0)
        assert pipeline.stages == []

    def test_stages_returns_copy(self) -> None:
        pipeline = Pipeline().limit(1)
        pipeline.stages.append({"$skip": 1})
        assert pipeline.stages == [{"$limit": 1}]
