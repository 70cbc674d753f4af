"""Aggregation pipeline builder used by the eager-reference rewrite."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from doc_query.core.exceptions import UnsupportedShapeError
from doc_query.query.sort import Sort


def translate_sort(sorts: Iterable[Sort]) -> dict[str, Any]:
    """Sort keys as a ``$sort`` document.

    Raises:
        UnsupportedShapeError: For an order that is neither 1, -1 nor a
            ``$meta`` marker.
    """
    document: dict[str, Any] = {}
    for sort in sorts:
        if sort.order in (1, -1) and not isinstance(sort.order, bool):
            document[sort.field] = sort.order
        elif sort.is_meta:
            document[sort.field] = dict(sort.order)
        else:
            raise UnsupportedShapeError(f"unmapped sort option: {sort.order!r}")
    return document


class Pipeline:
    """Ordered list of aggregation stages."""

    def __init__(self) -> None:
        self._stages: list[dict[str, Any]] = []

    @property
    def stages(self) -> list[dict[str, Any]]:
        return list(self._stages)

    def match(self, query: Mapping[str, Any]) -> Pipeline:
        if query:
            self._stages.append({"$match": dict(query)})
        return self

    def lookup(
        self, from_collection: str, local_field: str, foreign_field: str, as_field: str
    ) -> Pipeline:
        self._stages.append(
            {
                "$lookup": {
                    "from": from_collection,
                    "localField": local_field,
                    "foreignField": foreign_field,
                    "as": as_field,
                }
            }
        )
        return self

    def project(self, includes: Iterable[str] = (), excludes: Iterable[str] = ()) -> Pipeline:
        projection: dict[str, int] = {path: 1 for path in includes}
        projection.update({path: 0 for path in excludes})
        if projection:
            self._stages.append({"$project": projection})
        return self

    def sort(self, sorts: Iterable[Sort]) -> Pipeline:
        document = translate_sort(sorts)
        if document:
            self._stages.append({"$sort": document})
        return self

    def skip(self, count: int | None) -> Pipeline:
        if count:
            self._stages.append({"$skip": count})
        return self

    def limit(self, count: int | None) -> Pipeline:
        if count:
            self._stages.append({"$limit": count})
        return self
