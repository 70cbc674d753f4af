"""Sort specifications."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

TEXT_SCORE = {"$meta": "textScore"}


@dataclass(frozen=True)
class Sort:
    """One sort key: 1, -1 or a ``$meta`` marker."""

    field: str
    order: Any = 1

    @property
    def is_meta(self) -> bool:
        return isinstance(self.order, dict) and set(self.order) == {"$meta"}


def ascending(field: str) -> Sort:
    return Sort(field, 1)


def descending(field: str) -> Sort:
    return Sort(field, -1)


def text_score(field: str = "score") -> Sort:
    """Sort by full-text relevance; *field* is the projected score field."""
    return Sort(field, dict(TEXT_SCORE))


def natural_ascending() -> Sort:
    return Sort("$natural", 1)


def natural_descending() -> Sort:
    return Sort("$natural", -1)
