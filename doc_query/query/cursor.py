"""Cursors that decode raw documents as they are read."""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class MappedCursor(Generic[T]):
    """Wraps a driver cursor and decodes each document on the fly.

    Usable as an iterator and as a context manager; leaving the ``with``
    block closes the underlying cursor.
    """

    def __init__(self, cursor: Any, decode: Callable[[Mapping[str, Any]], T]) -> None:
        self._cursor = cursor
        self._decode = decode

    def __iter__(self) -> Iterator[T]:
        return self

    def __next__(self) -> T:
        return self._decode(next(self._cursor))

    def try_next(self) -> T | None:
        """Next entity, or None when the cursor is exhausted."""
        try:
            return next(self)
        except StopIteration:
            return None

    def to_list(self) -> list[T]:
        try:
            return list(self)
        finally:
            self.close()

    def close(self) -> None:
        close = getattr(self._cursor, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> MappedCursor[T]:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
