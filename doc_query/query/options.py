"""Operation options.

Every options model carries the session and the read/write concerns of
the call. ``prepare(collection)`` binds the concerns to the collection
with ``with_options``; the ``*_kwargs()`` methods return the remaining
settings as driver keyword arguments. Field paths in sorts and
projections are translated by the query, not here.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any

from pydantic import BaseModel, ConfigDict
from pymongo.read_concern import ReadConcern
from pymongo.write_concern import WriteConcern

from doc_query.core.enums import CursorType, ReturnDocument
from doc_query.query.sort import Sort


def _millis(value: timedelta | None) -> int | None:
    return None if value is None else int(value.total_seconds() * 1000)


def _compact(**kwargs: Any) -> dict[str, Any]:
    return {k: v for k, v in kwargs.items() if v is not None}


class OperationOptions(BaseModel):
    """Settings shared by all operations."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    session: Any = None
    read_concern: ReadConcern | None = None
    read_preference: Any = None
    write_concern: WriteConcern | None = None

    def prepare(self, collection: Any) -> Any:
        """Return *collection* with this call's concerns applied."""
        overrides = _compact(
            read_concern=self.read_concern,
            read_preference=self.read_preference,
            write_concern=self.write_concern,
        )
        if not overrides:
            return collection
        return collection.with_options(**overrides)


class FindOptions(OperationOptions):
    """Options for ``Query.iterator()`` and friends."""

    allow_disk_use: bool | None = None
    batch_size: int | None = None
    collation: dict[str, Any] | None = None
    comment: str | None = None
    cursor_type: CursorType = CursorType.NON_TAILABLE
    hint: Any = None
    limit: int | None = None
    skip: int | None = None
    max_time: timedelta | None = None
    max_await_time: timedelta | None = None
    no_cursor_timeout: bool = False
    partial: bool = False
    return_key: bool = False
    show_record_id: bool = False
    sort: list[Sort] = []
    includes: list[str] = []
    excludes: list[str] = []
    log_query: bool = False

    def include(self, *fields: str) -> FindOptions:
        self.includes = [*self.includes, *fields]
        return self

    def exclude(self, *fields: str) -> FindOptions:
        self.excludes = [*self.excludes, *fields]
        return self

    def sort_by(self, *sorts: Sort) -> FindOptions:
        self.sort = [*self.sort, *sorts]
        return self

    def find_kwargs(self) -> dict[str, Any]:
        """Driver arguments for ``find`` other than filter, sort and projection."""
        kwargs = _compact(
            allow_disk_use=self.allow_disk_use,
            batch_size=self.batch_size,
            collation=self.collation,
            comment=self.comment,
            hint=self.hint,
            limit=self.limit,
            skip=self.skip,
            max_time_ms=_millis(self.max_time),
            session=self.session,
        )
        if self.cursor_type is not CursorType.NON_TAILABLE:
            kwargs["cursor_type"] = self.cursor_type.value
        if self.no_cursor_timeout:
            kwargs["no_cursor_timeout"] = True
        if self.partial:
            kwargs["allow_partial_results"] = True
        if self.return_key:
            kwargs["return_key"] = True
        if self.show_record_id:
            kwargs["show_record_id"] = True
        return kwargs


class AggregationOptions(OperationOptions):
    """Options for aggregation pipelines."""

    allow_disk_use: bool | None = None
    batch_size: int | None = None
    bypass_document_validation: bool | None = None
    collation: dict[str, Any] | None = None
    hint: Any = None
    comment: str | None = None
    max_time: timedelta | None = None
    max_await_time: timedelta | None = None

    @classmethod
    def from_find(cls, options: FindOptions) -> AggregationOptions:
        """Carry the applicable settings of a find over to its pipeline rewrite."""
        return cls(
            session=options.session,
            read_concern=options.read_concern,
            read_preference=options.read_preference,
            write_concern=options.write_concern,
            allow_disk_use=options.allow_disk_use,
            batch_size=options.batch_size,
            collation=options.collation,
            hint=options.hint,
            comment=options.comment,
            max_time=options.max_time,
            max_await_time=options.max_await_time,
        )

    def aggregate_kwargs(self) -> dict[str, Any]:
        return _compact(
            allowDiskUse=self.allow_disk_use,
            batchSize=self.batch_size,
            bypassDocumentValidation=self.bypass_document_validation,
            collation=self.collation,
            hint=self.hint,
            comment=self.comment,
            maxTimeMS=_millis(self.max_time),
            maxAwaitTimeMS=_millis(self.max_await_time),
            session=self.session,
        )


class CountOptions(OperationOptions):
    collation: dict[str, Any] | None = None
    hint: Any = None
    limit: int | None = None
    skip: int | None = None
    max_time: timedelta | None = None
    comment: str | None = None

    def count_kwargs(self) -> dict[str, Any]:
        return _compact(
            collation=self.collation,
            hint=self.hint,
            limit=self.limit,
            skip=self.skip,
            maxTimeMS=_millis(self.max_time),
            comment=self.comment,
            session=self.session,
        )


class DeleteOptions(OperationOptions):
    """Deletes the first match unless ``multi`` is set."""

    multi: bool = False
    collation: dict[str, Any] | None = None
    hint: Any = None
    comment: str | None = None

    def delete_kwargs(self) -> dict[str, Any]:
        return _compact(
            collation=self.collation,
            hint=self.hint,
            comment=self.comment,
            session=self.session,
        )


class FindAndDeleteOptions(OperationOptions):
    sort: list[Sort] = []
    includes: list[str] = []
    excludes: list[str] = []
    collation: dict[str, Any] | None = None
    hint: Any = None
    max_time: timedelta | None = None
    comment: str | None = None

    def find_and_delete_kwargs(self) -> dict[str, Any]:
        return _compact(
            collation=self.collation,
            hint=self.hint,
            maxTimeMS=_millis(self.max_time),
            comment=self.comment,
            session=self.session,
        )


class UpdateOptions(OperationOptions):
    """Updates the first match unless ``multi`` is set."""

    multi: bool = False
    upsert: bool = False
    array_filters: list[dict[str, Any]] | None = None
    bypass_document_validation: bool | None = None
    collation: dict[str, Any] | None = None
    hint: Any = None
    comment: str | None = None

    def update_kwargs(self) -> dict[str, Any]:
        kwargs = _compact(
            array_filters=self.array_filters,
            bypass_document_validation=self.bypass_document_validation,
            collation=self.collation,
            hint=self.hint,
            comment=self.comment,
            session=self.session,
        )
        if self.upsert:
            kwargs["upsert"] = True
        return kwargs


class ModifyOptions(OperationOptions):
    """Find-and-modify; returns the updated document unless told otherwise."""

    return_document: ReturnDocument = ReturnDocument.AFTER
    upsert: bool = False
    sort: list[Sort] = []
    includes: list[str] = []
    excludes: list[str] = []
    array_filters: list[dict[str, Any]] | None = None
    bypass_document_validation: bool | None = None
    collation: dict[str, Any] | None = None
    hint: Any = None
    max_time: timedelta | None = None
    comment: str | None = None

    def modify_kwargs(self) -> dict[str, Any]:
        kwargs = _compact(
            array_filters=self.array_filters,
            bypass_document_validation=self.bypass_document_validation,
            collation=self.collation,
            hint=self.hint,
            maxTimeMS=_millis(self.max_time),
            comment=self.comment,
            session=self.session,
        )
        if self.upsert:
            kwargs["upsert"] = True
        return kwargs


class InsertOptions(OperationOptions):
    bypass_document_validation: bool | None = None
    comment: str | None = None

    def insert_kwargs(self) -> dict[str, Any]:
        return _compact(
            bypass_document_validation=self.bypass_document_validation,
            comment=self.comment,
            session=self.session,
        )
