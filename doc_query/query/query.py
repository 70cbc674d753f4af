"""Query façade.

A Query targets one entity type (and its collection), collects filters and
compiles them into a fresh query document on every call. Reads run as a
plain ``find`` or, when the entity has eagerly fetched references and
``fetch_references_via_aggregation`` is enabled, as an aggregation that
joins the referenced documents with ``$lookup``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from typing import TYPE_CHECKING, Any, Generic, NoReturn, TypeVar

from doc_query.core.enums import CursorType, DecodePolicy
from doc_query.core.exceptions import LegacyOperationError, MalformedFilterError, QueryError
from doc_query.mapping.model import ID_KEY, EntityModel
from doc_query.mapping.references import DecodeContext, LazyReference, joined_field
from doc_query.mapping.types import ShapeKind
from doc_query.query.cursor import MappedCursor
from doc_query.query.filters import Filter, parse_condition, text
from doc_query.query.options import (
    AggregationOptions,
    CountOptions,
    DeleteOptions,
    FindAndDeleteOptions,
    FindOptions,
)
from doc_query.query.paths import resolve_path
from doc_query.query.pipeline import Pipeline, translate_sort
from doc_query.query.sort import Sort
from doc_query.query.updates import Modify, Update
from doc_query.query.writer import DocumentWriter

if TYPE_CHECKING:
    from doc_query.core.datastore import Datastore
    from doc_query.mapping.mapper import Mapper

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Query(Generic[T]):
    """Filters and reads entities of one type.

    Args:
        datastore: The datastore executing the query.
        entity_type: Type of the entities returned.
        collection_name: Overrides the mapped collection of *entity_type*.
        seed: Raw query document the filters are merged into.
    """

    def __init__(
        self,
        datastore: Datastore,
        entity_type: type[T],
        collection_name: str | None = None,
        seed: Mapping[str, Any] | None = None,
    ) -> None:
        self._datastore = datastore
        self._mapper = datastore.mapper
        self._type = entity_type
        self._seed = dict(seed) if seed else None
        self._filters: list[Filter] = []
        self._validating = True
        self._policy = DecodePolicy.EAGER
        if collection_name is not None:
            self._collection_name: str | None = collection_name
        elif self._mapper.is_mappable(entity_type):
            self._collection_name = self._mapper.get_entity_model(entity_type).collection_name
        else:
            self._collection_name = None

    # --- properties ---

    @property
    def mapper(self) -> Mapper:
        return self._mapper

    @property
    def entity_type(self) -> type[T]:
        return self._type

    @property
    def validating(self) -> bool:
        return self._validating

    @property
    def collection_name(self) -> str | None:
        return self._collection_name

    @property
    def collection(self) -> Any:
        if self._collection_name is None:
            raise QueryError(f"{self._type.__qualname__} is not mapped to a collection")
        return self._datastore.get_collection(self._collection_name)

    def _entity_model(self) -> EntityModel | None:
        if not self._mapper.is_mappable(self._type):
            return None
        return self._mapper.get_entity_model(self._type)

    # --- building ---

    def filter(self, *filters: Any) -> Query[T]:
        """Add filters, or one textual condition and its value.

        Examples::

            query.filter(eq("name", "Ann"), gt("age", 30))
            query.filter("age >=", 30)
        """
        if filters and isinstance(filters[0], str):
            if len(filters) != 2:
                raise MalformedFilterError(filters[0], "expected a condition and one value")
            filters = (parse_condition(filters[0], filters[1]),)
        for item in filters:
            self._filters.append(item.bind(self._type, self._validating))
        return self

    def search(self, search_text: str, language: str | None = None) -> Query[T]:
        """Add a ``$text`` filter."""
        return self.filter(text(search_text, language))

    def enable_validation(self) -> Query[T]:
        """Validate field paths of filters added from now on (the default)."""
        self._validating = True
        return self

    def disable_validation(self) -> Query[T]:
        """Pass unknown field paths through for filters added from now on."""
        self._validating = False
        return self

    def reference_policy(self, policy: DecodePolicy) -> Query[T]:
        """Choose whether references are fetched while reading (EAGER) or left lazy."""
        self._policy = policy
        return self

    def to_document(self) -> dict[str, Any]:
        """Compile the filters into a query document."""
        writer = DocumentWriter(self._seed)
        for item in self._filters:
            item.encode(self._mapper, writer)
        query = writer.document
        model = self._entity_model()
        if model is not None:
            self._mapper.update_query_with_discriminators(model, query)
        return query

    # --- reads ---

    def iterator(self, options: FindOptions | None = None) -> MappedCursor[T]:
        """Run the query and return a cursor over decoded entities."""
        options = options or FindOptions()
        model = self._entity_model()
        if (
            model is not None
            and self._policy is DecodePolicy.EAGER
            and self._mapper.options.fetch_references_via_aggregation
            and model.has_eager_references()
        ):
            return self._aggregate(model, options)
        return MappedCursor(self._find(options), self.decode)

    def __iter__(self) -> Iterator[T]:
        return self.iterator()

    def first(self, options: FindOptions | None = None) -> T | None:
        options = (options or FindOptions()).model_copy(update={"limit": 1})
        with self.iterator(options) as cursor:
            return cursor.try_next()

    def count(self, options: CountOptions | None = None) -> int:
        options = options or CountOptions()
        collection = options.prepare(self.collection)
        count: int = collection.count_documents(self.to_document(), **options.count_kwargs())
        return count

    def keys(self, options: FindOptions | None = None) -> MappedCursor[LazyReference]:
        """Ids of the matching documents as LazyReferences."""
        options = options or FindOptions()
        options = options.model_copy(update={"includes": [*options.includes, ID_KEY]})
        model = self._entity_model()
        id_info = model.id_property.type_info if model is not None and model.id_property else None
        context = DecodeContext(DecodePolicy.LAZY, self._datastore.load_document)

        def decode_key(document: Mapping[str, Any]) -> LazyReference:
            wire_id = document.get(ID_KEY)
            entity_id = (
                self._mapper.codec.decode_value(wire_id, id_info) if id_info is not None else wire_id
            )
            return self._mapper.references.lazy(
                self._type, entity_id, wire_id, self._collection_name, context
            )

        return MappedCursor(self._find(options), decode_key)

    def explain(
        self, options: FindOptions | None = None, verbosity: str | None = None
    ) -> dict[str, Any]:
        """Run the ``explain`` command for this query's ``find``."""
        command: dict[str, Any] = {
            "explain": {"find": self._collection_name, "filter": self.to_document()}
        }
        if verbosity is not None:
            command["verbosity"] = verbosity
        session = options.session if options is not None else None
        return dict(self._datastore.run_command(command, session=session))

    # --- writes ---

    def delete(self, options: DeleteOptions | None = None) -> Any:
        """Delete the first match, or every match with ``DeleteOptions(multi=True)``."""
        options = options or DeleteOptions()
        collection = options.prepare(self.collection)
        if options.multi:
            return collection.delete_many(self.to_document(), **options.delete_kwargs())
        return collection.delete_one(self.to_document(), **options.delete_kwargs())

    def find_and_delete(self, options: FindAndDeleteOptions | None = None) -> T | None:
        options = options or FindAndDeleteOptions()
        collection = options.prepare(self.collection)
        document = collection.find_one_and_delete(
            self.to_document(),
            projection=self.translate_projection(options.includes, options.excludes),
            sort=self.translate_sort(options.sort),
            **options.find_and_delete_kwargs(),
        )
        return None if document is None else self.decode(document)

    def update(self, *operators: Any) -> Update:
        """Prepare an update of the matching documents; call ``execute()`` to run it."""
        return Update(self, operators)

    def modify(self, *operators: Any) -> Modify:
        """Prepare a find-and-modify of the first match; call ``execute()`` to run it."""
        return Modify(self, operators)

    # --- execution ---

    def decode(self, document: Mapping[str, Any]) -> T:
        context = DecodeContext(self._policy, self._datastore.load_document)
        return self._mapper.from_document(self._type, document, context=context)

    def _translate(self, path: str) -> str:
        if path.startswith("$"):
            return path
        return resolve_path(self._mapper, self._type, path, self._validating).path

    def translate_projection(
        self, includes: list[str], excludes: list[str]
    ) -> dict[str, int] | None:
        projection = {self._translate(p): 1 for p in includes}
        projection.update({self._translate(p): 0 for p in excludes})
        return projection or None

    def translate_sort(self, sorts: list[Sort]) -> list[tuple[str, Any]] | None:
        document = translate_sort(Sort(self._translate(s.field), s.order) for s in sorts)
        return list(document.items()) or None

    def _find(self, options: FindOptions) -> Any:
        query = self.to_document()
        logger.debug("Running query(%s): %s", self._collection_name, query)
        if options.cursor_type is not CursorType.NON_TAILABLE and options.sort:
            logger.warning("Sorting on tail is not allowed.")

        collection = options.prepare(self.collection)
        kwargs = options.find_kwargs()
        projection = self.translate_projection(options.includes, options.excludes)
        if projection is not None:
            kwargs["projection"] = projection
        sort = self.translate_sort(options.sort)
        if sort is not None:
            kwargs["sort"] = sort

        old_profile = None
        if options.log_query:
            old_profile = self._datastore.run_command({"profile": 2, "slowms": 0})
        try:
            cursor = collection.find(query, **kwargs)
            if options.max_await_time is not None:
                millis = int(options.max_await_time.total_seconds() * 1000)
                cursor = cursor.max_await_time_ms(millis)
            return cursor
        finally:
            if old_profile is not None:
                self._datastore.run_command(
                    {
                        "profile": old_profile.get("was"),
                        "slowms": old_profile.get("slowms"),
                        "sampleRate": old_profile.get("sampleRate"),
                    }
                )

    def _aggregate(self, model: EntityModel, options: FindOptions) -> MappedCursor[T]:
        pipeline = Pipeline().match(self.to_document())
        joined: list[str] = []
        for prop in model.references():
            if prop.reference is None or prop.reference.lazy:
                continue
            if prop.type_info.kind is ShapeKind.MAP:
                # Map values cannot be joined; they are fetched while decoding.
                continue
            target = self._mapper.get_entity_model(prop.type_info.entity_type())
            local = prop.mapped_name if prop.reference.id_only else f"{prop.mapped_name}.$id"
            pipeline.lookup(target.collection_name, local, ID_KEY, joined_field(prop))
            joined.append(joined_field(prop))
        includes = [self._translate(p) for p in options.includes]
        if includes:
            # inclusive projections keep the joined documents
            includes.extend(joined)
        pipeline.project(includes, [self._translate(p) for p in options.excludes])
        pipeline.sort(Sort(self._translate(s.field), s.order) for s in options.sort)
        pipeline.skip(options.skip).limit(options.limit)

        aggregation = AggregationOptions.from_find(options)
        collection = aggregation.prepare(self.collection)
        logger.debug("Running pipeline(%s): %s", self._collection_name, pipeline.stages)
        cursor = collection.aggregate(pipeline.stages, **aggregation.aggregate_kwargs())

        def decode_joined(document: Mapping[str, Any]) -> T:
            return self.decode(self._mapper.references.merge_joined(model, document))

        return MappedCursor(cursor, decode_joined)

    # --- legacy ---

    def order(self, *args: Any) -> NoReturn:
        raise LegacyOperationError("Query.order()", "FindOptions.sort")

    def limit(self, *args: Any) -> NoReturn:
        raise LegacyOperationError("Query.limit()", "FindOptions.limit")

    def offset(self, *args: Any) -> NoReturn:
        raise LegacyOperationError("Query.offset()", "FindOptions.skip")

    def batch_size(self, *args: Any) -> NoReturn:
        raise LegacyOperationError("Query.batch_size()", "FindOptions.batch_size")

    def max_time(self, *args: Any) -> NoReturn:
        raise LegacyOperationError("Query.max_time()", "FindOptions.max_time")

    def project(self, *args: Any) -> NoReturn:
        raise LegacyOperationError("Query.project()", "FindOptions.include/exclude")

    def retrieve_known_fields(self, *args: Any) -> NoReturn:
        raise LegacyOperationError("Query.retrieve_known_fields()", "FindOptions.include")

    # --- identity ---

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Query):
            return NotImplemented
        return (self._type, self._validating, self._collection_name) == (
            other._type,
            other._validating,
            other._collection_name,
        )

    def __hash__(self) -> int:
        return hash((self._type, self._validating, self._collection_name))

    def __repr__(self) -> str:
        return f"Query(type={self._type.__name__}, filters={[str(f) for f in self._filters]})"
