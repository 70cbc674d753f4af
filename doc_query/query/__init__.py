"""Query layer - filters, updates, options and the Query façade."""

from __future__ import annotations

from doc_query.query.cursor import MappedCursor
from doc_query.query.filters import (
    Filter,
    all_,
    and_,
    elem_match,
    eq,
    exists,
    expr,
    gt,
    gte,
    in_,
    lt,
    lte,
    mod,
    ne,
    nin,
    nor,
    or_,
    parse_condition,
    regex,
    size,
    text,
    type_,
    where,
)
from doc_query.query.options import (
    AggregationOptions,
    CountOptions,
    DeleteOptions,
    FindAndDeleteOptions,
    FindOptions,
    InsertOptions,
    ModifyOptions,
    UpdateOptions,
)
from doc_query.query.pipeline import Pipeline
from doc_query.query.query import Query
from doc_query.query.sort import Sort, ascending, descending, natural_ascending, text_score
from doc_query.query.updates import (
    Modify,
    Update,
    UpdateOperator,
    add_to_set,
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
from doc_query.query.writer import DocumentWriter

__all__ = [
    "Query",
    "MappedCursor",
    "DocumentWriter",
    "Pipeline",
    # Filters
    "Filter",
    "eq",
    "ne",
    "gt",
    "gte",
    "lt",
    "lte",
    "in_",
    "nin",
    "all_",
    "exists",
    "size",
    "type_",
    "mod",
    "regex",
    "elem_match",
    "text",
    "where",
    "expr",
    "and_",
    "or_",
    "nor",
    "parse_condition",
    # Updates
    "Update",
    "Modify",
    "UpdateOperator",
    "set_",
    "set_on_insert",
    "unset",
    "inc",
    "dec",
    "mul",
    "max_",
    "min_",
    "rename",
    "push",
    "add_to_set",
    "pop",
    "pull",
    "pull_all",
    "current_date",
    # Sort
    "Sort",
    "ascending",
    "descending",
    "natural_ascending",
    "text_score",
    # Options
    "FindOptions",
    "AggregationOptions",
    "CountOptions",
    "DeleteOptions",
    "FindAndDeleteOptions",
    "UpdateOptions",
    "ModifyOptions",
    "InsertOptions",
]
