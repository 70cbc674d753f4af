"""Unit tests for the exception hierarchy."""

from __future__ import annotations

import pytest

from doc_query.core.exceptions import (
    AdapterError,
    ConnectionError,  # noqa: A004
    DecodeError,
    DiscriminatorError,
    DocQueryError,
    InvalidReferenceError,
    LegacyOperationError,
    MalformedFilterError,
    MappingError,
    ModelValidationError,
    PathValidationError,
    QueryError,
    UnmappedTypeError,
    UnsupportedShapeError,
)


class Sample:
    pass


class TestHierarchy:
    @pytest.mark.parametrize(
        ("error", "base"),
        [
            (ModelValidationError(Sample, "x"), MappingError),
            (UnmappedTypeError(Sample), MappingError),
            (DiscriminatorError(Sample, "x"), MappingError),
            (DecodeError(int, "x"), MappingError),
            (InvalidReferenceError(Sample, "p", "x"), MappingError),
            (MalformedFilterError("x"), QueryError),
            (PathValidationError("x", Sample), QueryError),
            (UnsupportedShapeError("x"), QueryError),
            (ConnectionError("x"), AdapterError),
            (LegacyOperationError("x"), DocQueryError),
        ],
    )
    def test_bases(self, error: Exception, base: type) -> None:
        assert isinstance(error, base)
        assert isinstance(error, DocQueryError)


class TestMessages:
    def test_model_validation(self) -> None:
        error = ModelValidationError(Sample, "no id")
        assert str(error) == "Invalid mapping for Sample: no id"
        assert error.entity_type is Sample

    def test_discriminator(self) -> None:
        assert "discriminator 'Cat'" in str(DiscriminatorError(Sample, "Cat"))
        assert "has no discriminator" in str(DiscriminatorError(Sample, None))

    def test_decode(self) -> None:
        assert str(DecodeError(int, "x", "not a number")) == (
            "Cannot decode 'x' as int: not a number"
        )

    def test_malformed_filter(self) -> None:
        assert str(MalformedFilterError("a b c")) == "'a b c' is not a legal filter condition"
        assert str(MalformedFilterError("a ~", "unknown operator '~'")).endswith(
            ": unknown operator '~'"
        )

    def test_legacy(self) -> None:
        error = LegacyOperationError("Query.limit()", "FindOptions.limit")
        assert str(error) == "Query.limit() is no longer supported; use FindOptions.limit instead"
        assert str(LegacyOperationError("x")) == "x is no longer supported"
