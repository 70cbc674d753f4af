"""DocQuery exception hierarchy.

All exceptions raised by the mapping and query core derive from
DocQueryError. Errors raised by the document store itself propagate
unchanged.
"""

from __future__ import annotations

from typing import Any


def _type_name(cls: Any) -> str:
    return getattr(cls, "__qualname__", repr(cls))


class DocQueryError(Exception):
    """Base exception for all DocQuery errors."""


# --- Mapping ---


class MappingError(DocQueryError):
    """Base for mapping errors."""


class ModelValidationError(MappingError):
    """Raised when a type cannot be turned into a valid entity model."""

    def __init__(self, entity_type: type, detail: str) -> None:
        self.entity_type = entity_type
        self.detail = detail
        super().__init__(f"Invalid mapping for {_type_name(entity_type)}: {detail}")


class UnmappedTypeError(MappingError):
    """Raised when a type is used as an entity but has no mapping."""

    def __init__(self, entity_type: Any) -> None:
        self.entity_type = entity_type
        super().__init__(f"Type {_type_name(entity_type)} is not mapped")


class DiscriminatorError(MappingError):
    """Raised when a wire discriminator matches no mapped subtype."""

    def __init__(self, static_type: Any, value: Any) -> None:
        self.static_type = static_type
        self.value = value
        if value is None:
            message = (
                f"Cannot decode {_type_name(static_type)}: the document has no "
                "discriminator and the type cannot be instantiated directly"
            )
        else:
            message = (
                f"No mapped subtype of {_type_name(static_type)} has the "
                f"discriminator '{value}'"
            )
        super().__init__(message)


class DecodeError(MappingError):
    """Raised when a wire value cannot be converted to the declared type."""

    def __init__(self, target_type: Any, value: Any, detail: str | None = None) -> None:
        self.target_type = target_type
        self.value = value
        message = f"Cannot decode {value!r} as {_type_name(target_type)}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class InvalidReferenceError(MappingError):
    """Raised when a reference cannot be written or resolved."""

    def __init__(self, entity_type: Any, property_name: str, detail: str) -> None:
        self.entity_type = entity_type
        self.property_name = property_name
        super().__init__(
            f"Reference '{property_name}' to {_type_name(entity_type)} {detail}"
        )


# --- Query ---


class QueryError(DocQueryError):
    """Base for query compilation errors."""


class MalformedFilterError(QueryError):
    """Raised when a textual filter condition cannot be parsed."""

    def __init__(self, expression: str, detail: str | None = None) -> None:
        self.expression = expression
        message = f"'{expression}' is not a legal filter condition"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class PathValidationError(QueryError):
    """Raised when a field path does not resolve against the entity model."""

    def __init__(self, path: str, entity_type: Any) -> None:
        self.path = path
        self.entity_type = entity_type
        super().__init__(
            f"Could not resolve path '{path}' against {_type_name(entity_type)}"
        )


class UnsupportedShapeError(QueryError):
    """Raised for query constructs the compiler cannot translate."""


# --- Legacy ---


class LegacyOperationError(DocQueryError):
    """Raised by call paths that are intentionally no longer supported."""

    def __init__(self, operation: str, replacement: str | None = None) -> None:
        self.operation = operation
        self.replacement = replacement
        message = f"{operation} is no longer supported"
        if replacement:
            message = f"{message}; use {replacement} instead"
        super().__init__(message)


# --- Adapter ---


class AdapterError(DocQueryError):
    """Base for store adapter errors."""


class ConnectionError(AdapterError):  # noqa: A001
    """Raised on connection failures."""
