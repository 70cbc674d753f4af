"""Enumerations shared by the mapping and query layers."""

from __future__ import annotations

import re
from enum import Enum

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


class NamingStrategy(Enum):
    """Strategies for deriving collection and field names."""

    IDENTITY = "identity"
    LOWER_CASE = "lower_case"
    SNAKE_CASE = "snake_case"
    CAMEL_CASE = "camel_case"
    KEBAB_CASE = "kebab_case"

    def apply(self, name: str) -> str:
        if self is NamingStrategy.IDENTITY:
            return name
        if self is NamingStrategy.LOWER_CASE:
            return name.lower()
        words = [w for w in re.split(r"[_\-]+", _CAMEL_BOUNDARY.sub("_", name)) if w]
        if self is NamingStrategy.SNAKE_CASE:
            return "_".join(w.lower() for w in words)
        if self is NamingStrategy.KEBAB_CASE:
            return "-".join(w.lower() for w in words)
        if not words:
            return name
        return words[0].lower() + "".join(w.capitalize() for w in words[1:])


class DiscriminatorStyle(Enum):
    """How a type's discriminator value is derived when none is declared."""

    CLASS_NAME = "class_name"
    LOWER_CLASS_NAME = "lower_class_name"
    SIMPLE_NAME = "simple_name"
    LOWER_SIMPLE_NAME = "lower_simple_name"


class UuidRepresentation(Enum):
    """Binary subtype used when writing UUID values."""

    STANDARD = 4
    PYTHON_LEGACY = 3


class DecodePolicy(Enum):
    """How reference pointers are handled while decoding a result set."""

    LAZY = "lazy"
    EAGER = "eager"


class CursorType(Enum):
    """Cursor types understood by the store (values match the driver flags)."""

    NON_TAILABLE = 0
    TAILABLE = 2
    TAILABLE_AWAIT = 34


class ReturnDocument(Enum):
    """Which version of a modified document find-and-modify returns."""

    BEFORE = "before"
    AFTER = "after"
