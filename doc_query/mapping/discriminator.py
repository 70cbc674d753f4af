"""Discriminator values and polymorphic type resolution."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from doc_query.core.enums import DiscriminatorStyle
from doc_query.core.exceptions import DiscriminatorError, UnmappedTypeError

if TYPE_CHECKING:
    from doc_query.mapping.model import EntityModel
    from doc_query.mapping.registry import ModelRegistry


def discriminator_value(style: DiscriminatorStyle, cls: type) -> str:
    """Derive the wire discriminator for *cls* under *style*."""
    if style is DiscriminatorStyle.CLASS_NAME:
        return f"{cls.__module__}.{cls.__qualname__}"
    if style is DiscriminatorStyle.LOWER_CLASS_NAME:
        return f"{cls.__module__}.{cls.__qualname__}".lower()
    if style is DiscriminatorStyle.SIMPLE_NAME:
        return cls.__name__
    return cls.__name__.lower()


def is_subtype(candidate: type, base: Any) -> bool:
    """Nominal subtype check that tolerates non-runtime protocols."""
    if base is None or base is object or candidate is base:
        return True
    if base in getattr(candidate, "__mro__", ()):
        return True
    try:
        return issubclass(candidate, base)
    except TypeError:
        return False


class DiscriminatorResolver:
    """Maps types to wire discriminators and back.

    Stateless apart from the model registry it reads. Lookups scan models
    in registration order, so resolution is deterministic.
    """

    def __init__(self, registry: ModelRegistry) -> None:
        self._registry = registry

    def discriminator_for(self, cls: type) -> str:
        """Wire discriminator of a mapped type.

        Raises:
            UnmappedTypeError: If *cls* cannot be mapped.
        """
        if not self._registry.is_mappable(cls):
            raise UnmappedTypeError(cls)
        return self._registry.get(cls).discriminator

    def resolve(self, static_type: Any, value: Any) -> type:
        """Concrete type for a discriminator read from a document.

        Args:
            static_type: The declared type of the value being decoded.
            value: The discriminator found in the document.

        Raises:
            DiscriminatorError: If no mapped subtype of *static_type* uses
                *value*.
        """
        if isinstance(static_type, type) and self._registry.is_mappable(static_type):
            model = self._registry.get(static_type)
            if model.discriminator == value:
                return static_type
        for model in self._registry.models():
            if model.discriminator == value and is_subtype(model.type, static_type):
                return model.type
        raise DiscriminatorError(static_type, value)

    def resolve_document(self, document: Mapping[str, Any]) -> type | None:
        """Mapped type named by any registered discriminator key in *document*.

        Models may choose their own discriminator key, so every mapped
        model's key is checked, in registration order.
        """
        for model in self._registry.models():
            key = model.discriminator_key
            if key in document and document[key] == model.discriminator:
                return model.type
        return None

    def subtypes(self, cls: type) -> list[EntityModel]:
        """Mapped proper subtypes of *cls* in registration order."""
        return [m for m in self._registry.models() if m.type is not cls and is_subtype(m.type, cls)]

    def is_polymorphic(self, cls: Any) -> bool:
        """True when values declared as *cls* need a discriminator to decode."""
        if not isinstance(cls, type) or not self._registry.is_mappable(cls):
            return True
        if self._registry.get(cls).abstract:
            return True
        return bool(self.subtypes(cls))

    def values_for(self, model: EntityModel) -> list[str]:
        """Discriminators of *model* and every mapped subtype."""
        values = [model.discriminator]
        for subtype in self.subtypes(model.type):
            if subtype.discriminator not in values:
                values.append(subtype.discriminator)
        return values
