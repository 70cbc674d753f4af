"""Entity model registry.

An arena of model slots keyed by type. A slot is allocated before a type's
properties are built, so nested types that point back at it receive a
handle to the (still empty) slot instead of recursing forever. Slots are
filled once and never change afterwards.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from abc import ABC
from typing import TYPE_CHECKING, Any, Generic, Protocol

from pydantic import BaseModel

from doc_query.core.exceptions import MappingError, ModelValidationError, UnmappedTypeError
from doc_query.mapping.builder import EntityDescription, EntityModelBuilder, describe
from doc_query.mapping.model import EntityModel, ModelHandle
from doc_query.mapping.types import SCALAR_TYPES, is_pydantic_model

if TYPE_CHECKING:
    from doc_query.mapping.mapper import Mapper

logger = logging.getLogger(__name__)

_NEUTRAL_BASES: frozenset[Any] = frozenset({object, ABC, Generic, Protocol, BaseModel})


def _related(a: type, b: type) -> bool:
    """True when *a* and *b* can be values of one polymorphic declared type."""
    if issubclass(a, b) or issubclass(b, a):
        return True
    return bool((set(a.__mro__) & set(b.__mro__)) - _NEUTRAL_BASES)


class ModelRegistry:
    """Process-lifetime cache of entity models.

    Completed models are read without locking. Construction runs under a
    re-entrant lock, so concurrent first use of a type is serialized and
    every caller observes the same model.
    """

    def __init__(self, mapper: Mapper) -> None:
        self._mapper = mapper
        self._lock = threading.RLock()
        self._descriptions: dict[type, EntityDescription] = {}
        self._index: dict[type, int] = {}
        self._slots: list[EntityModel | None] = []
        self._pending: list[type] = []

    # --- descriptions ---

    def register(self, description: EntityDescription) -> None:
        """Record how a type is mapped. Must happen before its first use."""
        with self._lock:
            target = description.type
            if target in self._index and self._descriptions.get(target) != description:
                raise ModelValidationError(
                    target, "the type is already mapped; register its description before first use"
                )
            self._descriptions[target] = description

    def description_for(self, cls: type) -> EntityDescription | None:
        return self._descriptions.get(cls)

    def described_bases(self, cls: type) -> list[EntityDescription]:
        """Descriptions of the base classes of *cls*, nearest first."""
        return [self._descriptions[base] for base in cls.__mro__[1:] if base in self._descriptions]

    def is_mappable(self, cls: Any) -> bool:
        if not isinstance(cls, type) or issubclass(cls, SCALAR_TYPES):
            return False
        if cls in self._index or cls in self._descriptions:
            return True
        if self.described_bases(cls):
            return True
        if self._mapper.options.auto_embed:
            return dataclasses.is_dataclass(cls) or is_pydantic_model(cls)
        return False

    # --- models ---

    def get(self, cls: type) -> EntityModel:
        """Model for *cls*, building it on first use."""
        return self.handle(cls).model

    def handle(self, cls: type) -> ModelHandle:
        """Handle to the slot of *cls*, allocating and building it if needed."""
        index = self._index.get(cls)
        if index is not None and self._slots[index] is not None:
            return ModelHandle(self, index, cls)
        if not self.is_mappable(cls):
            raise UnmappedTypeError(cls)

        with self._lock:
            index = self._index.get(cls)
            if index is not None:
                # Either completed meanwhile, or a placeholder further up this stack.
                return ModelHandle(self, index, cls)

            index = len(self._slots)
            self._slots.append(None)
            self._index[cls] = index
            outermost = not self._pending
            self._pending.append(cls)
            try:
                self._slots[index] = self._build(cls)
            except BaseException:
                if outermost:
                    self._rollback()
                raise
            finally:
                if outermost:
                    self._pending.clear()
            return ModelHandle(self, index, cls)

    def slot(self, index: int) -> EntityModel:
        model = self._slots[index]
        if model is None:
            raise MappingError(f"Model slot {index} is still under construction")
        return model

    def is_ready(self, index: int) -> bool:
        return self._slots[index] is not None

    def models(self) -> list[EntityModel]:
        """Completed models in registration order."""
        return [m for m in list(self._slots) if m is not None]

    def _build(self, cls: type) -> EntityModel:
        description = self._descriptions.get(cls) or self.implied_description(cls)
        builder = EntityModelBuilder(cls, description, self.described_bases)
        self._mapper.conventions.apply(self._mapper, builder)
        model = builder.build(self._resolve_nested)
        self._check_discriminator(model)
        logger.debug(
            "Mapped %s (collection=%s, discriminator=%s)",
            cls.__qualname__,
            model.collection_name,
            model.discriminator,
        )
        return model

    def implied_description(self, cls: type, embedded: bool = True) -> EntityDescription:
        """Description of an undeclared type; the nearest described base decides its kind."""
        bases = self.described_bases(cls)
        return describe(cls, embedded=bases[0].embedded if bases else embedded)

    def _resolve_nested(self, cls: type) -> ModelHandle | None:
        return self.handle(cls) if self.is_mappable(cls) else None

    def _check_discriminator(self, model: EntityModel) -> None:
        for other in self.models():
            if other.type is model.type or other.discriminator != model.discriminator:
                continue
            if _related(other.type, model.type):
                raise ModelValidationError(
                    model.type,
                    f"discriminator '{model.discriminator}' is already used by "
                    f"{other.type.__qualname__}",
                )

    def _rollback(self) -> None:
        for cls in self._pending:
            index = self._index.pop(cls, None)
            if index is not None:
                self._slots[index] = None
