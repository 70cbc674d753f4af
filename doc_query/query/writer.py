"""DocumentWriter - merges filter fragments into one query document."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any

_ACCUMULATING = "$and"
_LOGICAL = frozenset({"$or", "$nor"})


def is_operator_document(value: Any) -> bool:
    """True for ``{"$op": ...}`` documents (as opposed to embedded values)."""
    return isinstance(value, Mapping) and bool(value) and all(
        isinstance(k, str) and k.startswith("$") for k in value
    )


class DocumentWriter:
    """Accumulates ``field -> operand`` fragments.

    Merge rules for a field that is already present:

    - operator documents on the same field merge; the same operator is
      last-write-wins;
    - a plain value meeting an operator document becomes ``$eq``;
    - two plain values: last write wins;
    - ``$and`` clauses accumulate, and a repeated ``$or``/``$nor`` is
      moved into ``$and`` so both stay in effect.

    The seed document is copied, never modified.
    """

    def __init__(self, seed: Mapping[str, Any] | None = None) -> None:
        self._document: dict[str, Any] = copy.deepcopy(dict(seed)) if seed else {}

    @property
    def document(self) -> dict[str, Any]:
        return self._document

    def write(self, field: str, operand: Any) -> None:
        document = self._document

        if field == _ACCUMULATING:
            document.setdefault(_ACCUMULATING, []).extend(operand)
            return
        if field in _LOGICAL and field in document:
            document.setdefault(_ACCUMULATING, []).append({field: operand})
            return
        if field not in document:
            document[field] = operand
            return

        existing = document[field]
        existing_ops = is_operator_document(existing)
        new_ops = is_operator_document(operand)
        if existing_ops and new_ops:
            document[field] = {**existing, **operand}
        elif existing_ops:
            document[field] = {**existing, "$eq": operand}
        elif new_ops:
            document[field] = {"$eq": existing, **operand}
        else:
            document[field] = operand

    def merge(self, fragment: Mapping[str, Any]) -> None:
        """Write every entry of a root-level fragment."""
        for field, operand in fragment.items():
            self.write(field, operand)
