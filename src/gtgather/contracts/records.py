"""Variant records produced by the query engine.

A Variant is the unit that crosses the gather: each participant encodes
its Variants, the coordinator decodes them back in rank order.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

FieldValue = None | int | float | str | tuple[int, ...] | tuple[float, ...] | tuple[str, ...]
"""Value of one attribute on one call. Lists are carried as tuples."""


@dataclass(frozen=True, slots=True)
class VariantCall:
    """One sample's call inside a variant interval.

    Attributes:
        row_idx: Sample row in the array
        column_begin: First genomic column covered by the call
        column_end: Last genomic column covered by the call (inclusive)
        fields: Queried attribute values keyed by attribute name
    """

    row_idx: int
    column_begin: int
    column_end: int
    fields: Mapping[str, FieldValue] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class Variant:
    """A variant interval and the calls that start at it."""

    column_begin: int
    column_end: int
    calls: tuple[VariantCall, ...] = ()

    @property
    def num_calls(self) -> int:
        return len(self.calls)
