"""Protocol for the query engine consumed by the orchestrator.

The orchestrator only needs these operations; tests substitute fakes that
produce synthetic records without a database.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from gtgather.contracts import FieldType, QueryConfig, Variant
    from gtgather.core.codec import SerializedBuffer


@dataclass(frozen=True, slots=True)
class AttributeSpec:
    """Name and declared type of one array attribute."""

    name: str
    field_type: FieldType


@dataclass(frozen=True, slots=True)
class ArraySchema:
    """Attributes of an array, in declaration order."""

    array_name: str
    attributes: tuple[AttributeSpec, ...]

    @property
    def attribute_names(self) -> tuple[str, ...]:
        return tuple(a.name for a in self.attributes)

    def field_type(self, name: str) -> FieldType:
        for attribute in self.attributes:
            if attribute.name == name:
                return attribute.field_type
        raise KeyError(name)


@dataclass
class QueryStats:
    """Counters collected while querying, when requested."""

    intervals_queried: int = 0
    cells_scanned: int = 0
    variants_produced: int = 0


class QueryEngine(Protocol):
    """Operations the gather lifecycle needs from a query engine."""

    def get_array_schema(self) -> ArraySchema:
        """Resolve the schema of the configured array."""
        ...

    def do_query_bookkeeping(self, schema: ArraySchema, query_config: QueryConfig) -> None:
        """Validate and prepare ``query_config``; required before any query or codec call."""
        ...

    def query_column_interval(
        self,
        query_config: QueryConfig,
        interval_index: int,
        accumulator: list[Variant],
        stats: QueryStats | None = None,
    ) -> None:
        """Append the Variants of one configured interval to ``accumulator``."""
        ...

    def binary_serialize(self, variant: Variant, buffer: SerializedBuffer) -> int:
        """Append one encoded Variant to ``buffer``, returning bytes written."""
        ...

    def binary_deserialize(self, view: memoryview, offset: int) -> tuple[Variant, int]:
        """Decode one Variant at ``offset``, returning it and the next offset."""
        ...

    def close(self) -> None:
        """Release the array handle."""
        ...
