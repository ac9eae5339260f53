"""Variant query processor over a workspace database.

Implements the QueryEngine protocol: schema lookup, query bookkeeping,
per-interval queries, and the record codec bound to the bookkept
attribute order.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from itertools import groupby
from pathlib import Path
from typing import Any

import structlog
from sqlalchemy import inspect, or_, select

from gtgather.contracts import (
    FieldType,
    FieldValue,
    QueryConfig,
    QueryConfigError,
    QueryEngineError,
    UnknownArrayError,
    Variant,
    VariantCall,
)
from gtgather.core.codec import SerializedBuffer, decode_variant, encode_variant
from gtgather.core.store.database import VariantWorkspace
from gtgather.core.store.protocols import ArraySchema, AttributeSpec, QueryStats
from gtgather.core.store.schema import array_attributes_table, arrays_table, cells_table

logger = structlog.get_logger(__name__)


def _coerce_list(item_type: Callable[[Any], Any]) -> Callable[[Any], FieldValue]:
    def coerce(value: Any) -> FieldValue:
        if not isinstance(value, list):
            return (item_type(value),)
        return tuple(item_type(item) for item in value)

    return coerce


_COERCERS: dict[FieldType, Callable[[Any], FieldValue]] = {
    FieldType.INT: int,
    FieldType.FLOAT: float,
    FieldType.STRING: str,
    FieldType.INT_LIST: _coerce_list(int),
    FieldType.FLOAT_LIST: _coerce_list(float),
    FieldType.STRING_LIST: _coerce_list(str),
}


def coerce_field(field_type: FieldType, value: Any) -> FieldValue:
    """Convert a JSON-decoded value to the attribute's declared type."""
    if value is None:
        return None
    return _COERCERS[field_type](value)


class VariantQueryProcessor:
    """Query processor bound to one array of a workspace.

    Lifecycle:
        processor = VariantQueryProcessor(workspace, "calls")
        schema = processor.get_array_schema()
        processor.do_query_bookkeeping(schema, query_config)
        for i in range(query_config.num_column_intervals):
            processor.query_column_interval(query_config, i, variants)
        processor.close()
    """

    def __init__(self, workspace: VariantWorkspace, array_name: str, *, owns_workspace: bool = False) -> None:
        self._workspace = workspace
        self._array_name = array_name
        self._owns_workspace = owns_workspace
        self._schema: ArraySchema | None = None
        self._attributes: tuple[str, ...] | None = None
        self._field_types: dict[str, FieldType] = {}
        self._closed = False

    @classmethod
    def open(cls, location: str | Path, array_name: str) -> VariantQueryProcessor:
        """Open a workspace and bind a processor that closes it on ``close()``."""
        try:
            workspace = VariantWorkspace(location)
        except FileNotFoundError as e:
            raise QueryEngineError(str(e)) from e
        return cls(workspace, array_name, owns_workspace=True)

    @property
    def array_name(self) -> str:
        return self._array_name

    @property
    def attributes(self) -> tuple[str, ...]:
        """Attribute order used by the codec, fixed by bookkeeping."""
        if self._attributes is None:
            raise RuntimeError("do_query_bookkeeping() must run before querying or decoding")
        return self._attributes

    def get_array_schema(self) -> ArraySchema:
        """Load the array's attribute list.

        Raises:
            UnknownArrayError: If the array is not in the workspace, or the
                workspace holds no arrays at all.
        """
        if self._schema is not None:
            return self._schema
        with self._workspace.engine.connect() as conn:
            if not inspect(conn).has_table(arrays_table.name):
                raise UnknownArrayError(self._array_name, self._workspace.location)
            exists = conn.execute(select(arrays_table.c.array_name).where(arrays_table.c.array_name == self._array_name)).first()
            if exists is None:
                raise UnknownArrayError(self._array_name, self._workspace.location)
            rows = conn.execute(
                select(array_attributes_table.c.name, array_attributes_table.c.field_type)
                .where(array_attributes_table.c.array_name == self._array_name)
                .order_by(array_attributes_table.c.position)
            ).fetchall()
        self._schema = ArraySchema(
            array_name=self._array_name,
            attributes=tuple(AttributeSpec(name=row.name, field_type=FieldType(row.field_type)) for row in rows),
        )
        return self._schema

    def do_query_bookkeeping(self, schema: ArraySchema, query_config: QueryConfig) -> None:
        """Check the queried attributes against the schema and fix the codec order.

        Raises:
            QueryConfigError: If an attribute is not defined on the array.
        """
        known = set(schema.attribute_names)
        unknown = [name for name in query_config.attributes if name not in known]
        if unknown:
            raise QueryConfigError(f"Attributes not defined on array '{schema.array_name}': {unknown}")
        self._field_types = {name: schema.field_type(name) for name in query_config.attributes}
        self._attributes = query_config.attributes
        logger.debug(
            "Query bookkeeping complete",
            array=schema.array_name,
            attributes=list(query_config.attributes),
            intervals=query_config.num_column_intervals,
        )

    def query_column_interval(
        self,
        query_config: QueryConfig,
        interval_index: int,
        accumulator: list[Variant],
        stats: QueryStats | None = None,
    ) -> None:
        """Append Variants for one configured interval.

        Cells overlapping the interval, restricted to the configured sample
        rows if any, are ordered by (column_begin, row_idx) and grouped by
        column_begin; each group becomes one Variant whose column_end is the
        furthest end among its calls.
        """
        attributes = self.attributes
        interval = query_config.column_intervals[interval_index]
        query = (
            select(
                cells_table.c.row_idx,
                cells_table.c.column_begin,
                cells_table.c.column_end,
                cells_table.c.fields_json,
            )
            .where(cells_table.c.array_name == self._array_name)
            .where(cells_table.c.column_begin <= interval.end)
            .where(cells_table.c.column_end >= interval.begin)
            .order_by(cells_table.c.column_begin, cells_table.c.row_idx, cells_table.c.cell_id)
        )
        if query_config.row_intervals:
            row_filter = or_(*(cells_table.c.row_idx.between(rows.begin, rows.end) for rows in query_config.row_intervals))
            query = query.where(row_filter)
        with self._workspace.engine.connect() as conn:
            rows = conn.execute(query).fetchall()

        produced = 0
        for column_begin, group in groupby(rows, key=lambda row: row.column_begin):
            calls = tuple(self._to_call(row, attributes) for row in group)
            accumulator.append(
                Variant(
                    column_begin=column_begin,
                    column_end=max(call.column_end for call in calls),
                    calls=calls,
                )
            )
            produced += 1

        if stats is not None:
            stats.intervals_queried += 1
            stats.cells_scanned += len(rows)
            stats.variants_produced += produced

    def _to_call(self, row: Any, attributes: tuple[str, ...]) -> VariantCall:
        stored = json.loads(row.fields_json)
        fields = {name: coerce_field(self._field_types[name], stored.get(name)) for name in attributes}
        return VariantCall(row_idx=row.row_idx, column_begin=row.column_begin, column_end=row.column_end, fields=fields)

    def binary_serialize(self, variant: Variant, buffer: SerializedBuffer) -> int:
        return encode_variant(variant, self.attributes, buffer)

    def binary_deserialize(self, view: memoryview, offset: int) -> tuple[Variant, int]:
        return decode_variant(view, offset, self.attributes)

    def close(self) -> None:
        """Release the array; disposes the workspace when this processor opened it."""
        if self._closed:
            return
        self._closed = True
        if self._owns_workspace:
            self._workspace.close()
