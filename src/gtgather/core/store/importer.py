"""Load variant calls into a workspace array.

Input cells are mappings with ``row``, ``begin``, ``end`` (defaults to
``begin``) and ``fields``; the JSON-lines reader below produces them from
files with one cell per line.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator, Mapping, Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog
from sqlalchemy import Connection, insert, select

from gtgather.contracts import ArgumentError, ArrayExistsError, FieldType, QueryConfigError
from gtgather.core.store.database import VariantWorkspace
from gtgather.core.store.processor import coerce_field
from gtgather.core.store.protocols import AttributeSpec
from gtgather.core.store.schema import array_attributes_table, arrays_table, cells_table

logger = structlog.get_logger(__name__)

_INSERT_BATCH_SIZE = 1000


def parse_attribute_spec(text: str) -> AttributeSpec:
    """Parse ``NAME:TYPE`` (e.g. ``PL:int_list``).

    Raises:
        ArgumentError: On a missing separator or an unknown type.
    """
    name, sep, type_name = text.partition(":")
    if not sep or not name:
        raise ArgumentError(f"Attribute spec must be NAME:TYPE, got {text!r}")
    try:
        field_type = FieldType(type_name.strip().lower())
    except ValueError:
        valid = ", ".join(t.value for t in FieldType)
        raise ArgumentError(f"Unknown attribute type {type_name!r} for {name} (expected one of: {valid})") from None
    return AttributeSpec(name=name.strip(), field_type=field_type)


def read_cells_jsonl(path: Path) -> Iterator[dict[str, Any]]:
    """Yield one cell mapping per non-blank line.

    Raises:
        ArgumentError: If a line is not a JSON object.
    """
    with path.open(encoding="utf-8") as handle:
        for line_number, line in enumerate(handle, start=1):
            if not line.strip():
                continue
            try:
                cell = json.loads(line)
            except json.JSONDecodeError as e:
                raise ArgumentError(f"{path}:{line_number}: invalid JSON: {e}") from e
            if not isinstance(cell, dict):
                raise ArgumentError(f"{path}:{line_number}: expected a JSON object")
            yield cell


def _existing_attributes(conn: Connection, array_name: str) -> tuple[AttributeSpec, ...] | None:
    exists = conn.execute(select(arrays_table.c.array_name).where(arrays_table.c.array_name == array_name)).first()
    if exists is None:
        return None
    rows = conn.execute(
        select(array_attributes_table.c.name, array_attributes_table.c.field_type)
        .where(array_attributes_table.c.array_name == array_name)
        .order_by(array_attributes_table.c.position)
    ).fetchall()
    return tuple(AttributeSpec(name=row.name, field_type=FieldType(row.field_type)) for row in rows)


def _cell_row(array_name: str, cell: Mapping[str, Any], types: Mapping[str, FieldType]) -> dict[str, Any]:
    try:
        row_idx = int(cell["row"])
        begin = int(cell["begin"])
    except KeyError as e:
        raise ArgumentError(f"Cell is missing required key {e.args[0]!r}: {dict(cell)}") from None
    end = int(cell.get("end", begin))
    if row_idx < 0 or begin < 0 or end < begin:
        raise ArgumentError(f"Invalid cell coordinates row={row_idx} begin={begin} end={end}")
    raw_fields = cell.get("fields", {})
    unknown = sorted(set(raw_fields) - set(types))
    if unknown:
        raise QueryConfigError(f"Cell at row={row_idx} begin={begin} has undeclared attributes: {unknown}")
    try:
        fields = {name: coerce_field(types[name], value) for name, value in raw_fields.items()}
    except (TypeError, ValueError) as e:
        raise ArgumentError(f"Cell at row={row_idx} begin={begin}: {e}") from e
    return {
        "array_name": array_name,
        "row_idx": row_idx,
        "column_begin": begin,
        "column_end": end,
        "fields_json": json.dumps(fields, separators=(",", ":")),
    }


def import_variants(
    workspace: VariantWorkspace,
    array_name: str,
    attributes: Sequence[AttributeSpec],
    cells: Iterable[Mapping[str, Any]],
    *,
    fail_if_updating: bool = False,
) -> int:
    """Create (or extend) an array and insert cells in one transaction.

    Returns:
        Number of cells inserted.

    Raises:
        ArrayExistsError: If the array exists and ``fail_if_updating`` is set.
        QueryConfigError: If the array exists with a different attribute list,
            or a cell carries an undeclared attribute.
        ArgumentError: On malformed cells.
    """
    if not attributes:
        raise ArgumentError("At least one attribute must be declared")
    declared = tuple(attributes)
    types = {a.name: a.field_type for a in declared}
    if len(types) != len(declared):
        raise ArgumentError(f"Duplicate attribute names: {[a.name for a in declared]}")

    inserted = 0
    with workspace.engine.begin() as conn:
        existing = _existing_attributes(conn, array_name)
        if existing is None:
            conn.execute(insert(arrays_table).values(array_name=array_name, created_at=datetime.now(UTC)))
            conn.execute(
                insert(array_attributes_table),
                [
                    {"array_name": array_name, "position": position, "name": a.name, "field_type": a.field_type.value}
                    for position, a in enumerate(declared)
                ],
            )
        elif fail_if_updating:
            raise ArrayExistsError(array_name)
        elif existing != declared:
            raise QueryConfigError(
                f"Array '{array_name}' exists with attributes {[f'{a.name}:{a.field_type}' for a in existing]}, "
                f"import declares {[f'{a.name}:{a.field_type}' for a in declared]}"
            )

        batch: list[dict[str, Any]] = []
        for cell in cells:
            batch.append(_cell_row(array_name, cell, types))
            if len(batch) >= _INSERT_BATCH_SIZE:
                conn.execute(insert(cells_table), batch)
                inserted += len(batch)
                batch = []
        if batch:
            conn.execute(insert(cells_table), batch)
            inserted += len(batch)

    logger.info("Imported cells", array=array_name, cells=inserted, created=existing is None)
    return inserted
