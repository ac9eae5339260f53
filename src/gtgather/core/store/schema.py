"""SQLAlchemy table definitions for the variant workspace.

Uses SQLAlchemy Core (not ORM) for explicit control over queries.
"""

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    PrimaryKeyConstraint,
    String,
    Table,
    Text,
)

metadata = MetaData()

arrays_table = Table(
    "arrays",
    metadata,
    Column("array_name", String(256), primary_key=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

array_attributes_table = Table(
    "array_attributes",
    metadata,
    Column("array_name", String(256), ForeignKey("arrays.array_name"), nullable=False),
    Column("position", Integer, nullable=False),
    Column("name", String(256), nullable=False),
    Column("field_type", String(32), nullable=False),  # FieldType value
    PrimaryKeyConstraint("array_name", "position"),
)

cells_table = Table(
    "cells",
    metadata,
    Column("cell_id", Integer, primary_key=True, autoincrement=True),
    Column("array_name", String(256), ForeignKey("arrays.array_name"), nullable=False),
    Column("row_idx", Integer, nullable=False),
    Column("column_begin", Integer, nullable=False),
    Column("column_end", Integer, nullable=False),
    Column("fields_json", Text, nullable=False),
    Index("ix_cells_array_column", "array_name", "column_begin"),
)
