"""Variant store: the query engine behind each participant.

Public API:
- VariantWorkspace: workspace database connection
- VariantQueryProcessor: QueryEngine implementation for one array
- import_variants: load cells into an array
- QueryEngine, ArraySchema, AttributeSpec, QueryStats: protocol and data types
"""

from gtgather.core.store.database import VariantWorkspace, resolve_workspace_url
from gtgather.core.store.importer import import_variants, parse_attribute_spec, read_cells_jsonl
from gtgather.core.store.processor import VariantQueryProcessor, coerce_field
from gtgather.core.store.protocols import ArraySchema, AttributeSpec, QueryEngine, QueryStats

__all__ = [
    "ArraySchema",
    "AttributeSpec",
    "QueryEngine",
    "QueryStats",
    "VariantQueryProcessor",
    "VariantWorkspace",
    "coerce_field",
    "import_variants",
    "parse_attribute_spec",
    "read_cells_jsonl",
    "resolve_workspace_url",
]
