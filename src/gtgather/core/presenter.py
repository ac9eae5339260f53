"""Render decoded Variants to an output sink.

Only the coordinator presents. The presenter needs the QueryConfig to
know which attributes to print and in which order.
"""

from __future__ import annotations

import json
import math
from collections.abc import Callable, Sequence
from typing import Any, Protocol, TextIO

from gtgather.contracts import FieldValue, OutputFormat, QueryConfig, Variant


class Presenter(Protocol):
    """Callable signature of a presenter."""

    def __call__(
        self,
        variants: Sequence[Variant],
        output_format: OutputFormat,
        query_config: QueryConfig,
        sink: TextIO,
    ) -> None: ...


def _json_scalar(value: Any) -> Any:
    # JSON has no NaN or Infinity
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


def _json_value(value: FieldValue) -> Any:
    if isinstance(value, tuple):
        return [_json_scalar(item) for item in value]
    return _json_scalar(value)


def _text_value(value: FieldValue) -> str:
    if value is None:
        return "."
    if isinstance(value, tuple):
        return ",".join(str(item) for item in value) if value else "."
    return str(value)


def _print_default(variants: Sequence[Variant], query_config: QueryConfig, sink: TextIO) -> None:
    for variant in variants:
        sink.write(f"Interval [{variant.column_begin}, {variant.column_end}]: {variant.num_calls} call(s)\n")
        for call in variant.calls:
            values = " ".join(f"{name}={_text_value(call.fields.get(name))}" for name in query_config.attributes)
            sink.write(f"  row {call.row_idx} [{call.column_begin}, {call.column_end}] {values}\n")


def _print_positions_json(variants: Sequence[Variant], query_config: QueryConfig, sink: TextIO) -> None:
    document = {
        "variants": [
            {
                "interval": [variant.column_begin, variant.column_end],
                "calls": [
                    {
                        "row": call.row_idx,
                        "interval": [call.column_begin, call.column_end],
                        "fields": {name: _json_value(call.fields.get(name)) for name in query_config.attributes},
                    }
                    for call in variant.calls
                ],
            }
            for variant in variants
        ]
    }
    json.dump(document, sink, indent=2, allow_nan=False)
    sink.write("\n")


def _print_cotton_json(variants: Sequence[Variant], query_config: QueryConfig, sink: TextIO) -> None:
    """Columnar JSON: one array per column, one entry per call."""
    columns: dict[str, list[Any]] = {"row": [], "POSITION": [], "END": []}
    for name in query_config.attributes:
        columns.setdefault(name, [])
    for variant in variants:
        for call in variant.calls:
            columns["row"].append(call.row_idx)
            columns["POSITION"].append(call.column_begin)
            columns["END"].append(call.column_end)
            for name in query_config.attributes:
                columns[name].append(_json_value(call.fields.get(name)))
    json.dump(columns, sink, allow_nan=False)
    sink.write("\n")


_RENDERERS: dict[OutputFormat, Callable[[Sequence[Variant], QueryConfig, TextIO], None]] = {
    OutputFormat.DEFAULT: _print_default,
    OutputFormat.POSITIONS_JSON: _print_positions_json,
    OutputFormat.COTTON_JSON: _print_cotton_json,
}


def print_variants(
    variants: Sequence[Variant],
    output_format: OutputFormat,
    query_config: QueryConfig,
    sink: TextIO,
) -> None:
    """Write ``variants`` to ``sink`` in ``output_format``."""
    _RENDERERS[output_format](variants, query_config, sink)
