"""Sequential decode of the aggregated buffer (coordinator only).

Decoding does not need per-rank boundaries: contributions were placed
contiguously in rank order, and every record is self-delimiting.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

from gtgather.contracts.errors import FramingCorruptionError, InvariantViolationError

R = TypeVar("R")


def decode_aggregated(
    buffer: bytes | bytearray | memoryview,
    total_size: int,
    decode_one: Callable[[memoryview, int], tuple[R, int]],
) -> list[R]:
    """Decode records from ``buffer`` until exactly ``total_size`` bytes are consumed.

    Args:
        buffer: Aggregated buffer, exactly ``total_size`` bytes long
        total_size: Planned aggregated size
        decode_one: Decodes one record at an offset and returns it with the next offset

    Raises:
        InvariantViolationError: If the buffer length differs from ``total_size``.
        FramingCorruptionError: If a decode fails to advance, overruns
            ``total_size``, or fails on the bytes at the cursor.
    """
    if len(buffer) != total_size:
        raise InvariantViolationError(f"aggregated buffer holds {len(buffer)} bytes, planned {total_size}")

    records: list[R] = []
    with memoryview(buffer) as view:
        offset = 0
        while offset < total_size:
            record, next_offset = decode_one(view, offset)
            if next_offset <= offset:
                raise FramingCorruptionError("decode did not advance the cursor", offset=offset, total_size=total_size)
            if next_offset > total_size:
                raise FramingCorruptionError(
                    f"record ends at {next_offset}, past the end of the buffer",
                    offset=offset,
                    total_size=total_size,
                )
            records.append(record)
            offset = next_offset
    return records
