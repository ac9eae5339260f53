"""Binary encoding of Variants for the gather payload.

Each record is self-delimiting: it starts with a u64 holding the record's
total length (prefix included), so a decoder positioned at any record
boundary knows how many bytes that record occupies without consulting
anything else.

Record layout (little-endian):
    u64 record_length
    u64 column_begin, u64 column_end
    u32 num_calls
    per call:
        u64 row_idx, u64 column_begin, u64 column_end
        one tagged value per query attribute, in query order

Tagged value: u8 tag followed by a tag-specific payload (see ValueTag).
A queried attribute the call does not carry is written as a bare ABSENT
tag and left out of the decoded call, so NULL and "missing" stay distinct.
Attribute names are not written; encoder and decoder must share the
attribute order produced by query bookkeeping.
"""

from __future__ import annotations

import struct
from collections.abc import Iterable, Sequence
from enum import IntEnum

from gtgather.contracts.errors import FramingCorruptionError, RecordEncodeError
from gtgather.contracts.records import FieldValue, Variant, VariantCall

# 1MB, resized by SerializedBuffer if the records need more
DEFAULT_CAPACITY_HINT = 1_000_000

_U8 = struct.Struct("<B")
_U32 = struct.Struct("<I")
_U64 = struct.Struct("<Q")
_I64 = struct.Struct("<q")
_F64 = struct.Struct("<d")
_VARIANT_HEADER = struct.Struct("<QQI")
_CALL_HEADER = struct.Struct("<QQQ")

_U32_MAX = 2**32 - 1
_U64_MAX = 2**64 - 1


class ValueTag(IntEnum):
    """Type tag written before every attribute value."""

    NULL = 0
    INT = 1
    FLOAT = 2
    STR = 3
    INT_LIST = 4
    FLOAT_LIST = 5
    STR_LIST = 6
    ABSENT = 7


class SerializedBuffer:
    """Growable byte buffer with a logical length tracked apart from capacity.

    The buffer is pre-allocated to ``capacity_hint`` bytes and doubled
    (at least to the requested size) when a write would not fit. Growth
    extends the underlying bytearray in place, so bytes already written
    are never disturbed.

    Only bytes ``[0, length)`` are meaningful; the tail up to ``capacity``
    is zero padding that is never transmitted.

    Thread Safety:
        NOT thread-safe. Each participant owns its own buffer.

    Example:
        buffer = SerializedBuffer(capacity_hint=64)
        buffer.write(b"abc")
        with buffer.view() as payload:
            channel.gather_varying(payload, ...)
    """

    def __init__(self, capacity_hint: int = DEFAULT_CAPACITY_HINT) -> None:
        if capacity_hint < 0:
            raise ValueError(f"capacity_hint must be >= 0, got {capacity_hint}")
        self._data = bytearray(capacity_hint)
        self._length = 0

    @property
    def length(self) -> int:
        """Number of meaningful bytes written so far."""
        return self._length

    @property
    def capacity(self) -> int:
        """Bytes currently allocated."""
        return len(self._data)

    def __len__(self) -> int:
        return self._length

    def reserve(self, extra: int) -> None:
        """Ensure ``extra`` more bytes fit after the current length."""
        needed = self._length + extra
        capacity = len(self._data)
        if needed <= capacity:
            return
        new_capacity = max(needed, capacity * 2)
        self._data.extend(bytes(new_capacity - capacity))

    def write(self, data: bytes | bytearray | memoryview) -> int:
        """Append raw bytes, returning the offset they were written at."""
        position = self._length
        size = len(data)
        self.reserve(size)
        self._data[position : position + size] = data
        self._length += size
        return position

    def pack(self, fmt: struct.Struct, *values: int | float) -> int:
        """Append a packed struct, returning the offset it was written at."""
        position = self._length
        self.reserve(fmt.size)
        fmt.pack_into(self._data, position, *values)
        self._length += fmt.size
        return position

    def pack_at(self, position: int, fmt: struct.Struct, *values: int | float) -> None:
        """Overwrite already-written bytes at ``position``."""
        if position < 0 or position + fmt.size > self._length:
            raise IndexError(f"pack_at({position}) outside written range [0, {self._length})")
        fmt.pack_into(self._data, position, *values)

    def truncate(self, length: int) -> None:
        """Roll the logical length back (capacity is kept)."""
        if not 0 <= length <= self._length:
            raise IndexError(f"Cannot truncate to {length}, length is {self._length}")
        self._length = length

    def view(self) -> memoryview:
        """Zero-copy view of ``[0, length)``.

        Release the view (or use it as a context manager) before writing
        again: a live export prevents the bytearray from growing.
        """
        return memoryview(self._data)[: self._length]

    def getvalue(self) -> bytes:
        """Copy of ``[0, length)``."""
        return bytes(self._data[: self._length])


# =============================================================================
# Encoding
# =============================================================================


def _check_u64(field: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise RecordEncodeError(field, value, "expected an integer coordinate")
    if not 0 <= value <= _U64_MAX:
        raise RecordEncodeError(field, value, "coordinate outside unsigned 64-bit range")


def _write_str(buffer: SerializedBuffer, field: str, value: str) -> None:
    encoded = value.encode("utf-8")
    if len(encoded) > _U32_MAX:
        raise RecordEncodeError(field, value[:32], "string longer than 2**32-1 bytes")
    buffer.pack(_U32, len(encoded))
    buffer.write(encoded)


def _list_tag(field: str, values: Sequence[object]) -> ValueTag:
    if not values:
        return ValueTag.INT_LIST
    if all(isinstance(v, int) and not isinstance(v, bool) for v in values):
        return ValueTag.INT_LIST
    if all(isinstance(v, float) for v in values):
        return ValueTag.FLOAT_LIST
    if all(isinstance(v, str) for v in values):
        return ValueTag.STR_LIST
    raise RecordEncodeError(field, values, "list elements must all be int, all float, or all str")


def _write_value(buffer: SerializedBuffer, field: str, value: FieldValue) -> None:
    try:
        if value is None:
            buffer.pack(_U8, ValueTag.NULL)
        elif isinstance(value, bool):
            raise RecordEncodeError(field, value, "booleans are not a supported attribute type")
        elif isinstance(value, int):
            buffer.pack(_U8, ValueTag.INT)
            buffer.pack(_I64, value)
        elif isinstance(value, float):
            buffer.pack(_U8, ValueTag.FLOAT)
            buffer.pack(_F64, value)
        elif isinstance(value, str):
            buffer.pack(_U8, ValueTag.STR)
            _write_str(buffer, field, value)
        elif isinstance(value, (list, tuple)):
            tag = _list_tag(field, value)
            buffer.pack(_U8, tag)
            buffer.pack(_U32, len(value))
            if tag is ValueTag.INT_LIST:
                for item in value:
                    buffer.pack(_I64, item)
            elif tag is ValueTag.FLOAT_LIST:
                for item in value:
                    buffer.pack(_F64, item)
            else:
                for item in value:
                    _write_str(buffer, field, item)
        else:
            raise RecordEncodeError(field, value, f"unsupported type {type(value).__name__}")
    except struct.error as e:
        raise RecordEncodeError(field, value, str(e)) from e


def _write_call(buffer: SerializedBuffer, call: VariantCall, attributes: Sequence[str]) -> None:
    _check_u64("row_idx", call.row_idx)
    _check_u64("call.column_begin", call.column_begin)
    _check_u64("call.column_end", call.column_end)
    buffer.pack(_CALL_HEADER, call.row_idx, call.column_begin, call.column_end)
    for name in attributes:
        if name in call.fields:
            _write_value(buffer, name, call.fields[name])
        else:
            buffer.pack(_U8, ValueTag.ABSENT)


def encode_variant(variant: Variant, attributes: Sequence[str], buffer: SerializedBuffer) -> int:
    """Append one Variant to ``buffer``.

    On failure nothing from this variant remains in the buffer.

    Returns:
        Number of bytes written for this record.

    Raises:
        RecordEncodeError: If a coordinate or attribute value cannot be encoded.
    """
    start = buffer.length
    try:
        _check_u64("column_begin", variant.column_begin)
        _check_u64("column_end", variant.column_end)
        if len(variant.calls) > _U32_MAX:
            raise RecordEncodeError("calls", len(variant.calls), "too many calls for one variant")
        buffer.pack(_U64, 0)  # length prefix, patched below
        buffer.pack(_VARIANT_HEADER, variant.column_begin, variant.column_end, len(variant.calls))
        for call in variant.calls:
            _write_call(buffer, call, attributes)
    except RecordEncodeError:
        buffer.truncate(start)
        raise
    record_length = buffer.length - start
    buffer.pack_at(start, _U64, record_length)
    return record_length


def encode_variants(
    variants: Iterable[Variant],
    attributes: Sequence[str],
    *,
    capacity_hint: int = DEFAULT_CAPACITY_HINT,
) -> SerializedBuffer:
    """Encode variants, in order, into a fresh buffer."""
    buffer = SerializedBuffer(capacity_hint)
    for variant in variants:
        encode_variant(variant, attributes, buffer)
    return buffer


# =============================================================================
# Decoding
# =============================================================================


class _Reader:
    """Bounded cursor over one record's bytes."""

    __slots__ = ("_view", "_pos", "_limit", "_record_start", "_total")

    def __init__(self, view: memoryview, start: int, limit: int, total: int) -> None:
        self._view = view
        self._pos = start
        self._limit = limit
        self._record_start = start
        self._total = total

    @property
    def position(self) -> int:
        return self._pos

    def _corrupt(self, message: str) -> FramingCorruptionError:
        return FramingCorruptionError(message, offset=self._record_start, total_size=self._total)

    def _take(self, size: int) -> int:
        position = self._pos
        if position + size > self._limit:
            raise self._corrupt(f"record body truncated: need {size} bytes at {position}, record ends at {self._limit}")
        self._pos = position + size
        return position

    def unpack(self, fmt: struct.Struct) -> tuple[int | float, ...]:
        position = self._take(fmt.size)
        return fmt.unpack_from(self._view, position)

    def read_str(self) -> str:
        (size,) = self.unpack(_U32)
        position = self._take(int(size))
        try:
            return str(self._view[position : position + int(size)], "utf-8")
        except UnicodeDecodeError as e:
            raise self._corrupt(f"invalid UTF-8 in string value: {e}") from e

    def read_tag(self) -> ValueTag:
        (raw_tag,) = self.unpack(_U8)
        try:
            return ValueTag(raw_tag)
        except ValueError:
            raise self._corrupt(f"unknown value tag {raw_tag}") from None

    def read_value(self, tag: ValueTag) -> FieldValue:
        if tag is ValueTag.NULL:
            return None
        if tag is ValueTag.INT:
            return int(self.unpack(_I64)[0])
        if tag is ValueTag.FLOAT:
            return float(self.unpack(_F64)[0])
        if tag is ValueTag.STR:
            return self.read_str()
        (count,) = self.unpack(_U32)
        if tag is ValueTag.INT_LIST:
            return tuple(int(self.unpack(_I64)[0]) for _ in range(int(count)))
        if tag is ValueTag.FLOAT_LIST:
            return tuple(float(self.unpack(_F64)[0]) for _ in range(int(count)))
        return tuple(self.read_str() for _ in range(int(count)))


def decode_variant(view: memoryview | bytes | bytearray, offset: int, attributes: Sequence[str]) -> tuple[Variant, int]:
    """Decode exactly one Variant starting at ``offset``.

    Returns:
        The decoded Variant and the offset just past it.

    Raises:
        FramingCorruptionError: If the record does not fit in ``view`` or its
            body does not end exactly where its length prefix says.
    """
    if not isinstance(view, memoryview):
        view = memoryview(view)
    total = len(view)
    if offset + _U64.size > total:
        raise FramingCorruptionError("length prefix truncated", offset=offset, total_size=total)
    (record_length,) = _U64.unpack_from(view, offset)
    end = offset + record_length
    if record_length < _U64.size + _VARIANT_HEADER.size or end > total:
        raise FramingCorruptionError(f"record length {record_length} does not fit", offset=offset, total_size=total)

    reader = _Reader(view, offset + _U64.size, end, total)
    column_begin, column_end, num_calls = reader.unpack(_VARIANT_HEADER)
    calls = []
    for _ in range(int(num_calls)):
        row_idx, call_begin, call_end = reader.unpack(_CALL_HEADER)
        fields: dict[str, FieldValue] = {}
        for name in attributes:
            tag = reader.read_tag()
            if tag is not ValueTag.ABSENT:
                fields[name] = reader.read_value(tag)
        calls.append(VariantCall(row_idx=int(row_idx), column_begin=int(call_begin), column_end=int(call_end), fields=fields))
    if reader.position != end:
        raise FramingCorruptionError(
            f"record body ended at {reader.position} but length prefix says {end}",
            offset=offset,
            total_size=total,
        )
    return Variant(column_begin=int(column_begin), column_end=int(column_end), calls=tuple(calls)), end
