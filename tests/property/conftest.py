# tests/property/conftest.py
"""Shared Hypothesis strategies for property-based tests.

Variants are generated in the shape the decoder hands back: a call may
leave any queried attribute out or carry it as None, lists are tuples,
and floats are finite so equality holds after a round trip.

Usage:
    from tests.property.conftest import ATTRIBUTES, variant_lists

    @given(variants=variant_lists())
    def test_round_trip(variants: list[Variant]) -> None:
        ...
"""

from __future__ import annotations

from hypothesis import strategies as st

from gtgather.contracts import Variant, VariantCall

ATTRIBUTES: tuple[str, ...] = ("REF", "ALT", "BaseQRankSum", "AD", "PL")

U64_MAX = 2**64 - 1
I64_MIN = -(2**63)
I64_MAX = 2**63 - 1

coordinates = st.integers(min_value=0, max_value=U64_MAX)
small_coordinates = st.integers(min_value=0, max_value=10_000_000)

finite_floats = st.floats(allow_nan=False, allow_infinity=False)
signed_ints = st.integers(min_value=I64_MIN, max_value=I64_MAX)
short_text = st.text(max_size=20)

field_values = st.one_of(
    st.none(),
    signed_ints,
    finite_floats,
    short_text,
    st.lists(signed_ints, max_size=6).map(tuple),
    st.lists(finite_floats, min_size=1, max_size=6).map(tuple),
    st.lists(short_text, min_size=1, max_size=6).map(tuple),
)

call_fields = st.fixed_dictionaries({}, optional={name: field_values for name in ATTRIBUTES})


@st.composite
def variant_calls(draw: st.DrawFn, *, coordinate: st.SearchStrategy[int] = coordinates) -> VariantCall:
    return VariantCall(
        row_idx=draw(coordinate),
        column_begin=draw(coordinate),
        column_end=draw(coordinate),
        fields=draw(call_fields),
    )


@st.composite
def variants(draw: st.DrawFn, *, coordinate: st.SearchStrategy[int] = coordinates, max_calls: int = 4) -> Variant:
    begin = draw(coordinate)
    end = draw(coordinate)
    calls = draw(st.lists(variant_calls(coordinate=coordinate), max_size=max_calls))
    return Variant(column_begin=begin, column_end=end, calls=tuple(calls))


def variant_lists(*, max_size: int = 8) -> st.SearchStrategy[list[Variant]]:
    return st.lists(variants(), max_size=max_size)


def partitioned_variants(*, max_participants: int = 5) -> st.SearchStrategy[list[list[Variant]]]:
    """Per-participant record lists; the outer list is indexed by rank."""
    return st.lists(st.lists(variants(max_calls=2), max_size=4), min_size=1, max_size=max_participants)
