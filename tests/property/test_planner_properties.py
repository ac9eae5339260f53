# tests/property/test_planner_properties.py
"""Property tests for gather capacity planning."""

from __future__ import annotations

from itertools import pairwise

import pytest
from hypothesis import given
from hypothesis import strategies as st

from gtgather.contracts import TransferOverflowError
from gtgather.engine.planner import plan_gather
from tests.property.settings import QUICK_SETTINGS, STANDARD_SETTINGS

INT32_MAX = 2**31 - 1

length_vectors = st.lists(st.integers(min_value=0, max_value=10_000), min_size=1, max_size=64)


class TestPlanProperties:
    @given(lengths=length_vectors)
    @STANDARD_SETTINGS
    def test_total_is_sum_of_lengths(self, lengths: list[int]) -> None:
        plan = plan_gather(lengths, transfer_limit=INT32_MAX)
        assert plan.total_size == sum(lengths)
        assert plan.recv_counts == tuple(lengths)

    @given(lengths=length_vectors)
    @STANDARD_SETTINGS
    def test_displacements_are_exclusive_prefix_sum(self, lengths: list[int]) -> None:
        plan = plan_gather(lengths, transfer_limit=INT32_MAX)
        assert plan.displacements[0] == 0
        for rank, (left, right) in enumerate(pairwise(plan.displacements)):
            assert right - left == lengths[rank]
        assert plan.displacements[-1] + lengths[-1] == plan.total_size

    @given(lengths=length_vectors)
    @STANDARD_SETTINGS
    def test_spans_partition_the_buffer(self, lengths: list[int]) -> None:
        plan = plan_gather(lengths, transfer_limit=INT32_MAX)
        covered = [plan.span(rank) for rank in range(plan.num_participants)]
        assert covered[0][0] == 0
        assert covered[-1][1] == plan.total_size
        assert all(stop == start for (_, stop), (start, _) in pairwise(covered))

    @given(lengths=length_vectors, limit=st.integers(min_value=0, max_value=100_000))
    @QUICK_SETTINGS
    def test_overflow_iff_total_exceeds_limit(self, lengths: list[int], limit: int) -> None:
        if sum(lengths) > limit:
            with pytest.raises(TransferOverflowError):
                plan_gather(lengths, transfer_limit=limit)
        else:
            assert plan_gather(lengths, transfer_limit=limit).total_size == sum(lengths)
