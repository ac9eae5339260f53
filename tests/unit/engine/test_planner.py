# tests/unit/engine/test_planner.py
"""Tests for gather capacity planning."""

import pytest

from gtgather.contracts import InvariantViolationError, TransferOverflowError
from gtgather.engine.planner import GatherPlan, plan_gather


class TestPlanGather:
    def test_three_participants_one_empty(self) -> None:
        plan = plan_gather([100, 250, 0], transfer_limit=2_000_000_000)

        assert plan.recv_counts == (100, 250, 0)
        assert plan.displacements == (0, 100, 350)
        assert plan.total_size == 350
        assert plan.span(2) == (350, 350)

    def test_single_participant(self) -> None:
        plan = plan_gather([42], transfer_limit=100)
        assert plan.displacements == (0,)
        assert plan.total_size == 42

    def test_all_empty(self) -> None:
        plan = plan_gather([0, 0, 0, 0], transfer_limit=1)
        assert plan.total_size == 0
        assert plan.displacements == (0, 0, 0, 0)

    def test_total_equal_to_limit_is_accepted(self) -> None:
        plan = plan_gather([60, 40], transfer_limit=100)
        assert plan.total_size == 100

    def test_total_over_limit_overflows(self) -> None:
        with pytest.raises(TransferOverflowError) as exc_info:
            plan_gather([1_500_000_000, 600_000_000], transfer_limit=2_000_000_000)

        assert exc_info.value.total_size == 2_100_000_000
        assert exc_info.value.transfer_limit == 2_000_000_000

    def test_empty_length_vector_rejected(self) -> None:
        with pytest.raises(InvariantViolationError):
            plan_gather([], transfer_limit=10)

    def test_negative_length_rejected(self) -> None:
        with pytest.raises(InvariantViolationError):
            plan_gather([5, -1], transfer_limit=10)


class TestGatherPlanVerify:
    def test_gap_detected(self) -> None:
        plan = GatherPlan(recv_counts=(10, 10), displacements=(0, 11), total_size=21)
        with pytest.raises(InvariantViolationError, match="rank 1 starts at 11"):
            plan.verify()

    def test_overlap_detected(self) -> None:
        plan = GatherPlan(recv_counts=(10, 10), displacements=(0, 5), total_size=15)
        with pytest.raises(InvariantViolationError):
            plan.verify()

    def test_short_total_detected(self) -> None:
        plan = GatherPlan(recv_counts=(10, 10), displacements=(0, 10), total_size=30)
        with pytest.raises(InvariantViolationError, match="cover 20 bytes"):
            plan.verify()

    def test_mismatched_vector_sizes_detected(self) -> None:
        plan = GatherPlan(recv_counts=(10, 10), displacements=(0,), total_size=20)
        with pytest.raises(InvariantViolationError):
            plan.verify()
