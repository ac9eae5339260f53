"""Capacity planning for the payload gather (coordinator only).

Turns the gathered length vector into the receive counts, displacements,
and total size the payload gather needs. The overflow check happens here,
before any payload bytes move.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from itertools import accumulate

from gtgather.contracts.errors import InvariantViolationError, TransferOverflowError


@dataclass(frozen=True, slots=True)
class GatherPlan:
    """Placement of every participant's contribution in the aggregated buffer.

    Attributes:
        recv_counts: Bytes contributed by each rank (the gathered lengths)
        displacements: Offset of each rank's bytes; exclusive prefix sum of recv_counts
        total_size: Size of the aggregated buffer
    """

    recv_counts: tuple[int, ...]
    displacements: tuple[int, ...]
    total_size: int

    @property
    def num_participants(self) -> int:
        return len(self.recv_counts)

    def span(self, rank: int) -> tuple[int, int]:
        """Half-open byte range ``[start, stop)`` owned by ``rank``."""
        start = self.displacements[rank]
        return start, start + self.recv_counts[rank]

    def verify(self) -> None:
        """Check that the spans partition ``[0, total_size)`` in rank order.

        Raises:
            InvariantViolationError: On any gap, overlap, or overrun.
        """
        if len(self.recv_counts) != len(self.displacements):
            raise InvariantViolationError(
                f"{len(self.recv_counts)} receive counts but {len(self.displacements)} displacements"
            )
        cursor = 0
        for rank in range(self.num_participants):
            start, stop = self.span(rank)
            if start != cursor:
                raise InvariantViolationError(f"rank {rank} starts at {start}, expected {cursor}")
            if stop > self.total_size:
                raise InvariantViolationError(f"rank {rank} ends at {stop}, past total size {self.total_size}")
            cursor = stop
        if cursor != self.total_size:
            raise InvariantViolationError(f"spans cover {cursor} bytes, total size is {self.total_size}")


def plan_gather(lengths: Sequence[int], *, transfer_limit: int) -> GatherPlan:
    """Compute the payload gather placement from per-rank lengths.

    Args:
        lengths: Serialized length of each rank, indexed by rank
        transfer_limit: Largest aggregated transfer the channel accepts

    Raises:
        InvariantViolationError: If ``lengths`` is empty or holds a negative value.
        TransferOverflowError: If the total exceeds ``transfer_limit``.
    """
    if not lengths:
        raise InvariantViolationError("length vector is empty")
    counts = tuple(int(length) for length in lengths)
    if any(count < 0 for count in counts):
        raise InvariantViolationError(f"negative serialized length in {list(counts)}")

    total_size = sum(counts)
    if total_size > transfer_limit:
        raise TransferOverflowError(total_size, transfer_limit)

    displacements = tuple(accumulate(counts[:-1], initial=0))
    plan = GatherPlan(recv_counts=counts, displacements=displacements, total_size=total_size)
    plan.verify()
    return plan
