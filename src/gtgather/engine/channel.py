"""Collective channel: the group-wide communication substrate.

Every collective is a synchronous barrier. Each participant must invoke the
same operations, exactly once per round, in the same order, or the round
deadlocks (bounded by the transport's own timeout, which is fatal).

Implementations:
- LocalGroup / LocalChannel: N participants on threads of one process
- MPIChannel: one participant per MPI process (mpi4py, optional extra)
"""

from __future__ import annotations

import threading
from collections.abc import Sequence
from typing import Any, Protocol

import structlog

from gtgather.contracts.errors import CollectiveError, GroupAbortedError, InvariantViolationError
from gtgather.core.config import DEFAULT_TRANSFER_LIMIT, INT32_MAX

logger = structlog.get_logger(__name__)

COORDINATOR_RANK = 0

Payload = bytes | bytearray | memoryview


class CollectiveChannel(Protocol):
    """Collective operations the gather lifecycle is built on.

    Results of gathers are only delivered to the coordinator (rank 0);
    workers receive None.
    """

    @property
    def rank(self) -> int: ...

    @property
    def size(self) -> int: ...

    @property
    def is_coordinator(self) -> bool: ...

    @property
    def transfer_limit(self) -> int:
        """Largest aggregated payload a single gather_varying may carry."""
        ...

    def gather_scalar(self, value: int) -> list[int] | None:
        """Gather one non-negative integer per rank, indexed by rank."""
        ...

    def gather_vector(self, values: Sequence[float]) -> list[tuple[float, ...]] | None:
        """Gather one fixed-size float vector per rank, indexed by rank."""
        ...

    def gather_varying(
        self,
        payload: Payload,
        recv_counts: Sequence[int] | None = None,
        displacements: Sequence[int] | None = None,
    ) -> bytes | None:
        """Gather variable-length payloads, placing rank i's bytes at displacements[i].

        Only the coordinator supplies ``recv_counts`` and ``displacements``.
        """
        ...

    def abort(self, reason: str, *, exit_code: int = -1) -> None:
        """Terminate every participant in the group."""
        ...


def check_varying_arguments(
    *,
    is_coordinator: bool,
    size: int,
    recv_counts: Sequence[int] | None,
    displacements: Sequence[int] | None,
) -> None:
    """Validate the placement arguments of gather_varying for this rank.

    Raises:
        InvariantViolationError: If a worker passes placement, the coordinator
            omits it, the vector sizes do not match the group, or a value does
            not fit the channel's 32-bit count limit.
    """
    if not is_coordinator:
        if recv_counts is not None or displacements is not None:
            raise InvariantViolationError("only the coordinator supplies recv_counts/displacements")
        return
    if recv_counts is None or displacements is None:
        raise InvariantViolationError("coordinator must supply recv_counts and displacements")
    if len(recv_counts) != size or len(displacements) != size:
        raise InvariantViolationError(
            f"placement vectors have {len(recv_counts)}/{len(displacements)} entries for a group of {size}"
        )
    for rank, (count, displacement) in enumerate(zip(recv_counts, displacements, strict=True)):
        if not 0 <= count <= INT32_MAX or not 0 <= displacement <= INT32_MAX:
            raise InvariantViolationError(
                f"rank {rank} count={count} displacement={displacement} outside the 32-bit count limit"
            )


def _receive_size(recv_counts: Sequence[int], displacements: Sequence[int]) -> int:
    return max((d + c for c, d in zip(recv_counts, displacements, strict=True)), default=0)


# =============================================================================
# In-process group
# =============================================================================


class LocalGroup:
    """In-process fan-in of ``size`` participants running on separate threads.

    Each collective is two barrier waits: every rank deposits its
    contribution, then (after the coordinator has read all slots) every rank
    is released. Slots are therefore never overwritten while being read.

    ``abort`` breaks the barrier, so every rank blocked in, or later
    entering, a collective raises GroupAbortedError.

    Example:
        group = LocalGroup(3)
        # on thread r: group.channel(r).gather_scalar(length)
    """

    def __init__(
        self,
        size: int,
        *,
        transfer_limit: int = DEFAULT_TRANSFER_LIMIT,
        timeout: float | None = None,
    ) -> None:
        if size < 1:
            raise ValueError(f"group size must be >= 1, got {size}")
        self._size = size
        self._transfer_limit = transfer_limit
        self._barrier = threading.Barrier(size, timeout=timeout)
        self._slots: list[Any] = [None] * size
        self._lock = threading.Lock()
        self._abort_reason: str | None = None
        self._channels = tuple(LocalChannel(self, rank) for rank in range(size))

    @property
    def size(self) -> int:
        return self._size

    @property
    def transfer_limit(self) -> int:
        return self._transfer_limit

    @property
    def channels(self) -> tuple[LocalChannel, ...]:
        return self._channels

    def channel(self, rank: int) -> LocalChannel:
        return self._channels[rank]

    @property
    def abort_reason(self) -> str | None:
        """Reason given by the first abort, or None while the group is healthy."""
        return self._abort_reason

    def abort(self, reason: str, *, rank: int) -> None:
        with self._lock:
            if self._abort_reason is not None:
                return
            self._abort_reason = reason
        logger.error("Group aborted", rank=rank, reason=reason)
        self._barrier.abort()

    def _wait(self, phase: str) -> None:
        try:
            self._barrier.wait()
        except threading.BrokenBarrierError:
            if self._abort_reason is not None:
                raise GroupAbortedError(self._abort_reason, phase=phase) from None
            raise CollectiveError("barrier broken (timeout or participant failure)", phase=phase) from None

    def exchange(self, rank: int, value: Any, *, phase: str) -> list[Any] | None:
        """Deposit ``value`` for ``rank``; the coordinator gets all values in rank order."""
        if self._abort_reason is not None:
            raise GroupAbortedError(self._abort_reason, phase=phase)
        self._slots[rank] = value
        self._wait(phase)
        gathered = list(self._slots) if rank == COORDINATOR_RANK else None
        self._wait(phase)
        return gathered


class LocalChannel:
    """One participant's view of a LocalGroup."""

    def __init__(self, group: LocalGroup, rank: int) -> None:
        self._group = group
        self._rank = rank

    @property
    def rank(self) -> int:
        return self._rank

    @property
    def size(self) -> int:
        return self._group.size

    @property
    def is_coordinator(self) -> bool:
        return self._rank == COORDINATOR_RANK

    @property
    def transfer_limit(self) -> int:
        return self._group.transfer_limit

    def gather_scalar(self, value: int) -> list[int] | None:
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise InvariantViolationError(f"gather_scalar expects a non-negative int, got {value!r}")
        return self._group.exchange(self._rank, value, phase="gather_scalar")

    def gather_vector(self, values: Sequence[float]) -> list[tuple[float, ...]] | None:
        vector = tuple(float(v) for v in values)
        gathered = self._group.exchange(self._rank, vector, phase="gather_vector")
        if gathered is None:
            return None
        for rank, contribution in enumerate(gathered):
            if len(contribution) != len(vector):
                raise InvariantViolationError(f"rank {rank} sent {len(contribution)} values, coordinator sent {len(vector)}")
        return gathered

    def gather_varying(
        self,
        payload: Payload,
        recv_counts: Sequence[int] | None = None,
        displacements: Sequence[int] | None = None,
    ) -> bytes | None:
        check_varying_arguments(
            is_coordinator=self.is_coordinator,
            size=self.size,
            recv_counts=recv_counts,
            displacements=displacements,
        )
        contributions = self._group.exchange(self._rank, bytes(payload), phase="gather_varying")
        if contributions is None or recv_counts is None or displacements is None:
            return None
        received = bytearray(_receive_size(recv_counts, displacements))
        for rank, data in enumerate(contributions):
            count = recv_counts[rank]
            if len(data) != count:
                raise CollectiveError(f"rank {rank} sent {len(data)} bytes, expected {count}", phase="gather_varying")
            start = displacements[rank]
            received[start : start + count] = data
        return bytes(received)

    def abort(self, reason: str, *, exit_code: int = -1) -> None:
        self._group.abort(reason, rank=self._rank)


# =============================================================================
# MPI
# =============================================================================


class MPIChannel:
    """Collective channel over an MPI communicator (mpi4py).

    mpi4py raises MPI.Exception on failure (its default error handler), which
    is converted to CollectiveError.

    Raises:
        ImportError: If mpi4py or numpy is not installed.
    """

    def __init__(self, comm: Any = None, *, transfer_limit: int = DEFAULT_TRANSFER_LIMIT) -> None:
        try:
            import numpy
            from mpi4py import MPI
        except ImportError:
            raise ImportError("mpi4py and numpy are required for the MPI channel. Install them with: pip install 'gtgather[mpi]'") from None

        self._np = numpy
        self._MPI = MPI
        self._comm = comm if comm is not None else MPI.COMM_WORLD
        self._rank: int = self._comm.Get_rank()
        self._size: int = self._comm.Get_size()
        self._transfer_limit = transfer_limit

    @property
    def rank(self) -> int:
        return self._rank

    @property
    def size(self) -> int:
        return self._size

    @property
    def is_coordinator(self) -> bool:
        return self._rank == COORDINATOR_RANK

    @property
    def transfer_limit(self) -> int:
        return self._transfer_limit

    def _run(self, phase: str, operation: Any, *args: Any, **kwargs: Any) -> None:
        try:
            operation(*args, **kwargs)
        except self._MPI.Exception as e:
            raise CollectiveError(str(e), phase=phase) from e

    def gather_scalar(self, value: int) -> list[int] | None:
        np = self._np
        send = np.array([value], dtype=np.uint64)
        recv = np.zeros(self._size, dtype=np.uint64) if self.is_coordinator else None
        self._run("gather_scalar", self._comm.Gather, send, recv, root=COORDINATOR_RANK)
        return None if recv is None else [int(v) for v in recv]

    def gather_vector(self, values: Sequence[float]) -> list[tuple[float, ...]] | None:
        np = self._np
        send = np.asarray(values, dtype=np.float64)
        recv = np.zeros((self._size, send.size), dtype=np.float64) if self.is_coordinator else None
        self._run("gather_vector", self._comm.Gather, send, recv, root=COORDINATOR_RANK)
        return None if recv is None else [tuple(float(v) for v in row) for row in recv]

    def gather_varying(
        self,
        payload: Payload,
        recv_counts: Sequence[int] | None = None,
        displacements: Sequence[int] | None = None,
    ) -> bytes | None:
        np = self._np
        MPI = self._MPI
        check_varying_arguments(
            is_coordinator=self.is_coordinator,
            size=self._size,
            recv_counts=recv_counts,
            displacements=displacements,
        )
        send = np.frombuffer(payload, dtype=np.uint8)
        if recv_counts is None or displacements is None:
            self._run("gather_varying", self._comm.Gatherv, [send, MPI.BYTE], None, root=COORDINATOR_RANK)
            return None
        recv = np.empty(_receive_size(recv_counts, displacements), dtype=np.uint8)
        recvbuf = [recv, list(recv_counts), list(displacements), MPI.BYTE]
        self._run("gather_varying", self._comm.Gatherv, [send, MPI.BYTE], recvbuf, root=COORDINATOR_RANK)
        return recv.tobytes()

    def abort(self, reason: str, *, exit_code: int = -1) -> None:
        logger.error("Aborting MPI group", rank=self._rank, reason=reason)
        self._comm.Abort(exit_code)
