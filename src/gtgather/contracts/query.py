"""Query configuration and participant identity."""

from __future__ import annotations

from dataclasses import dataclass

from gtgather.contracts.enums import ParticipantRole
from gtgather.contracts.errors import QueryConfigError

DEFAULT_QUERY_ATTRIBUTES: tuple[str, ...] = ("REF", "ALT", "BaseQRankSum", "AD", "PL")


@dataclass(frozen=True, slots=True)
class ColumnInterval:
    """Inclusive column range ``[begin, end]``."""

    begin: int
    end: int

    def __post_init__(self) -> None:
        if self.begin < 0:
            raise QueryConfigError(f"Column interval begin must be >= 0, got {self.begin}")
        if self.end < self.begin:
            raise QueryConfigError(f"Column interval end ({self.end}) is before begin ({self.begin})")

    def overlaps(self, begin: int, end: int) -> bool:
        return begin <= self.end and end >= self.begin


@dataclass(frozen=True, slots=True)
class RowInterval:
    """Inclusive sample row range ``[begin, end]``."""

    begin: int
    end: int

    def __post_init__(self) -> None:
        if self.begin < 0:
            raise QueryConfigError(f"Row interval begin must be >= 0, got {self.begin}")
        if self.end < self.begin:
            raise QueryConfigError(f"Row interval end ({self.end}) is before begin ({self.begin})")

    def contains(self, row_idx: int) -> bool:
        return self.begin <= row_idx <= self.end


@dataclass(frozen=True, slots=True)
class QueryConfig:
    """Immutable description of what one participant queries.

    Attributes:
        attributes: Attribute names to fetch, in encoding order
        column_intervals: Intervals to query, in execution order
        row_intervals: Sample rows to keep; empty means every row
    """

    attributes: tuple[str, ...]
    column_intervals: tuple[ColumnInterval, ...] = ()
    row_intervals: tuple[RowInterval, ...] = ()

    def __post_init__(self) -> None:
        if not self.attributes:
            raise QueryConfigError("At least one attribute must be queried")
        if any(not name for name in self.attributes):
            raise QueryConfigError("Attribute names must be non-empty")
        if len(set(self.attributes)) != len(self.attributes):
            raise QueryConfigError(f"Duplicate attributes in query: {list(self.attributes)}")

    @property
    def num_column_intervals(self) -> int:
        return len(self.column_intervals)

    def selects_row(self, row_idx: int) -> bool:
        return not self.row_intervals or any(interval.contains(row_idx) for interval in self.row_intervals)


@dataclass(frozen=True, slots=True)
class Participant:
    """One cooperating process, identified by a rank fixed for the run."""

    rank: int
    size: int
    skip_query: bool = False

    def __post_init__(self) -> None:
        if not 0 <= self.rank < self.size:
            raise QueryConfigError(f"Rank {self.rank} outside group of size {self.size}")

    @property
    def role(self) -> ParticipantRole:
        return ParticipantRole.for_rank(self.rank)

    @property
    def is_coordinator(self) -> bool:
        return self.rank == 0

    @property
    def runs_query(self) -> bool:
        """Whether this participant executes its query.

        Only the coordinator honours the skip flag; it still contributes an
        empty buffer to every collective.
        """
        return not (self.is_coordinator and self.skip_query)
