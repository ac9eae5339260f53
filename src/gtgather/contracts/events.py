"""Observability events for the gather lifecycle.

Emitted by the orchestrator on the event bus and rendered by CLI formatters.
"""

from dataclasses import dataclass

from gtgather.contracts.enums import GatherPhase


@dataclass(frozen=True, slots=True)
class PhaseStarted:
    """Emitted when a participant enters a phase."""

    phase: GatherPhase
    rank: int


@dataclass(frozen=True, slots=True)
class PhaseCompleted:
    """Emitted when a participant leaves a phase normally."""

    phase: GatherPhase
    rank: int
    duration_seconds: float


@dataclass(frozen=True, slots=True)
class PhaseError:
    """Emitted when a phase fails and the group is about to abort."""

    phase: GatherPhase
    rank: int
    error_message: str


@dataclass(frozen=True, slots=True)
class GatherSummary:
    """Emitted once by the coordinator after presenting.

    Attributes:
        num_participants: Group size
        total_size: Bytes gathered at the coordinator
        records: Records decoded
        duration_seconds: Wall time of the whole run
    """

    num_participants: int
    total_size: int
    records: int
    duration_seconds: float
