"""Orchestrator types: per-participant run configuration and result."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from gtgather.contracts import GatherPhase, OutputFormat, ParticipantRole, QueryConfig, Variant
from gtgather.core.config import DEFAULT_INITIAL_BUFFER_CAPACITY

if TYPE_CHECKING:
    from gtgather.core.config import GatherSettings
    from gtgather.core.store import QueryStats
    from gtgather.engine.instrumentation import TimingReport
    from gtgather.engine.planner import GatherPlan


@dataclass(frozen=True, slots=True)
class GatherRunConfig:
    """What one participant runs.

    Attributes:
        query_config: Attributes and intervals this participant queries
        output_format: Presentation format (used by the coordinator only)
        skip_query_on_root: Coordinator contributes zero records when set
        initial_buffer_capacity: Starting capacity of the serialization buffer
        profile: Gather per-phase timings and build a TimingReport
    """

    query_config: QueryConfig
    output_format: OutputFormat = OutputFormat.DEFAULT
    skip_query_on_root: bool = False
    initial_buffer_capacity: int = DEFAULT_INITIAL_BUFFER_CAPACITY
    profile: bool = False

    @classmethod
    def from_settings(cls, settings: GatherSettings, rank: int) -> GatherRunConfig:
        """Build the run configuration for ``rank``.

        Raises:
            QueryConfigError: If no column ranges are configured for ``rank``.
        """
        return cls(
            query_config=settings.query_config_for_rank(rank),
            output_format=settings.output_format,
            skip_query_on_root=settings.skip_query_on_root,
            initial_buffer_capacity=settings.initial_buffer_capacity,
            profile=settings.profile,
        )


@dataclass
class GatherResult:
    """Outcome of one participant's run.

    ``plan``, ``records`` and ``timing`` are only set on the coordinator.
    """

    rank: int
    role: ParticipantRole
    phases: list[GatherPhase] = field(default_factory=list)
    serialized_length: int = 0
    records_contributed: int = 0
    query_stats: QueryStats | None = None
    plan: GatherPlan | None = None
    records: list[Variant] | None = None
    timing: TimingReport | None = None

    @property
    def final_phase(self) -> GatherPhase | None:
        return self.phases[-1] if self.phases else None
