"""Per-phase CPU and wall timing for profiled runs.

Each participant measures the phases it runs locally (query and binary
serialization) and contributes them as a fixed-size vector through
``gather_vector``. The coordinator adds its own gather, deserialization
and printing timings and renders one report.

Report format (stderr), one line per phase:
    query,<cpu rank 0>,<cpu rank 1>,...,,<wall rank 0>,<wall rank 1>,...
    gather,<cpu>,,<wall>
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from enum import IntEnum

from gtgather.contracts.errors import InvariantViolationError
from gtgather.engine.clock import DEFAULT_CLOCK, Clock


class TimedPhase(IntEnum):
    """Measured phases, in report order."""

    QUERY = 0
    BINARY_SERIALIZATION = 1
    GATHER = 2
    BINARY_DESERIALIZATION = 3
    PRINTING = 4

    @property
    def label(self) -> str:
        return self.name.lower().replace("_", "-")


# Phases every participant measures and contributes to the gathered vector
PARTICIPANT_PHASES: tuple[TimedPhase, ...] = (TimedPhase.QUERY, TimedPhase.BINARY_SERIALIZATION)

# Phases only the coordinator reports
ROOT_PHASES: tuple[TimedPhase, ...] = (TimedPhase.GATHER, TimedPhase.BINARY_DESERIALIZATION, TimedPhase.PRINTING)

# [cpu, wall] per participant phase
VALUES_PER_PARTICIPANT = 2 * len(PARTICIPANT_PHASES)


def _fmt(value: float) -> str:
    return f"{value:.3g}"


@dataclass(frozen=True, slots=True)
class PhaseTiming:
    """CPU and wall seconds for one phase, one entry per reporting rank."""

    phase: TimedPhase
    cpu: tuple[float, ...]
    wall: tuple[float, ...]

    def to_line(self) -> str:
        if len(self.cpu) == 1:
            return f"{self.phase.label},{_fmt(self.cpu[0])},,{_fmt(self.wall[0])}"
        cpu = "".join(f",{_fmt(v)}" for v in self.cpu)
        wall = "".join(f",{_fmt(v)}" for v in self.wall)
        return f"{self.phase.label}{cpu},{wall}"


@dataclass(frozen=True, slots=True)
class TimingReport:
    """Timings of one profiled run as seen by the coordinator."""

    num_participants: int
    phases: tuple[PhaseTiming, ...]

    def timing(self, phase: TimedPhase) -> PhaseTiming:
        for entry in self.phases:
            if entry.phase is phase:
                return entry
        raise KeyError(phase)

    def to_lines(self) -> list[str]:
        return [entry.to_line() for entry in self.phases]


class InstrumentationContext:
    """Accumulates per-phase timings for one participant of one run.

    A phase measured several times accumulates.

    Example:
        instrumentation = InstrumentationContext()
        with instrumentation.measure(TimedPhase.QUERY):
            run_queries()
        vector = instrumentation.participant_vector()
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock if clock is not None else DEFAULT_CLOCK
        self._cpu = dict.fromkeys(TimedPhase, 0.0)
        self._wall = dict.fromkeys(TimedPhase, 0.0)

    @contextmanager
    def measure(self, phase: TimedPhase) -> Iterator[None]:
        cpu_start = self._clock.process_time()
        wall_start = self._clock.monotonic()
        try:
            yield
        finally:
            self._cpu[phase] += self._clock.process_time() - cpu_start
            self._wall[phase] += self._clock.monotonic() - wall_start

    def cpu(self, phase: TimedPhase) -> float:
        return self._cpu[phase]

    def wall(self, phase: TimedPhase) -> float:
        return self._wall[phase]

    def participant_vector(self) -> list[float]:
        """Return ``[cpu, wall]`` for each participant phase, flattened."""
        vector: list[float] = []
        for phase in PARTICIPANT_PHASES:
            vector.extend((self._cpu[phase], self._wall[phase]))
        return vector

    def build_report(self, gathered: Sequence[Sequence[float]]) -> TimingReport:
        """Combine gathered participant vectors with this participant's root-only phases.

        Args:
            gathered: One participant vector per rank, indexed by rank

        Raises:
            InvariantViolationError: If a gathered vector has the wrong size.
        """
        for rank, vector in enumerate(gathered):
            if len(vector) != VALUES_PER_PARTICIPANT:
                raise InvariantViolationError(f"rank {rank} sent {len(vector)} timing values, expected {VALUES_PER_PARTICIPANT}")

        phases = [
            PhaseTiming(
                phase=phase,
                cpu=tuple(float(vector[2 * i]) for vector in gathered),
                wall=tuple(float(vector[2 * i + 1]) for vector in gathered),
            )
            for i, phase in enumerate(PARTICIPANT_PHASES)
        ]
        phases.extend(PhaseTiming(phase=phase, cpu=(self._cpu[phase],), wall=(self._wall[phase],)) for phase in ROOT_PHASES)
        return TimingReport(num_participants=len(gathered), phases=tuple(phases))
