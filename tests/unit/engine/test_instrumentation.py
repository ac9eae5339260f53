# tests/unit/engine/test_instrumentation.py
"""Tests for per-phase timing and the profile report."""

import pytest

from gtgather.contracts import InvariantViolationError
from gtgather.engine.clock import MockClock
from gtgather.engine.instrumentation import (
    VALUES_PER_PARTICIPANT,
    InstrumentationContext,
    TimedPhase,
)


class TestTimedPhase:
    def test_labels(self) -> None:
        assert [p.label for p in TimedPhase] == [
            "query",
            "binary-serialization",
            "gather",
            "binary-deserialization",
            "printing",
        ]


class TestInstrumentationContext:
    def test_measure_records_cpu_and_wall(self) -> None:
        clock = MockClock(start=10.0, cpu_start=1.0)
        context = InstrumentationContext(clock=clock)

        with context.measure(TimedPhase.QUERY):
            clock.advance(0.5, cpu=0.25)

        assert context.wall(TimedPhase.QUERY) == 0.5
        assert context.cpu(TimedPhase.QUERY) == 0.25
        assert context.wall(TimedPhase.GATHER) == 0.0

    def test_repeated_measurements_accumulate(self) -> None:
        clock = MockClock()
        context = InstrumentationContext(clock=clock)
        for _ in range(3):
            with context.measure(TimedPhase.PRINTING):
                clock.advance(1.0)
        assert context.wall(TimedPhase.PRINTING) == 3.0

    def test_measure_records_on_exception(self) -> None:
        clock = MockClock()
        context = InstrumentationContext(clock=clock)
        with pytest.raises(RuntimeError), context.measure(TimedPhase.GATHER):
            clock.advance(2.0)
            raise RuntimeError("boom")
        assert context.wall(TimedPhase.GATHER) == 2.0

    def test_participant_vector_layout(self) -> None:
        clock = MockClock()
        context = InstrumentationContext(clock=clock)
        with context.measure(TimedPhase.QUERY):
            clock.advance(4.0, cpu=3.0)
        with context.measure(TimedPhase.BINARY_SERIALIZATION):
            clock.advance(2.0, cpu=1.0)

        vector = context.participant_vector()

        assert len(vector) == VALUES_PER_PARTICIPANT == 4
        assert vector == [3.0, 4.0, 1.0, 2.0]


class TestTimingReport:
    def _context(self) -> InstrumentationContext:
        clock = MockClock()
        context = InstrumentationContext(clock=clock)
        with context.measure(TimedPhase.GATHER):
            clock.advance(0.5, cpu=0.125)
        with context.measure(TimedPhase.PRINTING):
            clock.advance(0.25, cpu=0.25)
        return context

    def test_report_lines(self) -> None:
        report = self._context().build_report([[1.0, 2.0, 0.5, 0.75], [1.5, 3.0, 0.25, 0.5]])

        assert report.num_participants == 2
        assert report.to_lines() == [
            "query,1,1.5,,2,3",
            "binary-serialization,0.5,0.25,,0.75,0.5",
            "gather,0.125,,0.5",
            "binary-deserialization,0,,0",
            "printing,0.25,,0.25",
        ]

    def test_timing_lookup(self) -> None:
        report = self._context().build_report([[1.0, 2.0, 0.5, 0.75]])
        assert report.timing(TimedPhase.QUERY).wall == (2.0,)
        assert report.timing(TimedPhase.GATHER).cpu == (0.125,)

    def test_wrong_vector_size_rejected(self) -> None:
        with pytest.raises(InvariantViolationError):
            self._context().build_report([[1.0, 2.0]])
