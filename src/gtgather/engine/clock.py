"""Clock abstraction for testable phase timing.

Production code uses SystemClock (the default). Tests inject MockClock to
control both wall and CPU time.
"""

from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    """Abstract clock used by instrumentation and phase events.

    Implementations:
    - SystemClock: time.monotonic() / time.process_time() (production)
    - MockClock: controllable times (testing)
    """

    def monotonic(self) -> float:
        """Return monotonic wall time in seconds."""
        ...

    def process_time(self) -> float:
        """Return CPU time consumed by this process in seconds."""
        ...


class SystemClock:
    """Production clock delegating to the time module."""

    def monotonic(self) -> float:
        return time.monotonic()

    def process_time(self) -> float:
        return time.process_time()


class MockClock:
    """Controllable clock for deterministic testing.

    Example:
        clock = MockClock(start=0.0)
        context = InstrumentationContext(clock=clock)
        with context.measure(TimedPhase.QUERY):
            clock.advance(0.5, cpu=0.25)
        assert context.wall(TimedPhase.QUERY) == 0.5
    """

    def __init__(self, start: float = 0.0, cpu_start: float = 0.0) -> None:
        self._current = start
        self._cpu = cpu_start

    def monotonic(self) -> float:
        return self._current

    def process_time(self) -> float:
        return self._cpu

    def advance(self, seconds: float, *, cpu: float | None = None) -> None:
        """Advance wall time by ``seconds`` and CPU time by ``cpu`` (defaults to ``seconds``).

        Raises:
            ValueError: If either amount is negative.
        """
        cpu_seconds = seconds if cpu is None else cpu
        if seconds < 0 or cpu_seconds < 0:
            raise ValueError(f"Cannot advance time by negative amount: wall={seconds} cpu={cpu_seconds}")
        self._current += seconds
        self._cpu += cpu_seconds


# Default clock for production use
DEFAULT_CLOCK: Clock = SystemClock()
