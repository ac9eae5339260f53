"""Gather engine: collective channels, planning, decoding, and the orchestrator.

Exports:
- GatherOrchestrator: runs the lifecycle for one participant
- run_local_group: runs a whole group on threads of one process
- LocalGroup / MPIChannel: collective channel implementations
"""

from gtgather.engine.channel import CollectiveChannel, LocalChannel, LocalGroup, MPIChannel
from gtgather.engine.clock import DEFAULT_CLOCK, Clock, MockClock, SystemClock
from gtgather.engine.decoder import decode_aggregated
from gtgather.engine.instrumentation import InstrumentationContext, TimedPhase, TimingReport
from gtgather.engine.orchestrator import GatherOrchestrator, GatherResult, GatherRunConfig, run_local_group
from gtgather.engine.planner import GatherPlan, plan_gather

__all__ = [
    "DEFAULT_CLOCK",
    "Clock",
    "CollectiveChannel",
    "GatherOrchestrator",
    "GatherPlan",
    "GatherResult",
    "GatherRunConfig",
    "InstrumentationContext",
    "LocalChannel",
    "LocalGroup",
    "MPIChannel",
    "MockClock",
    "SystemClock",
    "TimedPhase",
    "TimingReport",
    "decode_aggregated",
    "plan_gather",
    "run_local_group",
]
