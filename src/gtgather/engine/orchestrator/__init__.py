"""Orchestrator package: the gather lifecycle.

Module structure:
- core.py: GatherOrchestrator (one participant's phase machine)
- types.py: GatherRunConfig, GatherResult
- group.py: run_local_group (N participants on threads of one process)
"""

from gtgather.engine.orchestrator.core import GatherOrchestrator
from gtgather.engine.orchestrator.group import run_local_group
from gtgather.engine.orchestrator.types import GatherResult, GatherRunConfig

__all__ = [
    "GatherOrchestrator",
    "GatherResult",
    "GatherRunConfig",
    "run_local_group",
]
