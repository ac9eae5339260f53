"""Run a whole gather group inside one process.

Each participant runs its own GatherOrchestrator on a worker thread of a
ThreadPoolExecutor, connected through one LocalGroup.
"""

from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, wait

import structlog

from gtgather.contracts import GroupAbortedError
from gtgather.core.config import DEFAULT_TRANSFER_LIMIT
from gtgather.engine.channel import LocalChannel, LocalGroup
from gtgather.engine.orchestrator.core import GatherOrchestrator
from gtgather.engine.orchestrator.types import GatherResult

logger = structlog.get_logger(__name__)

OrchestratorFactory = Callable[[LocalChannel], GatherOrchestrator]


def run_local_group(
    size: int,
    build: OrchestratorFactory,
    *,
    timeout: float | None = None,
    transfer_limit: int = DEFAULT_TRANSFER_LIMIT,
) -> list[GatherResult]:
    """Run ``size`` participants to completion and return their results in rank order.

    Args:
        size: Number of participants
        build: Creates the orchestrator for one participant's channel; runs on
            that participant's thread
        timeout: Seconds any participant may wait in one collective
        transfer_limit: Largest aggregated payload the group accepts

    Raises:
        Exception: The root cause when any participant fails, i.e. the first
            error in rank order that is not a GroupAbortedError.
    """
    group = LocalGroup(size, transfer_limit=transfer_limit, timeout=timeout)

    def participate(channel: LocalChannel) -> GatherResult:
        try:
            orchestrator = build(channel)
        except Exception as e:
            channel.abort(f"rank {channel.rank} failed to start: {e}")
            raise
        return orchestrator.run()

    with ThreadPoolExecutor(max_workers=size, thread_name_prefix="gtgather-rank") as executor:
        futures = [executor.submit(participate, channel) for channel in group.channels]
        wait(futures)

    errors = [e for e in (future.exception() for future in futures) if e is not None]
    if errors:
        root_cause = next((e for e in errors if not isinstance(e, GroupAbortedError)), errors[0])
        logger.debug("Local group failed", participants=size, failures=len(errors), root_cause=type(root_cause).__name__)
        raise root_cause
    return [future.result() for future in futures]
