"""Gather lifecycle for one participant.

Phases, in order:
- INIT: resolve the array schema and run query bookkeeping
- QUERYING: run every configured interval (skipped on a skipping coordinator)
- ENCODING: serialize the records into one contiguous buffer
- SIZE_EXCHANGE: gather every participant's serialized length
- PLANNING: coordinator computes counts, displacements, overflow check
- PAYLOAD_EXCHANGE: gather the payloads into the aggregated buffer
- DECODING, PRESENTING: coordinator only
- DONE or ABORTED

Every participant must reach every collective in the same order. A failure
anywhere aborts the whole group exactly once, then propagates.
"""

from __future__ import annotations

import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, TextIO

import structlog

from gtgather.contracts import (
    GatherPhase,
    GatherSummary,
    InvariantViolationError,
    Participant,
    PhaseCompleted,
    PhaseError,
    PhaseStarted,
    Variant,
)
from gtgather.core.codec import SerializedBuffer
from gtgather.core.events import NullEventBus
from gtgather.core.presenter import Presenter, print_variants
from gtgather.core.store.protocols import QueryStats
from gtgather.engine.clock import DEFAULT_CLOCK, Clock
from gtgather.engine.decoder import decode_aggregated
from gtgather.engine.instrumentation import InstrumentationContext, TimedPhase
from gtgather.engine.orchestrator.types import GatherResult, GatherRunConfig
from gtgather.engine.planner import plan_gather

if TYPE_CHECKING:
    from gtgather.core.events import EventBusProtocol
    from gtgather.core.store.protocols import QueryEngine
    from gtgather.engine.channel import CollectiveChannel

logger = structlog.get_logger(__name__)


class GatherOrchestrator:
    """Runs the gather lifecycle for the participant behind ``channel``.

    Example:
        orchestrator = GatherOrchestrator(channel, processor, run_config)
        result = orchestrator.run()
        if result.records is not None:
            ...  # coordinator
    """

    def __init__(
        self,
        channel: CollectiveChannel,
        engine: QueryEngine,
        run_config: GatherRunConfig,
        *,
        presenter: Presenter = print_variants,
        sink: TextIO | None = None,
        event_bus: EventBusProtocol | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._channel = channel
        self._engine = engine
        self._config = run_config
        self._presenter = presenter
        self._sink = sink
        self._events: EventBusProtocol = event_bus if event_bus is not None else NullEventBus()
        self._clock = clock if clock is not None else DEFAULT_CLOCK
        self._participant = Participant(
            rank=channel.rank,
            size=channel.size,
            skip_query=run_config.skip_query_on_root,
        )
        self._log = logger.bind(rank=channel.rank)
        self._result = GatherResult(rank=channel.rank, role=self._participant.role)
        self._current: GatherPhase | None = None
        self._started = False

    @property
    def participant(self) -> Participant:
        return self._participant

    @property
    def result(self) -> GatherResult:
        """Progress of the run so far; still available after an abort."""
        return self._result

    @contextmanager
    def _phase(self, phase: GatherPhase) -> Iterator[None]:
        rank = self._channel.rank
        self._current = phase
        self._result.phases.append(phase)
        self._log.debug("Phase started", phase=phase.value)
        self._events.emit(PhaseStarted(phase=phase, rank=rank))
        phase_start = self._clock.monotonic()
        try:
            yield
        except Exception as e:
            self._events.emit(PhaseError(phase=phase, rank=rank, error_message=str(e)))
            raise
        duration = self._clock.monotonic() - phase_start
        self._log.debug("Phase completed", phase=phase.value, duration_seconds=duration)
        self._events.emit(PhaseCompleted(phase=phase, rank=rank, duration_seconds=duration))

    def _abort(self, error: Exception) -> None:
        failed_phase = self._current.value if self._current is not None else "init"
        reason = f"rank {self._channel.rank} failed in {failed_phase}: {error}"
        self._log.error("Gather failed, aborting group", phase=failed_phase, error=str(error), error_type=type(error).__name__)
        self._current = GatherPhase.ABORTED
        self._result.phases.append(GatherPhase.ABORTED)
        self._channel.abort(reason)

    def run(self) -> GatherResult:
        """Run every phase once.

        Returns:
            The participant's result; the coordinator's carries the plan,
            the decoded records and, when profiling, the timing report.

        Raises:
            GatherError: Any failure, after the group has been aborted.
            RuntimeError: If called twice.
        """
        if self._started:
            raise RuntimeError("GatherOrchestrator.run() may only be called once")
        self._started = True

        run_start = self._clock.monotonic()
        try:
            self._execute(run_start)
        except Exception as e:
            self._abort(e)
            raise
        finally:
            self._engine.close()
        return self._result

    def _execute(self, run_start: float) -> None:
        channel = self._channel
        engine = self._engine
        config = self._config
        query_config = config.query_config
        result = self._result
        instrumentation = InstrumentationContext(clock=self._clock)

        with self._phase(GatherPhase.INIT):
            engine.do_query_bookkeeping(engine.get_array_schema(), query_config)

        variants: list[Variant] = []
        if self._participant.runs_query:
            stats = QueryStats()
            with self._phase(GatherPhase.QUERYING), instrumentation.measure(TimedPhase.QUERY):
                for interval_index in range(query_config.num_column_intervals):
                    engine.query_column_interval(query_config, interval_index, variants, stats)
            result.query_stats = stats
        else:
            self._log.info("Skipping query on coordinator")

        with self._phase(GatherPhase.ENCODING), instrumentation.measure(TimedPhase.BINARY_SERIALIZATION):
            buffer = SerializedBuffer(config.initial_buffer_capacity)
            for variant in variants:
                engine.binary_serialize(variant, buffer)
        result.serialized_length = buffer.length
        result.records_contributed = len(variants)
        self._log.debug("Encoded records", records=len(variants), serialized_length=buffer.length)

        gathered_timings = channel.gather_vector(instrumentation.participant_vector()) if config.profile else None

        with instrumentation.measure(TimedPhase.GATHER):
            with self._phase(GatherPhase.SIZE_EXCHANGE):
                lengths = channel.gather_scalar(buffer.length)

            if not channel.is_coordinator:
                with self._phase(GatherPhase.PAYLOAD_EXCHANGE):
                    channel.gather_varying(buffer.view())
                result.phases.append(GatherPhase.DONE)
                self._current = GatherPhase.DONE
                return

            with self._phase(GatherPhase.PLANNING):
                if lengths is None:
                    raise InvariantViolationError("coordinator received no length vector")
                plan = plan_gather(lengths, transfer_limit=channel.transfer_limit)
            result.plan = plan

            with self._phase(GatherPhase.PAYLOAD_EXCHANGE):
                aggregated = channel.gather_varying(buffer.view(), plan.recv_counts, plan.displacements)
                if aggregated is None:
                    raise InvariantViolationError("coordinator received no aggregated buffer")

        with self._phase(GatherPhase.DECODING), instrumentation.measure(TimedPhase.BINARY_DESERIALIZATION):
            records = decode_aggregated(aggregated, plan.total_size, engine.binary_deserialize)
        result.records = records

        with self._phase(GatherPhase.PRESENTING), instrumentation.measure(TimedPhase.PRINTING):
            sink = self._sink if self._sink is not None else sys.stdout
            self._presenter(records, config.output_format, query_config, sink)

        if gathered_timings is not None:
            result.timing = instrumentation.build_report(gathered_timings)

        result.phases.append(GatherPhase.DONE)
        self._current = GatherPhase.DONE
        duration = self._clock.monotonic() - run_start
        self._log.info(
            "Gather complete",
            participants=channel.size,
            total_size=plan.total_size,
            records=len(records),
            duration_seconds=duration,
        )
        self._events.emit(
            GatherSummary(
                num_participants=channel.size,
                total_size=plan.total_size,
                records=len(records),
                duration_seconds=duration,
            )
        )
