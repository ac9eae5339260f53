# tests/unit/core/test_events.py
"""Tests for EventBus and NullEventBus."""

from concurrent.futures import ThreadPoolExecutor

from gtgather.contracts import GatherPhase, PhaseCompleted, PhaseStarted
from gtgather.core.events import EventBus, NullEventBus


class TestEventBus:
    def test_handlers_receive_events_of_their_type(self) -> None:
        bus = EventBus()
        started: list[PhaseStarted] = []
        completed: list[PhaseCompleted] = []
        bus.subscribe(PhaseStarted, started.append)
        bus.subscribe(PhaseCompleted, completed.append)

        bus.emit(PhaseStarted(phase=GatherPhase.QUERYING, rank=1))

        assert started == [PhaseStarted(phase=GatherPhase.QUERYING, rank=1)]
        assert completed == []

    def test_handlers_run_in_subscription_order(self) -> None:
        bus = EventBus()
        order: list[str] = []
        bus.subscribe(PhaseStarted, lambda e: order.append("first"))
        bus.subscribe(PhaseStarted, lambda e: order.append("second"))
        bus.emit(PhaseStarted(phase=GatherPhase.INIT, rank=0))
        assert order == ["first", "second"]

    def test_unsubscribed_events_ignored(self) -> None:
        EventBus().emit(PhaseStarted(phase=GatherPhase.INIT, rank=0))

    def test_unsubscribe(self) -> None:
        bus = EventBus()
        received: list[PhaseStarted] = []
        bus.subscribe(PhaseStarted, received.append)
        bus.unsubscribe(PhaseStarted, received.append)
        bus.unsubscribe(PhaseCompleted, received.append)
        bus.emit(PhaseStarted(phase=GatherPhase.INIT, rank=0))
        assert received == []

    def test_concurrent_emitters_deliver_every_event(self) -> None:
        bus = EventBus()
        received: list[int] = []
        bus.subscribe(PhaseStarted, lambda e: received.append(e.rank))

        def emit_many(rank: int) -> None:
            for _ in range(200):
                bus.emit(PhaseStarted(phase=GatherPhase.SIZE_EXCHANGE, rank=rank))

        with ThreadPoolExecutor(max_workers=4) as executor:
            list(executor.map(emit_many, range(4)))

        assert sorted(received) == sorted(r for r in range(4) for _ in range(200))


class TestNullEventBus:
    def test_subscribe_and_emit_are_no_ops(self) -> None:
        bus = NullEventBus()
        received: list[object] = []
        bus.subscribe(PhaseStarted, received.append)
        bus.emit(PhaseStarted(phase=GatherPhase.INIT, rank=0))
        assert received == []
