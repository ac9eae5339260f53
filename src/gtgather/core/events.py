"""Event bus carrying phase events from orchestrators to CLI formatters.

With the local channel every participant runs on its own thread and emits
into one shared bus. Dispatch is serialized by a lock so a handler never
runs concurrently with itself and formatter lines never interleave.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from collections.abc import Callable
from typing import Any, Protocol, TypeVar

E = TypeVar("E")

Handler = Callable[[Any], None]


class EventBusProtocol(Protocol):
    """What an orchestrator needs from a bus."""

    def subscribe(self, event_type: type[E], handler: Callable[[E], None]) -> None: ...

    def emit(self, event: object) -> None: ...


class EventBus:
    """Synchronous, thread-safe event bus.

    Handlers are matched on the exact event type and run in subscription
    order on the emitting thread. A handler exception propagates to the
    emitter, which for an orchestrator means the phase fails.

    Example:
        bus = EventBus()
        bus.subscribe(PhaseStarted, lambda e: print(e.phase, e.rank))
        bus.emit(PhaseStarted(phase=GatherPhase.QUERYING, rank=0))
    """

    def __init__(self) -> None:
        self._handlers: defaultdict[type, list[Handler]] = defaultdict(list)
        self._lock = threading.RLock()

    def subscribe(self, event_type: type[E], handler: Callable[[E], None]) -> None:
        with self._lock:
            self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: type[E], handler: Callable[[E], None]) -> None:
        """Remove one subscription; unknown handlers are ignored."""
        with self._lock:
            handlers = self._handlers.get(event_type)
            if handlers and handler in handlers:
                handlers.remove(handler)

    def emit(self, event: object) -> None:
        with self._lock:
            for handler in tuple(self._handlers.get(type(event), ())):
                handler(event)


class NullEventBus:
    """Bus for library use: subscriptions are accepted and never called.

    Kept separate from EventBus so nobody mistakes it for a working bus.
    """

    def subscribe(self, event_type: type[E], handler: Callable[[E], None]) -> None:
        pass

    def emit(self, event: object) -> None:
        pass
