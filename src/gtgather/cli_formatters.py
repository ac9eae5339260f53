"""Phase event formatters for ``gtgather query --show-phases``.

Each factory maps event types to handlers ready for ``subscribe_formatters``.
All output goes to stderr so stdout stays a clean record stream.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import typer

from gtgather.contracts.events import GatherSummary, PhaseCompleted, PhaseError, PhaseStarted
from gtgather.core.events import EventBusProtocol

Formatters = dict[type, Callable[..., None]]


def _prefix(rank: int, phase_name: str) -> str:
    return f"[rank {rank}] [{phase_name.upper()}]"


def create_console_formatters() -> Formatters:
    """Human-readable, one line per event."""

    def on_started(event: PhaseStarted) -> None:
        typer.echo(f"{_prefix(event.rank, event.phase.value)} started", err=True)

    def on_completed(event: PhaseCompleted) -> None:
        typer.echo(f"{_prefix(event.rank, event.phase.value)} ✓ {event.duration_seconds:.3f}s", err=True)

    def on_error(event: PhaseError) -> None:
        typer.echo(f"{_prefix(event.rank, event.phase.value)} ✗ {event.error_message}", err=True)

    def on_summary(event: GatherSummary) -> None:
        typer.echo(
            f"✓ Gathered {event.records:,} records ({event.total_size:,} bytes) "
            f"from {event.num_participants} participants in {event.duration_seconds:.2f}s",
            err=True,
        )

    return {PhaseStarted: on_started, PhaseCompleted: on_completed, PhaseError: on_error, GatherSummary: on_summary}


def _echo_json(kind: str, **fields: Any) -> None:
    typer.echo(json.dumps({"event": kind, **fields}), err=True)


def create_json_formatters() -> Formatters:
    """One JSON object per line, for machine consumers (``--json-logs``)."""
    return {
        PhaseStarted: lambda e: _echo_json("phase_started", phase=e.phase.value, rank=e.rank),
        PhaseCompleted: lambda e: _echo_json(
            "phase_completed", phase=e.phase.value, rank=e.rank, duration_seconds=e.duration_seconds
        ),
        PhaseError: lambda e: _echo_json("phase_error", phase=e.phase.value, rank=e.rank, error=e.error_message),
        GatherSummary: lambda e: _echo_json(
            "gather_completed",
            participants=e.num_participants,
            total_size=e.total_size,
            records=e.records,
            duration_seconds=e.duration_seconds,
        ),
    }


def subscribe_formatters(event_bus: EventBusProtocol, formatters: Formatters) -> None:
    for event_type, handler in formatters.items():
        event_bus.subscribe(event_type, handler)
