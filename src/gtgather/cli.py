"""gtgather Command Line Interface.

Entry point for the gtgather CLI tool.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

import typer

from gtgather import __version__
from gtgather.contracts import ArgumentError, ChannelKind, GatherError, QueryEngineError
from gtgather.core.config import GatherSettings, load_settings, settings_from_interval

if TYPE_CHECKING:
    from gtgather.core.events import EventBusProtocol
    from gtgather.engine.orchestrator import GatherResult

__all__ = ["app"]

app = typer.Typer(
    name="gtgather",
    help="gtgather: gather variant query results from a group of participants.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"gtgather version {__version__}")
        raise typer.Exit()


def _load_dotenv(env_file: Path | None = None) -> bool:
    """Load environment variables from a .env file.

    Args:
        env_file: Explicit path to .env file. If None, searches for .env
                 in current directory and parent directories.

    Returns:
        True if .env was found and loaded, False otherwise.

    Raises:
        typer.Exit: If explicit env_file path doesn't exist.
    """
    from dotenv import load_dotenv

    if env_file is not None:
        if not env_file.exists():
            typer.secho(
                f"Error: .env file not found: {env_file}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(code=GatherError.exit_code)
        return load_dotenv(env_file, override=False)

    return load_dotenv(override=False)


@app.callback()
def main(
    ctx: typer.Context,
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    no_dotenv: bool = typer.Option(
        False,
        "--no-dotenv",
        help="Skip loading .env file.",
    ),
    env_file: Path | None = typer.Option(
        None,
        "--env-file",
        help="Path to .env file (skips automatic search).",
        exists=False,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose/debug logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Output structured JSON logs (for machine processing).",
    ),
) -> None:
    """gtgather: gather variant query results from a group of participants."""
    from gtgather.core.logging import configure_logging

    log_level = "DEBUG" if verbose else "INFO"
    configure_logging(json_output=json_logs, level=log_level)
    ctx.obj = {"json_logs": json_logs}

    if not no_dotenv:
        _load_dotenv(env_file=env_file)
    elif env_file is not None:
        typer.secho(
            "Warning: --env-file ignored because --no-dotenv is set.",
            fg=typer.colors.YELLOW,
            err=True,
        )


def _fail(error: GatherError) -> typer.Exit:
    typer.echo(f"Error: {error}", err=True)
    return typer.Exit(code=error.exit_code)


def _resolve_settings(
    *,
    start: str | None,
    end: str | None,
    workspace: str | None,
    array: str | None,
    json_config: Path | None,
    options: dict[str, Any],
) -> GatherSettings:
    """Settings from either the JSON config file or the positional interval."""
    if json_config is not None:
        if start is not None or end is not None:
            raise ArgumentError("START/END cannot be combined with --json-config")
        return load_settings(json_config.expanduser(), overrides=options, workspace=workspace, array=array)
    if start is None or end is None:
        raise ArgumentError(
            "Invalid number of arguments. Usage: gtgather query ( -j <json_config_file> | -w <workspace> -A <array> <start> <end> )"
        )
    return settings_from_interval(workspace=workspace, array=array, start=start, end=end, **options)


def _build_event_bus(show_phases: bool, json_output: bool) -> EventBusProtocol:
    from gtgather.cli_formatters import create_console_formatters, create_json_formatters, subscribe_formatters
    from gtgather.core.events import EventBus, NullEventBus

    if not show_phases:
        return NullEventBus()
    event_bus = EventBus()
    formatters = create_json_formatters() if json_output else create_console_formatters()
    subscribe_formatters(event_bus, formatters)
    return event_bus


def _run_local(
    settings: GatherSettings,
    *,
    participants: int,
    timeout: float | None,
    event_bus: EventBusProtocol,
) -> GatherResult:
    """Run every participant on a thread of this process; returns the coordinator's result."""
    from gtgather.core.store import VariantQueryProcessor, VariantWorkspace
    from gtgather.engine.channel import LocalChannel
    from gtgather.engine.orchestrator import GatherOrchestrator, GatherRunConfig, run_local_group

    try:
        workspace = VariantWorkspace(settings.workspace)
    except FileNotFoundError as e:
        raise QueryEngineError(str(e)) from e

    def build(channel: LocalChannel) -> GatherOrchestrator:
        return GatherOrchestrator(
            channel,
            VariantQueryProcessor(workspace, settings.array),
            GatherRunConfig.from_settings(settings, channel.rank),
            event_bus=event_bus,
        )

    try:
        results = run_local_group(participants, build, timeout=timeout, transfer_limit=settings.transfer_limit)
    finally:
        workspace.close()
    return results[0]


def _run_mpi(settings: GatherSettings, *, event_bus: EventBusProtocol) -> GatherResult | None:
    """Run this process's participant; returns the result on the coordinator only."""
    from gtgather.core.logging import bind_participant
    from gtgather.core.store import VariantQueryProcessor
    from gtgather.engine.channel import MPIChannel
    from gtgather.engine.orchestrator import GatherOrchestrator, GatherRunConfig

    try:
        channel = MPIChannel(transfer_limit=settings.transfer_limit)
    except ImportError as e:
        raise ArgumentError(str(e)) from e
    bind_participant(channel.rank, channel.size)

    try:
        orchestrator = GatherOrchestrator(
            channel,
            VariantQueryProcessor.open(settings.workspace, settings.array),
            GatherRunConfig.from_settings(settings, channel.rank),
            event_bus=event_bus,
        )
    except GatherError as e:
        channel.abort(f"rank {channel.rank} failed to start: {e}")
        raise
    result = orchestrator.run()
    return result if channel.is_coordinator else None


@app.command()
def query(
    ctx: typer.Context,
    start: str | None = typer.Argument(None, help="First column of the queried interval."),
    end: str | None = typer.Argument(None, help="Last column of the queried interval (inclusive)."),
    workspace: str | None = typer.Option(None, "--workspace", "-w", help="Workspace directory or database URL."),
    array: str | None = typer.Option(None, "--array", "-A", help="Array name inside the workspace."),
    json_config: Path | None = typer.Option(None, "--json-config", "-j", help="JSON query configuration file."),
    output_format: str | None = typer.Option(
        None,
        "--output-format",
        "-O",
        help="Output format: default, positions-json or cotton-json.",
    ),
    page_size: int | None = typer.Option(None, "--page-size", "-p", help="Accepted for compatibility; ignored."),
    skip_query_on_root: bool = typer.Option(
        False,
        "--skip-query-on-root",
        help="The coordinator only gathers and prints; it contributes no records.",
    ),
    channel: ChannelKind = typer.Option(ChannelKind.LOCAL, "--channel", help="Collective channel to run on."),
    participants: int = typer.Option(1, "--participants", "-n", min=1, help="Participants for the local channel."),
    profile: bool = typer.Option(False, "--profile", help="Report per-phase CPU and wall timings on stderr."),
    transfer_limit: int | None = typer.Option(None, "--transfer-limit", help="Largest aggregated payload in bytes."),
    show_phases: bool = typer.Option(False, "--show-phases", help="Print phase transitions on stderr."),
    timeout: float | None = typer.Option(None, "--timeout", help="Seconds to wait in one collective (local channel)."),
) -> None:
    """Query every participant and print the gathered records.

    Use either ``-w WORKSPACE -A ARRAY START END`` or ``-j CONFIG.json``.
    """
    options: dict[str, Any] = {
        "output_format": output_format,
        "page_size": page_size,
        "skip_query_on_root": True if skip_query_on_root else None,
        "profile": True if profile else None,
        "transfer_limit": transfer_limit,
    }
    json_output = bool(ctx.obj and ctx.obj.get("json_logs"))

    try:
        settings = _resolve_settings(
            start=start,
            end=end,
            workspace=workspace,
            array=array,
            json_config=json_config,
            options=options,
        )
        event_bus = _build_event_bus(show_phases, json_output)
        if channel is ChannelKind.MPI:
            if participants != 1:
                typer.secho("Warning: --participants ignored with --channel mpi.", fg=typer.colors.YELLOW, err=True)
            result = _run_mpi(settings, event_bus=event_bus)
        else:
            result = _run_local(settings, participants=participants, timeout=timeout, event_bus=event_bus)
    except GatherError as e:
        raise _fail(e) from None

    sys.stdout.flush()
    if result is not None and result.timing is not None:
        for line in result.timing.to_lines():
            typer.echo(line, err=True)


@app.command("import")
def import_cells(
    cells_file: Path = typer.Argument(..., help="JSON-lines file with one cell per line."),
    workspace: str | None = typer.Option(None, "--workspace", "-w", help="Workspace directory or database URL."),
    array: str | None = typer.Option(None, "--array", "-A", help="Array to create or extend."),
    attribute: list[str] | None = typer.Option(
        None,
        "--attribute",
        "-a",
        help="Attribute declaration NAME:TYPE, repeatable, in order.",
    ),
    fail_if_updating: bool = typer.Option(
        False,
        "--fail-if-updating",
        help="Fail instead of extending an array that already exists.",
    ),
) -> None:
    """Load variant calls into a workspace array."""
    from gtgather.core.store import VariantWorkspace, import_variants, parse_attribute_spec, read_cells_jsonl

    try:
        if not workspace or not array:
            raise ArgumentError("Missing workspace (-w) or array name (-A)")
        if not attribute:
            raise ArgumentError("At least one --attribute NAME:TYPE is required")
        if not cells_file.is_file():
            raise ArgumentError(f"Cells file not found: {cells_file}")
        specs = [parse_attribute_spec(text) for text in attribute]
        with VariantWorkspace(workspace, create=True) as ws:
            inserted = import_variants(
                ws,
                array,
                specs,
                read_cells_jsonl(cells_file),
                fail_if_updating=fail_if_updating,
            )
    except GatherError as e:
        raise _fail(e) from None

    typer.echo(f"Imported {inserted:,} cells into array '{array}'")


if __name__ == "__main__":
    app()
