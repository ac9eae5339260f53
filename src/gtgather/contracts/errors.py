"""Error taxonomy for the gather protocol.

Every error here is unrecoverable at the point of detection. Nothing in
the core protocol retries: the orchestrator converts any of these into a
single group abort and re-raises, and the CLI maps them to exit code -1.
"""

from __future__ import annotations

from typing import Any


class GatherError(Exception):
    """Base class for all gtgather failures.

    Attributes:
        exit_code: Process exit code the CLI uses for this failure.
    """

    exit_code: int = -1


class ArgumentError(GatherError):
    """Invalid command-line arguments or configuration file.

    Raised before any collective phase is entered.
    """


class QueryConfigError(ArgumentError):
    """Query configuration is inconsistent with the array or the group.

    Examples: unknown attribute, inverted interval, no interval list for a rank.
    """


class TransferOverflowError(GatherError):
    """Aggregated payload would exceed the channel's per-call transfer limit.

    Detected by the coordinator while planning, before any payload bytes move.

    Attributes:
        total_size: Sum of all participant lengths in bytes
        transfer_limit: Largest aggregated transfer the channel accepts
    """

    def __init__(self, total_size: int, transfer_limit: int) -> None:
        self.total_size = total_size
        self.transfer_limit = transfer_limit
        super().__init__(f"Serialized size {total_size:,} bytes exceeds the transfer limit of {transfer_limit:,} bytes")


class CollectiveError(GatherError):
    """The communication substrate failed or timed out during a collective.

    Attributes:
        phase: Collective operation that failed (e.g. "gather_scalar")
    """

    def __init__(self, message: str, *, phase: str | None = None) -> None:
        self.phase = phase
        prefix = f"{phase}: " if phase else ""
        super().__init__(f"{prefix}{message}")


class GroupAbortedError(CollectiveError):
    """Another participant aborted the group while this one was in a collective.

    Attributes:
        reason: Reason given by the participant that aborted
    """

    def __init__(self, reason: str, *, phase: str | None = None) -> None:
        self.reason = reason
        super().__init__(f"group aborted: {reason}", phase=phase)


class FramingCorruptionError(GatherError):
    """Encoded bytes could not be consumed as whole records.

    Sender and receiver disagree on framing. Never corrected, always fatal.

    Attributes:
        offset: Cursor position where decoding failed
        total_size: Size of the buffer being decoded
    """

    def __init__(self, message: str, *, offset: int, total_size: int) -> None:
        self.offset = offset
        self.total_size = total_size
        super().__init__(f"{message} (offset={offset}, total_size={total_size})")


class InvariantViolationError(GatherError):
    """An internal consistency check failed.

    Raised explicitly rather than through ``assert`` so checks survive ``python -O``.
    """


class RecordEncodeError(GatherError, ValueError):
    """A record holds a value the binary encoding cannot represent.

    Attributes:
        field: Attribute name (or coordinate name) holding the bad value
        value: The offending value
    """

    def __init__(self, field: str, value: Any, reason: str) -> None:
        self.field = field
        self.value = value
        super().__init__(f"Cannot encode {field}={value!r}: {reason}")


class QueryEngineError(GatherError):
    """The variant store rejected an operation."""


class UnknownArrayError(QueryEngineError):
    """Requested array does not exist in the workspace."""

    def __init__(self, array_name: str, workspace: str) -> None:
        self.array_name = array_name
        self.workspace = workspace
        super().__init__(f"Array '{array_name}' not found in workspace {workspace}")


class ArrayExistsError(QueryEngineError):
    """Import refused because the array already exists and updating is disallowed."""

    def __init__(self, array_name: str) -> None:
        self.array_name = array_name
        super().__init__(f"Array '{array_name}' already exists (--fail-if-updating)")
