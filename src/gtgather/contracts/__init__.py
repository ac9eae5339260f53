"""Shared contracts for cross-boundary data types.

This package is a LEAF MODULE: it must not import from gtgather.core or
gtgather.engine.

Import patterns:
    from gtgather.contracts import Variant, QueryConfig, GatherPhase
    from gtgather.contracts.errors import TransferOverflowError
"""

from gtgather.contracts.enums import (
    ChannelKind,
    FieldType,
    GatherPhase,
    OutputFormat,
    ParticipantRole,
)
from gtgather.contracts.errors import (
    ArgumentError,
    ArrayExistsError,
    CollectiveError,
    FramingCorruptionError,
    GatherError,
    GroupAbortedError,
    InvariantViolationError,
    QueryConfigError,
    QueryEngineError,
    RecordEncodeError,
    TransferOverflowError,
    UnknownArrayError,
)
from gtgather.contracts.events import GatherSummary, PhaseCompleted, PhaseError, PhaseStarted
from gtgather.contracts.query import DEFAULT_QUERY_ATTRIBUTES, ColumnInterval, Participant, QueryConfig, RowInterval
from gtgather.contracts.records import FieldValue, Variant, VariantCall

__all__ = [
    "DEFAULT_QUERY_ATTRIBUTES",
    "ArgumentError",
    "ArrayExistsError",
    "ChannelKind",
    "CollectiveError",
    "ColumnInterval",
    "FieldType",
    "FieldValue",
    "FramingCorruptionError",
    "GatherError",
    "GatherPhase",
    "GatherSummary",
    "GroupAbortedError",
    "InvariantViolationError",
    "OutputFormat",
    "Participant",
    "ParticipantRole",
    "PhaseCompleted",
    "PhaseError",
    "PhaseStarted",
    "QueryConfig",
    "QueryConfigError",
    "QueryEngineError",
    "RecordEncodeError",
    "RowInterval",
    "TransferOverflowError",
    "UnknownArrayError",
    "Variant",
    "VariantCall",
]
