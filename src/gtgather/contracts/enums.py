"""Status codes, roles, and kinds used across subsystem boundaries."""

from enum import StrEnum


class ParticipantRole(StrEnum):
    """Role of a participant in the gather group.

    The coordinator is always rank 0.
    """

    COORDINATOR = "coordinator"
    WORKER = "worker"

    @classmethod
    def for_rank(cls, rank: int) -> "ParticipantRole":
        return cls.COORDINATOR if rank == 0 else cls.WORKER


class GatherPhase(StrEnum):
    """States of the per-participant gather lifecycle.

    All participants pass through INIT, QUERYING, ENCODING, SIZE_EXCHANGE
    and PAYLOAD_EXCHANGE. Only the coordinator runs PLANNING, DECODING and
    PRESENTING. ABORTED is terminal and replaces DONE on failure.
    """

    INIT = "init"
    QUERYING = "querying"
    ENCODING = "encoding"
    SIZE_EXCHANGE = "size_exchange"
    PLANNING = "planning"
    PAYLOAD_EXCHANGE = "payload_exchange"
    DECODING = "decoding"
    PRESENTING = "presenting"
    DONE = "done"
    ABORTED = "aborted"


class OutputFormat(StrEnum):
    """Presenter output formats."""

    DEFAULT = "default"
    POSITIONS_JSON = "positions-json"
    COTTON_JSON = "cotton-json"

    @classmethod
    def parse(cls, value: "str | OutputFormat") -> "OutputFormat":
        """Parse a user-supplied format name (case-insensitive, '' means default)."""
        if isinstance(value, OutputFormat):
            return value
        normalized = value.strip().lower()
        if normalized == "":
            return cls.DEFAULT
        return cls(normalized)


class FieldType(StrEnum):
    """Declared type of an array attribute.

    Stored in the database (array_attributes.field_type).
    """

    INT = "int"
    FLOAT = "float"
    STRING = "string"
    INT_LIST = "int_list"
    FLOAT_LIST = "float_list"
    STRING_LIST = "string_list"


class ChannelKind(StrEnum):
    """Collective transport selected on the command line."""

    LOCAL = "local"
    MPI = "mpi"
