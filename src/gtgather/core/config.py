"""
Configuration schema and loading for gather runs.

Uses Pydantic for validation and Dynaconf for multi-source loading (JSON
config file plus GTGATHER_* environment overrides). Settings are frozen
after construction.
"""

import re
from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel, Field, ValidationError, ValidationInfo, field_validator, model_validator

from gtgather.contracts.enums import OutputFormat
from gtgather.contracts.errors import ArgumentError, QueryConfigError
from gtgather.contracts.query import DEFAULT_QUERY_ATTRIBUTES, ColumnInterval, QueryConfig, RowInterval

logger = structlog.get_logger(__name__)

# Channel counts and displacements are 32-bit signed ints
INT32_MAX = 2**31 - 1

# Largest aggregated payload accepted by default (just under 2GB)
DEFAULT_TRANSFER_LIMIT = 2_000_000_000

DEFAULT_INITIAL_BUFFER_CAPACITY = 1_000_000


class GatherSettings(BaseModel):
    """Top-level configuration for one gather run.

    ``query_column_ranges`` holds one interval list per rank. A single list
    applies to every rank, which is also the shape produced by the
    positional ``START END`` command-line form. ``query_row_ranges`` has the
    same shape and restricts which sample rows a rank returns; left empty,
    every rank returns every row.

    Example JSON:
        {
          "workspace": "/data/ws",
          "array": "calls",
          "query_attributes": ["REF", "ALT", "PL"],
          "query_column_ranges": [[[0, 1000]], [[1001, 2000]]],
          "query_row_ranges": [[[0, 99]], [[100, 199], 250]],
          "output_format": "positions-json"
        }
    """

    model_config = {"frozen": True}

    workspace: str = Field(min_length=1, description="Workspace directory or SQLAlchemy URL")
    array: str = Field(min_length=1, description="Array name inside the workspace")
    query_attributes: tuple[str, ...] = Field(
        default=DEFAULT_QUERY_ATTRIBUTES,
        min_length=1,
        description="Attributes to fetch, in encoding order",
    )
    query_column_ranges: tuple[tuple[tuple[int, int], ...], ...] = Field(
        min_length=1,
        description="Per-rank lists of inclusive [begin, end] column intervals",
    )
    query_row_ranges: tuple[tuple[tuple[int, int], ...], ...] = Field(
        default=(),
        description="Per-rank lists of inclusive [begin, end] sample row intervals; empty means all rows",
    )
    output_format: OutputFormat = Field(default=OutputFormat.DEFAULT)
    skip_query_on_root: bool = Field(default=False, description="Coordinator contributes no records")
    page_size: int | None = Field(default=None, ge=0, description="Accepted for compatibility, ignored")
    transfer_limit: int = Field(
        default=DEFAULT_TRANSFER_LIMIT,
        gt=0,
        le=INT32_MAX,
        description="Largest aggregated payload in bytes; larger gathers abort",
    )
    initial_buffer_capacity: int = Field(default=DEFAULT_INITIAL_BUFFER_CAPACITY, ge=0)
    profile: bool = Field(default=False, description="Gather and report per-phase timings")

    @field_validator("output_format", mode="before")
    @classmethod
    def parse_output_format(cls, v: Any) -> Any:
        if isinstance(v, str):
            try:
                return OutputFormat.parse(v)
            except ValueError:
                valid = ", ".join(f.value for f in OutputFormat)
                raise ValueError(f"unknown output format {v!r} (expected one of: {valid})") from None
        return v

    @field_validator("query_column_ranges", "query_row_ranges", mode="before")
    @classmethod
    def normalize_ranges(cls, v: Any) -> Any:
        """Accept a bare column or row ``x`` as shorthand for ``[x, x]``."""
        if not isinstance(v, (list, tuple)):
            return v
        normalized = []
        for rank_ranges in v:
            if not isinstance(rank_ranges, (list, tuple)):
                return v
            normalized.append([[item, item] if isinstance(item, int) else item for item in rank_ranges])
        return normalized

    @field_validator("query_column_ranges", "query_row_ranges")
    @classmethod
    def validate_ranges(
        cls, v: tuple[tuple[tuple[int, int], ...], ...], info: ValidationInfo
    ) -> tuple[tuple[tuple[int, int], ...], ...]:
        kind = "column" if info.field_name == "query_column_ranges" else "row"
        for rank, rank_ranges in enumerate(v):
            for begin, end in rank_ranges:
                if begin < 0 or end < begin:
                    raise ValueError(f"invalid {kind} range [{begin}, {end}] for rank {rank}")
        return v

    @model_validator(mode="after")
    def validate_unique_attributes(self) -> "GatherSettings":
        if len(set(self.query_attributes)) != len(self.query_attributes):
            raise ValueError(f"duplicate query_attributes: {list(self.query_attributes)}")
        return self

    def query_config_for_rank(self, rank: int) -> QueryConfig:
        """Build the QueryConfig a given rank executes.

        Raises:
            QueryConfigError: If per-rank ranges are configured but none exist for ``rank``.
        """
        columns = _ranges_for_rank("query_column_ranges", self.query_column_ranges, rank)
        rows = _ranges_for_rank("query_row_ranges", self.query_row_ranges, rank) if self.query_row_ranges else ()
        return QueryConfig(
            attributes=self.query_attributes,
            column_intervals=tuple(ColumnInterval(begin, end) for begin, end in columns),
            row_intervals=tuple(RowInterval(begin, end) for begin, end in rows),
        )


def _ranges_for_rank(key: str, per_rank: tuple[tuple[tuple[int, int], ...], ...], rank: int) -> tuple[tuple[int, int], ...]:
    if len(per_rank) == 1:
        return per_rank[0]
    if rank < len(per_rank):
        return per_rank[rank]
    raise QueryConfigError(f"{key} has {len(per_rank)} entries, no ranges for rank {rank}")


# Regex pattern for ${VAR} or ${VAR:-default} syntax
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")


def _expand_env_vars(config: dict[str, Any]) -> dict[str, Any]:
    """Recursively expand ${VAR} and ${VAR:-default} patterns in config values.

    Also converts Dynaconf's Box containers back to plain dicts and lists.
    """
    import os

    def _expand_string(value: str) -> str:
        def replacer(match: re.Match[str]) -> str:
            env_value = os.environ.get(match.group(1))
            if env_value is not None:
                return env_value
            default = match.group(2)
            if default is not None:
                return default
            return match.group(0)

        return _ENV_VAR_PATTERN.sub(replacer, value)

    def _expand_value(value: Any) -> Any:
        if isinstance(value, str):
            return _expand_string(value)
        elif isinstance(value, dict):
            return {k: _expand_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [_expand_value(item) for item in value]
        else:
            return value

    return {k: _expand_value(v) for k, v in config.items()}


def _format_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item["loc"]) or "settings"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


def build_settings(raw_config: dict[str, Any]) -> GatherSettings:
    """Validate a raw configuration dict.

    Raises:
        ArgumentError: With the flattened validation messages.
    """
    try:
        settings = GatherSettings(**raw_config)
    except ValidationError as e:
        raise ArgumentError(f"Invalid configuration: {_format_validation_error(e)}") from e
    if settings.page_size is not None:
        logger.warning("page_size is ignored for now", page_size=settings.page_size)
    return settings


def load_settings(config_path: Path, *, overrides: dict[str, Any] | None = None, **fallbacks: Any) -> GatherSettings:
    """Load settings from a JSON file with environment variable overrides.

    Precedence:
    1. ``overrides`` (explicit command-line flags) and environment
       variables (GTGATHER_*) - highest priority
    2. Config file
    3. ``fallbacks`` for keys the file does not set (e.g. -w/-A from the CLI)
    4. Defaults from the Pydantic schema

    Raises:
        ArgumentError: If the file is missing, unparseable, or fails validation.
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise ArgumentError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="GTGATHER",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    try:
        loaded = dynaconf_settings.as_dict()
    except ValueError as e:
        raise ArgumentError(f"Cannot parse config file {config_path}: {e}") from e
    raw_config = {k.lower(): v for k, v in loaded.items() if k not in internal_keys}
    raw_config = _expand_env_vars(raw_config)

    for key, value in fallbacks.items():
        if value is not None and key not in raw_config:
            raw_config[key] = value
    raw_config.update({k: v for k, v in (overrides or {}).items() if v is not None})

    return build_settings(raw_config)


def settings_from_interval(
    *,
    workspace: str | None,
    array: str | None,
    start: str,
    end: str,
    **options: Any,
) -> GatherSettings:
    """Build settings for the positional ``START END`` form.

    Every rank queries the same single interval with the default attributes.

    Raises:
        ArgumentError: On missing workspace/array or non-integer bounds.
    """
    if not workspace or not array:
        raise ArgumentError("Missing workspace (-w) or array name (-A)")
    try:
        begin = int(start)
        stop = int(end)
    except ValueError:
        raise ArgumentError(f"Interval bounds must be integers, got {start!r} {end!r}") from None
    raw: dict[str, Any] = {
        "workspace": workspace,
        "array": array,
        "query_column_ranges": [[[begin, stop]]],
    }
    raw.update({k: v for k, v in options.items() if v is not None})
    return build_settings(raw)
