"""Structured logging for gtgather.

structlog and stdlib records share one ProcessorFormatter chain, so
SQLAlchemy or Dynaconf warnings render like our own events.

Every participant writes to its own stderr; stdout is reserved for the
records the coordinator prints. Under MPI each process calls
``bind_participant`` once so its lines carry ``rank`` and ``group_size``.
With the local channel the orchestrator binds ``rank`` per logger instead,
because contextvars do not cross into the worker threads.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, TextIO

import structlog
from structlog.stdlib import ProcessorFormatter

# Held at WARNING or above whatever level is configured
_QUIET_LOGGERS: tuple[str, ...] = ("sqlalchemy", "dynaconf")


def _drop_formatter_keys(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict.pop("_record", None)
    event_dict.pop("_from_structlog", None)
    return event_dict


def _pre_chain() -> list[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.PositionalArgumentsFormatter(),
    ]


def _renderer(json_output: bool) -> Any:
    if json_output:
        return structlog.processors.JSONRenderer(sort_keys=True)
    return structlog.dev.ConsoleRenderer(colors=False)


def configure_logging(*, json_output: bool = False, level: str = "INFO", stream: TextIO | None = None) -> None:
    """Route structlog and stdlib logging to ``stream`` (stderr by default).

    Safe to call more than once; the previous root handlers are replaced.

    Args:
        json_output: One JSON object per line instead of console text
        level: Root level name (DEBUG, INFO, WARNING, ERROR)
        stream: Destination; resolved at call time so test capture works
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level!r}")

    pre_chain = _pre_chain()
    structlog.configure(
        processors=[*pre_chain, structlog.processors.format_exc_info, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Tests reconfigure between cases
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(
        ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[_drop_formatter_keys, _renderer(json_output)],
        )
    )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(numeric_level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))


def bind_participant(rank: int, size: int) -> None:
    """Tag every later log line of this process with its place in the group."""
    structlog.contextvars.bind_contextvars(rank=rank, group_size=size)


def clear_participant() -> None:
    structlog.contextvars.unbind_contextvars("rank", "group_size")


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger
