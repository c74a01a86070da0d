"""Logging setup for agent runs.

Library modules log through ``logging.getLogger(__name__)`` with %-style
arguments. ``configure_logging`` installs a single root handler whose
structlog ``ProcessorFormatter`` renders those records as JSON lines or as
console text, stamped with the correlation ID of the agent call in progress.

    configure_logging("INFO", json_output=False)
    with correlation_scope() as correlation_id:
        runtime.call("How many orders are open?")
"""

import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import TextIO

import structlog

# Set for the duration of one Runtime.call
correlation_id_ctx: ContextVar[str | None] = ContextVar("correlation_id", default=None)

# Provider SDKs log every HTTP request at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "LiteLLM", "openai")


def add_correlation_id(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    """Processor that stamps the active correlation ID, if any."""
    correlation_id = correlation_id_ctx.get()
    if correlation_id:
        event_dict["correlation_id"] = correlation_id
    return event_dict


@contextmanager
def correlation_scope(correlation_id: str | None = None) -> Iterator[str]:
    """Bind a correlation ID for the duration of the block.

    An already-bound ID is reused so nested calls share their parent's ID.
    """
    current = correlation_id_ctx.get()
    if current and correlation_id is None:
        yield current
        return
    token = correlation_id_ctx.set(correlation_id or uuid.uuid4().hex)
    try:
        yield correlation_id_ctx.get()
    finally:
        correlation_id_ctx.reset(token)


def _pre_chain() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        add_correlation_id,
        structlog.processors.UnicodeDecoder(),
    ]


def configure_logging(log_level: str, json_output: bool = True, stream: TextIO | None = None) -> None:
    """Route all logging through one structlog-formatted root handler.

    Args:
        log_level: Root level name, e.g. ``"INFO"``
        json_output: JSON lines when True, console text otherwise
        stream: Destination, stderr by default since the CLI prints agent
            output on stdout
    """
    stream = stream or sys.stderr
    pre_chain = _pre_chain()

    if json_output:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=stream.isatty())

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """structlog logger for callers that want key-value events."""
    return structlog.get_logger(name)
