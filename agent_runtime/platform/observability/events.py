"""In-process telemetry events.

Components emit named events with numeric ``measurements`` and descriptive
``metadata``; external collaborators subscribe with ``attach``:

    def handler(event, measurements, metadata):
        ...

    attach("my-handler", [CALL_STOP, TOKEN_LIMIT_WARNING], handler)

``span`` wraps a unit of work in start/stop events and an
OpenTelemetry span. A handler that raises is logged and detached so a faulty
subscriber cannot break the runtime.
"""

import logging
import threading
import time
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from typing import Any

from opentelemetry import trace

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

EventName = tuple[str, ...]
Handler = Callable[[EventName, dict[str, Any], dict[str, Any]], None]

PREFIX = "agent_runtime"

CALL_START: EventName = (PREFIX, "call", "start")
CALL_STOP: EventName = (PREFIX, "call", "stop")
STREAM_START: EventName = (PREFIX, "stream", "start")
STREAM_STOP: EventName = (PREFIX, "stream", "stop")
TOKEN_LIMIT_WARNING: EventName = (PREFIX, "token_limit_warning")
HOOK_START: EventName = (PREFIX, "hook", "start")
HOOK_STOP: EventName = (PREFIX, "hook", "stop")
HOOK_ERROR: EventName = (PREFIX, "hook", "error")
SLIDING_WINDOW: EventName = (PREFIX, "progressive_disclosure", "sliding_window")
TOKEN_BASED: EventName = (PREFIX, "progressive_disclosure", "token_based")
PROCESS_RESULTS: EventName = (PREFIX, "progressive_disclosure", "process_results")

_handlers: dict[str, tuple[frozenset[EventName], Handler]] = {}
_lock = threading.Lock()


def attach(handler_id: str, events: Iterable[EventName], handler: Handler) -> None:
    """Subscribe ``handler`` to ``events`` under a unique ``handler_id``."""
    with _lock:
        if handler_id in _handlers:
            raise ValueError(f"handler {handler_id!r} is already attached")
        _handlers[handler_id] = (frozenset(tuple(e) for e in events), handler)


def detach(handler_id: str) -> bool:
    with _lock:
        return _handlers.pop(handler_id, None) is not None


def emit(
    event: EventName,
    measurements: dict[str, Any] | None = None,
    metadata: dict[str, Any] | None = None,
) -> None:
    """Deliver an event to every handler subscribed to it."""
    measurements = measurements or {}
    metadata = metadata or {}
    with _lock:
        targets = [
            (handler_id, handler)
            for handler_id, (events, handler) in _handlers.items()
            if event in events
        ]
    for handler_id, handler in targets:
        try:
            handler(event, measurements, metadata)
        except Exception:
            logger.exception("Telemetry handler %s failed on %s and was detached", handler_id, event)
            detach(handler_id)


def _span_attributes(metadata: dict[str, Any]) -> dict[str, str | int | float | bool]:
    return {
        f"{PREFIX}.{key}": value if isinstance(value, str | int | float | bool) else str(value)
        for key, value in metadata.items()
        if value is not None
    }


@contextmanager
def span(name: str, metadata: dict[str, Any]) -> Iterator[dict[str, Any]]:
    """Emit ``start`` and ``stop`` events around the wrapped block.

    Yields a dict the caller can fill with extra stop metadata (for example
    ``usage``). ``status`` is set to ``ok`` or ``error`` automatically, or to
    ``cancelled`` when a wrapping generator is closed early.
    """
    stop_metadata: dict[str, Any] = {}
    start = time.monotonic()
    emit((PREFIX, name, "start"), {"system_time": time.time()}, dict(metadata))
    with tracer.start_as_current_span(
        f"{PREFIX}.{name}",
        attributes=_span_attributes(metadata),
        record_exception=False,
        set_status_on_exception=False,
    ) as otel_span:
        try:
            yield stop_metadata
        except GeneratorExit:
            emit(
                (PREFIX, name, "stop"),
                {"duration": time.monotonic() - start},
                {**metadata, **stop_metadata, "status": "cancelled"},
            )
            raise
        except Exception as exc:
            duration = time.monotonic() - start
            otel_span.record_exception(exc)
            otel_span.set_status(trace.Status(trace.StatusCode.ERROR, str(exc)))
            emit(
                (PREFIX, name, "stop"),
                {"duration": duration},
                {**metadata, **stop_metadata, "status": "error", "error": exc},
            )
            raise
        duration = time.monotonic() - start
        emit(
            (PREFIX, name, "stop"),
            {"duration": duration},
            {**metadata, **stop_metadata, "status": "ok"},
        )
