"""Fixtures shared by unit and integration tests."""

import logging
import uuid
from typing import Any

import pytest
import structlog

from agent_runtime.platform.observability import events


class EventRecorder:
    """Collects telemetry events emitted while attached."""

    def __init__(self):
        self.events: list[tuple[tuple[str, ...], dict[str, Any], dict[str, Any]]] = []

    def __call__(self, event, measurements, metadata):
        self.events.append((event, measurements, metadata))

    def named(self, event: tuple[str, ...]) -> list[tuple[dict[str, Any], dict[str, Any]]]:
        return [(measurements, metadata) for name, measurements, metadata in self.events if name == event]

    def names(self) -> list[tuple[str, ...]]:
        return [name for name, _, _ in self.events]


ALL_EVENTS = [
    events.CALL_START,
    events.CALL_STOP,
    events.STREAM_START,
    events.STREAM_STOP,
    events.TOKEN_LIMIT_WARNING,
    events.HOOK_START,
    events.HOOK_STOP,
    events.HOOK_ERROR,
    events.SLIDING_WINDOW,
    events.TOKEN_BASED,
    events.PROCESS_RESULTS,
]


@pytest.fixture
def captured_events():
    """Record every runtime telemetry event for the duration of a test."""
    recorder = EventRecorder()
    handler_id = f"test-{uuid.uuid4().hex}"
    events.attach(handler_id, ALL_EVENTS, recorder)
    yield recorder
    events.detach(handler_id)


@pytest.fixture
def restore_logging():
    """Undo configure_logging's changes to the root logger after a test."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()
