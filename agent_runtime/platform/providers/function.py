"""Delegate provider: runs a caller-supplied function instead of an HTTP API.

The function is passed in the call options and receives the rendered
messages plus whichever of ``prompt``, ``tools``, ``schema``, ``collector``
and ``context`` it declares as parameters:

    def answer(messages, collector):
        collector.record_usage(input_tokens=12, output_tokens=3)
        return {"content": "42"}

    RuntimeConfig(client="local", provider="function", client_opts={"function": answer})

A ``Collector`` is created for every exchange and records timing and usage
out of band; ``extract_metadata`` reads it back. A function may ask for a
tool by returning a mapping (or object) with ``tool_name`` and
``tool_arguments``. ``stream_function`` is a generator function yielding
partial results.
"""

import inspect
import threading
import uuid
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from agent_runtime.platform.agent.errors import config_error
from agent_runtime.platform.agent.messages import StreamFinal, ToolCall, Usage
from agent_runtime.platform.providers.base import (
    DEFER,
    BaseProvider,
    Extraction,
    Feature,
    ProviderInfo,
)

_INJECTABLE = ("prompt", "tools", "schema", "collector", "context")


@dataclass
class Collector:
    """Out-of-band record of one function execution.

    Attributes:
        name: Unique collector name
        started_at: UTC start time
        completed_at: UTC completion time
        usage: Token usage reported by the function
        model: Model name reported by the function
        tags: Free-form tags reported by the function
    """

    name: str
    started_at: datetime | None = None
    completed_at: datetime | None = None
    usage: Usage | None = None
    model: str | None = None
    tags: dict[str, Any] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def start(self) -> None:
        self.started_at = datetime.now(UTC)

    def finish(self) -> None:
        self.completed_at = datetime.now(UTC)

    def record_usage(self, input_tokens: int = 0, output_tokens: int = 0, total_tokens: int | None = None) -> None:
        with self._lock:
            previous = self.usage or Usage()
            total = input_tokens + output_tokens if total_tokens is None else total_tokens
            self.usage = Usage(
                input_tokens=previous.input_tokens + input_tokens,
                output_tokens=previous.output_tokens + output_tokens,
                total_tokens=previous.total_tokens + total,
            )

    @property
    def duration_ms(self) -> int | None:
        if self.started_at is None or self.completed_at is None:
            return None
        return int((self.completed_at - self.started_at) / timedelta(milliseconds=1))


@dataclass(frozen=True)
class FunctionResponse:
    data: Any
    collector: Collector


def _new_collector(function: Callable) -> Collector:
    name = getattr(function, "__qualname__", type(function).__name__)
    return Collector(name=f"{name}-{uuid.uuid4().hex[:8]}")


def _bind_arguments(function: Callable, available: dict[str, Any]) -> dict[str, Any]:
    parameters = inspect.signature(function).parameters
    if any(p.kind is inspect.Parameter.VAR_KEYWORD for p in parameters.values()):
        return available
    return {name: value for name, value in available.items() if name in parameters}


def _field(data: Any, name: str) -> Any:
    if isinstance(data, Mapping):
        return data.get(name)
    return getattr(data, name, None)


def _is_tool_request(data: Any) -> bool:
    return _field(data, "tool_name") is not None


class FunctionProvider(BaseProvider):
    name = "function"

    def _function(self, options: Mapping[str, Any], key: str) -> Callable:
        function = options.get(key)
        if not callable(function):
            raise config_error(f"function provider requires a callable {key!r} option", {"option": key})
        return function

    def _kwargs(self, function, client, prompt, schema, options, context, tools, collector) -> dict[str, Any]:
        available = {
            "prompt": prompt,
            "tools": tools,
            "schema": schema,
            "collector": collector,
            "context": context,
        }
        extra = {k: v for k, v in options.items() if k not in ("function", "stream_function") and k not in _INJECTABLE}
        return _bind_arguments(function, {**extra, **available})

    def call(self, client, prompt, schema, options, context, tools, messages) -> FunctionResponse:
        function = self._function(options, "function")
        collector = _new_collector(function)
        kwargs = self._kwargs(function, client, prompt, schema, options, context, tools, collector)
        collector.start()
        try:
            data = function(list(messages), **kwargs)
        finally:
            collector.finish()
        return FunctionResponse(data, collector)

    def stream(self, client, prompt, schema, options, context, tools, messages) -> Iterator[Any]:
        function = self._function(options, "stream_function")
        collector = _new_collector(function)
        kwargs = self._kwargs(function, client, prompt, schema, options, context, tools, collector)

        def generate() -> Iterator[Any]:
            collector.start()
            try:
                for partial in function(list(messages), **kwargs):
                    # Partial objects without content yet carry nothing to show.
                    if partial is None or (not isinstance(partial, str | Mapping) and _field(partial, "content") is None):
                        continue
                    yield partial
            finally:
                collector.finish()
            yield StreamFinal(usage=collector.usage, model=collector.model)

        return generate()

    def introspect(self) -> ProviderInfo:
        return ProviderInfo(
            provider=self.name,
            features=frozenset(
                {
                    Feature.SYNC_CALL,
                    Feature.STREAMING,
                    Feature.STRUCTURED_OUTPUT,
                    Feature.TOOL_CALLING,
                    Feature.PROMPT_OPTIONAL,
                    Feature.SCHEMA_OPTIONAL,
                }
            ),
            constraints={"requires_function": True},
        )

    def extract_content(self, response: Any) -> Any | Extraction:
        if not isinstance(response, FunctionResponse):
            return DEFER
        data = response.data
        if _is_tool_request(data):
            return ""
        if isinstance(data, str):
            return data
        content = _field(data, "content")
        if isinstance(content, str):
            return content
        return data

    def extract_tool_calls(self, response: Any) -> list[ToolCall] | Extraction:
        if not isinstance(response, FunctionResponse):
            return DEFER
        data = response.data
        if not _is_tool_request(data):
            return []
        arguments = _field(data, "tool_arguments") or _field(data, "arguments") or {}
        if not isinstance(arguments, Mapping):
            arguments = getattr(arguments, "__dict__", {})
        return [
            ToolCall(
                id=f"call_{uuid.uuid4().hex[:16]}",
                name=str(_field(data, "tool_name")),
                arguments=dict(arguments),
            )
        ]

    def extract_thinking(self, response: Any) -> str | None | Extraction:
        if not isinstance(response, FunctionResponse):
            return DEFER
        thinking = _field(response.data, "thinking")
        return thinking if isinstance(thinking, str) else None

    def extract_metadata(self, response: Any) -> dict[str, Any] | Extraction:
        if not isinstance(response, FunctionResponse):
            return DEFER
        collector = response.collector
        return {
            "provider": self.name,
            "usage": collector.usage,
            "model": collector.model,
            "duration_ms": collector.duration_ms,
            "started_at": collector.started_at,
            "completed_at": collector.completed_at,
            "tags": dict(collector.tags),
        }
