"""Provider-neutral message, tool and result types.

These types are the common vocabulary shared by the context, the providers,
the tool executor and the runtime loop.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any


class Role(StrEnum):
    """Message author role."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True)
class ToolCall:
    """A tool invocation requested by the provider.

    Attributes:
        id: Provider-assigned call identifier, echoed back in the tool result
        name: Name of the tool to invoke
        arguments: Decoded call arguments
    """

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Message:
    """Provider-neutral message representation.

    Attributes:
        role: Message author
        content: Message content (text, or structured data for tool results)
        tool_calls: Tool calls requested by an assistant message
        tool_call_id: ID of the tool call a tool message responds to
        name: Tool name (for tool messages)
    """

    role: Role
    content: Any
    tool_calls: tuple[ToolCall, ...] | None = None
    tool_call_id: str | None = None
    name: str | None = None


class ToolStatus(StrEnum):
    OK = "ok"
    ERROR = "error"


@dataclass(frozen=True)
class ToolResult:
    """Outcome of a single tool execution.

    Attributes:
        tool_name: Name of the executed tool
        status: ``ok`` or ``error``
        value: Tool output for ``ok``, failure reason for ``error``
        tool_call_id: ID of the originating tool call
    """

    tool_name: str
    status: ToolStatus
    value: Any
    tool_call_id: str | None = None

    @classmethod
    def ok(cls, tool_name: str, value: Any, tool_call_id: str | None = None) -> "ToolResult":
        return cls(tool_name, ToolStatus.OK, value, tool_call_id)

    @classmethod
    def error(cls, tool_name: str, reason: Any, tool_call_id: str | None = None) -> "ToolResult":
        return cls(tool_name, ToolStatus.ERROR, reason, tool_call_id)

    @property
    def is_ok(self) -> bool:
        return self.status is ToolStatus.OK


@dataclass(frozen=True)
class Usage:
    """Token usage reported by a provider for one exchange."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    reasoning_tokens: int | None = None
    cached_tokens: int | None = None

    @classmethod
    def from_mapping(cls, usage: Any) -> "Usage | None":
        """Normalize provider usage into a ``Usage``.

        Accepts mappings (``input_tokens``/``output_tokens`` or the OpenAI
        ``prompt_tokens``/``completion_tokens`` spelling) and objects exposing
        the same names as attributes. ``None`` stays ``None``.
        """
        if usage is None:
            return None
        if isinstance(usage, Usage):
            return usage

        def read(*names: str) -> int | None:
            for name in names:
                value = usage.get(name) if isinstance(usage, Mapping) else getattr(usage, name, None)
                if value is not None:
                    return int(value)
            return None

        input_tokens = read("input_tokens", "prompt_tokens") or 0
        output_tokens = read("output_tokens", "completion_tokens") or 0
        total_tokens = read("total_tokens")
        return cls(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens if total_tokens is None else total_tokens,
            reasoning_tokens=read("reasoning_tokens"),
            cached_tokens=read("cached_tokens"),
        )

    def as_dict(self) -> dict[str, int]:
        return {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_tokens": self.total_tokens,
        }


@dataclass(frozen=True)
class Metadata:
    """Execution metadata attached to a ``Result``.

    Attributes:
        duration_ms: Wall time of the whole call
        time_to_first_token_ms: Streaming only, time until the first chunk
        started_at: UTC start time
        completed_at: UTC completion time
        request_id: Provider request identifier, when exposed
        provider: Provider key
        client: Client identifier
        num_attempts: Provider attempts made for the final exchange
        iterations: Number of loop iterations executed
        tags: Free-form provider tags
        input_cost: Provider-reported input cost
        output_cost: Provider-reported output cost
        total_cost: Provider-reported total cost
    """

    duration_ms: int | None = None
    time_to_first_token_ms: int | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    request_id: str | None = None
    provider: str | None = None
    client: str | None = None
    num_attempts: int | None = None
    iterations: int | None = None
    tags: dict[str, Any] = field(default_factory=dict)
    input_cost: float | None = None
    output_cost: float | None = None
    total_cost: float | None = None


@dataclass(frozen=True)
class Result:
    """Terminal value of a successful call.

    Attributes:
        output: Parsed output (schema instance) or raw content
        thinking: Concatenated reasoning text, when the provider exposes it
        usage: Token usage of the final exchange
        model: Model that produced the response
        finish_reason: Provider finish reason
        metadata: Execution metadata
        raw_response: Unmodified provider response
    """

    output: Any
    thinking: str | None = None
    usage: Usage | None = None
    model: str | None = None
    finish_reason: str | None = None
    metadata: Metadata = field(default_factory=Metadata)
    raw_response: Any = None


class ChunkKind(StrEnum):
    THINKING = "thinking"
    CONTENT = "content"
    TOOL_CALL = "tool_call"
    DONE = "done"


@dataclass(frozen=True)
class StreamChunk:
    """Tagged streaming unit.

    Attributes:
        kind: Chunk tag
        data: Reasoning text, parsed/raw content, raw tool call delta, or the
            final ``Result`` for ``done``
    """

    kind: ChunkKind
    data: Any


@dataclass(frozen=True)
class StreamFinal:
    """Terminal aggregate a provider stream may yield after its deltas.

    Providers that only expose usage, model or finish reason once the stream
    has ended yield one of these as the last item.
    """

    output: Any = None
    usage: Any = None
    model: str | None = None
    finish_reason: str | None = None
    thinking: str | None = None
