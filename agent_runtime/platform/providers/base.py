"""Provider contract.

A provider adapts one model backend to the runtime. ``call`` performs a
single synchronous exchange and returns the backend's raw response;
``stream`` returns an iterable of raw deltas. The ``extract_*`` methods
normalize a raw response and may return ``DEFER`` to use the runtime's
generic extraction instead.
"""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum, StrEnum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from agent_runtime.platform.agent.messages import ToolCall

if TYPE_CHECKING:
    from agent_runtime.platform.agent.context import Context


class Extraction(Enum):
    """Sentinel values returned by ``extract_*`` methods."""

    DEFER = "defer"


DEFER = Extraction.DEFER


class Feature(StrEnum):
    SYNC_CALL = "sync_call"
    STREAMING = "streaming"
    TOOL_CALLING = "tool_calling"
    STRUCTURED_OUTPUT = "structured_output"
    CONFIGURABLE_RESPONSES = "configurable_responses"
    PROMPT_OPTIONAL = "prompt_optional"
    SCHEMA_OPTIONAL = "schema_optional"


@dataclass(frozen=True)
class ProviderInfo:
    """Static capability descriptor.

    Attributes:
        provider: Provider key
        features: Supported feature tags (see ``Feature``)
        models: Known model identifiers
        constraints: Backend-specific limits and requirements
    """

    provider: str
    features: frozenset[str]
    models: tuple[str, ...] = ()
    constraints: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class Provider(Protocol):
    """Protocol every model backend adapter satisfies."""

    def call(
        self,
        client: str,
        prompt: str | None,
        schema: type | None,
        options: Mapping[str, Any],
        context: "Context",
        tools: Sequence[dict[str, Any]],
        messages: Sequence[dict[str, Any]],
    ) -> Any:
        """Perform one exchange and return the raw response; raise on failure."""
        ...

    def stream(
        self,
        client: str,
        prompt: str | None,
        schema: type | None,
        options: Mapping[str, Any],
        context: "Context",
        tools: Sequence[dict[str, Any]],
        messages: Sequence[dict[str, Any]],
    ) -> Iterable[Any]:
        """Return an iterable of raw response deltas; raise on failure."""
        ...

    def introspect(self) -> ProviderInfo: ...

    def extract_content(self, response: Any) -> Any | Extraction: ...

    def extract_tool_calls(self, response: Any) -> list[ToolCall] | Extraction: ...

    def extract_thinking(self, response: Any) -> str | None | Extraction: ...

    def extract_metadata(self, response: Any) -> dict[str, Any] | Extraction: ...


class BaseProvider:
    """Convenience base whose extraction methods all defer to the runtime."""

    name = "base"

    def stream(self, client, prompt, schema, options, context, tools, messages) -> Iterable[Any]:
        raise NotImplementedError(f"{type(self).__name__} does not support streaming")

    def introspect(self) -> ProviderInfo:
        return ProviderInfo(provider=self.name, features=frozenset({Feature.SYNC_CALL}))

    def extract_content(self, response: Any) -> Any | Extraction:
        return DEFER

    def extract_tool_calls(self, response: Any) -> list[ToolCall] | Extraction:
        return DEFER

    def extract_thinking(self, response: Any) -> str | None | Extraction:
        return DEFER

    def extract_metadata(self, response: Any) -> dict[str, Any] | Extraction:
        return DEFER
