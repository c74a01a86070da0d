"""Tool definitions, registry and sequential executor."""

import logging
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from time import monotonic
from typing import Any

from agent_runtime.platform.agent.errors import config_error
from agent_runtime.platform.agent.messages import ToolCall, ToolResult
from agent_runtime.platform.agent.metrics import ToolMetricsLabels, record_tool_call

logger = logging.getLogger(__name__)

ToolFunction = Callable[[dict[str, Any], Any], Any]


class ToolError(Exception):
    """Raised by a tool function to report a failure reason to the model."""

    def __init__(self, reason: Any):
        self.reason = reason
        super().__init__(str(reason))


def _empty_parameters() -> dict[str, Any]:
    return {"type": "object", "properties": {}}


@dataclass(frozen=True)
class Tool:
    """A named callable the provider can request.

    Attributes:
        name: Unique tool name
        description: What the tool does, shown to the model
        function: Called as ``function(arguments, exec_context)``; returns the
            tool output or raises (``ToolError`` for expected failures)
        parameters: JSON Schema of the arguments object
    """

    name: str
    description: str
    function: ToolFunction
    parameters: dict[str, Any] = field(default_factory=_empty_parameters)

    def schema(self) -> dict[str, Any]:
        """OpenAI-style function definition."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class ToolRegistry(Mapping[str, Tool]):
    """Read-only mapping of tool name to ``Tool``; safe to share across calls."""

    def __init__(self, tools: Iterable[Tool] = ()):
        registry: dict[str, Tool] = {}
        for tool in tools:
            if not isinstance(tool, Tool):
                raise config_error(f"Invalid tool definition: {tool!r}", {"tool": tool})
            if not tool.name:
                raise config_error("Tool name must not be empty", {"tool": tool})
            if not callable(tool.function):
                raise config_error(f"Tool {tool.name!r} function is not callable", {"tool": tool.name})
            if tool.name in registry:
                raise config_error(f"Duplicate tool name {tool.name!r}", {"tool": tool.name})
            registry[tool.name] = tool
        self._tools = registry

    def __getitem__(self, name: str) -> Tool:
        return self._tools[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._tools)

    def __len__(self) -> int:
        return len(self._tools)

    def __repr__(self) -> str:
        return f"ToolRegistry({list(self._tools)!r})"

    def schemas(self) -> list[dict[str, Any]]:
        return [tool.schema() for tool in self._tools.values()]


class ToolExecutor:
    """Runs requested tool calls one at a time, in call order."""

    def __init__(self, registry: ToolRegistry, agent: str):
        self.registry = registry
        self.agent = agent

    def execute(self, tool_calls: Sequence[ToolCall], exec_context: Any = None) -> list[ToolResult]:
        return [self.execute_one(call, exec_context) for call in tool_calls]

    def execute_one(self, call: ToolCall, exec_context: Any = None) -> ToolResult:
        tool = self.registry.get(call.name)
        if tool is None:
            logger.warning("Tool %s requested by the model is not registered", call.name)
            return ToolResult.error(call.name, f"Tool {call.name!r} not found", call.id)

        labels = ToolMetricsLabels(self.agent, call.name)
        start_time = monotonic()
        try:
            value = tool.function(dict(call.arguments), exec_context)
        except ToolError as e:
            record_tool_call(labels, duration=monotonic() - start_time, error=True)
            return ToolResult.error(call.name, e.reason, call.id)
        except Exception as e:
            logger.warning("Tool %s raised %s: %s", call.name, type(e).__name__, e)
            record_tool_call(labels, duration=monotonic() - start_time, error=True)
            return ToolResult.error(call.name, f"{type(e).__name__}: {e}", call.id)

        record_tool_call(labels, duration=monotonic() - start_time)
        return ToolResult.ok(call.name, value, call.id)
