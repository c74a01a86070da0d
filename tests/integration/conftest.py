"""Integration test fixtures.

This module provides shared fixtures for integration tests including:
- Scripted providers that stand in for a model backend
- Tools with canned behavior
- Runtime construction with retry sleeps captured instead of slept

Every test here drives the real loop (hooks, tool execution, context,
retry, streaming) end to end; only the model side is scripted.
"""

from collections.abc import Callable, Iterable
from typing import Any

import pytest

from agent_runtime.platform.agent.config import RetryPolicy, RuntimeConfig
from agent_runtime.platform.agent.runtime import Runtime
from agent_runtime.platform.agent.tools import Tool, ToolError
from agent_runtime.platform.providers.base import BaseProvider, Feature, ProviderInfo

# =============================================================================
# Provider Fixtures
# =============================================================================


class ScriptedProvider(BaseProvider):
    """Returns scripted responses in order and records every request.

    A response that is an exception instance is raised instead of returned.
    The last response repeats once the script is exhausted.
    """

    name = "scripted"

    def __init__(self, responses: Iterable[Any] = (), chunks: Iterable[Any] = ()):
        self.responses = list(responses)
        self.chunks = list(chunks)
        self.requests: list[dict[str, Any]] = []

    def call(self, client, prompt, schema, options, context, tools, messages):
        self.requests.append(
            {
                "client": client,
                "options": dict(options),
                "iteration": context.current_iteration,
                "tools": list(tools),
                "messages": list(messages),
            }
        )
        index = min(len(self.requests), len(self.responses)) - 1
        response = self.responses[index]
        if isinstance(response, BaseException):
            raise response
        return response

    def stream(self, client, prompt, schema, options, context, tools, messages):
        self.requests.append({"client": client, "messages": list(messages), "tools": list(tools)})
        return iter(self.chunks)

    def introspect(self) -> ProviderInfo:
        return ProviderInfo(provider=self.name, features=frozenset({Feature.SYNC_CALL, Feature.STREAMING}))


@pytest.fixture
def scripted_provider() -> Callable[..., ScriptedProvider]:
    """Factory for providers with canned responses."""
    return ScriptedProvider


# =============================================================================
# Tool Fixtures
# =============================================================================


@pytest.fixture
def tool_calls_seen() -> list[tuple[dict[str, Any], Any]]:
    """Arguments and exec_context received by the canned tools."""
    return []


@pytest.fixture
def echo_tool(tool_calls_seen) -> Tool:
    def echo(arguments, exec_context):
        tool_calls_seen.append((arguments, exec_context))
        return {"echo": arguments.get("text", "")}

    return Tool(
        name="echo",
        description="Echo the given text.",
        function=echo,
        parameters={"type": "object", "properties": {"text": {"type": "string"}}},
    )


@pytest.fixture
def failing_tool() -> Tool:
    def fail(arguments, exec_context):
        raise ToolError("backend unavailable")

    return Tool(name="fail", description="Always fails.", function=fail)


# =============================================================================
# Runtime Fixtures
# =============================================================================


@pytest.fixture
def sleeps() -> list[float]:
    """Backoff delays requested by the retry layer."""
    return []


@pytest.fixture
def make_runtime(sleeps) -> Callable[..., Runtime]:
    """Build a Runtime around a config; retry sleeps are recorded, not slept."""

    def build(provider: Any, **config: Any) -> Runtime:
        config.setdefault("client", "scripted:test")
        config.setdefault("agent", "integration-agent")
        config.setdefault("retry", RetryPolicy(max_attempts=3, base_delay=0.1))
        return Runtime(RuntimeConfig(provider=provider, **config), sleep=sleeps.append)

    return build
