"""Configuration dataclasses for the agent runtime.

This module provides immutable configuration objects for a runtime call:
provider selection, loop limits, tools, hooks, output schema and retry
behavior. Invalid values raise a ``config_error`` at construction time.
"""

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from pydantic import BaseModel

from agent_runtime.platform.agent.errors import config_error
from agent_runtime.platform.agent.tools import Tool, ToolRegistry
from agent_runtime.platform.settings import RetrySettings


class OnToolError(StrEnum):
    """What the loop does when a tool returns an error."""

    CONTINUE = "continue"
    HALT = "halt"


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _is_positive_number(value: Any) -> bool:
    return (
        isinstance(value, int | float)
        and not isinstance(value, bool)
        and math.isfinite(value)
        and value > 0
    )


@dataclass(frozen=True)
class RetryPolicy:
    """Retry behavior for transient provider failures.

    Attributes:
        max_attempts: Total attempts, including the first
        base_delay: Backoff base in seconds; attempt n waits base * 2^(n-1)
        jitter: Random extra delay as a fraction of the backoff
    """

    max_attempts: int = 3
    base_delay: float = 0.1
    jitter: float = 0.1

    def __post_init__(self):
        if not _is_positive_int(self.max_attempts):
            raise config_error(
                f"max_attempts must be a positive integer, got {self.max_attempts!r}",
                {"max_attempts": self.max_attempts},
            )
        if not isinstance(self.base_delay, int | float) or self.base_delay < 0:
            raise config_error(
                f"base_delay must be a non-negative number, got {self.base_delay!r}",
                {"base_delay": self.base_delay},
            )
        if not isinstance(self.jitter, int | float) or self.jitter < 0:
            raise config_error(f"jitter must be a non-negative number, got {self.jitter!r}", {"jitter": self.jitter})

    @classmethod
    def from_settings(cls, settings: RetrySettings) -> "RetryPolicy":
        return cls(max_attempts=settings.max_attempts, base_delay=settings.base_delay)


@dataclass(frozen=True)
class RuntimeConfig:
    """Configuration for one agent.

    Attributes:
        client: Client identifier passed to the provider (e.g. a LiteLLM model
            string such as "litellm_proxy/anthropic/claude-sonnet-4-5")
        provider: Provider key, provider class or provider instance
        agent: Agent name used in metrics, telemetry and logs
        max_iterations: Iteration number at which the loop is stopped
        timeout: Per-exchange provider timeout in seconds (None leaves the
            provider default)
        on_tool_error: Whether a failing tool halts the loop
        tools: Tools the provider may request
        hooks: Hook objects run in order; see ``hooks.Hooks``
        output_schema: Pydantic model the final output is parsed into
        client_opts: Extra provider options (e.g. ``mock_response``)
        system_prompt: System message placed at the start of the context
        prompt: Rendered prompt passed to the provider alongside messages
        token_limits: Per-client context limits overriding settings
        warning_threshold: Token warning fraction overriding settings
        retry: Retry policy overriding settings
        stream_timeout: Seconds without a chunk before a stream fails
    """

    client: str
    provider: Any
    agent: str = "agent"
    max_iterations: int = 10
    timeout: float | None = None
    on_tool_error: OnToolError = OnToolError.CONTINUE
    tools: ToolRegistry | Sequence[Tool] = ()
    hooks: Sequence[Any] = ()
    output_schema: type[BaseModel] | None = None
    client_opts: Mapping[str, Any] = field(default_factory=dict)
    system_prompt: str | None = None
    prompt: str | None = None
    token_limits: Mapping[str, int] | None = None
    warning_threshold: float | None = None
    retry: RetryPolicy | None = None
    stream_timeout: float | None = None

    def __post_init__(self):
        if not isinstance(self.client, str) or not self.client:
            raise config_error("client must be a non-empty string", {"client": self.client})
        if self.provider is None or self.provider == "":
            raise config_error("provider is required", {"provider": self.provider})
        if not isinstance(self.agent, str) or not self.agent:
            raise config_error("agent must be a non-empty string", {"agent": self.agent})
        if not _is_positive_int(self.max_iterations):
            raise config_error(
                f"max_iterations must be a positive integer, got {self.max_iterations!r}",
                {"max_iterations": self.max_iterations},
            )
        if self.timeout is not None and not _is_positive_number(self.timeout):
            raise config_error(f"timeout must be a positive number, got {self.timeout!r}", {"timeout": self.timeout})
        if self.stream_timeout is not None and not _is_positive_number(self.stream_timeout):
            raise config_error(
                f"stream_timeout must be a positive number, got {self.stream_timeout!r}",
                {"stream_timeout": self.stream_timeout},
            )

        try:
            on_tool_error = OnToolError(self.on_tool_error)
        except ValueError as e:
            raise config_error(
                f"on_tool_error must be one of {[v.value for v in OnToolError]}, got {self.on_tool_error!r}",
                {"on_tool_error": self.on_tool_error},
            ) from e
        object.__setattr__(self, "on_tool_error", on_tool_error)

        if not isinstance(self.tools, ToolRegistry):
            object.__setattr__(self, "tools", ToolRegistry(self.tools))

        hooks = tuple(hook() if isinstance(hook, type) else hook for hook in self.hooks)
        object.__setattr__(self, "hooks", hooks)

        if self.output_schema is not None and not (
            isinstance(self.output_schema, type) and issubclass(self.output_schema, BaseModel)
        ):
            raise config_error(
                f"output_schema must be a pydantic model class, got {self.output_schema!r}",
                {"output_schema": self.output_schema},
            )
        if not isinstance(self.client_opts, Mapping):
            raise config_error("client_opts must be a mapping", {"client_opts": self.client_opts})

        if self.token_limits is not None:
            for client, limit in self.token_limits.items():
                if not _is_positive_int(limit):
                    raise config_error(
                        f"token limit for {client!r} must be a positive integer, got {limit!r}",
                        {"client": client, "limit": limit},
                    )
        if self.warning_threshold is not None and not (
            isinstance(self.warning_threshold, int | float) and 0 < self.warning_threshold <= 1
        ):
            raise config_error(
                f"warning_threshold must be in (0, 1], got {self.warning_threshold!r}",
                {"warning_threshold": self.warning_threshold},
            )
        if self.retry is not None and not isinstance(self.retry, RetryPolicy):
            raise config_error("retry must be a RetryPolicy", {"retry": self.retry})
