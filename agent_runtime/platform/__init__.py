"""Agent runtime platform module.

This module provides the infrastructure for running tool-calling agents:
- Runtime loop, configuration, tools and hooks
- Provider contract, registry and adapters
- Progressive disclosure (result processors and context compaction)
- Settings and observability utilities
"""

from agent_runtime.platform.agent.config import OnToolError, RetryPolicy, RuntimeConfig
from agent_runtime.platform.agent.errors import AgentError, ErrorType
from agent_runtime.platform.agent.hooks import DefaultHooks, HookContext, Hooks
from agent_runtime.platform.agent.messages import Result, StreamChunk
from agent_runtime.platform.agent.runtime import Runtime, call_runtime, stream_runtime
from agent_runtime.platform.agent.tools import Tool, ToolError
from agent_runtime.platform.providers.base import DEFER, Provider
from agent_runtime.platform.settings import Settings

__all__ = [
    # Runtime
    "Runtime",
    "call_runtime",
    "stream_runtime",
    # Configuration
    "OnToolError",
    "RetryPolicy",
    "RuntimeConfig",
    "Settings",
    # Extension points
    "DefaultHooks",
    "HookContext",
    "Hooks",
    "Tool",
    "ToolError",
    # Providers
    "DEFER",
    "Provider",
    # Results and errors
    "AgentError",
    "ErrorType",
    "Result",
    "StreamChunk",
]
