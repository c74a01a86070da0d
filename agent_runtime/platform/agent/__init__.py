"""Agent infrastructure module.

This module provides the core abstractions for running agents:
- Error taxonomy
- Messages, tool calls and results
- Immutable conversation context
- Configuration dataclasses
- Tools and hooks
- Agent-specific metrics

The runtime loop itself lives in ``agent_runtime.platform.agent.runtime``.
"""

from agent_runtime.platform.agent.config import OnToolError, RetryPolicy, RuntimeConfig
from agent_runtime.platform.agent.context import Context, Iteration
from agent_runtime.platform.agent.errors import AgentError, ErrorType
from agent_runtime.platform.agent.hooks import DefaultHooks, HookChain, HookContext, Hooks
from agent_runtime.platform.agent.messages import (
    ChunkKind,
    Message,
    Metadata,
    Result,
    Role,
    StreamChunk,
    StreamFinal,
    ToolCall,
    ToolResult,
    Usage,
)
from agent_runtime.platform.agent.tools import Tool, ToolError, ToolExecutor, ToolRegistry

__all__ = [
    "AgentError",
    "ChunkKind",
    "Context",
    "DefaultHooks",
    "ErrorType",
    "HookChain",
    "HookContext",
    "Hooks",
    "Iteration",
    "Message",
    "Metadata",
    "OnToolError",
    "Result",
    "RetryPolicy",
    "Role",
    "RuntimeConfig",
    "StreamChunk",
    "StreamFinal",
    "Tool",
    "ToolCall",
    "ToolError",
    "ToolExecutor",
    "ToolRegistry",
    "ToolResult",
    "Usage",
]
