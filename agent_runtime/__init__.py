"""agent-runtime - A tool-calling agent runtime with pluggable providers and progressive disclosure."""

from .platform import (
    AgentError,
    DefaultHooks,
    Hooks,
    Result,
    Runtime,
    RuntimeConfig,
    Tool,
    call_runtime,
    stream_runtime,
)

__version__ = "0.1.0"

__all__ = [
    "AgentError",
    "DefaultHooks",
    "Hooks",
    "Result",
    "Runtime",
    "RuntimeConfig",
    "Tool",
    "__version__",
    "call_runtime",
    "stream_runtime",
]
