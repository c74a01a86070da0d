"""Progressive disclosure: result processors and context compaction."""

from agent_runtime.platform.disclosure.compaction import (
    process_tool_results,
    sliding_window_compact,
    token_based_compact,
)
from agent_runtime.platform.disclosure.processors import (
    Sample,
    Summarize,
    Truncate,
    estimate_size,
    is_large,
    preserve_structure,
    sample,
    summarize,
    truncate,
)

__all__ = [
    "Sample",
    "Summarize",
    "Truncate",
    "estimate_size",
    "is_large",
    "preserve_structure",
    "process_tool_results",
    "sample",
    "sliding_window_compact",
    "summarize",
    "token_based_compact",
    "truncate",
]
