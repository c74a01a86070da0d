"""Progressive disclosure: keep tool output and history within budget.

``process_tool_results`` chains the result processors over one iteration's
tool results. ``sliding_window_compact`` and ``token_based_compact`` drop old
iterations from a ``Context``; both are typically called from a
``prepare_context`` hook:

    class CompactingHooks(Hooks):
        def prepare_context(self, hook_context):
            return token_based_compact(hook_context.context, budget=50_000, threshold=0.9)
"""

import logging
from collections.abc import Sequence
from numbers import Real
from typing import Any

from agent_runtime.platform.agent.context import Context
from agent_runtime.platform.agent.messages import ToolResult
from agent_runtime.platform.agent.metrics import record_compaction
from agent_runtime.platform.disclosure.processors import (
    DEFAULT_TRUNCATE_SIZE,
    Sample,
    Summarize,
    Truncate,
    is_large,
)
from agent_runtime.platform.observability import events

logger = logging.getLogger(__name__)


def process_tool_results(
    results: Sequence[ToolResult],
    *,
    truncate: int | None = None,
    summarize: bool | dict[str, Any] = False,
    sample: int | None = None,
    skip_small: bool = True,
) -> list[ToolResult]:
    """Apply truncate, then summarize, then sample to ``results``.

    Args:
        results: Tool results of one iteration
        truncate: Truncate size, None to skip truncation
        summarize: True for default summaries, a dict of ``Summarize`` options,
            or False to skip
        sample: Sample size, None to skip sampling
        skip_small: Return the results untouched when no ok value is larger
            than the truncate size

    Returns:
        Processed results in the original order
    """
    threshold = truncate if truncate is not None else DEFAULT_TRUNCATE_SIZE
    if skip_small and not any(result.is_ok and is_large(result.value, threshold) for result in results):
        events.emit(events.PROCESS_RESULTS, {"count": len(results), "skipped": True}, {})
        return list(results)

    processed = list(results)
    if truncate is not None:
        processed = Truncate(max_size=truncate).process(processed)
    if summarize:
        options = summarize if isinstance(summarize, dict) else {}
        processed = Summarize(**options).process(processed)
    if sample is not None:
        processed = Sample(sample_size=sample).process(processed)

    events.emit(events.PROCESS_RESULTS, {"count": len(processed), "skipped": False}, {})
    return processed


def sliding_window_compact(context: Context, window_size: int) -> Context:
    """Keep only the last ``window_size`` iterations."""
    if not isinstance(window_size, int) or isinstance(window_size, bool) or window_size <= 0:
        raise ValueError("window_size must be a positive integer")

    before = context.count_iterations()
    if before <= window_size:
        compacted = context
    else:
        logger.info("Applying sliding window compaction with window_size=%d", window_size)
        compacted = context.keep_last_iterations(window_size)

    after = compacted.count_iterations()
    removed = before - after
    if removed:
        logger.info("Sliding window compaction removed %d iterations", removed)
        record_compaction("sliding_window", removed)

    events.emit(
        events.SLIDING_WINDOW,
        {"before_count": before, "after_count": after, "removed": removed},
        {"window_size": window_size},
    )
    return compacted


def token_based_compact(context: Context, budget: int, threshold: float = 1.0) -> Context:
    """Drop the oldest iterations until the estimate fits ``budget``.

    Compaction starts once the estimate reaches ``budget * threshold`` and
    never removes the last remaining iteration.
    """
    if not isinstance(budget, int) or isinstance(budget, bool) or budget <= 0:
        raise ValueError("budget must be a positive integer")
    if not isinstance(threshold, Real) or isinstance(threshold, bool):
        raise ValueError("threshold must be a number")

    before = context.count_iterations()
    initial_tokens = context.estimate_token_count()
    compacted = context

    if before and initial_tokens >= budget * threshold:
        logger.info(
            "Context exceeds budget threshold (%d tokens >= %.0f), compacting",
            initial_tokens,
            budget * threshold,
        )
        while compacted.count_iterations() > 1 and compacted.estimate_token_count() > budget:
            compacted = compacted.with_iterations(compacted.iterations[1:])

    final_tokens = compacted.estimate_token_count()
    after = compacted.count_iterations()
    removed = before - after

    if removed:
        logger.info(
            "Token-based compaction removed %d iterations, reduced tokens from %d to %d",
            removed,
            initial_tokens,
            final_tokens,
        )
        record_compaction("token_based", removed)
    if after == 1 and final_tokens > budget:
        logger.warning(
            "Token-based compaction: only 1 iteration remains (%d tokens > budget %d), cannot compact further",
            final_tokens,
            budget,
        )

    events.emit(
        events.TOKEN_BASED,
        {
            "before_count": before,
            "after_count": after,
            "removed": removed,
            "final_tokens": final_tokens,
        },
        {"budget": budget, "threshold": threshold},
    )
    return compacted
