"""Progressive disclosure hooks for the order desk agent.

Tool listings are sampled before they reach the model, and old iterations
are compacted once the context grows past its token budget.
"""

from agent_runtime.platform.agent.context import Context
from agent_runtime.platform.agent.hooks import DefaultHooks, HookContext
from agent_runtime.platform.agent.messages import ToolResult
from agent_runtime.platform.disclosure.compaction import process_tool_results, token_based_compact


class OrderDeskHooks(DefaultHooks):
    """Keeps tool output and history bounded.

    Attributes:
        truncate_size: Byte/element size above which results are processed
        sample_size: Items kept from large listings
        context_budget: Estimated token budget for the whole context
    """

    def __init__(self, truncate_size: int = 2000, sample_size: int = 10, context_budget: int = 4000):
        self.truncate_size = truncate_size
        self.sample_size = sample_size
        self.context_budget = context_budget

    def prepare_context(self, hc: HookContext) -> Context:
        return token_based_compact(hc.context, budget=self.context_budget, threshold=0.9)

    def prepare_tool_results(self, hc: HookContext) -> list[ToolResult]:
        # Sample lists first so total_count survives; truncate whatever is still large.
        sampled = process_tool_results(hc.results or [], sample=self.sample_size, skip_small=False)
        return process_tool_results(sampled, truncate=self.truncate_size)
