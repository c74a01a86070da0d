"""Unit tests for the immutable conversation context."""

from datetime import UTC, datetime, timedelta

import pytest

from agent_runtime.platform.agent.context import Context, Iteration
from agent_runtime.platform.agent.messages import Message, Role, ToolCall, ToolResult


def _iteration(number: int, *contents: str, started_at: datetime | None = None) -> Iteration:
    return Iteration(
        number=number,
        messages=tuple(Message(role=Role.USER, content=content) for content in contents),
        started_at=started_at,
    )


class TestNew:
    """Tests for Context.new."""

    def test_string_input(self):
        """A string becomes the user message of iteration 1."""
        ctx = Context.new("hi")
        assert ctx.current_iteration == 1
        assert ctx.count_iterations() == 1
        assert ctx.to_messages() == [{"role": "user", "content": "hi"}]

    def test_system_prompt_first(self):
        """The system prompt precedes the user message."""
        ctx = Context.new("hi", system_prompt="be brief")
        assert [m["role"] for m in ctx.to_messages()] == ["system", "user"]

    def test_mapping_with_message(self):
        """A mapping contributes its message value."""
        ctx = Context.new({"message": "hello", "tenant": "acme"})
        assert ctx.to_messages()[0]["content"] == "hello"
        assert ctx.input == {"message": "hello", "tenant": "acme"}

    def test_other_mapping_is_json(self):
        """Mappings without a message key are JSON-encoded."""
        ctx = Context.new({"order": 42})
        assert ctx.to_messages()[0]["content"] == '{"order": 42}'


class TestMutators:
    """Tests for the rebind-on-mutate operations."""

    def test_mutators_return_new_instances(self):
        """The original context is never modified."""
        ctx = Context.new("hi")
        updated = ctx.add_assistant_message("hello")
        assert updated is not ctx
        assert len(ctx.active_iteration.messages) == 1
        assert len(updated.active_iteration.messages) == 2

    def test_tool_results_stay_in_current_iteration(self):
        """Tool results are appended to iteration 1 without opening iteration 2."""
        ctx = Context.new("hi")
        ctx = ctx.add_assistant_message("", [ToolCall(id="c1", name="t1", arguments={})])
        ctx = ctx.add_tool_results([ToolResult.ok("t1", "data")])

        assert ctx.current_iteration == 1
        iteration = ctx.get_iteration(1)
        tool_messages = [m for m in iteration.messages if m.role is Role.TOOL]
        assert len(tool_messages) == 1
        assert tool_messages[0].name == "t1"
        assert tool_messages[0].content == "data"
        assert iteration.completed_at is not None

    def test_tool_results_keep_order_and_format_errors(self):
        """One tool message per result, in input order; errors are prefixed."""
        ctx = Context.new("hi").add_tool_results(
            [ToolResult.ok("a", {"x": 1}, "c1"), ToolResult.error("b", "boom", "c2")]
        )
        tool_messages = [m for m in ctx.to_messages() if m["role"] == "tool"]
        assert tool_messages == [
            {"role": "tool", "content": '{"x": 1}', "tool_call_id": "c1", "name": "a"},
            {"role": "tool", "content": "Error: boom", "tool_call_id": "c2", "name": "b"},
        ]

    def test_next_iteration(self):
        """next_iteration opens N+1 and carries token totals forward."""
        ctx = Context.new("hi").add_token_usage({"input_tokens": 10, "output_tokens": 5})
        ctx = ctx.next_iteration()
        assert ctx.current_iteration == 2
        assert ctx.count_iterations() == 2
        assert ctx.get_cumulative_tokens()["total_tokens"] == 15

    def test_assistant_tool_calls_rendered(self):
        """Assistant tool calls render in OpenAI function format."""
        call = ToolCall(id="c1", name="lookup", arguments={"q": "x"})
        message = Context.new("hi").add_assistant_message(None, [call]).to_messages()[-1]
        assert message["tool_calls"] == [
            {"id": "c1", "type": "function", "function": {"name": "lookup", "arguments": '{"q": "x"}'}}
        ]


class TestTokenUsage:
    """Tests for cumulative token accounting."""

    def test_none_is_noop(self):
        """None usage returns the same context."""
        ctx = Context.new("hi")
        assert ctx.add_token_usage(None) is ctx

    def test_sums_fieldwise(self):
        """Totals equal the field-wise sum of every usage added."""
        ctx = Context.new("hi")
        usages = [
            {"input_tokens": 3, "output_tokens": 1},
            None,
            {"prompt_tokens": 4, "completion_tokens": 2, "total_tokens": 6},
            {"input_tokens": 0, "output_tokens": 9},
        ]
        for usage in usages:
            ctx = ctx.add_token_usage(usage)
        assert ctx.get_cumulative_tokens() == {"input_tokens": 7, "output_tokens": 12, "total_tokens": 19}

    def test_monotonic_across_iterations(self):
        """Totals never decrease as iterations advance."""
        ctx = Context.new("hi")
        seen = []
        for _ in range(3):
            ctx = ctx.add_token_usage({"input_tokens": 2, "output_tokens": 2}).next_iteration()
            seen.append(ctx.get_cumulative_tokens()["total_tokens"])
        assert seen == sorted(seen)
        assert seen[-1] == 12


class TestLookups:
    """Tests for iteration lookup helpers."""

    def test_get_iteration_missing(self):
        """Unknown iteration numbers return None."""
        assert Context.new("hi").get_iteration(5) is None

    def test_exceeded_max_iterations(self):
        """True once current_iteration reaches the maximum."""
        ctx = Context.new("hi").next_iteration().next_iteration()
        assert ctx.exceeded_max_iterations(3)
        assert not ctx.exceeded_max_iterations(4)


class TestHistory:
    """Tests for history management helpers."""

    def test_keep_last_iterations(self):
        """Only the trailing iterations survive."""
        ctx = Context.new("hi").next_iteration().next_iteration()
        kept = ctx.keep_last_iterations(2)
        assert [i.number for i in kept.iterations] == [2, 3]
        assert kept.active_iteration.number == 3

    def test_keep_last_iterations_rejects_zero(self):
        """A non-positive count is a precondition violation."""
        with pytest.raises(ValueError):
            Context.new("hi").keep_last_iterations(0)

    def test_remove_old_iterations(self):
        """Iterations started before the cutoff are dropped."""
        now = datetime(2026, 1, 1, tzinfo=UTC)
        ctx = Context.new("hi").with_iterations(
            [
                _iteration(1, "old", started_at=now - timedelta(seconds=120)),
                _iteration(2, "new", started_at=now - timedelta(seconds=10)),
            ]
        )
        kept = ctx.remove_old_iterations(60, now=now)
        assert [i.number for i in kept.iterations] == [2]

    def test_get_iteration_range(self):
        """Positions are inclusive on both ends."""
        ctx = Context.new("hi").next_iteration().next_iteration().next_iteration()
        assert [i.number for i in ctx.get_iteration_range(1, 2).iterations] == [2, 3]

    def test_get_iteration_range_invalid(self):
        """Reversed ranges are rejected."""
        with pytest.raises(ValueError):
            Context.new("hi").get_iteration_range(2, 1)

    def test_mark_as_summarized(self):
        """Summaries are recorded in iteration metadata."""
        iteration = _iteration(1, "x").mark_as_summarized("short version")
        assert iteration.is_summarized
        assert iteration.summary == "short version"
        assert "summarized_at" in iteration.metadata


class TestBudget:
    """Tests for token estimation and budget helpers."""

    def test_estimate_grows_with_content(self):
        """Longer content never estimates lower."""
        short = Context.new("a" * 10)
        long = Context.new("a" * 10_000)
        assert long.estimate_token_count() > short.estimate_token_count()

    def test_budget_helpers(self):
        """Budget helpers agree with the estimate."""
        ctx = Context.new("a" * 1000)
        estimate = ctx.estimate_token_count()
        assert not ctx.exceeds_token_budget(estimate)
        assert ctx.exceeds_token_budget(estimate - 1)
        assert ctx.tokens_remaining(estimate + 5) == 5
        assert ctx.tokens_remaining(1) == 0
        assert ctx.budget_utilization(estimate * 2) == pytest.approx(0.5)

    def test_budget_must_be_positive(self):
        """Budgets below one are precondition violations."""
        with pytest.raises(ValueError):
            Context.new("hi").exceeds_token_budget(0)
