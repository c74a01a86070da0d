"""Conversation state for a single agent call.

A ``Context`` is an immutable value made of ordered ``Iteration`` records.
Every mutator returns a new instance; callers rebind the result:

    ctx = Context.new("What is the weather?", system_prompt=prompt)
    ctx = ctx.add_assistant_message("", tool_calls)
    ctx = ctx.add_tool_results(results)
    ctx = ctx.next_iteration()
"""

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from typing import Any

from agent_runtime.platform.agent.messages import (
    Message,
    Role,
    ToolCall,
    ToolResult,
    Usage,
)

# Heuristic token estimate: fixed per-message overhead plus content length.
MESSAGE_OVERHEAD_TOKENS = 10
CHARS_PER_TOKEN = 100

_ZERO_TOKENS = {"input_tokens": 0, "output_tokens": 0, "total_tokens": 0}


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _require_positive(name: str, value: Any) -> None:
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        raise ValueError(f"{name} must be a positive integer, got {value!r}")


def format_tool_content(result: ToolResult) -> str:
    """Render a tool result as message text."""
    if not result.is_ok:
        return f"Error: {result.value}"
    if isinstance(result.value, str):
        return result.value
    return json.dumps(result.value, default=str)


@dataclass(frozen=True)
class Iteration:
    """One provider round-trip plus any tool execution it triggered.

    Attributes:
        number: 1-based iteration number
        messages: Messages recorded during this iteration
        tool_calls: Tool calls requested by the provider in this iteration
        started_at: UTC time the iteration was opened
        completed_at: UTC time the tool results were merged
        metadata: Per-iteration extras (token usage, timing, summaries)
    """

    number: int
    messages: tuple[Message, ...] = ()
    tool_calls: tuple[ToolCall, ...] = ()
    started_at: datetime | None = None
    completed_at: datetime | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def update_metadata(self, key: str, value: Any) -> "Iteration":
        return replace(self, metadata={**self.metadata, key: value})

    def mark_as_summarized(self, summary: str, now: datetime | None = None) -> "Iteration":
        return replace(
            self,
            metadata={
                **self.metadata,
                "summarized": True,
                "summary": summary,
                "summarized_at": now or _utcnow(),
            },
        )

    @property
    def is_summarized(self) -> bool:
        return self.metadata.get("summarized") is True

    @property
    def summary(self) -> str | None:
        return self.metadata.get("summary")


@dataclass(frozen=True)
class Context:
    """Immutable conversation state threaded through the tool-calling loop.

    Attributes:
        iterations: Iterations ordered by ascending number
        current_iteration: Number of the active iteration
        input: The caller's original input
        metadata: Caller-supplied extras carried alongside the conversation
    """

    iterations: tuple[Iteration, ...] = ()
    current_iteration: int = 0
    input: Any = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def new(
        cls,
        input: Any,
        system_prompt: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> "Context":
        """Create a context whose first iteration holds the opening messages.

        Args:
            input: A string, or a mapping; a mapping with a ``message`` key
                contributes that value, any other mapping is JSON-encoded
            system_prompt: Optional system message placed first
            metadata: Optional caller metadata
        """
        messages: list[Message] = []
        if system_prompt:
            messages.append(Message(role=Role.SYSTEM, content=system_prompt))
        messages.append(Message(role=Role.USER, content=_user_content(input)))

        first = Iteration(number=1, messages=tuple(messages), started_at=_utcnow())
        return cls(
            iterations=(first,),
            current_iteration=1,
            input=input,
            metadata=dict(metadata or {}),
        )

    # -- lookup ---------------------------------------------------------------

    def _active_index(self) -> int:
        if not self.iterations:
            raise ValueError("context has no iterations")
        for index in range(len(self.iterations) - 1, -1, -1):
            if self.iterations[index].number == self.current_iteration:
                return index
        return len(self.iterations) - 1

    @property
    def active_iteration(self) -> Iteration:
        return self.iterations[self._active_index()]

    def _replace_active(self, iteration: Iteration) -> "Context":
        index = self._active_index()
        iterations = self.iterations[:index] + (iteration,) + self.iterations[index + 1 :]
        return replace(self, iterations=iterations)

    def get_iteration(self, number: int) -> Iteration | None:
        for iteration in self.iterations:
            if iteration.number == number:
                return iteration
        return None

    def count_iterations(self) -> int:
        return len(self.iterations)

    def exceeded_max_iterations(self, max_iterations: int) -> bool:
        return self.current_iteration >= max_iterations

    # -- mutators -------------------------------------------------------------

    def add_assistant_message(
        self, content: Any, tool_calls: Iterable[ToolCall] | None = None
    ) -> "Context":
        """Append an assistant message (and its tool calls) to the active iteration."""
        calls = tuple(tool_calls or ())
        message = Message(role=Role.ASSISTANT, content=content, tool_calls=calls or None)
        active = self.active_iteration
        return self._replace_active(
            replace(
                active,
                messages=active.messages + (message,),
                tool_calls=active.tool_calls + calls,
            )
        )

    def add_tool_results(self, results: Iterable[ToolResult]) -> "Context":
        """Append one tool-role message per result, in order, and close the active iteration."""
        messages = tuple(
            Message(
                role=Role.TOOL,
                content=format_tool_content(result),
                tool_call_id=result.tool_call_id or result.tool_name,
                name=result.tool_name,
            )
            for result in results
        )
        active = self.active_iteration
        return self._replace_active(
            replace(active, messages=active.messages + messages, completed_at=_utcnow())
        )

    def next_iteration(self) -> "Context":
        """Open the next iteration, carrying cumulative token totals forward."""
        number = self.current_iteration + 1
        metadata: dict[str, Any] = {}
        if self.iterations:
            metadata["cumulative_tokens"] = dict(self.get_cumulative_tokens())
        iteration = Iteration(number=number, started_at=_utcnow(), metadata=metadata)
        return replace(
            self,
            iterations=self.iterations + (iteration,),
            current_iteration=number,
        )

    def add_token_usage(self, usage: Any) -> "Context":
        """Record provider usage on the active iteration; ``None`` is a no-op."""
        normalized = Usage.from_mapping(usage)
        if normalized is None:
            return self

        cumulative = self.get_cumulative_tokens()
        new_cumulative = {
            "input_tokens": cumulative["input_tokens"] + normalized.input_tokens,
            "output_tokens": cumulative["output_tokens"] + normalized.output_tokens,
            "total_tokens": cumulative["total_tokens"] + normalized.total_tokens,
        }
        active = self.active_iteration
        return self._replace_active(
            replace(
                active,
                metadata={
                    **active.metadata,
                    "current_usage": normalized.as_dict(),
                    "cumulative_tokens": new_cumulative,
                },
            )
        )

    def add_llm_call_timing(self, now: datetime | None = None) -> "Context":
        """Record when the provider answered, relative to the iteration start."""
        now = now or _utcnow()
        active = self.active_iteration
        duration_ms = 0
        if active.started_at is not None:
            duration_ms = int((now - active.started_at) / timedelta(milliseconds=1))
        return self._replace_active(
            replace(
                active,
                metadata={
                    **active.metadata,
                    "llm_response_at": now,
                    "llm_duration_ms": duration_ms,
                },
            )
        )

    def get_cumulative_tokens(self) -> dict[str, int]:
        if not self.iterations:
            return dict(_ZERO_TOKENS)
        return dict(self.active_iteration.metadata.get("cumulative_tokens", _ZERO_TOKENS))

    # -- history management ---------------------------------------------------

    def with_iterations(self, iterations: Iterable[Iteration]) -> "Context":
        return replace(self, iterations=tuple(iterations))

    def keep_last_iterations(self, count: int) -> "Context":
        _require_positive("count", count)
        return replace(self, iterations=self.iterations[-count:])

    def remove_old_iterations(self, max_age_seconds: int, now: datetime | None = None) -> "Context":
        """Drop iterations started more than ``max_age_seconds`` ago."""
        if not isinstance(max_age_seconds, int) or max_age_seconds < 0:
            raise ValueError(f"max_age_seconds must be a non-negative integer, got {max_age_seconds!r}")
        cutoff = (now or _utcnow()) - timedelta(seconds=max_age_seconds)
        return replace(
            self,
            iterations=tuple(
                iteration
                for iteration in self.iterations
                if iteration.started_at is None or iteration.started_at >= cutoff
            ),
        )

    def get_iteration_range(self, start_index: int, end_index: int) -> "Context":
        """Keep the iterations at 0-based positions ``start_index..end_index`` inclusive."""
        if start_index < 0 or end_index < start_index:
            raise ValueError(f"invalid iteration range {start_index}..{end_index}")
        return replace(self, iterations=self.iterations[start_index : end_index + 1])

    # -- rendering & budgets --------------------------------------------------

    def to_messages(self) -> list[dict[str, Any]]:
        """Flatten all iterations into provider-neutral chat messages."""
        return [
            _format_message(message)
            for iteration in self.iterations
            for message in iteration.messages
        ]

    def estimate_token_count(self) -> int:
        """Cheap proportional estimate, not a tokenizer count."""
        total = 0
        for message in self.to_messages():
            total += MESSAGE_OVERHEAD_TOKENS + len(_content_text(message.get("content"))) // CHARS_PER_TOKEN
        return total

    def exceeds_token_budget(self, budget: int) -> bool:
        _require_positive("budget", budget)
        return self.estimate_token_count() > budget

    def tokens_remaining(self, budget: int) -> int:
        _require_positive("budget", budget)
        return max(0, budget - self.estimate_token_count())

    def budget_utilization(self, budget: int) -> float:
        _require_positive("budget", budget)
        return self.estimate_token_count() / budget


def _user_content(input: Any) -> Any:
    if isinstance(input, str):
        return input
    if isinstance(input, Mapping):
        if input.get("message") is not None:
            return input["message"]
        return json.dumps(input, default=str)
    return json.dumps(input, default=str)


def _content_text(content: Any) -> str:
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    return json.dumps(content, default=str)


def _format_tool_call(call: ToolCall) -> dict[str, Any]:
    return {
        "id": call.id,
        "type": "function",
        "function": {"name": call.name, "arguments": json.dumps(call.arguments, default=str)},
    }


def _format_message(message: Message) -> dict[str, Any]:
    formatted: dict[str, Any] = {"role": message.role.value, "content": message.content}
    if message.role is Role.ASSISTANT and message.tool_calls:
        formatted["tool_calls"] = [_format_tool_call(call) for call in message.tool_calls]
    if message.role is Role.TOOL:
        formatted["tool_call_id"] = message.tool_call_id
        if message.name:
            formatted["name"] = message.name
    return formatted
