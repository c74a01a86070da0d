"""Extension points around the tool-calling loop.

A hook is any object implementing a subset of the ``Hooks`` callbacks.
Subclass ``Hooks`` (or ``DefaultHooks`` to keep the built-in behavior) and
override what you need:

    class KeepRecent(DefaultHooks):
        def prepare_context(self, hc):
            return sliding_window_compact(hc.context, window_size=3)

For each callback, ``HookChain`` runs every configured hook that implements
it, in order; if none does, the ``DefaultHooks`` implementation runs.

Control hooks (``on_iteration_start``, ``on_iteration_complete``) return
None, or raise (or return) an ``AgentError`` to abort the loop. Other
exceptions and malformed return values abort with a ``hook_error``.

Transform hooks (``prepare_context``, ``prepare_messages``,
``prepare_tool_results``) return the replacement value. If one raises or
returns something of the wrong shape the failure is logged, a hook error
event is emitted, and the loop continues with the original data.
"""

import logging
import time
from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Any

from agent_runtime.platform.agent.context import Context
from agent_runtime.platform.agent.errors import AgentError, budget_error, hook_error
from agent_runtime.platform.agent.messages import ToolCall, ToolResult
from agent_runtime.platform.agent.token_limits import check_limit
from agent_runtime.platform.observability import events

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HookContext:
    """State handed to every hook callback.

    Attributes:
        agent: Agent name
        client: Client identifier
        iteration_number: Number of the iteration in progress
        max_iterations: Configured iteration budget
        context: Conversation state
        token_usage: Cumulative token totals so far
        messages: Rendered messages (``prepare_messages``)
        tools: Tool schemas sent to the provider (``prepare_messages``)
        tool_calls: Tool calls requested in this iteration
        results: Tool results (``prepare_tool_results``, ``on_iteration_complete``)
        result: Final result, when one exists
        error: Error being surfaced (``on_error``)
        token_limits: Per-client token limits configured on the agent
        warning_threshold: Token warning threshold configured on the agent
    """

    agent: str
    client: str
    iteration_number: int
    max_iterations: int
    context: Context
    token_usage: dict[str, int] = field(default_factory=dict)
    messages: list[dict[str, Any]] | None = None
    tools: list[dict[str, Any]] | None = None
    tool_calls: tuple[ToolCall, ...] = ()
    results: list[ToolResult] | None = None
    result: Any = None
    error: AgentError | None = None
    token_limits: Mapping[str, int] | None = None
    warning_threshold: float | None = None


class Hooks:
    """Base class for hook implementations; every callback is a no-op."""

    def on_iteration_start(self, hc: HookContext) -> AgentError | None:
        return None

    def prepare_context(self, hc: HookContext) -> Context:
        return hc.context

    def prepare_messages(self, hc: HookContext) -> list[dict[str, Any]]:
        return list(hc.messages or [])

    def prepare_tool_results(self, hc: HookContext) -> list[ToolResult]:
        return list(hc.results or [])

    def on_iteration_complete(self, hc: HookContext) -> AgentError | None:
        return None

    def on_error(self, hc: HookContext) -> AgentError | None:
        """Return a replacement error, or None to keep ``hc.error``."""
        return None


class DefaultHooks(Hooks):
    """Built-in behavior: iteration budget and token limit warnings."""

    def on_iteration_start(self, hc: HookContext) -> AgentError | None:
        if hc.iteration_number >= hc.max_iterations:
            raise budget_error(
                f"Maximum iterations ({hc.max_iterations}) reached",
                {"iteration": hc.iteration_number, "max_iterations": hc.max_iterations},
            )
        return None

    def on_iteration_complete(self, hc: HookContext) -> AgentError | None:
        cumulative = hc.token_usage.get("total_tokens", 0)
        warning = check_limit(cumulative, hc.client, hc.token_limits, hc.warning_threshold)
        if warning is not None:
            logger.warning(
                "Agent %s used %d tokens, %.1f%% of the %d token limit for %s",
                hc.agent,
                cumulative,
                warning.usage_percent,
                warning.limit,
                hc.client,
            )
            events.emit(
                events.TOKEN_LIMIT_WARNING,
                {"cumulative_tokens": cumulative, "limit": warning.limit},
                {
                    "agent": hc.agent,
                    "client": hc.client,
                    "iteration": hc.iteration_number,
                    "threshold_percent": warning.threshold_percent,
                    "usage_percent": warning.usage_percent,
                },
            )
        return None


def _implements(hook: Any, name: str) -> bool:
    method = getattr(type(hook), name, None)
    if not callable(method):
        return False
    return method is not getattr(Hooks, name)


def _hook_name(hook: Any) -> str:
    return type(hook).__name__


class HookChain:
    """Ordered hook dispatch with a built-in default."""

    def __init__(self, hooks: Sequence[Any] = (), default: Hooks | None = None):
        self.hooks = tuple(hooks)
        self.default = default or DefaultHooks()

    def _implementations(self, name: str) -> list[tuple[Any, Callable[[HookContext], Any]]]:
        configured = [(hook, getattr(hook, name)) for hook in self.hooks if _implements(hook, name)]
        return configured or [(self.default, getattr(self.default, name))]

    @contextmanager
    def _timed(self, name: str, hc: HookContext) -> Iterator[None]:
        metadata = {"hook_name": name, "agent": hc.agent, "iteration": hc.iteration_number}
        start = time.monotonic()
        events.emit(events.HOOK_START, {"system_time": time.time()}, metadata)
        try:
            yield
        finally:
            events.emit(events.HOOK_STOP, {"duration": time.monotonic() - start}, metadata)

    def _report(self, name: str, hook: Any, hc: HookContext, error: Any) -> None:
        events.emit(
            events.HOOK_ERROR,
            {},
            {
                "hook_name": name,
                "hook": _hook_name(hook),
                "agent": hc.agent,
                "iteration": hc.iteration_number,
                "error": error,
            },
        )

    # -- control hooks --------------------------------------------------------

    def _run_control(self, name: str, hc: HookContext) -> None:
        with self._timed(name, hc):
            for hook, callback in self._implementations(name):
                try:
                    outcome = callback(hc)
                except AgentError as e:
                    self._report(name, hook, hc, e)
                    raise
                except Exception as e:
                    self._report(name, hook, hc, e)
                    raise hook_error(
                        f"{_hook_name(hook)}.{name} raised {type(e).__name__}: {e}",
                        {"hook": name, "hook_class": _hook_name(hook), "exception": e},
                    ) from e

                if isinstance(outcome, AgentError):
                    self._report(name, hook, hc, outcome)
                    raise outcome
                if outcome is not None and not isinstance(outcome, HookContext):
                    self._report(name, hook, hc, outcome)
                    raise hook_error(
                        f"{_hook_name(hook)}.{name} returned a malformed result",
                        {"hook": name, "hook_class": _hook_name(hook), "result": outcome},
                    )

    def on_iteration_start(self, hc: HookContext) -> None:
        self._run_control("on_iteration_start", hc)

    def on_iteration_complete(self, hc: HookContext) -> None:
        self._run_control("on_iteration_complete", hc)

    # -- transform hooks ------------------------------------------------------

    def _run_transform(
        self,
        name: str,
        hc: HookContext,
        field_name: str,
        original: Any,
        is_valid: Callable[[Any], bool],
    ) -> Any:
        value = original
        with self._timed(name, hc):
            for hook, callback in self._implementations(name):
                try:
                    outcome = callback(replace(hc, **{field_name: value}))
                except Exception as e:
                    logger.warning(
                        "Hook %s.%s failed, continuing with unmodified %s: %s",
                        _hook_name(hook),
                        name,
                        field_name,
                        e,
                    )
                    self._report(name, hook, hc, e)
                    return original

                if isinstance(outcome, AgentError) or not is_valid(outcome):
                    logger.warning(
                        "Hook %s.%s returned %s, continuing with unmodified %s",
                        _hook_name(hook),
                        name,
                        type(outcome).__name__,
                        field_name,
                    )
                    self._report(name, hook, hc, outcome)
                    return original
                value = outcome
        return value

    def prepare_context(self, hc: HookContext) -> Context:
        return self._run_transform(
            "prepare_context",
            hc,
            "context",
            hc.context,
            lambda value: isinstance(value, Context),
        )

    def prepare_messages(self, hc: HookContext) -> list[dict[str, Any]]:
        return self._run_transform(
            "prepare_messages",
            hc,
            "messages",
            list(hc.messages or []),
            lambda value: isinstance(value, list) and all(isinstance(m, Mapping) for m in value),
        )

    def prepare_tool_results(self, hc: HookContext) -> list[ToolResult]:
        return self._run_transform(
            "prepare_tool_results",
            hc,
            "results",
            list(hc.results or []),
            lambda value: isinstance(value, list) and all(isinstance(r, ToolResult) for r in value),
        )

    # -- error hook -----------------------------------------------------------

    def on_error(self, hc: HookContext) -> AgentError:
        """Give hooks a chance to replace ``hc.error``; returns the error to surface."""
        error = hc.error
        for hook, callback in self._implementations("on_error"):
            try:
                outcome = callback(replace(hc, error=error))
            except Exception:
                logger.exception("Hook %s.on_error failed; keeping the original error", _hook_name(hook))
                self._report("on_error", hook, hc, error)
                continue
            if isinstance(outcome, AgentError):
                error = outcome
        return error
