"""Tool-calling loop.

``Runtime`` drives an agent from an input to a final ``Result``:

    runtime = Runtime(RuntimeConfig(client="openai/gpt-4o", provider="litellm", tools=[weather]))
    result = runtime.call("What's the weather in Paris?")

Each iteration runs the start hook, lets hooks reshape the context and
messages, calls the provider (with retry), and either finishes (no tool
calls) or executes the requested tools, lets hooks shape the results,
merges them into the context and moves on to the next iteration.
"""

import logging
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from agent_runtime.platform.agent.config import OnToolError, RetryPolicy, RuntimeConfig
from agent_runtime.platform.agent.context import Context
from agent_runtime.platform.agent.errors import AgentError, llm_error
from agent_runtime.platform.agent.hooks import HookChain, HookContext
from agent_runtime.platform.agent.llm_client import Extracted, LlmClient, parse_output
from agent_runtime.platform.agent.messages import ChunkKind, Metadata, Result, StreamChunk
from agent_runtime.platform.agent.metrics import AgentMetricsLabels, collect_agent_metrics
from agent_runtime.platform.agent.streaming import ChunkStream
from agent_runtime.platform.agent.tools import ToolExecutor
from agent_runtime.platform.observability import events
from agent_runtime.platform.observability.logging import correlation_scope
from agent_runtime.platform.providers.registry import ProviderRegistry
from agent_runtime.platform.settings import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Prepared:
    context: Context
    messages: list[dict[str, Any]]
    tools: list[dict[str, Any]]


class Runtime:
    """Runs one configured agent. Safe to share between concurrent calls."""

    def __init__(
        self,
        config: RuntimeConfig,
        *,
        registry: ProviderRegistry | None = None,
        settings: Settings | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.settings = settings or get_settings()
        retry = config.retry or RetryPolicy.from_settings(self.settings.retry)
        self.client = LlmClient(config, retry, registry=registry, sleep=sleep)
        self.hooks = HookChain(config.hooks)
        self.executor = ToolExecutor(config.tools, agent=config.agent)

    @property
    def provider_name(self) -> str:
        return self.client.provider_name

    def _telemetry_metadata(self) -> dict[str, Any]:
        return {"agent": self.config.agent, "provider": self.provider_name, "client": self.config.client}

    def _hook_context(self, context: Context, **extra: Any) -> HookContext:
        config = self.config
        return HookContext(
            agent=config.agent,
            client=config.client,
            iteration_number=context.current_iteration,
            max_iterations=config.max_iterations,
            context=context,
            token_usage=context.get_cumulative_tokens(),
            token_limits=config.token_limits,
            warning_threshold=config.warning_threshold,
            **extra,
        )

    def _surface(self, error: AgentError, context: Context | None) -> AgentError:
        logger.error("Agent %s failed: %s", self.config.agent, error)
        if context is None:
            return error
        return self.hooks.on_error(self._hook_context(context, error=error))

    # -- call -------------------------------------------------------------------

    def call(self, input: Any, exec_context: Any = None) -> Result:
        """Run the loop to completion.

        Args:
            input: User input, a string or a mapping (``{"message": ...}``)
            exec_context: Opaque caller data passed unmodified to every tool

        Returns:
            The final ``Result``

        Raises:
            AgentError: On provider, parse, hook or budget failure
        """
        labels = AgentMetricsLabels(self.config.agent, self.provider_name, "call")
        with (
            correlation_scope(),
            collect_agent_metrics(labels),
            events.span("call", self._telemetry_metadata()) as stop_metadata,
        ):
            result = self._run(input, exec_context)
            if result.usage is not None:
                stop_metadata["usage"] = result.usage.as_dict()
            return result

    def _run(self, input: Any, exec_context: Any) -> Result:
        started = time.monotonic()
        started_at = datetime.now(UTC)
        context = Context.new(input, system_prompt=self.config.system_prompt)
        try:
            while True:
                prepared = self._prepare(context)
                context = prepared.context
                response, attempts = self.client.generate(context, prepared.messages, prepared.tools)
                context = context.add_llm_call_timing()
                extracted = self.client.extract(response)
                context = context.add_assistant_message(extracted.content, extracted.tool_calls)
                context = context.add_token_usage(extracted.usage)
                self.client.record_tokens(extracted.usage, extracted.model)

                if not extracted.tool_calls:
                    return self._final_result(context, response, extracted, attempts, started, started_at)

                context = self._run_tools(context, extracted, exec_context)
                context = context.next_iteration()
        except AgentError as error:
            raise self._surface(error, context) from error.__cause__

    def _prepare(self, context: Context) -> _Prepared:
        self.hooks.on_iteration_start(self._hook_context(context))
        context = self.hooks.prepare_context(self._hook_context(context))
        tools = self.executor.registry.schemas()
        messages = self.hooks.prepare_messages(
            self._hook_context(context, messages=context.to_messages(), tools=tools)
        )
        return _Prepared(context, messages, tools)

    def _run_tools(self, context: Context, extracted: Extracted, exec_context: Any) -> Context:
        tool_calls = tuple(extracted.tool_calls)
        logger.info(
            "Agent %s iteration %d executing tools %s",
            self.config.agent,
            context.current_iteration,
            [call.name for call in tool_calls],
        )
        results = self.executor.execute(tool_calls, exec_context)

        failed = [result for result in results if not result.is_ok]
        if failed and self.config.on_tool_error is OnToolError.HALT:
            raise llm_error(
                "Tool execution failed",
                {
                    "iteration": context.current_iteration,
                    "tool_errors": {result.tool_name: result.value for result in failed},
                    "results": results,
                },
            )

        results = self.hooks.prepare_tool_results(
            self._hook_context(context, tool_calls=tool_calls, results=results)
        )
        context = context.add_tool_results(results)
        self.hooks.on_iteration_complete(self._hook_context(context, tool_calls=tool_calls, results=results))
        return context

    def _final_result(
        self,
        context: Context,
        response: Any,
        extracted: Extracted,
        attempts: int,
        started: float,
        started_at: datetime,
    ) -> Result:
        output = parse_output(self.config.output_schema, extracted.content, response)
        extra = extracted.metadata
        metadata = Metadata(
            duration_ms=int((time.monotonic() - started) * 1000),
            started_at=started_at,
            completed_at=datetime.now(UTC),
            request_id=extra.get("request_id"),
            provider=self.provider_name,
            client=self.config.client,
            num_attempts=attempts,
            iterations=context.current_iteration,
            tags=dict(extra.get("tags") or {}),
            input_cost=extra.get("input_cost"),
            output_cost=extra.get("output_cost"),
            total_cost=extra.get("total_cost"),
        )
        logger.info(
            "Agent %s finished after %d iteration(s) in %dms",
            self.config.agent,
            context.current_iteration,
            metadata.duration_ms,
        )
        return Result(
            output=output,
            thinking=extracted.thinking,
            usage=extracted.usage,
            model=extracted.model,
            finish_reason=extracted.finish_reason,
            metadata=metadata,
            raw_response=response,
        )

    # -- stream -----------------------------------------------------------------

    def stream(self, input: Any, exec_context: Any = None) -> Iterator[StreamChunk]:
        """Stream one provider exchange as tagged chunks.

        The start, context and message hooks run before this returns, so
        their errors are raised here. Tool-call deltas are yielded as
        ``tool_call`` chunks and not executed. The last chunk is ``done``.
        """
        context = Context.new(input, system_prompt=self.config.system_prompt)
        try:
            prepared = self._prepare(context)
        except AgentError as error:
            raise self._surface(error, context) from error.__cause__

        streaming = self.settings.streaming
        chunks = ChunkStream(
            lambda: self.client.open_stream(prepared.context, prepared.messages, prepared.tools),
            schema=self.config.output_schema,
            timeout=self.config.stream_timeout or streaming.timeout_seconds,
            buffer_size=streaming.buffer_size,
            metadata={
                "provider": self.provider_name,
                "client": self.config.client,
                "iterations": prepared.context.current_iteration,
            },
        )
        return self._stream_chunks(chunks, prepared.context)

    def _stream_chunks(self, chunks: ChunkStream, context: Context) -> Iterator[StreamChunk]:
        labels = AgentMetricsLabels(self.config.agent, self.provider_name, "stream")
        with (
            chunks,
            collect_agent_metrics(labels),
            events.span("stream", self._telemetry_metadata()) as stop_metadata,
        ):
            try:
                for chunk in chunks:
                    if chunk.kind is ChunkKind.DONE:
                        result: Result = chunk.data
                        self.client.record_tokens(result.usage, result.model)
                        if result.usage is not None:
                            stop_metadata["usage"] = result.usage.as_dict()
                    yield chunk
            except AgentError as error:
                raise self._surface(error, context) from error.__cause__


def call_runtime(config: RuntimeConfig, input: Any, exec_context: Any = None, **kwargs: Any) -> Result:
    """Build a ``Runtime`` for ``config`` and run one call."""
    return Runtime(config, **kwargs).call(input, exec_context)


def stream_runtime(config: RuntimeConfig, input: Any, exec_context: Any = None, **kwargs: Any) -> Iterator[StreamChunk]:
    """Build a ``Runtime`` for ``config`` and start one stream."""
    return Runtime(config, **kwargs).stream(input, exec_context)
