"""Agent-specific Prometheus metrics.

Durations of agent calls and tool executions, token counters per agent and
model, and a counter of context compactions.
"""

from time import monotonic
from typing import NamedTuple

import prometheus_client

from agent_runtime.platform.observability.metrics import (
    setup_counter_factory,
    setup_metrics_factory,
)


class AgentMetricsLabels(NamedTuple):
    agent: str
    provider: str = ""
    mode: str = "call"


class ToolMetricsLabels(NamedTuple):
    agent: str
    tool_name: str


agent_histogram = setup_metrics_factory(
    prometheus_client.REGISTRY,
    name="agent_runtime_call_duration_seconds",
    documentation="Agent call duration (seconds)",
    labelnames=(*AgentMetricsLabels._fields, "status"),
)
tool_histogram = setup_metrics_factory(
    prometheus_client.REGISTRY,
    name="agent_runtime_tool_duration_seconds",
    documentation="Tool execution duration (seconds)",
    labelnames=(*ToolMetricsLabels._fields, "status"),
)
token_counter = setup_counter_factory(
    prometheus_client.REGISTRY,
    name="agent_runtime_tokens",
    documentation="Tokens consumed by agent calls",
    labelnames=("agent", "model", "direction"),
)
compaction_counter = setup_counter_factory(
    prometheus_client.REGISTRY,
    name="agent_runtime_compacted_iterations",
    documentation="Iterations removed by context compaction",
    labelnames=("strategy",),
)


def record_tool_call(labels: ToolMetricsLabels, duration: float, error: bool = False) -> None:
    status = "error" if error else "ok"
    tool_histogram.labels(*labels, status).observe(duration)


def record_agent_tokens(agent: str, model: str, input_tokens: int, output_tokens: int) -> None:
    """Add token counts; zero counts are skipped."""
    if input_tokens > 0:
        token_counter.labels(agent, model, "input").inc(input_tokens)
    if output_tokens > 0:
        token_counter.labels(agent, model, "output").inc(output_tokens)


def record_compaction(strategy: str, removed: int) -> None:
    if removed > 0:
        compaction_counter.labels(strategy).inc(removed)


class collect_agent_metrics:
    """Context manager timing an agent call.

    Usage:
        with collect_agent_metrics(AgentMetricsLabels("support", "mock")):
            ...
    """

    def __init__(self, labels: AgentMetricsLabels):
        self.labels = labels
        self._start = 0.0

    def __enter__(self) -> "collect_agent_metrics":
        self._start = monotonic()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            status = "ok"
        elif issubclass(exc_type, GeneratorExit):
            status = "cancelled"
        else:
            status = "error"
        agent_histogram.labels(*self.labels, status).observe(monotonic() - self._start)
        return False
