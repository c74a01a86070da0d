"""Order desk demo agent.

Builds a ``RuntimeConfig`` for a small tool-calling agent. With the
``mock`` provider the model side is scripted (one ``list_orders`` call,
then an answer built from the tool result) so the whole loop runs offline;
with ``litellm`` the client identifier selects a real model.
"""

import json
from typing import Any

from agent_runtime.agents.demo.hooks import OrderDeskHooks
from agent_runtime.agents.demo.prompt import build_system_prompt
from agent_runtime.agents.demo.tools import build_tools
from agent_runtime.platform.agent.config import OnToolError, RuntimeConfig

DEFAULT_CLIENTS = {
    "mock": "mock:order-desk",
    "litellm": "openai/gpt-4o-mini",
}


def _last_tool_payload(messages: list[dict[str, Any]]) -> Any:
    for message in reversed(messages):
        if message.get("role") == "tool":
            try:
                return json.loads(message["content"])
            except (TypeError, ValueError):
                return message["content"]
    return None


def _scripted_answer(messages: list[dict[str, Any]], context: Any) -> dict[str, Any]:
    payload = _last_tool_payload(messages)
    if isinstance(payload, dict) and "total_count" in payload:
        sample_ids = ", ".join(order["id"] for order in payload["items"][:3])
        content = f"There are {payload['total_count']} open orders, for example {sample_ids}."
    else:
        content = "I could not list the open orders."
    return {
        "content": content,
        "usage": {"input_tokens": 180, "output_tokens": 24},
        "model": "mock:order-desk",
        "finish_reason": "stop",
    }


MOCK_SCRIPT = [
    {
        "content": "",
        "tool_calls": [{"id": "call_list_open", "name": "list_orders", "arguments": {"status": "open"}}],
        "usage": {"input_tokens": 120, "output_tokens": 16},
        "model": "mock:order-desk",
        "finish_reason": "tool_calls",
    },
    _scripted_answer,
]

MOCK_CHUNKS = [
    {"thinking": "The user wants a summary of the order desk."},
    {"delta": "The order desk "},
    {"delta": "tracks 120 "},
    {"delta": "service orders."},
]


class OrderDeskAgentBuilder:
    """Builder for the order desk demo agent."""

    SLUG = "order-desk"

    def __init__(
        self,
        provider: str = "mock",
        client: str | None = None,
        max_iterations: int = 5,
        timeout: float | None = None,
    ) -> None:
        self.provider = provider
        self.client = client or DEFAULT_CLIENTS.get(provider, DEFAULT_CLIENTS["litellm"])
        self.max_iterations = max_iterations
        self.timeout = timeout

    def client_opts(self) -> dict[str, Any]:
        if self.provider == "mock":
            return {"mock_responses": MOCK_SCRIPT, "mock_chunks": MOCK_CHUNKS}
        return {}

    def build(self) -> RuntimeConfig:
        """Build the agent configuration.

        Returns:
            A validated ``RuntimeConfig``

        Raises:
            AgentError: ``config_error`` when an option is invalid
        """
        return RuntimeConfig(
            client=self.client,
            provider=self.provider,
            agent=self.SLUG,
            max_iterations=self.max_iterations,
            timeout=self.timeout,
            on_tool_error=OnToolError.CONTINUE,
            tools=build_tools(),
            hooks=(OrderDeskHooks(),),
            client_opts=self.client_opts(),
            system_prompt=build_system_prompt(),
        )
