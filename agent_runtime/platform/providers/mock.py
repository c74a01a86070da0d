"""Mock provider for tests, demos and CI runs without API calls.

Responses are configured through the call options:

    RuntimeConfig(
        client="mock:test",
        provider="mock",
        client_opts={"mock_response": {"content": "hi"}},
    )

Options:
    mock_response: Response returned by every call. A callable is invoked
        with ``(messages, context)`` and its return value used instead.
    mock_responses: Sequence of responses scripted per iteration; iteration N
        gets item N-1, the last item repeats once the script is exhausted.
    mock_chunks: Raw deltas yielded by ``stream``.
    mock_delay_ms: Delay before each call returns.
    mock_chunk_delay_ms: Delay before each streamed chunk.
"""

import time
from collections.abc import Iterator, Mapping
from typing import Any

from agent_runtime.platform.agent.messages import ToolCall
from agent_runtime.platform.providers.base import (
    DEFER,
    BaseProvider,
    Extraction,
    Feature,
    ProviderInfo,
)

DEFAULT_RESPONSE = {"message": "This is a mock response"}
DEFAULT_CHUNKS = ({"delta": "Mock "}, {"delta": "streaming "}, {"delta": "response"})


def _sleep_ms(delay_ms: Any) -> None:
    if delay_ms:
        time.sleep(delay_ms / 1000)


class MockProvider(BaseProvider):
    name = "mock"

    def call(self, client, prompt, schema, options: Mapping[str, Any], context, tools, messages) -> Any:
        _sleep_ms(options.get("mock_delay_ms"))

        scripted = options.get("mock_responses")
        if scripted:
            index = min(max(context.current_iteration, 1), len(scripted)) - 1
            response = scripted[index]
        else:
            response = options.get("mock_response", DEFAULT_RESPONSE)

        if callable(response):
            response = response(messages, context)
        return response

    def stream(self, client, prompt, schema, options: Mapping[str, Any], context, tools, messages) -> Iterator[Any]:
        chunks = list(options.get("mock_chunks", DEFAULT_CHUNKS))
        delay = options.get("mock_chunk_delay_ms")

        def generate() -> Iterator[Any]:
            for chunk in chunks:
                _sleep_ms(delay)
                yield chunk

        return generate()

    def introspect(self) -> ProviderInfo:
        return ProviderInfo(
            provider=self.name,
            features=frozenset(
                {
                    Feature.SYNC_CALL,
                    Feature.STREAMING,
                    Feature.CONFIGURABLE_RESPONSES,
                    Feature.TOOL_CALLING,
                }
            ),
            models=("mock:test",),
            constraints={"max_tokens": None},
        )

    def extract_content(self, response: Any) -> Any | Extraction:
        if isinstance(response, Mapping) and isinstance(response.get("content"), str):
            return response["content"]
        return DEFER

    def extract_tool_calls(self, response: Any) -> list[ToolCall] | Extraction:
        # Scripted responses may list ToolCall instances directly.
        if isinstance(response, Mapping):
            calls = response.get("tool_calls")
            if isinstance(calls, list) and all(isinstance(call, ToolCall) for call in calls):
                return list(calls)
        return DEFER

    def extract_thinking(self, response: Any) -> str | None | Extraction:
        if isinstance(response, Mapping) and isinstance(response.get("thinking"), str):
            return response["thinking"]
        return None

    def extract_metadata(self, response: Any) -> dict[str, Any] | Extraction:
        metadata: dict[str, Any] = {}
        if isinstance(response, Mapping) and isinstance(response.get("metadata"), Mapping):
            metadata.update(response["metadata"])
        metadata["provider"] = self.name
        if isinstance(response, Mapping):
            for key in ("usage", "model", "finish_reason"):
                if key in response:
                    metadata.setdefault(key, response[key])
        return metadata
