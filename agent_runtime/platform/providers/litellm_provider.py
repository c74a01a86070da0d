"""Request/response provider backed by LiteLLM.

The client identifier is the LiteLLM model string (for example
``"litellm_proxy/anthropic/claude-sonnet-4-5"`` or ``"openai/gpt-4o"``).
Responses are ``litellm.ModelResponse`` envelopes, normalized by the
runtime's generic extraction; this adapter only adds cost and request
metadata that LiteLLM keeps in its hidden parameters.
"""

import logging
from collections.abc import Iterator, Mapping
from typing import Any

import litellm

from agent_runtime.platform.agent.messages import StreamFinal
from agent_runtime.platform.providers.base import (
    BaseProvider,
    Extraction,
    Feature,
    ProviderInfo,
)
from agent_runtime.platform.settings import LitellmSettings

logger = logging.getLogger(__name__)


class LiteLLMProvider(BaseProvider):
    name = "litellm"

    def __init__(self, settings: LitellmSettings | None = None):
        self._settings = settings or LitellmSettings()

    def _request(self, client, prompt, schema, options: Mapping[str, Any], tools, messages) -> dict[str, Any]:
        request_messages = list(messages)
        if prompt and not request_messages:
            request_messages = [{"role": "user", "content": prompt}]

        request: dict[str, Any] = {
            "model": client,
            "messages": request_messages,
        }
        if tools:
            request["tools"] = list(tools)
        if schema is not None:
            request["response_format"] = schema
        if self._settings.api_base:
            request["api_base"] = self._settings.api_base
        if self._settings.api_key:
            request["api_key"] = self._settings.api_key
        request.update(options)
        return request

    def call(self, client, prompt, schema, options, context, tools, messages) -> Any:
        request = self._request(client, prompt, schema, options, tools, messages)
        logger.debug("LiteLLM completion for model %s with %d messages", client, len(request["messages"]))
        return litellm.completion(**request)

    def stream(self, client, prompt, schema, options, context, tools, messages) -> Iterator[Any]:
        request = self._request(client, prompt, schema, options, tools, messages)
        request["stream"] = True
        request.setdefault("stream_options", {"include_usage": True})
        logger.debug("LiteLLM streaming completion for model %s", client)
        response = litellm.completion(**request)

        def generate() -> Iterator[Any]:
            text: list[str] = []
            usage = model = finish_reason = None
            for chunk in response:
                yield chunk
                model = getattr(chunk, "model", None) or model
                usage = getattr(chunk, "usage", None) or usage
                for choice in getattr(chunk, "choices", None) or ():
                    finish_reason = getattr(choice, "finish_reason", None) or finish_reason
                    content = getattr(getattr(choice, "delta", None), "content", None)
                    if content:
                        text.append(content)
            yield StreamFinal(
                output="".join(text) if text else None,
                usage=usage,
                model=model,
                finish_reason=finish_reason,
            )

        return generate()

    def introspect(self) -> ProviderInfo:
        return ProviderInfo(
            provider=self.name,
            features=frozenset(
                {
                    Feature.SYNC_CALL,
                    Feature.STREAMING,
                    Feature.STRUCTURED_OUTPUT,
                    Feature.TOOL_CALLING,
                    Feature.PROMPT_OPTIONAL,
                    Feature.SCHEMA_OPTIONAL,
                }
            ),
            models=tuple(litellm.model_list),
            constraints={"requires_model": True},
        )

    def extract_metadata(self, response: Any) -> dict[str, Any] | Extraction:
        metadata: dict[str, Any] = {"provider": self.name}
        hidden = getattr(response, "_hidden_params", None) or {}
        if hidden.get("response_cost") is not None:
            metadata["total_cost"] = hidden["response_cost"]
        if getattr(response, "id", None):
            metadata["request_id"] = response.id
        if getattr(response, "model", None):
            metadata["model"] = response.model
        if getattr(response, "usage", None) is not None:
            metadata["usage"] = response.usage
        choices = getattr(response, "choices", None) or ()
        if choices and getattr(choices[0], "finish_reason", None):
            metadata["finish_reason"] = choices[0].finish_reason
        return metadata
