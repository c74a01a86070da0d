"""Provider invocation and response normalization.

``LlmClient`` wraps a resolved provider: it calls it with retry, turns
unexpected failures into ``llm_error``, records token metrics, and
normalizes raw responses. Each ``extract_*`` provider method may return
``DEFER``, in which case the generic extraction below is used. It
understands dict envelopes, OpenAI/LiteLLM ``ModelResponse`` objects and
plain strings.
"""

import json
import logging
import time
import uuid
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ValidationError

from agent_runtime.platform.agent.config import RetryPolicy, RuntimeConfig
from agent_runtime.platform.agent.context import Context
from agent_runtime.platform.agent.errors import AgentError, parse_error
from agent_runtime.platform.agent.messages import ToolCall, Usage
from agent_runtime.platform.agent.metrics import record_agent_tokens
from agent_runtime.platform.agent.retry import call_with_retry
from agent_runtime.platform.providers.base import DEFER, Provider
from agent_runtime.platform.providers.registry import ProviderRegistry, default_registry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Extracted:
    """Normalized view of one raw provider response."""

    content: Any
    tool_calls: list[ToolCall] = field(default_factory=list)
    thinking: str | None = None
    usage: Usage | None = None
    model: str | None = None
    finish_reason: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


# -- generic extraction --------------------------------------------------------


def _get(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def _first_choice_message(response: Any) -> Any:
    choices = _get(response, "choices")
    if not choices:
        return None
    try:
        return _get(choices[0], "message")
    except (IndexError, KeyError, TypeError):
        return None


def _text_from_parts(parts: Sequence[Any]) -> str | None:
    for part in parts:
        if isinstance(part, str):
            return part
        if _get(part, "type") in (None, "text") and isinstance(_get(part, "text"), str):
            return _get(part, "text")
    return None


def extract_content(response: Any) -> Any:
    if isinstance(response, str):
        return response
    message = _first_choice_message(response)
    if message is not None:
        return _get(message, "content")
    content = _get(response, "content")
    if isinstance(content, list):
        return _text_from_parts(content)
    return content


def _decode_arguments(arguments: Any) -> dict[str, Any]:
    if arguments is None or arguments == "":
        return {}
    if isinstance(arguments, str):
        decoded = json.loads(arguments)
        if not isinstance(decoded, Mapping):
            raise ValueError(f"tool arguments must decode to an object, got {type(decoded).__name__}")
        return dict(decoded)
    if isinstance(arguments, Mapping):
        return dict(arguments)
    raise ValueError(f"unsupported tool arguments type {type(arguments).__name__}")


def _normalize_tool_call(raw: Any) -> ToolCall:
    if isinstance(raw, ToolCall):
        return raw
    function = _get(raw, "function")
    if function is not None:
        name = _get(function, "name")
        arguments = _get(function, "arguments")
    else:
        name = _get(raw, "name")
        arguments = _get(raw, "arguments")
    if not name:
        raise ValueError(f"tool call without a name: {raw!r}")
    call_id = _get(raw, "id") or f"call_{uuid.uuid4().hex[:16]}"
    return ToolCall(id=str(call_id), name=str(name), arguments=_decode_arguments(arguments))


def extract_tool_calls(response: Any) -> list[ToolCall]:
    if isinstance(response, str):
        return []
    message = _first_choice_message(response)
    raw_calls = _get(message, "tool_calls") if message is not None else _get(response, "tool_calls")
    if not raw_calls:
        return []
    return [_normalize_tool_call(raw) for raw in raw_calls]


def extract_thinking(response: Any) -> str | None:
    if isinstance(response, str):
        return None
    message = _first_choice_message(response)
    source = message if message is not None else response
    for name in ("thinking", "reasoning_content"):
        value = _get(source, name)
        if isinstance(value, str) and value:
            return value
    return None


def extract_metadata(response: Any) -> dict[str, Any]:
    if isinstance(response, str):
        return {}
    metadata: dict[str, Any] = {}
    for name in ("usage", "model"):
        value = _get(response, name)
        if value is not None:
            metadata[name] = value
    request_id = _get(response, "request_id") or _get(response, "id")
    if request_id is not None:
        metadata["request_id"] = str(request_id)
    finish_reason = _get(response, "finish_reason")
    if finish_reason is None:
        choices = _get(response, "choices")
        if choices:
            finish_reason = _get(choices[0], "finish_reason")
    if finish_reason is not None:
        metadata["finish_reason"] = finish_reason
    return metadata


# -- output parsing --------------------------------------------------------------


def parse_output(schema: type[BaseModel] | None, content: Any, response: Any = None) -> Any:
    """Coerce the final content (or the raw response when empty) into ``schema``."""
    candidate = content if content not in (None, "") else response
    if schema is None:
        return candidate
    if isinstance(candidate, schema):
        return candidate
    try:
        if isinstance(candidate, str | bytes):
            return schema.model_validate_json(candidate)
        if isinstance(candidate, BaseModel):
            return schema.model_validate(candidate.model_dump())
        return schema.model_validate(candidate)
    except ValidationError as e:
        raise parse_error(
            f"Response does not match {schema.__name__}",
            {"schema": schema.__name__, "errors": e.errors(include_url=False), "response": candidate},
        ) from e


# -- client -----------------------------------------------------------------------


class LlmClient:
    """Provider wrapper used by the runtime loop.

    Provides a consistent interface for provider interactions with:
    - Retry of transient failures
    - Error normalization to ``AgentError``
    - Generic fallback extraction
    - Automatic token metrics recording
    """

    def __init__(
        self,
        config: RuntimeConfig,
        retry: RetryPolicy,
        registry: ProviderRegistry | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._config = config
        self._retry = retry
        self._sleep = sleep
        self.provider: Provider = (registry or default_registry).resolve(config.provider)
        if isinstance(config.provider, str):
            self.provider_name = config.provider
        else:
            self.provider_name = getattr(self.provider, "name", type(self.provider).__name__)

    def options(self) -> dict[str, Any]:
        options = dict(self._config.client_opts)
        if self._config.timeout is not None:
            options.setdefault("timeout", self._config.timeout)
        return options

    def _invoke(
        self,
        method: str,
        context: Context,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]],
    ) -> tuple[Any, int]:
        config = self._config
        function = getattr(self.provider, method)
        options = self.options()

        def attempt() -> Any:
            return function(config.client, config.prompt, config.output_schema, options, context, tools, messages)

        try:
            return call_with_retry(attempt, self._retry, sleep=self._sleep)
        except AgentError:
            raise
        except Exception as e:
            logger.error("Provider %s %s failed: %s", self.provider_name, method, e)
            raise AgentError.from_exception(
                e,
                message=f"Provider {self.provider_name} {method} failed: {e}",
                details={"provider": self.provider_name, "client": config.client},
            ) from e

    def generate(self, context: Context, messages: list[dict[str, Any]], tools: list[dict[str, Any]]) -> tuple[Any, int]:
        """One request/response exchange; returns ``(raw_response, attempts)``."""
        return self._invoke("call", context, messages, tools)

    def open_stream(self, context: Context, messages: list[dict[str, Any]], tools: list[dict[str, Any]]) -> Iterable[Any]:
        """Open a provider stream; retry covers opening, not the deltas."""
        stream, _ = self._invoke("stream", context, messages, tools)
        return stream

    def _extract(self, method: str, generic: Callable[[Any], Any], response: Any) -> Any:
        value = getattr(self.provider, method)(response)
        if value is DEFER:
            return generic(response)
        return value

    def extract(self, response: Any) -> Extracted:
        """Normalize a raw response; malformed tool calls raise ``parse_error``."""
        try:
            tool_calls = self._extract("extract_tool_calls", extract_tool_calls, response)
        except (ValueError, TypeError) as e:
            raise parse_error(f"Malformed tool call in provider response: {e}", {"response": response}) from e

        metadata = dict(self._extract("extract_metadata", extract_metadata, response) or {})
        return Extracted(
            content=self._extract("extract_content", extract_content, response),
            tool_calls=list(tool_calls or []),
            thinking=self._extract("extract_thinking", extract_thinking, response),
            usage=Usage.from_mapping(metadata.get("usage")),
            model=metadata.get("model"),
            finish_reason=metadata.get("finish_reason"),
            metadata=metadata,
        )

    def record_tokens(self, usage: Usage | None, model: str | None) -> None:
        if usage is None:
            return
        record_agent_tokens(
            self._config.agent,
            model or self._config.client,
            usage.input_tokens,
            usage.output_tokens,
        )
