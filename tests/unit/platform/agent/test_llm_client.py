"""Unit tests for provider invocation and generic response extraction."""

from types import SimpleNamespace

import pytest
from pydantic import BaseModel

from agent_runtime.platform.agent.config import RetryPolicy, RuntimeConfig
from agent_runtime.platform.agent.context import Context
from agent_runtime.platform.agent.errors import AgentError, ErrorType
from agent_runtime.platform.agent.llm_client import (
    LlmClient,
    extract_content,
    extract_metadata,
    extract_thinking,
    extract_tool_calls,
    parse_output,
)
from agent_runtime.platform.agent.messages import ToolCall, Usage
from agent_runtime.platform.providers.base import DEFER, BaseProvider
from agent_runtime.platform.providers.registry import ProviderRegistry


class Answer(BaseModel):
    answer: int


def _litellm_style(content=None, tool_calls=None, reasoning=None):
    message = SimpleNamespace(content=content, tool_calls=tool_calls, reasoning_content=reasoning)
    return SimpleNamespace(
        id="chatcmpl-1",
        model="gpt-4o",
        usage=SimpleNamespace(prompt_tokens=12, completion_tokens=4, total_tokens=16),
        choices=[SimpleNamespace(message=message, finish_reason="stop")],
    )


class TestExtractContent:
    """Tests for generic content extraction."""

    def test_string(self):
        """Strings are their own content."""
        assert extract_content("hello") == "hello"

    def test_dict_content(self):
        """Dict envelopes use their content key."""
        assert extract_content({"content": "hi"}) == "hi"

    def test_dict_content_parts(self):
        """Content part lists yield the first text part."""
        parts = [{"type": "image", "url": "x"}, {"type": "text", "text": "caption"}]
        assert extract_content({"content": parts}) == "caption"

    def test_model_response(self):
        """ModelResponse-shaped objects read choices[0].message.content."""
        assert extract_content(_litellm_style(content="from choices")) == "from choices"

    def test_missing(self):
        """Responses without content yield None."""
        assert extract_content({"message": "x"}) is None


class TestExtractToolCalls:
    """Tests for generic tool call extraction."""

    def test_none(self):
        """No tool calls yields an empty list."""
        assert extract_tool_calls({"content": "hi"}) == []
        assert extract_tool_calls("text") == []

    def test_flat_dicts(self):
        """Flat id/name/arguments dicts are accepted; JSON arguments are decoded."""
        calls = extract_tool_calls(
            {"tool_calls": [{"id": "c1", "name": "add", "arguments": '{"a": 1}'}, {"name": "now", "arguments": {}}]}
        )
        assert calls[0] == ToolCall("c1", "add", {"a": 1})
        assert calls[1].name == "now"
        assert calls[1].id.startswith("call_")

    def test_openai_function_shape(self):
        """OpenAI function-call objects are normalized."""
        raw = SimpleNamespace(id="c9", function=SimpleNamespace(name="lookup", arguments='{"q": "x"}'))
        assert extract_tool_calls(_litellm_style(tool_calls=[raw])) == [ToolCall("c9", "lookup", {"q": "x"})]

    def test_instances_pass_through(self):
        """ToolCall instances are kept."""
        call = ToolCall("c1", "t", {})
        assert extract_tool_calls({"tool_calls": [call]}) == [call]

    def test_malformed_arguments(self):
        """Arguments that are not a JSON object are rejected."""
        with pytest.raises(ValueError):
            extract_tool_calls({"tool_calls": [{"name": "t", "arguments": "[1, 2]"}]})


class TestExtractThinkingAndMetadata:
    """Tests for thinking and metadata extraction."""

    def test_thinking_from_dict(self):
        """A thinking key is read from dicts."""
        assert extract_thinking({"thinking": "hmm"}) == "hmm"

    def test_reasoning_content(self):
        """reasoning_content is read from ModelResponse messages."""
        assert extract_thinking(_litellm_style(reasoning="step 1")) == "step 1"

    def test_metadata_from_model_response(self):
        """usage, model, request id and finish reason are collected."""
        metadata = extract_metadata(_litellm_style(content="x"))
        assert metadata["model"] == "gpt-4o"
        assert metadata["request_id"] == "chatcmpl-1"
        assert metadata["finish_reason"] == "stop"
        assert Usage.from_mapping(metadata["usage"]).total_tokens == 16

    def test_metadata_from_string(self):
        """Strings carry no metadata."""
        assert extract_metadata("x") == {}


class TestParseOutput:
    """Tests for parse_output."""

    def test_no_schema_returns_content(self):
        """Without a schema the content is returned as-is."""
        assert parse_output(None, "text", {"raw": 1}) == "text"

    def test_empty_content_returns_response(self):
        """Empty content falls back to the raw response."""
        assert parse_output(None, "", {"raw": 1}) == {"raw": 1}

    def test_json_string(self):
        """JSON text is validated into the schema."""
        assert parse_output(Answer, '{"answer": 42}') == Answer(answer=42)

    def test_mapping(self):
        """Mappings are validated into the schema."""
        assert parse_output(Answer, {"answer": 7}) == Answer(answer=7)

    def test_instance(self):
        """Instances are accepted unchanged."""
        answer = Answer(answer=1)
        assert parse_output(Answer, answer) is answer

    def test_invalid(self):
        """Invalid output is a parse error carrying the validation errors."""
        with pytest.raises(AgentError) as exc_info:
            parse_output(Answer, '{"answer": "many"}')
        assert exc_info.value.type is ErrorType.PARSE
        assert exc_info.value.details["schema"] == "Answer"
        assert exc_info.value.details["errors"]


class EchoProvider(BaseProvider):
    name = "echo"

    def __init__(self):
        self.requests = []

    def call(self, client, prompt, schema, options, context, tools, messages):
        self.requests.append({"client": client, "options": dict(options), "tools": tools, "messages": messages})
        return {"content": "echo", "usage": {"input_tokens": 3, "output_tokens": 1}, "model": "echo-1"}

    def extract_content(self, response):
        return response["content"].upper()


class BrokenProvider(BaseProvider):
    name = "broken"

    def call(self, client, prompt, schema, options, context, tools, messages):
        raise RuntimeError("socket closed")


class TestLlmClient:
    """Tests for LlmClient."""

    def _client(self, provider, **config) -> LlmClient:
        return LlmClient(
            RuntimeConfig(client="echo:1", provider=provider, **config),
            RetryPolicy(max_attempts=2, base_delay=0),
            registry=ProviderRegistry(),
            sleep=lambda _: None,
        )

    def test_options_include_timeout(self):
        """The configured timeout is passed to the provider."""
        provider = EchoProvider()
        client = self._client(provider, timeout=5.0, client_opts={"temperature": 0})
        client.generate(Context.new("hi"), [{"role": "user", "content": "hi"}], [])
        assert provider.requests[0]["options"] == {"temperature": 0, "timeout": 5.0}

    def test_provider_name(self):
        """Provider instances are named by their name attribute."""
        assert self._client(EchoProvider()).provider_name == "echo"
        assert self._client("mock").provider_name == "mock"

    def test_extract_uses_provider_then_defers(self):
        """Provider overrides win; DEFER falls back to generic extraction."""
        client = self._client(EchoProvider())
        response, attempts = client.generate(Context.new("hi"), [], [])
        extracted = client.extract(response)
        assert attempts == 1
        assert extracted.content == "ECHO"
        assert extracted.tool_calls == []
        assert extracted.usage == Usage(3, 1, 4)
        assert extracted.model == "echo-1"

    def test_unexpected_exception_becomes_llm_error(self):
        """Terminal provider exceptions are wrapped as llm_error."""
        with pytest.raises(AgentError) as exc_info:
            self._client(BrokenProvider()).generate(Context.new("hi"), [], [])
        error = exc_info.value
        assert error.type is ErrorType.LLM
        assert isinstance(error.details["exception"], RuntimeError)
        assert error.details["provider"] == "broken"

    def test_malformed_tool_calls_are_parse_errors(self):
        """Broken tool call payloads surface as parse_error."""
        client = self._client(EchoProvider())
        with pytest.raises(AgentError) as exc_info:
            client.extract({"content": "x", "tool_calls": [{"name": "t", "arguments": "{oops"}]})
        assert exc_info.value.type is ErrorType.PARSE

    def test_unknown_provider_is_config_error(self):
        """Unknown provider keys fail at construction."""
        with pytest.raises(AgentError) as exc_info:
            self._client("does-not-exist")
        assert exc_info.value.type is ErrorType.CONFIG

    def test_defer_is_singleton(self):
        """DEFER is a single enum member."""
        assert BaseProvider().extract_content({}) is DEFER
