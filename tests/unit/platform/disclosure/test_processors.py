"""Unit tests for tool result processors."""

import json
import random
from dataclasses import dataclass

import pytest
from pydantic import BaseModel

from agent_runtime.platform.agent.messages import ToolResult
from agent_runtime.platform.disclosure.processors import (
    DEFAULT_MARKER,
    TRUNCATED_KEY,
    Sample,
    Summarize,
    Truncate,
    estimate_size,
    is_large,
    preserve_structure,
    sample,
    summarize,
    truncate,
    utf8_safe_cut,
)


def ok(value, name="tool"):
    return ToolResult.ok(name, value, f"call_{name}")


class TestSizeHelpers:
    """Tests for estimate_size and is_large."""

    def test_text_is_measured_in_bytes(self):
        """Text size counts UTF-8 bytes."""
        assert estimate_size("héllo") == 6

    def test_collections_count_elements(self):
        """Lists and mappings count their elements."""
        assert estimate_size([1, 2, 3]) == 3
        assert estimate_size({"a": 1}) == 1

    def test_scalars_are_zero(self):
        """Numbers have no size."""
        assert estimate_size(42) == 0

    def test_is_large_is_strict(self):
        """A value exactly at the threshold is not large."""
        assert not is_large("x" * 10, 10)
        assert is_large("x" * 11, 10)

    def test_preserve_structure_skips_errors(self):
        """Error results are never transformed."""
        error = ToolResult.error("tool", "boom")
        assert preserve_structure(error, str.upper) is error
        assert preserve_structure(ok("a"), str.upper).value == "A"


class TestUtf8SafeCut:
    """Tests for utf8_safe_cut."""

    def test_never_splits_code_points(self):
        """Cutting in the middle of a multi-byte character backs off."""
        data = "aé".encode("utf-8")  # 61 c3 a9
        assert utf8_safe_cut(data, 2) == b"a"
        assert utf8_safe_cut(data, 3) == data

    def test_emoji(self):
        """Four-byte characters are kept whole or dropped."""
        data = ("🙂" * 3).encode("utf-8")
        for limit in range(len(data)):
            utf8_safe_cut(data, limit).decode("utf-8")


class TestTruncate:
    """Tests for Truncate."""

    def test_long_text(self):
        """Long text is cut to max_size bytes plus the marker."""
        [result] = Truncate(max_size=100).process([ok("x" * 2000)])
        assert len(result.value) <= 120
        assert result.value.endswith(DEFAULT_MARKER)
        assert result.value.startswith("x" * 100)

    def test_short_text_unchanged(self):
        """Text within the limit passes through."""
        assert Truncate(max_size=100).process([ok("short")])[0].value == "short"

    def test_multibyte_text_stays_valid(self):
        """Truncated multi-byte text remains valid."""
        [result] = Truncate(max_size=5).process([ok("éééééé")])
        assert result.value == "éé" + DEFAULT_MARKER

    def test_list(self):
        """Lists keep their head plus the marker item."""
        [result] = truncate([ok(list(range(10)))], max_size=3)
        assert result.value == [0, 1, 2, DEFAULT_MARKER]

    def test_mapping(self):
        """Mappings keep their first keys and count the rest."""
        [result] = Truncate(max_size=2).process([ok({"a": 1, "b": 2, "c": 3, "d": 4})])
        assert result.value == {"a": 1, "b": 2, TRUNCATED_KEY: 2}

    def test_errors_untouched(self):
        """Error results pass through unchanged."""
        error = ToolResult.error("tool", "x" * 500)
        assert Truncate(max_size=10).process([error]) == [error]

    def test_custom_marker(self):
        """The marker is configurable."""
        [result] = Truncate(max_size=3, marker="…").process([ok("abcdef")])
        assert result.value == "abc…"

    @pytest.mark.parametrize("size", [0, -1, "10", True])
    def test_invalid_size(self, size):
        """max_size must be a positive integer."""
        with pytest.raises(ValueError):
            Truncate(max_size=size)


class TestSample:
    """Tests for Sample."""

    def test_first(self):
        """first keeps the leading items."""
        [result] = Sample(sample_size=3).process([ok(list(range(10)))])
        assert result.value == {"items": [0, 1, 2], "total_count": 10, "sampled": True, "strategy": "first"}

    def test_random(self):
        """random picks sample_size distinct items in original order."""
        [result] = sample([ok(list(range(100)))], sample_size=5, strategy="random", rng=random.Random(3))
        items = result.value["items"]
        assert len(items) == 5
        assert len(set(items)) == 5
        assert items == sorted(items)
        assert result.value["total_count"] == 100

    def test_distributed(self):
        """distributed spreads picks from first to last."""
        [result] = Sample(sample_size=3, strategy="distributed").process([ok(list(range(11)))])
        assert result.value["items"] == [0, 5, 10]

    def test_distributed_single(self):
        """A single distributed pick is the first item."""
        [result] = Sample(sample_size=1, strategy="distributed").process([ok([7, 8, 9])])
        assert result.value["items"] == [7]

    def test_short_list_unchanged(self):
        """Lists no longer than the sample pass through."""
        assert Sample(sample_size=5).process([ok([1, 2])])[0].value == [1, 2]

    def test_non_list_unchanged(self):
        """Non-list values pass through."""
        assert Sample(sample_size=1).process([ok("text")])[0].value == "text"

    def test_invalid_strategy(self):
        """Unknown strategies are rejected."""
        with pytest.raises(ValueError, match="strategy must be one of"):
            Sample(strategy="middle")


@dataclass
class Order:
    id: str
    lines: list


class Customer(BaseModel):
    name: str
    tier: str


@dataclass
class Node:
    name: str
    child: "Node | None" = None


def chain(length):
    head = None
    for index in reversed(range(length)):
        head = Node(f"n{index}", head)
    return head


class TestSummarize:
    """Tests for Summarize."""

    def test_list(self):
        """Lists report count, sample and summary."""
        [result] = Summarize(sample_size=2).process([ok([1, 2, 3, 4])])
        assert result.value == {"type": "list", "count": 4, "sample": [1, 2], "summary": "List with 4 items"}

    def test_map(self):
        """Maps report count, sampled keys and values."""
        [result] = summarize([ok({"a": 1, "b": 2, "c": 3})], sample_size=2)
        assert result.value["type"] == "map"
        assert result.value["count"] == 3
        assert result.value["keys"] == ["a", "b"]
        assert result.value["sample"] == {"a": 1, "b": 2}
        assert result.value["summary"] == "Map with 3 keys"

    def test_text(self):
        """Text reports its length and a bounded excerpt."""
        [result] = Summarize().process([ok("é" * 300)])
        assert result.value["type"] == "text"
        assert result.value["length"] == 300
        assert len(result.value["excerpt"].encode("utf-8")) <= 200
        assert result.value["summary"] == "Text with 300 characters"

    def test_dataclass(self):
        """Dataclasses are summarized as structs with nested fields."""
        [result] = Summarize().process([ok(Order("SO-1", [1, 2]))])
        assert result.value["type"] == "struct"
        assert result.value["struct_name"] == "Order"
        assert result.value["fields"]["id"] == "SO-1"
        assert result.value["fields"]["lines"]["count"] == 2
        assert result.value["summary"] == "Order struct with 2 fields"

    def test_pydantic_model(self):
        """Pydantic models are summarized as structs."""
        [result] = Summarize().process([ok(Customer(name="Ada", tier="gold"))])
        assert result.value["struct_name"] == "Customer"
        assert result.value["fields"] == {"name": "Ada", "tier": "gold"}

    def test_depth_limit(self):
        """Nesting beyond max_depth collapses to counts."""
        deep = [[[[1, 2, 3]]]]
        [result] = Summarize(max_depth=2).process([ok(deep)])
        inner = result.value["sample"][0]["sample"][0]
        assert inner == {"type": "list", "count": 1, "summary": "List with 1 items"}

    def test_struct_depth_limit(self):
        """Structs nested beyond max_depth collapse to their name and field count."""
        [result] = Summarize(max_depth=2).process([ok(chain(11))])
        level_one = result.value["fields"]["child"]
        assert level_one["struct_name"] == "Node"
        assert level_one["fields"]["child"] == {
            "type": "struct",
            "struct_name": "Node",
            "summary": "Node struct with 2 fields",
        }

    def test_self_referencing_struct(self):
        """A struct that contains itself is summarized once and marked as a cycle."""
        node = Node("a")
        node.child = node
        [result] = Summarize(max_depth=3).process([ok(node)])
        assert result.value["fields"]["name"] == "a"
        assert result.value["fields"]["child"] == {
            "type": "struct",
            "struct_name": "Node",
            "summary": "Node struct with 2 fields",
            "cycle": True,
        }

    def test_nested_pydantic_model_is_a_struct(self):
        """Pydantic models inside structs are summarized as structs too."""
        [result] = Summarize().process([ok(Order("SO-2", [Customer(name="Ada", tier="gold")]))])
        [customer] = result.value["fields"]["lines"]["sample"]
        assert customer["struct_name"] == "Customer"
        assert customer["fields"] == {"name": "Ada", "tier": "gold"}

    def test_forced_strategy_ignored_for_other_types(self):
        """A forced strategy only applies to matching values."""
        [result] = Summarize(strategy="list").process([ok({"a": 1})])
        assert result.value["type"] == "map"

    def test_max_summary_size(self):
        """Summaries are shrunk to fit max_summary_size."""
        [result] = Summarize(sample_size=50, max_summary_size=200).process([ok(["item-" + "x" * 20] * 50)])
        assert result.value["count"] == 50
        assert len(result.value["sample"]) < 50
        assert len(json.dumps(result.value, default=str).encode("utf-8")) <= 200

    def test_scalar_unchanged(self):
        """Scalars pass through."""
        assert Summarize().process([ok(42)])[0].value == 42

    def test_errors_untouched(self):
        """Error results pass through."""
        error = ToolResult.error("tool", "boom")
        assert Summarize().process([error]) == [error]

    def test_order_and_length_preserved(self):
        """The output has one result per input in the same order."""
        results = [ok("a", "first"), ToolResult.error("second", "x"), ok([1, 2], "third")]
        processed = Summarize().process(results)
        assert [r.tool_name for r in processed] == ["first", "second", "third"]
