"""Result processors for oversized tool outputs.

Each processor takes the ordered ``ToolResult`` list produced by one
iteration and returns a new list of the same length. Error outcomes always
pass through unchanged.

    results = Truncate(max_size=500).process(results)
    results = summarize(results, sample_size=3)
"""

import dataclasses
import json
import random
from collections.abc import Callable, Mapping, Sequence
from dataclasses import replace
from enum import StrEnum
from typing import Any

from pydantic import BaseModel

from agent_runtime.platform.agent.messages import ToolResult

DEFAULT_TRUNCATE_SIZE = 1000
DEFAULT_MARKER = "... [truncated]"
TRUNCATED_KEY = "__truncated__"
DEFAULT_SAMPLE_SIZE = 5
DEFAULT_SUMMARY_SAMPLE_SIZE = 3
DEFAULT_MAX_DEPTH = 3
MAX_EXCERPT_BYTES = 200


def estimate_size(value: Any) -> int:
    """UTF-8 byte length for text, element count for collections, 0 otherwise."""
    if isinstance(value, str):
        return len(value.encode("utf-8"))
    if isinstance(value, bytes | bytearray):
        return len(value)
    if isinstance(value, list | tuple | Mapping):
        return len(value)
    return 0


def is_large(value: Any, threshold: int) -> bool:
    return estimate_size(value) > threshold


def preserve_structure(result: ToolResult, fn: Callable[[Any], Any]) -> ToolResult:
    """Apply ``fn`` to an ok result's value; error results are returned as-is."""
    if not result.is_ok:
        return result
    return replace(result, value=fn(result.value))


def utf8_safe_cut(data: bytes, max_bytes: int) -> bytes:
    """Cut ``data`` to at most ``max_bytes`` without splitting a code point."""
    if len(data) <= max_bytes:
        return data
    cut = max_bytes
    # Continuation bytes look like 0b10xxxxxx.
    while cut > 0 and (data[cut] & 0xC0) == 0x80:
        cut -= 1
    return data[:cut]


def _positive_int(name: str, value: Any) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        raise ValueError(f"{name} must be a positive integer, got {value!r}")
    return value


class ResultProcessor:
    """Base class: applies ``transform`` to every ok result."""

    def process(self, results: Sequence[ToolResult]) -> list[ToolResult]:
        return [preserve_structure(result, self.transform) for result in results]

    def transform(self, value: Any) -> Any:
        raise NotImplementedError


class Truncate(ResultProcessor):
    """Cut text, lists and mappings down to ``max_size`` units.

    Text is measured in UTF-8 bytes and cut on a code point boundary before
    the marker is appended. Lists keep their first ``max_size`` items plus the
    marker as a final item. Mappings keep their first ``max_size`` keys plus
    a ``__truncated__`` key holding the number of dropped keys.
    """

    def __init__(self, max_size: int = DEFAULT_TRUNCATE_SIZE, marker: str = DEFAULT_MARKER):
        self.max_size = _positive_int("max_size", max_size)
        if not isinstance(marker, str):
            raise ValueError(f"marker must be a string, got {marker!r}")
        self.marker = marker

    def transform(self, value: Any) -> Any:
        if isinstance(value, str):
            encoded = value.encode("utf-8")
            if len(encoded) <= self.max_size:
                return value
            return utf8_safe_cut(encoded, self.max_size).decode("utf-8") + self.marker
        if isinstance(value, bytes | bytearray):
            if len(value) <= self.max_size:
                return value
            return utf8_safe_cut(bytes(value), self.max_size) + self.marker.encode("utf-8")
        if isinstance(value, list | tuple):
            if len(value) <= self.max_size:
                return value
            return list(value[: self.max_size]) + [self.marker]
        if isinstance(value, Mapping):
            if len(value) <= self.max_size:
                return value
            kept = dict(list(value.items())[: self.max_size])
            kept[TRUNCATED_KEY] = len(value) - self.max_size
            return kept
        return value


class SampleStrategy(StrEnum):
    FIRST = "first"
    RANDOM = "random"
    DISTRIBUTED = "distributed"


class Sample(ResultProcessor):
    """Replace long lists with a sample of ``sample_size`` items.

    Sampled output is ``{"items", "total_count", "sampled", "strategy"}``.
    Lists no longer than ``sample_size`` and non-list values pass through.
    """

    def __init__(
        self,
        sample_size: int = DEFAULT_SAMPLE_SIZE,
        strategy: SampleStrategy | str = SampleStrategy.FIRST,
        rng: random.Random | None = None,
    ):
        self.sample_size = _positive_int("sample_size", sample_size)
        try:
            self.strategy = SampleStrategy(strategy)
        except ValueError:
            choices = ", ".join(s.value for s in SampleStrategy)
            raise ValueError(f"strategy must be one of {choices}, got {strategy!r}") from None
        self._rng = rng or random.Random()

    def transform(self, value: Any) -> Any:
        if not isinstance(value, list | tuple) or len(value) <= self.sample_size:
            return value
        return {
            "items": [value[index] for index in self._indices(len(value))],
            "total_count": len(value),
            "sampled": True,
            "strategy": self.strategy.value,
        }

    def _indices(self, total: int) -> list[int]:
        n = self.sample_size
        match self.strategy:
            case SampleStrategy.FIRST:
                return list(range(n))
            case SampleStrategy.RANDOM:
                return sorted(self._rng.sample(range(total), n))
            case SampleStrategy.DISTRIBUTED:
                if n == 1:
                    return [0]
                step = (total - 1) / (n - 1)
                return [round(i * step) for i in range(n)]


class SummaryStrategy(StrEnum):
    AUTO = "auto"
    LIST = "list"
    MAP = "map"
    TEXT = "text"


class Summarize(ResultProcessor):
    """Replace values with a compact, type-driven description.

    Lists become ``{"type": "list", "count", "sample", "summary"}``; mappings
    ``{"type": "map", "count", "keys", "sample", "summary"}``; text
    ``{"type": "text", "length", "excerpt", "summary"}``; dataclasses and
    pydantic models ``{"type": "struct", "struct_name", "fields", "summary"}``.
    Sampled items are summarized recursively up to ``max_depth``, below which
    collections and structs collapse to their counts; a struct that contains
    itself is collapsed with ``"cycle": True``. When ``max_summary_size`` is
    set the serialized summary is shrunk to fit.
    """

    def __init__(
        self,
        sample_size: int = DEFAULT_SUMMARY_SAMPLE_SIZE,
        max_summary_size: int | None = None,
        strategy: SummaryStrategy | str = SummaryStrategy.AUTO,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ):
        self.sample_size = _positive_int("sample_size", sample_size)
        if max_summary_size is not None:
            _positive_int("max_summary_size", max_summary_size)
        self.max_summary_size = max_summary_size
        try:
            self.strategy = SummaryStrategy(strategy)
        except ValueError:
            choices = ", ".join(s.value for s in SummaryStrategy)
            raise ValueError(f"strategy must be one of {choices}, got {strategy!r}") from None
        self.max_depth = _positive_int("max_depth", max_depth)

    def transform(self, value: Any) -> Any:
        summary = self._summarize(value, depth=0, strategy=self.strategy)
        if self.max_summary_size is not None and isinstance(summary, dict):
            summary = self._fit(summary, self.max_summary_size)
        return summary

    def _summarize(
        self,
        value: Any,
        depth: int,
        strategy: SummaryStrategy = SummaryStrategy.AUTO,
        active: frozenset[int] = frozenset(),
    ) -> Any:
        if strategy is SummaryStrategy.LIST and isinstance(value, list | tuple):
            return self._list(value, depth, active)
        if strategy is SummaryStrategy.MAP and isinstance(value, Mapping):
            return self._map(value, depth, active)
        if strategy is SummaryStrategy.TEXT and isinstance(value, str):
            return self._text(value)

        if isinstance(value, str):
            return self._text(value)
        if isinstance(value, list | tuple):
            return self._list(value, depth, active)
        if isinstance(value, Mapping):
            return self._map(value, depth, active)
        if _is_struct(value):
            return self._struct(value, depth, active)
        return value

    def _nested(self, value: Any, depth: int, active: frozenset[int]) -> Any:
        if depth >= self.max_depth:
            if isinstance(value, list | tuple):
                return {"type": "list", "count": len(value), "summary": f"List with {len(value)} items"}
            if isinstance(value, Mapping):
                return {"type": "map", "count": len(value), "summary": f"Map with {len(value)} keys"}
            if _is_struct(value):
                return _collapsed_struct(value)
        if isinstance(value, str):
            # Scalars inside a sample stay as-is unless they are long text.
            return value if len(value) <= MAX_EXCERPT_BYTES else self._text(value)
        return self._summarize(value, depth, active=active)

    def _list(self, value: Sequence[Any], depth: int, active: frozenset[int]) -> dict[str, Any]:
        return {
            "type": "list",
            "count": len(value),
            "sample": [self._nested(item, depth + 1, active) for item in value[: self.sample_size]],
            "summary": f"List with {len(value)} items",
        }

    def _map(self, value: Mapping[Any, Any], depth: int, active: frozenset[int]) -> dict[str, Any]:
        keys = list(value.keys())[: self.sample_size]
        return {
            "type": "map",
            "count": len(value),
            "keys": keys,
            "sample": {key: self._nested(value[key], depth + 1, active) for key in keys},
            "summary": f"Map with {len(value)} keys",
        }

    def _text(self, value: str) -> dict[str, Any]:
        excerpt = utf8_safe_cut(value.encode("utf-8"), MAX_EXCERPT_BYTES).decode("utf-8")
        return {
            "type": "text",
            "length": len(value),
            "excerpt": excerpt,
            "summary": f"Text with {len(value)} characters",
        }

    def _struct(self, value: Any, depth: int, active: frozenset[int]) -> dict[str, Any]:
        if id(value) in active:
            return {**_collapsed_struct(value), "cycle": True}
        active = active | {id(value)}
        fields = _struct_fields(value)
        name = type(value).__name__
        return {
            "type": "struct",
            "struct_name": name,
            "fields": {key: self._nested(item, depth + 1, active) for key, item in fields.items()},
            "summary": f"{name} struct with {len(fields)} fields",
        }

    @staticmethod
    def _size(summary: dict[str, Any]) -> int:
        return len(json.dumps(summary, default=str).encode("utf-8"))

    def _fit(self, summary: dict[str, Any], limit: int) -> dict[str, Any]:
        summary = dict(summary)
        while self._size(summary) > limit:
            if not _shrink(summary):
                break
        return summary


def _is_struct(value: Any) -> bool:
    return isinstance(value, BaseModel) or (dataclasses.is_dataclass(value) and not isinstance(value, type))


def _struct_fields(value: Any) -> dict[str, Any]:
    if isinstance(value, BaseModel):
        return {name: getattr(value, name) for name in type(value).model_fields}
    return {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}


def _collapsed_struct(value: Any) -> dict[str, Any]:
    name = type(value).__name__
    count = len(_struct_fields(value))
    return {"type": "struct", "struct_name": name, "summary": f"{name} struct with {count} fields"}


def _shrink(summary: dict[str, Any]) -> bool:
    """Halve the largest nested field of ``summary`` in place; False when nothing is left."""
    for key in ("sample", "fields", "keys", "excerpt"):
        value = summary.get(key)
        if isinstance(value, list) and value:
            summary[key] = value[: len(value) // 2]
            return True
        if isinstance(value, dict) and value:
            summary[key] = dict(list(value.items())[: len(value) // 2])
            return True
        if isinstance(value, str) and value:
            encoded = value.encode("utf-8")
            summary[key] = utf8_safe_cut(encoded, len(encoded) // 2).decode("utf-8")
            return True
    return False


def truncate(results: Sequence[ToolResult], **opts: Any) -> list[ToolResult]:
    return Truncate(**opts).process(results)


def sample(results: Sequence[ToolResult], **opts: Any) -> list[ToolResult]:
    return Sample(**opts).process(results)


def summarize(results: Sequence[ToolResult], **opts: Any) -> list[ToolResult]:
    return Summarize(**opts).process(results)
