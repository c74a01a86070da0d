"""Tagged-chunk streaming over a background producer.

A provider stream is consumed on a worker thread and handed to the caller
through a bounded queue. The worker only pulls the next raw delta once the
consumer asks for one, so nothing is produced ahead of demand. Each raw
delta becomes zero or more ``StreamChunk`` values:

    thinking   reasoning text
    content    a content delta, schema-validated when possible, raw otherwise
    tool_call  a raw function-call delta
    done       the final ``Result``, always last and emitted exactly once

Closing the stream early (``close()``, leaving a ``with`` block, or
abandoning a ``for`` loop) cancels the worker and drains whatever it still
has queued.
"""

import contextvars
import logging
import queue
import threading
import time
from collections.abc import Callable, Iterable, Iterator, Mapping
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ValidationError

from agent_runtime.platform.agent.errors import AgentError, llm_error
from agent_runtime.platform.agent.messages import (
    ChunkKind,
    Metadata,
    Result,
    StreamChunk,
    StreamFinal,
    Usage,
)

logger = logging.getLogger(__name__)

DEFAULT_STREAM_TIMEOUT = 30.0

_ITEM = "item"
_END = "end"
_ERROR = "error"


def parse_partial(schema: type[BaseModel] | None, value: Any) -> Any:
    """Validate ``value`` against ``schema``; return it unchanged when that fails."""
    if schema is None or isinstance(value, schema):
        return value
    try:
        if isinstance(value, str | bytes):
            return schema.model_validate_json(value)
        return schema.model_validate(value)
    except ValidationError:
        return value


def _get(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


class _Aggregate:
    """Running totals needed for the final ``done`` chunk."""

    def __init__(self):
        self.last_content: Any = None
        self.thinking: list[str] = []
        self.final: StreamFinal | None = None
        self.usage: Any = None
        self.model: str | None = None
        self.finish_reason: str | None = None


def _chunks_from_choices(raw: Any, aggregate: _Aggregate, schema) -> list[StreamChunk]:
    chunks: list[StreamChunk] = []
    for choice in _get(raw, "choices") or ():
        aggregate.finish_reason = _get(choice, "finish_reason") or aggregate.finish_reason
        delta = _get(choice, "delta")
        if delta is None:
            continue
        reasoning = _get(delta, "reasoning_content")
        if reasoning:
            chunks.append(StreamChunk(ChunkKind.THINKING, reasoning))
        content = _get(delta, "content")
        if content:
            chunks.append(StreamChunk(ChunkKind.CONTENT, parse_partial(schema, content)))
        for tool_call in _get(delta, "tool_calls") or ():
            chunks.append(StreamChunk(ChunkKind.TOOL_CALL, tool_call))
    aggregate.usage = _get(raw, "usage") or aggregate.usage
    aggregate.model = _get(raw, "model") or aggregate.model
    return chunks


def to_chunks(raw: Any, aggregate: _Aggregate, schema: type[BaseModel] | None = None) -> list[StreamChunk]:
    """Translate one raw provider delta into tagged chunks."""
    if isinstance(raw, StreamFinal):
        aggregate.final = raw
        return []
    if isinstance(raw, str):
        return [StreamChunk(ChunkKind.CONTENT, parse_partial(schema, raw))]
    if isinstance(raw, Mapping):
        chunks: list[StreamChunk] = []
        if isinstance(raw.get("thinking"), str):
            chunks.append(StreamChunk(ChunkKind.THINKING, raw["thinking"]))
        if raw.get("tool_call") is not None:
            chunks.append(StreamChunk(ChunkKind.TOOL_CALL, raw["tool_call"]))
        for tool_call in raw.get("tool_calls") or ():
            chunks.append(StreamChunk(ChunkKind.TOOL_CALL, tool_call))
        for key in ("delta", "content"):
            if raw.get(key) is not None:
                chunks.append(StreamChunk(ChunkKind.CONTENT, parse_partial(schema, raw[key])))
                break
        if not chunks and raw:
            chunks.append(StreamChunk(ChunkKind.CONTENT, parse_partial(schema, dict(raw))))
        return chunks
    if _get(raw, "choices") is not None:
        return _chunks_from_choices(raw, aggregate, schema)
    return [StreamChunk(ChunkKind.CONTENT, parse_partial(schema, raw))]


class ChunkStream:
    """Lazy, single-pass iterator of ``StreamChunk`` values.

    Args:
        source: Called on the worker thread to open the raw provider stream
        schema: Optional pydantic model content deltas are validated against
        timeout: Seconds to wait for the next chunk before failing
        buffer_size: Capacity of the hand-off queue
        metadata: Extra ``Metadata`` fields for the final result
        on_chunk: Called with every chunk before it is yielded
    """

    def __init__(
        self,
        source: Callable[[], Iterable[Any]],
        *,
        schema: type[BaseModel] | None = None,
        timeout: float = DEFAULT_STREAM_TIMEOUT,
        buffer_size: int = 1,
        metadata: Mapping[str, Any] | None = None,
        on_chunk: Callable[[StreamChunk], None] | None = None,
    ):
        self._source = source
        self._schema = schema
        self._timeout = timeout
        self._metadata = dict(metadata or {})
        self._on_chunk = on_chunk
        self._queue: queue.Queue[tuple[str, Any]] = queue.Queue(maxsize=buffer_size)
        self._demand = threading.Semaphore(0)
        self._cancelled = threading.Event()
        self._thread: threading.Thread | None = None
        self._iterated = False
        self._closed = False
        self._aggregate = _Aggregate()

    # -- producer ---------------------------------------------------------------

    def _put(self, kind: str, payload: Any) -> None:
        while not self._cancelled.is_set():
            try:
                self._queue.put((kind, payload), timeout=0.1)
                return
            except queue.Full:
                continue

    def _produce(self) -> None:
        iterator: Iterator[Any] | None = None
        try:
            self._demand.acquire()
            if self._cancelled.is_set():
                return
            iterator = iter(self._source())
            while True:
                try:
                    item = next(iterator)
                except StopIteration:
                    self._put(_END, None)
                    return
                self._put(_ITEM, item)
                self._demand.acquire()
                if self._cancelled.is_set():
                    return
        except Exception as e:
            self._put(_ERROR, e)
        finally:
            close = getattr(iterator, "close", None)
            if callable(close):
                try:
                    close()
                except Exception:
                    logger.exception("Failed to close provider stream")

    def _start(self) -> None:
        # The worker inherits the caller's context (correlation id, span).
        run = contextvars.copy_context().run
        self._thread = threading.Thread(target=run, args=(self._produce,), name="agent-runtime-stream", daemon=True)
        self._thread.start()

    # -- consumer ---------------------------------------------------------------

    def __iter__(self) -> Iterator[StreamChunk]:
        if self._iterated:
            raise RuntimeError("ChunkStream can only be iterated once")
        self._iterated = True
        return self._iterate()

    def __enter__(self) -> "ChunkStream":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False

    def _next_message(self) -> tuple[str, Any]:
        self._demand.release()
        try:
            return self._queue.get(timeout=self._timeout)
        except queue.Empty:
            raise llm_error(
                f"Stream timed out after {self._timeout}s without a chunk",
                {"timeout": self._timeout},
            ) from None

    def _iterate(self) -> Iterator[StreamChunk]:
        started = time.monotonic()
        started_at = datetime.now(UTC)
        first_chunk_ms: int | None = None
        self._start()
        try:
            while True:
                kind, payload = self._next_message()
                if kind == _ERROR:
                    if isinstance(payload, AgentError):
                        raise payload
                    raise AgentError.from_exception(payload, message=f"Stream failed: {payload}") from payload
                if kind == _END:
                    break
                for chunk in to_chunks(payload, self._aggregate, self._schema):
                    if first_chunk_ms is None:
                        first_chunk_ms = int((time.monotonic() - started) * 1000)
                    if chunk.kind is ChunkKind.CONTENT:
                        self._aggregate.last_content = chunk.data
                    elif chunk.kind is ChunkKind.THINKING:
                        self._aggregate.thinking.append(chunk.data)
                    yield self._emit(chunk)

            result = self._result(started, started_at, first_chunk_ms)
            yield self._emit(StreamChunk(ChunkKind.DONE, result))
        finally:
            self.close()

    def _emit(self, chunk: StreamChunk) -> StreamChunk:
        if self._on_chunk is not None:
            self._on_chunk(chunk)
        return chunk

    def _result(self, started: float, started_at: datetime, first_chunk_ms: int | None) -> Result:
        aggregate = self._aggregate
        final = aggregate.final or StreamFinal()
        if final.thinking:
            aggregate.thinking.append(final.thinking)
        output = final.output if final.output is not None else aggregate.last_content
        metadata = Metadata(
            duration_ms=int((time.monotonic() - started) * 1000),
            time_to_first_token_ms=first_chunk_ms,
            started_at=started_at,
            completed_at=datetime.now(UTC),
            **self._metadata,
        )
        return Result(
            output=parse_partial(self._schema, output),
            thinking="".join(aggregate.thinking) or None,
            usage=Usage.from_mapping(final.usage if final.usage is not None else aggregate.usage),
            model=final.model or aggregate.model,
            finish_reason=final.finish_reason or aggregate.finish_reason,
            metadata=metadata,
            raw_response=aggregate.final,
        )

    def close(self) -> None:
        """Cancel the worker, discard anything it queued and wait for it to exit."""
        if self._closed:
            return
        self._closed = True
        self._cancelled.set()
        self._demand.release()
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                break
        if self._thread is not None:
            self._thread.join(timeout=self._timeout)
            if self._thread.is_alive():
                logger.warning("Stream producer did not stop within %.1fs", self._timeout)
