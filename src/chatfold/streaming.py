"""Wire models and decoding for raw stream events.

A transport yields events that are either ``[chunk, metadata]`` pairs or
bare chunk objects.  :func:`decode_chunk` normalises them into
:class:`RawChunk` / :class:`RunMetadata`, :func:`is_assistant_content`
decides whether a chunk may touch the message list, and
:func:`resolve_run_id` picks the key that groups a run's chunks.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

logger = logging.getLogger(__name__)

AI_MESSAGE_CHUNK = "AIMessageChunk"


class ToolCallFragment(BaseModel):
    """A complete (or replacement) tool call carried by a chunk."""

    model_config = ConfigDict(extra="allow")

    id: str | None = None
    name: str | None = None
    args: Any = None
    type: str | None = None


class ToolCallDelta(BaseModel):
    """A positional fragment of tool call arguments."""

    model_config = ConfigDict(extra="allow")

    index: int | None = None
    id: str | None = None
    name: str | None = None
    args: str | None = None


class RawChunk(BaseModel):
    """One untrusted message chunk as emitted by the backend."""

    model_config = ConfigDict(extra="allow")

    content: str | list[Any] | None = None
    type: str | None = None
    id: str | None = None
    tool_calls: list[ToolCallFragment] | None = None
    tool_call_chunks: list[ToolCallDelta] | None = None
    invalid_tool_calls: list[Any] | None = None
    additional_kwargs: dict[str, Any] | None = None
    response_metadata: dict[str, Any] | None = None
    usage_metadata: dict[str, Any] | None = None


class RunMetadata(BaseModel):
    """Context accompanying a chunk in a paired event.

    Only ``run_id`` feeds assembly; the rest is informational and kept
    as sent.
    """

    model_config = ConfigDict(extra="allow")

    run_id: str | None = None
    thread_id: Any = None
    assistant_id: Any = None
    graph_id: Any = None
    run_attempt: Any = None
    created_by: Any = None
    user_id: Any = None
    langgraph_step: Any = None
    langgraph_node: Any = None


@dataclass
class DecodeResult:
    """Outcome of decoding one raw event.

    ``error`` is set when the payload looked decodable but failed
    validation; a result with neither chunk nor error is simply empty.
    """

    chunk: RawChunk | None = None
    metadata: RunMetadata | None = None
    error: Exception | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def empty(self) -> bool:
        return self.chunk is None and self.error is None


def _as_mapping(value: Any) -> Mapping | None:
    if isinstance(value, Mapping):
        return value
    if isinstance(value, BaseModel):
        return value.model_dump()
    return None


def try_decode_chunk(raw: Any) -> DecodeResult:
    """Decode a raw event, reporting validation failures explicitly."""
    if raw is None:
        return DecodeResult()
    if isinstance(raw, (list, tuple)):
        chunk_data = raw[0] if len(raw) > 0 else None
        metadata_data = raw[1] if len(raw) > 1 else None
    else:
        chunk_data, metadata_data = raw, None

    chunk_data = _as_mapping(chunk_data) if chunk_data else None
    metadata_data = _as_mapping(metadata_data) if metadata_data else None

    try:
        chunk = RawChunk.model_validate(chunk_data) if chunk_data else None
    except ValidationError as e:
        logger.warning(f"Discarding malformed stream event: {e}")
        return DecodeResult(error=e)

    metadata = None
    if metadata_data:
        try:
            metadata = RunMetadata.model_validate(metadata_data)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed run metadata: {e}")
    return DecodeResult(chunk=chunk, metadata=metadata)


def decode_chunk(raw: Any) -> tuple[RawChunk | None, RunMetadata | None]:
    """Normalise a raw event into ``(chunk, metadata)``. Never raises."""
    result = try_decode_chunk(raw)
    return result.chunk, result.metadata


def is_assistant_content(chunk: RawChunk | None) -> bool:
    """Whether *chunk* carries assistant text or tool call data."""
    if chunk is None or chunk.type != AI_MESSAGE_CHUNK:
        return False
    return bool(
        (isinstance(chunk.content, str) and chunk.content)
        or chunk.tool_calls
        or chunk.tool_call_chunks
    )


def resolve_run_id(
    chunk: RawChunk | None,
    metadata: RunMetadata | None,
    clock: Callable[[], float] = time.time,
) -> str:
    """Pick the key grouping all chunks of one generation run.

    Falls back to a timestamp when neither the chunk id nor the
    metadata run id is available.  That fallback yields a new id on
    every call, so such chunks never merge into an existing message.
    """
    if chunk is not None and chunk.id:
        return chunk.id
    if metadata is not None and metadata.run_id:
        return f"ai-{metadata.run_id}"
    return f"ai-response-{int(clock() * 1000)}"
