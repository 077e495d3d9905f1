"""Fold decoded stream chunks into a conversation message list."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from chatfold.message import Message, MessageRole
from chatfold.streaming import (
    RawChunk,
    RunMetadata,
    is_assistant_content,
    resolve_run_id,
    try_decode_chunk,
)
from chatfold.tool_calls import merge_tool_calls

logger = logging.getLogger(__name__)


class AssembleOutcome(Enum):
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class AssembleResult:
    """The message list after folding one chunk, and what happened.

    ``messages`` is the caller's list object itself whenever the outcome
    is ``SKIPPED`` or ``FAILED``.
    """

    messages: list[Message]
    outcome: AssembleOutcome
    run_id: str | None = None
    chunk: RawChunk | None = None
    metadata: RunMetadata | None = None
    error: Exception | None = None

    @property
    def changed(self) -> bool:
        return self.outcome in (AssembleOutcome.CREATED, AssembleOutcome.UPDATED)


def _text(chunk: RawChunk) -> str:
    return chunk.content if isinstance(chunk.content, str) else ""


def _new_message(run_id: str, chunk: RawChunk) -> Message:
    if chunk.tool_calls:
        tool_calls = merge_tool_calls([], incoming_full=chunk.tool_calls)
    else:
        tool_calls = merge_tool_calls([], incoming_deltas=chunk.tool_call_chunks or [])
    return Message(
        id=run_id,
        role=MessageRole.AI,
        content=_text(chunk),
        tool_calls=tool_calls or None,
    )


def _merge_message(existing: Message, chunk: RawChunk) -> Message:
    tool_calls = merge_tool_calls(
        existing.tool_calls or [],
        chunk.tool_calls or [],
        chunk.tool_call_chunks or [],
    )
    return existing.model_copy(update={
        "content": existing.content + _text(chunk),
        "tool_calls": tool_calls or None,
    })


def assemble_result(
    messages: list[Message],
    raw_chunk: Any,
    *,
    clock: Callable[[], float] = time.time,
) -> AssembleResult:
    """Fold one raw event into *messages*, reporting the outcome.

    Never raises and never mutates *messages*.
    """
    decoded = try_decode_chunk(raw_chunk)
    if decoded.failed:
        return AssembleResult(
            messages=messages, outcome=AssembleOutcome.FAILED, error=decoded.error,
        )
    chunk, metadata = decoded.chunk, decoded.metadata
    if not is_assistant_content(chunk):
        logger.debug(f"Skipping non-assistant chunk of type {chunk.type if chunk else None}")
        return AssembleResult(
            messages=messages, outcome=AssembleOutcome.SKIPPED,
            chunk=chunk, metadata=metadata,
        )

    run_id = resolve_run_id(chunk, metadata, clock)
    try:
        position = next(
            (i for i, m in enumerate(messages)
             if m.role == MessageRole.AI and m.id == run_id),
            None,
        )
        updated = list(messages)
        if position is None:
            updated.append(_new_message(run_id, chunk))
            outcome = AssembleOutcome.CREATED
        else:
            updated[position] = _merge_message(messages[position], chunk)
            outcome = AssembleOutcome.UPDATED
    except Exception as e:
        logger.warning(f"Failed to merge chunk for run {run_id}: {e}")
        return AssembleResult(
            messages=messages, outcome=AssembleOutcome.FAILED,
            run_id=run_id, chunk=chunk, metadata=metadata, error=e,
        )
    return AssembleResult(
        messages=updated, outcome=outcome, run_id=run_id,
        chunk=chunk, metadata=metadata,
    )


def assemble(
    messages: list[Message],
    raw_chunk: Any,
    *,
    clock: Callable[[], float] = time.time,
) -> list[Message]:
    """Return *messages* with one raw stream event folded in.

    Rejected or broken chunks return *messages* unchanged.
    """
    return assemble_result(messages, raw_chunk, clock=clock).messages
