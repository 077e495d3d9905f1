"""Events emitted while folding a chunk stream."""

from __future__ import annotations

from dataclasses import dataclass, field

from chatfold.assembler import AssembleOutcome
from chatfold.message import Message
from chatfold.streaming import RunMetadata


@dataclass
class StreamEvent:
    """Base for all streaming events."""


@dataclass
class MessagesUpdatedEvent(StreamEvent):
    """A chunk created or extended the message for ``run_id``."""

    messages: list[Message] = field(default_factory=list)
    run_id: str = ""


@dataclass
class ChunkSkippedEvent(StreamEvent):
    """A chunk left the message list untouched.

    ``outcome`` is ``SKIPPED`` for non-assistant chunks and ``FAILED``
    for payloads that could not be decoded or merged.
    """

    outcome: AssembleOutcome = AssembleOutcome.SKIPPED
    metadata: RunMetadata | None = None
    error: str | None = None


@dataclass
class StreamCompleteEvent(StreamEvent):
    """Final event; always the last event yielded."""

    messages: list[Message] = field(default_factory=list)
