"""Server-Sent Events adapter for streaming events."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator

from chatfold.events import (
    ChunkSkippedEvent,
    MessagesUpdatedEvent,
    StreamCompleteEvent,
    StreamEvent,
)


def _payload(event: StreamEvent) -> dict:
    if isinstance(event, MessagesUpdatedEvent):
        return {
            "run_id": event.run_id,
            "messages": [m.model_dump(mode="json", by_alias=True) for m in event.messages],
        }
    if isinstance(event, ChunkSkippedEvent):
        return {"outcome": event.outcome.value, "error": event.error}
    if isinstance(event, StreamCompleteEvent):
        return {"message_count": len(event.messages)}
    return {}


async def sse_generator(
    event_stream: AsyncIterator[StreamEvent],
) -> AsyncIterator[str]:
    """Convert a StreamEvent async iterator into SSE-formatted strings."""
    async for event in event_stream:
        event_type = type(event).__name__
        data = json.dumps(_payload(event))
        yield f"event: {event_type}\ndata: {data}\n\n"
    yield "event: done\ndata: {}\n\n"
