import logging
import time
from collections.abc import AsyncIterable, AsyncIterator, Callable
from typing import Any

from chatfold.assembler import assemble_result
from chatfold.events import (
    ChunkSkippedEvent,
    MessagesUpdatedEvent,
    StreamCompleteEvent,
    StreamEvent,
)
from chatfold.instrumentation import (
    record_chunk,
    record_error,
    record_usage,
    stream_span,
)
from chatfold.message import Message
from chatfold.provider import ChunkSource
from chatfold.session import ChatSession
from chatfold.throttle import DEFAULT_WINDOW, UpdateThrottle

logger = logging.getLogger(__name__)

UpdateCallback = Callable[[list[Message]], Any]


class StreamRunner:
    """Folds a raw chunk stream into a message list.

    ``run()`` drains ``iter()``.  ``iter()`` is the streaming entry point
    and yields an event per chunk plus a final
    :class:`StreamCompleteEvent`.

    Args:
        throttle_window: Quiescence window used by ``run()`` before
            notifying ``on_update``.
        clock: Time source for fallback run ids.
    """

    def __init__(
        self,
        throttle_window: float = DEFAULT_WINDOW,
        clock: Callable[[], float] = time.time,
    ):
        self.throttle_window = throttle_window
        self.clock = clock

    async def iter(
        self,
        source: AsyncIterable[Any],
        messages: list[Message],
        span=None,
    ) -> AsyncIterator[StreamEvent]:
        """Fold *source* into *messages*, yielding events as chunks land."""
        current = messages
        async for raw in source:
            result = assemble_result(current, raw, clock=self.clock)
            record_chunk(span, result)
            if result.chunk is not None:
                record_usage(span, result.chunk.usage_metadata)
            if result.changed:
                current = result.messages
                yield MessagesUpdatedEvent(messages=current, run_id=result.run_id)
            else:
                yield ChunkSkippedEvent(
                    outcome=result.outcome,
                    metadata=result.metadata,
                    error=str(result.error) if result.error else None,
                )
        yield StreamCompleteEvent(messages=current)

    async def run(
        self,
        source: AsyncIterable[Any],
        messages: list[Message],
        on_update: UpdateCallback | None = None,
        span=None,
    ) -> list[Message]:
        """Fold *source* and return the final message list.

        ``on_update`` receives throttled snapshots; the last snapshot is
        always delivered before returning.
        """
        final = messages
        with UpdateThrottle(self.throttle_window) as throttle:
            async for event in self.iter(source, messages, span):
                if isinstance(event, MessagesUpdatedEvent) and on_update is not None:
                    snapshot = event.messages
                    throttle.schedule(lambda: on_update(snapshot))
                elif isinstance(event, StreamCompleteEvent):
                    final = event.messages
            throttle.flush()
        return final


class ChatStream:
    """Drives conversational turns against a chunk source.

    Each ``send_message()`` appends the human message optimistically,
    streams the assistant's reply into the session, and records a
    failure on the session instead of raising.  A failed turn is rolled
    back to the messages held before it started; exceptions raised by
    ``on_update`` are logged and do not fail the turn.  Failed calls are
    not retried.

    Args:
        source: Transport producing raw stream events.
        assistant_id: Assistant (or graph) the turns are addressed to.
        runner: StreamRunner instance, or a default StreamRunner.
    """

    def __init__(
        self,
        source: ChunkSource,
        assistant_id: str,
        runner: StreamRunner | None = None,
    ):
        self.source = source
        self.assistant_id = assistant_id
        self.runner = runner or StreamRunner()
        self.session = ChatSession()
        self._interrupted = False

    @property
    def messages(self) -> list[Message]:
        return self.session.messages

    async def send_message(
        self,
        message: Message,
        on_update: UpdateCallback | None = None,
    ) -> list[Message]:
        session = self.session
        before = session.messages
        session.messages = [*before, message]
        session.is_streaming = True
        session.error = None
        self._interrupted = False

        async with stream_span(session.thread_id, self.assistant_id) as span:
            try:
                if session.thread_id is None:
                    session.thread_id = await self.source.create_thread()
                stream = self.source.stream(
                    session.thread_id, self.assistant_id, session.messages,
                )

                def _update(messages: list[Message]) -> Any:
                    session.messages = messages
                    if on_update is None:
                        return None
                    try:
                        return on_update(messages)
                    except Exception as e:
                        logger.error(f"on_update callback failed: {e}")
                        record_error(span, e)
                        return None

                session.messages = await self.runner.run(
                    self._until_interrupted(stream), session.messages,
                    on_update=_update, span=span,
                )
            except Exception as e:
                logger.error(f"Failed to send message: {e}")
                record_error(span, e)
                session.error = "Failed to send message"
                session.messages = before
            finally:
                session.is_streaming = False
        return session.messages

    async def _until_interrupted(self, stream: AsyncIterable[Any]) -> AsyncIterator[Any]:
        async for raw in stream:
            if self._interrupted:
                logger.info("Stream interrupted; dropping remaining chunks")
                break
            yield raw

    def interrupt(self) -> None:
        """Stop consuming the current stream after the chunk in flight."""
        self._interrupted = True
        self.session.is_streaming = False

    def clear_messages(self) -> None:
        self.session.messages = []
        self.session.thread_id = None
