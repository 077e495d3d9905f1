import json
import logging
import uuid
from collections.abc import AsyncIterator
from typing import Any

from openai import AsyncOpenAI

from chatfold.config import StreamSettings
from chatfold.message import Message, MessageRole
from chatfold.streaming import AI_MESSAGE_CHUNK

logger = logging.getLogger(__name__)


class ChunkSource:
    """Transport producing raw stream events for one conversational turn.

    Events may be ``[chunk, metadata]`` pairs or bare chunk mappings;
    the assembler decodes either shape.
    """

    async def create_thread(self) -> str:
        raise NotImplementedError

    def stream(
            self,
            thread_id: str,
            assistant_id: str,
            messages: list[Message],
    ) -> AsyncIterator[Any]:
        raise NotImplementedError


_OPENAI_ROLES = {
    MessageRole.HUMAN: "user",
    MessageRole.AI: "assistant",
    MessageRole.TOOL: "tool",
    MessageRole.SYSTEM: "system",
}


def to_openai_message(message: Message) -> dict:
    payload = {
        "role": _OPENAI_ROLES[message.role],
        "content": message.content,
    }
    if message.role == MessageRole.AI and message.tool_calls:
        payload["tool_calls"] = [
            {
                "id": tc.id,
                "type": "function",
                "function": {
                    "name": tc.name,
                    "arguments": tc.args if isinstance(tc.args, str) else json.dumps(tc.args),
                },
            }
            for tc in message.tool_calls
        ]
    if message.role == MessageRole.TOOL and message.tool_call_id:
        payload["tool_call_id"] = message.tool_call_id
    return payload


def completion_chunk_to_event(completion_chunk, metadata: dict) -> list[dict]:
    """Reshape an OpenAI ``ChatCompletionChunk`` into a paired event."""
    chunk = {
        "id": completion_chunk.id,
        "type": AI_MESSAGE_CHUNK,
        "content": "",
        "response_metadata": {"model_name": completion_chunk.model},
    }
    if completion_chunk.choices:
        choice = completion_chunk.choices[0]
        delta = choice.delta
        chunk["content"] = delta.content or ""
        if delta.tool_calls:
            chunk["tool_call_chunks"] = [
                {
                    "index": tc.index,
                    "id": tc.id,
                    "name": tc.function.name if tc.function else None,
                    "args": tc.function.arguments if tc.function else None,
                }
                for tc in delta.tool_calls
            ]
        if choice.finish_reason:
            chunk["response_metadata"]["finish_reason"] = choice.finish_reason
    usage = getattr(completion_chunk, "usage", None)
    if usage is not None:
        chunk["usage_metadata"] = {
            "input_tokens": usage.prompt_tokens,
            "output_tokens": usage.completion_tokens,
            "total_tokens": usage.total_tokens,
        }
    return [chunk, metadata]


class OpenAIChunkSource(ChunkSource):
    """Streams chat completions from an OpenAI-compatible endpoint.

    OpenAI has no server-side threads, so thread ids are generated
    locally and only travel in the event metadata.

    Args:
        settings: Connection settings; read from the environment when
            omitted.
        client: Pre-built ``AsyncOpenAI`` client, mainly for tests.
    """

    def __init__(
            self,
            settings: StreamSettings | None = None,
            client: AsyncOpenAI | None = None,
    ):
        self.settings = settings or StreamSettings()
        if client is None:
            client = AsyncOpenAI(
                api_key=self.settings.api_key,
                base_url=self.settings.base_url,
                max_retries=self.settings.max_retries,
                timeout=self.settings.timeout,
            )
        self.client = client

    async def create_thread(self) -> str:
        return str(uuid.uuid4())

    async def stream(
            self,
            thread_id: str,
            assistant_id: str,
            messages: list[Message],
    ) -> AsyncIterator[Any]:
        metadata = {
            "run_id": str(uuid.uuid4()),
            "thread_id": thread_id,
            "assistant_id": assistant_id,
        }
        logger.info(f"Streaming run {metadata['run_id']} on thread {thread_id}")
        response = await self.client.chat.completions.create(
            model=self.settings.model,
            messages=[to_openai_message(m) for m in messages],
            stream=True,
            stream_options={"include_usage": True},
        )
        async for completion_chunk in response:
            yield completion_chunk_to_event(completion_chunk, metadata)
