from dataclasses import dataclass, field

import pytest

from chatfold.message import Message, MessageRole
from chatfold.provider import ChunkSource


# ---------------------------------------------------------------------------
# Raw chunk builders (LangGraph "messages-tuple" wire shape)
# ---------------------------------------------------------------------------

def make_chunk(
    content: str | None = "",
    run_id: str | None = "r1",
    type: str = "AIMessageChunk",
    **extra,
) -> dict:
    """Bare AIMessageChunk-shaped mapping."""
    chunk = {"type": type, "content": content, **extra}
    if run_id is not None:
        chunk["id"] = run_id
    return chunk


def make_delta(
    index: int | None = 0,
    args: str | None = None,
    call_id: str | None = None,
    name: str | None = None,
) -> dict:
    delta = {"args": args, "id": call_id, "name": name}
    if index is not None:
        delta["index"] = index
    return delta


def make_tool_call(call_id: str, name: str, args) -> dict:
    return {"id": call_id, "name": name, "args": args, "type": "tool_call"}


def paired(chunk: dict, **metadata) -> list:
    """``[chunk, metadata]`` event as emitted by runs.stream."""
    return [chunk, metadata or None]


# ---------------------------------------------------------------------------
# OpenAI stream doubles (mirrors ChatCompletionChunk shape)
# ---------------------------------------------------------------------------

@dataclass
class MockFunctionDelta:
    name: str | None = None
    arguments: str | None = None


@dataclass
class MockToolCallDelta:
    index: int
    id: str | None = None
    function: MockFunctionDelta | None = None


@dataclass
class MockDelta:
    content: str | None = None
    tool_calls: list[MockToolCallDelta] | None = None


@dataclass
class MockChoice:
    delta: MockDelta
    finish_reason: str | None = None


@dataclass
class MockUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass
class MockCompletionChunk:
    id: str = "chatcmpl-1"
    model: str = "mock-model"
    choices: list[MockChoice] = field(default_factory=list)
    usage: MockUsage | None = None


async def aiter_list(items):
    for item in items:
        yield item


class MockChunkSource(ChunkSource):
    """Source that replays pre-queued events. No network calls."""

    def __init__(self, events=None, error: Exception | None = None):
        self.events = list(events or [])
        self.error = error
        self.threads_created = 0
        self.call_log: list[dict] = []

    async def create_thread(self) -> str:
        self.threads_created += 1
        return f"thread-{self.threads_created}"

    async def stream(self, thread_id, assistant_id, messages):
        self.call_log.append({
            "thread_id": thread_id,
            "assistant_id": assistant_id,
            "messages": list(messages),
        })
        for event in self.events:
            yield event
        if self.error is not None:
            raise self.error


@pytest.fixture
def human_message():
    return Message(id="h1", role=MessageRole.HUMAN, content="Hi there")


@pytest.fixture
def ticking_clock():
    """Clock advancing one second per call."""
    ticks = iter(range(1_000, 1_000_000))
    return lambda: float(next(ticks))
