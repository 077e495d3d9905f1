import time
import uuid
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_serializer

DO_NOT_RENDER_ID_PREFIX = "do-not-render-"


class MessageRole(Enum):
    HUMAN = "human"
    AI = "ai"
    TOOL = "tool"
    SYSTEM = "system"


class ToolCallRecord(BaseModel):
    """A tool call the assistant is building.

    ``args`` is either a structured value taken from a complete tool call
    or a string that grows as argument deltas arrive. ``index`` is the
    positional slot the record occupies in its message. ``anonymous`` marks
    a record opened by a complete tool call that carried no id; later
    id-less tool calls fold into it.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str = ""
    args: Any = ""
    kind: Literal["tool_call"] = Field(default="tool_call", alias="type")
    index: int | None = None
    anonymous: bool = Field(default=False, exclude=True)


class Message(BaseModel):
    id: str
    role: MessageRole
    content: str = ""
    tool_calls: list[ToolCallRecord] | None = None
    tool_call_id: str | None = None

    @field_serializer('role')
    def serialize_role(self, role: MessageRole, _info) -> str:
        return role.value


def generate_message_id() -> str:
    return f"msg-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


def upsert_message(messages: list[Message], message: Message) -> list[Message]:
    """Replace the message sharing ``message.id`` or append it."""
    updated = list(messages)
    for position, existing in enumerate(updated):
        if existing.id == message.id:
            updated[position] = message
            return updated
    updated.append(message)
    return updated


def filter_renderable_messages(messages: list[Message]) -> list[Message]:
    return [
        m for m in messages
        if not m.id.startswith(DO_NOT_RENDER_ID_PREFIX)
    ]


def get_content_string(content: Any) -> str:
    """Flatten message content into display text.

    Plain strings pass through. Lists of content blocks contribute
    their ``text`` blocks, and image blocks become ``[Image]``.
    """
    if not content:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for item in content:
            if not isinstance(item, dict):
                continue
            if item.get("type") == "text":
                parts.append(item.get("text") or "")
            elif item.get("type") == "image_url":
                parts.append("[Image]")
        return "".join(parts)
    return ""


def has_tool_calls(message: Message) -> bool:
    return message.role == MessageRole.AI and bool(message.tool_calls)


def ensure_tool_calls_have_responses(messages: list[Message]) -> list[Message]:
    """Build placeholder tool messages for unanswered tool calls.

    Returns only the new placeholders; the caller decides where they go.
    """
    answered = {
        m.tool_call_id for m in messages
        if m.role == MessageRole.TOOL and m.tool_call_id
    }
    placeholders = []
    for message in messages:
        if not has_tool_calls(message):
            continue
        for tc in message.tool_calls:
            if tc.id and tc.id not in answered:
                placeholders.append(Message(
                    id=f"tool-{tc.id}",
                    role=MessageRole.TOOL,
                    content="Tool call completed",
                    tool_call_id=tc.id,
                ))
                answered.add(tc.id)
    return placeholders
